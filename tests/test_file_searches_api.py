import io
import zipfile

from fastapi.testclient import TestClient

from advreplace.main import app
from advreplace.models.stored_file import StoredFile
from advreplace.services.file_storage import FileStorage

client = TestClient(app)


def _h5p() -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("content/content.json", '{"text": "a needle"}')
    return buf.getvalue()


def test_create_file_search_runs_in_test_env(db):
    storage = FileStorage()
    db.add(
        StoredFile(
            contenthash=storage.add_content(_h5p()),
            contextid=1,
            component="mod_h5pactivity",
            filearea="package",
            itemid=0,
            filepath="/",
            filename="quiz.h5p",
            mimetype="application/zip.h5p",
        )
    )
    db.commit()

    r = client.post("/file-searches", json={"pattern": "needle"})
    assert r.status_code == 200
    file_search_id = r.json()["file_search_id"]

    job = client.get(f"/file-searches/{file_search_id}").json()
    assert job["status"] == "finished"
    assert job["matches"] == 1
    assert job["skipped_containers"] == 0

    d = client.get(f"/file-searches/{file_search_id}/download")
    assert d.status_code == 200
    assert "zip,content/content.json" in d.text


def test_create_file_search_validation(db):
    assert client.post("/file-searches", json={"pattern": " "}).status_code == 400
    assert client.post("/file-searches", json={"pattern": "ok", "zip_filenames": "(bad"}).status_code == 400


def test_list_copy_and_delete(db):
    file_search_id = client.post(
        "/file-searches", json={"pattern": "needle", "components": "mod_page", "open_zips": False}
    ).json()["file_search_id"]

    listing = client.get("/file-searches").json()
    assert listing["file_searches"][0]["options"] == "components: mod_page; don't open zips"

    copy = client.get(f"/file-searches/{file_search_id}/copy").json()
    assert copy["data"]["components"] == "mod_page"
    assert copy["data"]["open_zips"] is False

    assert client.delete(f"/file-searches/{file_search_id}").status_code == 200
    assert client.get(f"/file-searches/{file_search_id}").status_code == 404
