from fastapi.testclient import TestClient

from advreplace.main import app

client = TestClient(app)


def test_create_search_runs_in_test_env(db, add_rows):
    add_rows("page", {"id": 1, "course": 0, "name": "p", "content": "hello world"})

    r = client.post("/searches", json={"search": "hello", "name": "Greetings"})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    search_id = body["search_id"]

    g = client.get(f"/searches/{search_id}")
    assert g.status_code == 200
    job = g.json()
    assert job["status"] == "finished"
    assert job["error"] is None
    assert job["matches"] == 1
    assert job["progress"] == 100
    assert job["origin"] == "web"
    assert job["duration"] is not None

    d = client.get(f"/searches/{search_id}/download")
    assert d.status_code == 200
    assert d.headers["content-type"].startswith("text/csv")
    assert "greetings.csv" in d.headers["content-disposition"]
    assert "page,content,,,1,hello world," in d.text


def test_create_search_rejects_two_methods(db):
    r = client.post("/searches", json={"search": "a", "regex_match": "b"})
    assert r.status_code == 400
    assert "one of the search methods" in r.json()["detail"]

    r = client.post("/searches", json={"regex_match": "(bad"})
    assert r.status_code == 400


def test_create_search_rejects_path_names(db):
    r = client.post("/searches", json={"search": "hello", "name": "../../../../escaped"})
    assert r.status_code == 400
    assert client.get("/searches").json()["total"] == 0


def test_list_copy_and_delete(db, add_rows):
    add_rows("page", {"id": 1, "course": 0, "name": "p", "content": "no match here"})
    first = client.post("/searches", json={"search": "zebra", "tables": "page", "summary": True}).json()["search_id"]
    second = client.post("/searches", json={"regex_match": r"\d+", "prematch": "1"}).json()["search_id"]

    listing = client.get("/searches").json()
    assert listing["total"] == 2
    assert [s["id"] for s in listing["searches"]] == [second, first]
    assert listing["searches"][1]["options"] == "tables: page; summary"

    copy = client.get(f"/searches/{second}/copy").json()
    assert copy["data"]["regex_match"] == r"\d+"
    assert copy["data"]["search"] is None

    # Nothing matched, nothing to download
    assert client.get(f"/searches/{first}/download").status_code == 404

    assert client.delete(f"/searches/{first}").json()["deleted"] is True
    assert client.get(f"/searches/{first}").status_code == 404
    assert client.delete(f"/searches/{first}").status_code == 404
