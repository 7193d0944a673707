import csv
import io
import zipfile
from types import SimpleNamespace

import pytest

from advreplace.models.stored_file import StoredFile
from advreplace.services import file_search
from advreplace.services.file_search import (
    HEADER,
    FileSearcher,
    MemberFilters,
    header_for,
    search_files,
    should_open,
)
from advreplace.services.jobs import create_file_search, get_filename
from advreplace.services.regex_matcher import RegexMatcher


def _zip(members: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buf.getvalue()


H5P = _zip(
    {
        "h5p.json": '{"title": "Quiz"}',
        "content/": "",
        "content/content.json": '{"text": "Find the NEEDLE at https://example.com"}',
        "content/page.html": "<p>needle</p>",
        "content/images/needle.png": "binary needle",
    }
)


def _record(content_hash: str, mimetype: str, filename: str = "file") -> SimpleNamespace:
    return SimpleNamespace(
        contenthash=content_hash,
        contextid=5,
        component="mod_h5pactivity",
        filearea="package",
        itemid=0,
        filepath="/",
        filename=filename,
        mimetype=mimetype,
    )


def _searcher(storage, pattern="needle", **kwargs):
    out = io.StringIO()
    searcher = FileSearcher(RegexMatcher(pattern, ignore_case=True), csv.writer(out), storage, **kwargs)
    return searcher, out


def _rows(out: io.StringIO) -> list[list[str]]:
    return list(csv.reader(io.StringIO(out.getvalue())))


def _read(path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as fp:
        return list(csv.reader(fp))


def test_header_has_a_pair_per_group():
    assert header_for(RegexMatcher("needle")) == HEADER
    assert header_for(RegexMatcher("(ne)(ed)le"))[-4:] == ["offset_1", "match_1", "offset_2", "match_2"]


def test_grep_plain_content_with_groups(storage):
    searcher, out = _searcher(storage, pattern=r"ne(ed)le(s)?")
    row = ["5", "mod_page", "content", "0", "/", "index.html", "text/html", "plain", "", ""]

    assert searcher.grep_content(row, b"<p>A NEEDLE and needles</p>") == 2
    assert _rows(out) == [
        row + ["5", "NEEDLE", "7", "ED", "", ""],
        row + ["16", "needles", "18", "ed", "22", "s"],
    ]


def test_container_policy():
    assert should_open("application/zip.h5p", None)
    assert not should_open("application/zip", None)
    assert should_open("application/zip", True)
    assert not should_open("application/zip.h5p", False)
    assert not should_open("text/html", True)


def test_h5p_members_are_searched(storage):
    searcher, out = _searcher(storage)
    record = _record(storage.add_content(H5P), "application/zip.h5p", "quiz.h5p")

    assert searcher.search_file(record) == 3
    rows = _rows(out)
    assert {r[7] for r in rows} == {"zip"}
    assert [r[8] for r in rows] == ["content/content.json", "content/page.html", "content/images/needle.png"]


def test_plain_zip_is_not_opened_by_default(storage):
    searcher, out = _searcher(storage)
    record = _record(storage.add_content(H5P), "application/zip", "backup.zip")

    searcher.search_file(record)
    assert all(r[7] == "plain" for r in _rows(out))

    searcher, out = _searcher(storage, open_zips=True)
    assert searcher.search_file(record) == 3


def test_member_filters(storage):
    record = _record(storage.add_content(H5P), "application/zip.h5p")

    searcher, out = _searcher(storage, filters=MemberFilters(filenames=RegexMatcher(r"\.json$")))
    assert searcher.search_file(record) == 1

    searcher, out = _searcher(storage, filters=MemberFilters(skip_mimetypes=RegexMatcher("^image/")))
    assert searcher.search_file(record) == 2

    searcher, out = _searcher(storage, filters=MemberFilters(mimetypes=RegexMatcher("html")))
    assert [r[8] for r in _rows(out)] == []
    assert searcher.search_file(record) == 1
    assert _rows(out)[0][8] == "content/page.html"


def test_broken_archive_is_skipped_and_counted(storage):
    searcher, out = _searcher(storage)
    record = _record(storage.add_content(b"needle, but not a zip"), "application/zip.h5p")

    assert searcher.search_file(record) == 0
    assert searcher.skipped_containers == 1
    assert out.getvalue() == ""


def test_empty_content(storage):
    searcher, _ = _searcher(storage)
    assert searcher.unzip_content(["5", "c", "a", "0", "/", "f", "application/zip", "plain", "", ""], b"") == 0
    assert searcher.skipped_containers == 0


def _add_file(db, storage, content: bytes, **fields) -> StoredFile:
    values = {"contextid": 1, "itemid": 0, "filepath": "/", "filesize": len(content)}
    values.update(fields)
    record = StoredFile(contenthash=storage.add_content(content), **values)
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def files(db, storage):
    _add_file(db, storage, b"<p>a needle</p>", component="mod_page", filearea="content", filename="index.html", mimetype="text/html")
    _add_file(db, storage, H5P, component="mod_h5pactivity", filearea="package", filename="quiz.h5p", mimetype="application/zip.h5p")
    _add_file(db, storage, b"needle", component="course", filearea="overviewfiles", filename="a.txt", mimetype="text/plain")
    _add_file(db, storage, b"broken", component="mod_h5pactivity", filearea="package", filename="bad.h5p", mimetype="application/zip.h5p", contextid=2)


def test_search_files_job(db, files, storage, tmp_path):
    job = create_file_search(db, pattern="NEEDLE", skip_components="course")
    output = tmp_path / "out.csv"

    assert search_files(db, job, output=output, storage=storage) == 4

    rows = _read(output)
    assert rows[0] == HEADER
    # Ordered by component, filearea, contextid, itemid
    assert [r[1] for r in rows[1:]] == ["mod_h5pactivity"] * 3 + ["mod_page"]
    assert rows[-1][5:9] == ["index.html", "text/html", "plain", ""]

    db.refresh(job)
    assert job.status == "finished"
    assert job.progress == 100
    assert job.matches == 4
    assert job.skipped_containers == 1
    assert storage.get_artifact(job.FILEAREA, job.id, get_filename(job)) is not None


def test_search_files_with_filters(db, files, storage, tmp_path):
    job = create_file_search(db, pattern="needle", components="course:overviewfiles,mod_page")
    output = tmp_path / "out.csv"

    assert search_files(db, job, output=output, storage=storage) == 2
    rows = _read(output)
    assert [r[1] for r in rows[1:]] == ["course", "mod_page"]


def test_search_files_without_matches(db, files, storage, tmp_path):
    job = create_file_search(db, pattern="haystack", mimetypes="text/plain")

    assert search_files(db, job, output=tmp_path / "out.csv", storage=storage) == 0
    db.refresh(job)
    assert job.status == "finished"
    assert storage.get_artifact(job.FILEAREA, job.id, get_filename(job)) is None


def test_search_files_reads_the_index_in_pages(db, files, storage, tmp_path, monkeypatch):
    monkeypatch.setattr(file_search, "PAGE_SIZE", 1)
    job = create_file_search(db, pattern="NEEDLE")
    output = tmp_path / "out.csv"

    # Progress is committed after every file, between the page queries
    assert search_files(db, job, output=output, storage=storage) == 5
    assert [r[5] for r in _read(output)[1:]] == ["a.txt", "quiz.h5p", "quiz.h5p", "quiz.h5p", "index.html"]
    db.refresh(job)
    assert job.status == "finished"
    assert job.skipped_containers == 1
