import csv

import pytest

from advreplace.cli import find, find_in_files, replace
from advreplace.models.file_search import FileSearch
from advreplace.models.search import Search


def test_find_writes_csv_to_output(db, add_rows, tmp_path):
    add_rows("page", {"id": 1, "course": 0, "name": "p", "content": "hello world"})
    output = tmp_path / "found.csv"

    assert find.main(["--search", "hello", "--tables", "page", "--output", str(output)]) == 0

    with open(output, newline="", encoding="utf-8") as fp:
        rows = list(csv.reader(fp))
    assert rows[1][:6] == ["page", "content", "", "", "1", "hello world"]


def test_find_prints_to_stdout(db, add_rows, capsys):
    add_rows("page", {"id": 1, "course": 0, "name": "p", "content": "hello world"})

    assert find.main(["--search", "hello", "--summary"]) == 0
    assert capsys.readouterr().out.splitlines() == ["table,column", "page,content"]


def test_find_rejects_two_methods(db):
    assert find.main(["--search", "a", "--regex-match", "b"]) == 1


def test_find_in_files_bad_regex(db):
    assert find_in_files.main(["--regex-match", "(bad"]) == 1


def test_replace_from_file(db, add_rows, tmp_path):
    add_rows("page", {"id": 1, "course": 0, "name": "p", "content": "hello world"})
    path = tmp_path / "replace.csv"
    path.write_text("table,column,id,match,replace\npage,content,1,hello,goodbye\n", encoding="utf-8")

    assert replace.main(["--input", str(path)]) == 0
    assert replace.main(["--input", str(tmp_path / "missing.csv")]) == 1


def test_unexpected_errors_fail_the_job(db, add_rows, monkeypatch):
    def boom(db, job, **kwargs):
        raise RuntimeError("schema changed mid-scan")

    monkeypatch.setattr(find, "search_db", boom)

    with pytest.raises(RuntimeError):
        find.main(["--search", "hello"])

    db.expire_all()
    job = db.query(Search).one()
    assert job.status == "failed"
    assert job.error == "schema changed mid-scan"


def test_unexpected_errors_fail_the_file_search(db, monkeypatch):
    def boom(db, job, **kwargs):
        raise OSError()

    monkeypatch.setattr(find_in_files, "search_files", boom)

    with pytest.raises(OSError):
        find_in_files.main(["--regex-match", "needle"])

    db.expire_all()
    job = db.query(FileSearch).one()
    assert job.status == "failed"
    assert job.error == "OSError"
