import os
import shutil
import tempfile

# Settings are read at import time: point everything at throwaway locations first
_TMP = tempfile.mkdtemp(prefix="advreplace-tests-")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'advreplace-test.db')}"
os.environ["ADVREPLACE_TEMP_DIR"] = os.path.join(_TMP, "temp")
os.environ["ADVREPLACE_FILE_STORAGE_DIR"] = os.path.join(_TMP, "filestore")
os.environ["ADVREPLACE_TABLE_PREFIX"] = ""
os.environ["ADVREPLACE_WWWROOT"] = ""

import pytest  # noqa: E402
from sqlalchemy import Column, Integer, MetaData, String, Table, Text, insert  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from advreplace.db.base import Base  # noqa: E402
from advreplace.db.session import SessionLocal, engine  # noqa: E402
from advreplace.models import FileSearch, Search, StoredFile  # noqa: E402,F401
from advreplace.services.file_storage import FileStorage  # noqa: E402

# A small slice of the host schema
host = MetaData()

Table(
    "course",
    host,
    Column("id", Integer, primary_key=True),
    Column("shortname", String(255), nullable=False, default=""),
    Column("fullname", String(254), nullable=False, default=""),
    Column("summary", Text),
)
Table(
    "page",
    host,
    Column("id", Integer, primary_key=True),
    Column("course", Integer, nullable=False, default=0),
    Column("name", String(255), nullable=False, default=""),
    Column("intro", Text),
    Column("introformat", Integer, nullable=False, default=0),
    Column("content", Text),
    Column("contentformat", Integer, nullable=False, default=0),
    Column("timecreated", Integer, nullable=False, default=0),
    Column("timemodified", Integer, nullable=False, default=0),
)
Table(
    "assign",
    host,
    Column("id", Integer, primary_key=True),
    Column("course", Integer, nullable=False, default=0),
    Column("name", String(255), nullable=False, default=""),
    Column("intro", Text),
    Column("introformat", Integer, nullable=False, default=0),
)
Table(
    "config",
    host,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("value", Text),
)
Table(
    "logstore_standard_log",
    host,
    Column("id", Integer, primary_key=True),
    Column("other", Text),
)
Table(
    "tag_correlation",
    host,
    Column("tagid", Integer, primary_key=True),
    Column("note", Text),
)
Table(
    "tag",
    host,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False, default=""),
    Column("rawname", String(4), nullable=False, default=""),
)
Table(
    "modules",
    host,
    Column("id", Integer, primary_key=True),
    Column("name", String(20), nullable=False),
)
Table(
    "course_modules",
    host,
    Column("id", Integer, primary_key=True),
    Column("course", Integer, nullable=False),
    Column("module", Integer, nullable=False),
    Column("instance", Integer, nullable=False),
)


@pytest.fixture()
def db() -> Session:
    Base.metadata.create_all(engine)
    host.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        host.drop_all(engine)
        Base.metadata.drop_all(engine)
        # Job ids restart with the fresh tables, so stored output must not outlive them
        shutil.rmtree(os.environ["ADVREPLACE_FILE_STORAGE_DIR"], ignore_errors=True)
        shutil.rmtree(os.environ["ADVREPLACE_TEMP_DIR"], ignore_errors=True)


@pytest.fixture()
def add_rows(db: Session):
    """add_rows("page", {...}, {...}) inserts host rows and commits."""

    def _add(table: str, *rows: dict) -> None:
        db.execute(insert(host.tables[table]), list(rows))
        db.commit()

    return _add


@pytest.fixture()
def storage(tmp_path) -> FileStorage:
    return FileStorage(root=tmp_path / "filestore", temp_dir=tmp_path / "temp")
