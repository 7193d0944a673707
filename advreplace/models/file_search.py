from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from advreplace.db.base import Base


class FileSearch(Base):
    """A regex search over the file store, optionally looking inside zip archives."""

    __tablename__ = "advreplace_file_searches"

    FILEAREA = "files"

    COPY_COLUMNS = [
        "name",
        "pattern",
        "components",
        "skip_components",
        "mimetypes",
        "skip_mimetypes",
        "filenames",
        "skip_filenames",
        "skip_areas",
        "open_zips",
        "zip_filenames",
        "skip_zip_filenames",
        "zip_mimetypes",
        "skip_zip_mimetypes",
    ]

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    pattern: Mapped[str] = mapped_column(Text, nullable=False)

    # file record filters (comma separated; components accept component:filearea)
    components: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skip_components: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mimetypes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skip_mimetypes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    filenames: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skip_filenames: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skip_areas: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # container members; None means use the per-mimetype default
    open_zips: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    zip_filenames: Mapped[str] = mapped_column(Text, nullable=False, default="")  # regex
    skip_zip_filenames: Mapped[str] = mapped_column(Text, nullable=False, default="")  # regex
    zip_mimetypes: Mapped[str] = mapped_column(Text, nullable=False, default="")  # regex
    skip_zip_mimetypes: Mapped[str] = mapped_column(Text, nullable=False, default="")  # regex

    origin: Mapped[str] = mapped_column(String(10), nullable=False, default="web")

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="queued", index=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    progress: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_containers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    time_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    time_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )
