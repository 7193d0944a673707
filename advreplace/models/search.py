from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from advreplace.db.base import Base


class Search(Base):
    """A DB-wide text search job and its progress."""

    __tablename__ = "advreplace_searches"

    # Output artifacts for this job live under this file area
    FILEAREA = "search"

    # Options copied when re-running a previous search
    COPY_COLUMNS = ["name", "search", "regex", "prematch", "tables", "skip_tables", "skip_columns", "summary"]

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(32), nullable=False, default="")

    # criteria
    search: Mapped[str] = mapped_column(Text, nullable=False)
    regex: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prematch: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tables: Mapped[str] = mapped_column(Text, nullable=False, default="")  # table or table:column, comma separated
    skip_tables: Mapped[str] = mapped_column(Text, nullable=False, default="")
    skip_columns: Mapped[str] = mapped_column(Text, nullable=False, default="")
    summary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    origin: Mapped[str] = mapped_column(String(10), nullable=False, default="web")  # web|cli

    # lifecycle
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="queued", index=True)  # queued|running|finished|failed
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    progress: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    matches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    time_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    time_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )
