"""
Search the file store with a regular expression.

File records are selected from the host's file index with the filters of
the job, their content is grepped as bytes, and zip-family archives can be
opened so that every member is grepped on its own.
"""
from __future__ import annotations

import csv
import io
import logging
import mimetypes
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import column as sql_column
from sqlalchemy import func, select, text
from sqlalchemy import table as sql_table
from sqlalchemy.orm import Session

from advreplace.core.config import settings
from advreplace.models.file_search import FileSearch
from advreplace.models.stored_file import StoredFile
from advreplace.services.file_storage import FileStorage
from advreplace.services.jobs import (
    ProgressCallback,
    ProgressTracker,
    finish_job,
    get_filename,
    start_job,
)
from advreplace.services.predicates import make_where_clause
from advreplace.services.regex_matcher import GroupSpans, RegexMatcher
from advreplace.services.schema import SchemaProvider

logger = logging.getLogger(__name__)

# Columns of the csv output, in order. offset/match repeat for every capture group.
CSV_CONTEXTID = 0
CSV_COMPONENT = 1
CSV_FILEAREA = 2
CSV_ITEMID = 3
CSV_FILEPATH = 4
CSV_FILENAME = 5
CSV_MIMETYPE = 6
CSV_STRATEGY = 7
CSV_INTERNAL = 8  # path of the member inside an archive, for the zip strategy
CSV_REPLACE = 9
CSV_OFFSET = 10
CSV_MATCH = 11

HEADER = [
    "contextid",
    "component",
    "filearea",
    "itemid",
    "filepath",
    "filename",
    "mimetype",
    "strategy",
    "internal",
    "replace",
    "offset",
    "match",
]

# Container mimetypes and whether they are opened when the job doesn't say
CONTAINER_MIMETYPES = {
    "application/zip": False,
    "application/zip.h5p": True,
}

ORDER_BY = ("component", "filearea", "contextid", "itemid", "id")

# File records fetched per query
PAGE_SIZE = 500


def header_for(matcher: RegexMatcher) -> list[str]:
    extra = []
    for group in range(1, matcher.group_count + 1):
        extra += [f"offset_{group}", f"match_{group}"]
    return HEADER + extra


def should_open(mimetype: str | None, open_zips: bool | None) -> bool:
    if mimetype not in CONTAINER_MIMETYPES:
        return False
    if open_zips is None:
        return CONTAINER_MIMETYPES[mimetype]
    return open_zips


def _as_text(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@dataclass
class ContainerEntry:
    inner_path: str
    inner_bytes: bytes
    inner_mimetype: str


@dataclass
class MemberFilters:
    """Regex filters applied to archive members before they are grepped."""

    filenames: RegexMatcher | None = None
    skip_filenames: RegexMatcher | None = None
    mimetypes: RegexMatcher | None = None
    skip_mimetypes: RegexMatcher | None = None

    @classmethod
    def for_job(cls, job: FileSearch) -> "MemberFilters":
        def compile_(pattern: str) -> RegexMatcher | None:
            return RegexMatcher(pattern) if pattern else None

        return cls(
            filenames=compile_(job.zip_filenames),
            skip_filenames=compile_(job.skip_zip_filenames),
            mimetypes=compile_(job.zip_mimetypes),
            skip_mimetypes=compile_(job.skip_zip_mimetypes),
        )

    def accepts(self, name: str, mimetype: str) -> bool:
        if self.filenames and not self.filenames.search(name):
            return False
        if self.skip_filenames and self.skip_filenames.search(name):
            return False
        if self.mimetypes and not self.mimetypes.search(mimetype):
            return False
        if self.skip_mimetypes and self.skip_mimetypes.search(mimetype):
            return False
        return True


class FileSearcher:
    def __init__(
        self,
        matcher: RegexMatcher,
        writer: Any,
        storage: FileStorage,
        filters: MemberFilters | None = None,
        open_zips: bool | None = None,
    ):
        self.matcher = matcher
        self.writer = writer
        self.storage = storage
        self.filters = filters or MemberFilters()
        self.open_zips = open_zips
        # Archives that could not be opened; their content was not searched
        self.skipped_containers = 0

    def grep_content(self, csv_row: list, content: bytes) -> int:
        """Write one row per match in content. Returns the number of matches."""
        count = 0
        for spans in self.matcher.find_all(content):
            self.writer.writerow(self._row(csv_row, spans))
            count += 1
        return count

    @staticmethod
    def _row(csv_row: list, spans: GroupSpans) -> list:
        row = list(csv_row[:CSV_OFFSET])
        for offset, match in spans:
            # Group 0 is the whole match, the others are the parenthesised groups
            row.append("" if offset is None else offset)
            row.append("" if match is None else _as_text(match))
        return row

    def iter_container(self, content: bytes) -> Iterator[ContainerEntry]:
        """
        Members of a zip archive that pass the member filters.
        Raises zipfile.BadZipFile when the archive can't be opened.
        """
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                mimetype = mimetypes.guess_type(info.filename)[0] or "application/octet-stream"
                if not self.filters.accepts(info.filename, mimetype):
                    continue
                try:
                    data = archive.read(info)
                except (zipfile.BadZipFile, NotImplementedError, RuntimeError) as e:
                    logger.warning("Could not read %s from archive: %s", info.filename, e)
                    continue
                yield ContainerEntry(inner_path=info.filename, inner_bytes=data, inner_mimetype=mimetype)

    def unzip_content(self, csv_row: list, content: bytes) -> int:
        """Grep every accepted member of a zip archive, tagging rows with the member path."""
        if not content:
            # An empty file is not an archive, and can't match anyway
            return 0

        row = list(csv_row)
        row[CSV_STRATEGY] = "zip"
        matchcount = 0
        try:
            for entry in self.iter_container(content):
                row[CSV_INTERNAL] = entry.inner_path
                matchcount += self.grep_content(row, entry.inner_bytes)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
            self.skipped_containers += 1
            logger.warning(
                "Skipped archive %s%s (%s/%s): %s",
                csv_row[CSV_FILEPATH],
                csv_row[CSV_FILENAME],
                csv_row[CSV_COMPONENT],
                csv_row[CSV_FILEAREA],
                e,
            )
        return matchcount

    def search_file(self, record: Any) -> int:
        """Search one file record, opening it as an archive when its mimetype says so."""
        content = self.storage.get_content(record.contenthash)
        csv_row = [
            record.contextid,
            record.component,
            record.filearea,
            record.itemid,
            record.filepath,
            record.filename,
            record.mimetype,
            "plain",
            "",
            "",
        ]
        if should_open(record.mimetype, self.open_zips):
            return self.unzip_content(csv_row, content)
        return self.grep_content(csv_row, content)


def files_table(provider: SchemaProvider):
    """The host file index, prefix applied."""
    columns = [sql_column(c.name) for c in StoredFile.__table__.columns]
    return sql_table(provider.full_name(StoredFile.__tablename__), *columns)


def iter_records(db: Session, stmt, page_size: int | None = None) -> Iterator[Any]:
    """
    Rows of an ordered select, one page at a time.

    Every page is fetched completely before it is handed out, so the caller
    can commit progress between rows without breaking an open cursor.
    """
    page_size = page_size or PAGE_SIZE
    offset = 0
    while True:
        page = db.execute(stmt.limit(page_size).offset(offset)).all()
        yield from page
        if len(page) < page_size:
            return
        offset += page_size


def search_files(
    db: Session,
    job: FileSearch,
    output: str | Path | None = None,
    on_progress: ProgressCallback | None = None,
    storage: FileStorage | None = None,
) -> int:
    """Run a file search job end to end. Returns the number of matches."""
    storage = storage or FileStorage()
    output = Path(output) if output else storage.temp_path(FileSearch.FILEAREA, job.id)
    provider = SchemaProvider(db, settings.table_prefix)

    # File contents are matched case-insensitively
    matcher = RegexMatcher(job.pattern, ignore_case=True)
    filters = MemberFilters.for_job(job)

    where, params = make_where_clause(
        job.components,
        job.skip_components,
        job.skip_areas,
        job.mimetypes,
        job.skip_mimetypes,
        job.filenames,
        job.skip_filenames,
    )

    start_job(db, job)
    logger.info("File search %s started", job.id)

    files = files_table(provider)
    count_stmt = select(func.count()).select_from(files)
    stmt = select(files).order_by(*[files.c[name] for name in ORDER_BY])
    if where:
        clause = text(where).bindparams(**params)
        count_stmt = count_stmt.where(clause)
        stmt = stmt.where(clause)

    total = db.execute(count_stmt).scalar_one()

    matches = 0
    with open(output, "w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        writer.writerow(header_for(matcher))

        searcher = FileSearcher(matcher, writer, storage, filters=filters, open_zips=job.open_zips)
        tracker = ProgressTracker(db, job, total, on_progress)
        for record in iter_records(db, stmt):
            matches += searcher.search_file(record)
            tracker.advance(1, matches, f"Searching {record.component}/{record.filearea}{record.filepath}{record.filename}")

        job.skipped_containers = searcher.skipped_containers
        finish_job(db, job, matches)

    if searcher.skipped_containers:
        logger.warning("File search %s skipped %d archives that could not be opened", job.id, searcher.skipped_containers)
    if matches:
        storage.store_artifact(FileSearch.FILEAREA, job.id, get_filename(job), output)
    logger.info("File search %s finished: %d matches", job.id, matches)
    return matches
