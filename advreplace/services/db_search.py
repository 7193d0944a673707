"""
Search text throughout the whole database.

One query per table column, results streamed into a CSV file. In detail
mode every match is a row (`replace` left empty, to be filled in for the
replace step); in summary mode only the columns holding a match are listed.
"""
from __future__ import annotations

import csv
import logging
import time
from pathlib import Path
from typing import Any

from sqlalchemy import column as sql_column
from sqlalchemy import select
from sqlalchemy import table as sql_table
from sqlalchemy.orm import Session

from advreplace.core.config import settings
from advreplace.models.search import Search
from advreplace.services.errors import UnsupportedCapability
from advreplace.services.file_storage import FileStorage
from advreplace.services.jobs import (
    ProgressCallback,
    ProgressTracker,
    finish_job,
    get_filename,
    start_job,
)
from advreplace.services.links import LinkRegistry, LinkResolver
from advreplace.services.regex_matcher import RegexMatcher
from advreplace.services.row_estimates import estimate_table_rows
from advreplace.services.schema import COURSE_TABLE, ColumnDescriptor, SchemaProvider
from advreplace.services.search_list import PlannerConfig, build_search_list

logger = logging.getLogger(__name__)

DETAIL_HEADER = ["table", "column", "courseid", "shortname", "id", "match", "replace"]
SUMMARY_HEADER = ["table", "column"]

LIKE_ESCAPE = "\\"


def like_escape(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_pattern(value: str) -> str:
    return f"%{like_escape(value)}%"


class DbSearcher:
    """Runs the plain or regex search of single columns and writes the CSV rows."""

    def __init__(
        self,
        db: Session,
        provider: SchemaProvider,
        writer: Any,
        summary: bool = False,
        links: dict[tuple[str, str], LinkResolver] | None = None,
        with_links: bool = False,
    ):
        self.db = db
        self.provider = provider
        self.writer = writer
        self.summary = summary
        self.links = links or {}
        self.with_links = with_links
        self._course_table = COURSE_TABLE in provider.get_tables()

    def _select(self, table: str, column: ColumnDescriptor):
        """SELECT id, value[, courseid, courseshortname] FROM table t [LEFT JOIN course c]."""
        coursefield = self.provider.find_association_field(table) if self._course_table else None

        names = list(dict.fromkeys(["id", column.name] + ([coursefield] if coursefield else [])))
        t = sql_table(self.provider.full_name(table), *[sql_column(n) for n in names]).alias("t")
        value = t.c[column.name]

        if coursefield:
            c = sql_table(self.provider.full_name(COURSE_TABLE), sql_column("id"), sql_column("shortname")).alias("c")
            stmt = select(
                t.c.id,
                value.label("value"),
                t.c[coursefield].label("courseid"),
                c.c.shortname.label("courseshortname"),
            ).select_from(t.outerjoin(c, c.c.id == t.c[coursefield]))
        else:
            stmt = select(t.c.id, value.label("value"))

        stmt = stmt.order_by(t.c.id)
        if self.summary:
            stmt = stmt.limit(1)
        return stmt, value

    def _detail_row(self, table: str, column: ColumnDescriptor, row: Any, match: str) -> list:
        out = [
            table,
            column.name,
            getattr(row, "courseid", None) or "",
            getattr(row, "courseshortname", None) or "",
            row.id,
            match,
            "",
        ]
        if self.with_links:
            resolver = self.links.get((table, column.name))
            out.append((resolver.url(self.db, row.id) if resolver else None) or "")
        return out

    def plain_text_search(self, search: str, table: str, column: ColumnDescriptor) -> int:
        """Case-insensitive substring search. Returns the number of rows written."""
        if not column.is_searchable:
            return 0
        stmt, value = self._select(table, column)
        stmt = stmt.where(value.ilike(contains_pattern(search), escape=LIKE_ESCAPE))
        if self.summary:
            return self._summary(stmt, table, column)

        count = 0
        for row in self.db.execute(stmt):
            self.writer.writerow(self._detail_row(table, column, row, row.value))
            count += 1
        return count

    def _summary(self, stmt, table: str, column: ColumnDescriptor) -> int:
        if self.db.execute(stmt).first() is None:
            return 0
        self.writer.writerow([table, column.name])
        return 1

    def regular_expression_search(
        self,
        matcher: RegexMatcher,
        table: str,
        column: ColumnDescriptor,
        prematch: str = "",
    ) -> int:
        """
        Rows are selected by the engine's regex operator (narrowed first by
        the prematch filter), then each distinct match in a value becomes
        its own output row.
        """
        if not self.provider.supports_regex():
            raise UnsupportedCapability("Regular expression searches are not supported by this database.")
        if not column.is_searchable:
            return 0

        stmt, value = self._select(table, column)
        if prematch:
            stmt = stmt.where(value.ilike(contains_pattern(prematch), escape=LIKE_ESCAPE))
        stmt = stmt.where(matcher.sql_condition(value))
        if self.summary:
            return self._summary(stmt, table, column)

        count = 0
        for row in self.db.execute(stmt):
            for spans in matcher.find_all(row.value):
                self.writer.writerow(self._detail_row(table, column, row, spans[0][1]))
                count += 1
        return count


def search_db(
    db: Session,
    job: Search,
    output: str | Path | None = None,
    on_progress: ProgressCallback | None = None,
    storage: FileStorage | None = None,
) -> int:
    """
    Run a DB search job end to end. Returns the number of matches.

    Output goes to `output`, or to the job's temp file when not given. When
    anything matched, the finished CSV is kept in the file store.
    """
    storage = storage or FileStorage()
    output = Path(output) if output else storage.temp_path(Search.FILEAREA, job.id)
    provider = SchemaProvider(db, settings.table_prefix)

    matcher = None
    if job.regex:
        if not provider.supports_regex():
            raise UnsupportedCapability("Regular expression searches are not supported by this database.")
        matcher = RegexMatcher(job.search)

    start_job(db, job)
    logger.info("Search %s started (%s)", job.id, "regex" if job.regex else "plain")

    row_counts = estimate_table_rows(db, settings.table_prefix)
    total, searchlist = build_search_list(
        provider,
        tables=job.tables,
        skip_tables=job.skip_tables,
        skip_columns=job.skip_columns,
        search_string=job.prematch if job.regex else job.search,
        row_counts=row_counts,
        config=PlannerConfig.from_settings(settings),
    )

    with_links = bool(settings.wwwroot) and not job.summary
    links = LinkRegistry(settings.wwwroot, provider).resolve_all(searchlist) if with_links else {}

    matches = 0
    with open(output, "w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        if job.summary:
            writer.writerow(SUMMARY_HEADER)
        else:
            writer.writerow(DETAIL_HEADER + (["link"] if with_links else []))

        searcher = DbSearcher(db, provider, writer, summary=job.summary, links=links, with_links=with_links)
        tracker = ProgressTracker(db, job, total, on_progress)

        for table, columns in searchlist.items():
            for column in columns:
                started = time.monotonic()
                if matcher is not None:
                    found = searcher.regular_expression_search(matcher, table, column, job.prematch)
                else:
                    found = searcher.plain_text_search(job.search, table, column)
                matches += found

                elapsed = time.monotonic() - started
                if not found and settings.log_duration and elapsed > settings.log_duration:
                    logger.info("No matches in %s:%s after %.1fs", table, column.name, elapsed)

                tracker.advance(row_counts.get(table, 1), matches, f"Searching in {table}:{column.name}")

        finish_job(db, job, matches)

    if matches:
        storage.store_artifact(Search.FILEAREA, job.id, get_filename(job), output)
    logger.info("Search %s finished: %d matches", job.id, matches)
    return matches
