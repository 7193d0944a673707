"""
Apply replacements to the database.

Each replacement is a single UPDATE using the engine's own REPLACE(), so
values never leave the database. Char columns are capped at their declared
length when the replacement grows the value.
"""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import column as sql_column
from sqlalchemy import func, update
from sqlalchemy import table as sql_table
from sqlalchemy.orm import Session

from advreplace.core.config import settings
from advreplace.services.db_search import LIKE_ESCAPE, contains_pattern
from advreplace.services.errors import UnsupportedCapability, UnsupportedColumnType, ValidationError
from advreplace.services.jobs import ProgressCallback
from advreplace.services.schema import ColumnDescriptor, MetaType, SchemaProvider

logger = logging.getLogger(__name__)

REQUIRED_CSV_COLUMNS = ("table", "column", "id", "match", "replace")


def replace_all_text(
    db: Session,
    table: str,
    column: ColumnDescriptor,
    search: str,
    replace: str,
    row_id: int | None = None,
) -> int:
    """
    Replace every occurrence of search in one column, optionally in one row only.
    Returns the number of rows updated.
    """
    provider = SchemaProvider(db, settings.table_prefix)
    if not provider.supports_replace_all_text():
        raise UnsupportedCapability("Text replacement is not supported by this database.")
    if column.meta_type not in (MetaType.TEXT, MetaType.CHAR):
        raise UnsupportedColumnType(
            f"Column {table}.{column.name} is not a text column, can't replace in it."
        )

    names = ["id", column.name] if column.name != "id" else ["id"]
    t = sql_table(provider.full_name(table), *[sql_column(n) for n in names])
    target = t.c[column.name]

    value = func.replace(target, search, replace)
    if column.meta_type == MetaType.CHAR and column.max_length and len(replace) > len(search):
        # A growing replacement could overflow the declared length
        substr = func.substring if provider.dialect == "mssql" else func.substr
        value = substr(value, 1, column.max_length)

    stmt = update(t).values({column.name: value}).where(target.like(contains_pattern(search), escape=LIKE_ESCAPE))
    if row_id is not None:
        stmt = stmt.where(t.c.id == row_id)

    result = db.execute(stmt)
    db.commit()
    return result.rowcount


def replace_text_in_a_record(
    db: Session,
    table: str,
    column_name: str,
    search: str,
    replace: str,
    id: int,
) -> int:
    provider = SchemaProvider(db, settings.table_prefix)
    column = provider.get_column(table, column_name)
    if column is None:
        raise ValidationError(f"Column {table}.{column_name} does not exist.")
    return replace_all_text(db, table, column, search, replace, row_id=id)


@dataclass
class ReplaceResult:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


def _count_rows(path: Path) -> int:
    with open(path, newline="", encoding="utf-8") as fp:
        return max(sum(1 for _ in csv.reader(fp)) - 1, 0)


def replace_from_csv(
    db: Session,
    path: str | Path,
    on_progress: ProgressCallback | None = None,
) -> ReplaceResult:
    """
    Apply the replacements listed in a search result file.

    Only rows with a filled in `replace` are applied, each one restricted to
    its own record. Rows on non-text columns are logged and counted as failed.
    """
    path = Path(path)
    total = _count_rows(path)
    result = ReplaceResult()

    with open(path, newline="", encoding="utf-8") as fp:
        reader = csv.DictReader(fp)
        missing = [c for c in REQUIRED_CSV_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValidationError(f"Replace file is missing columns: {', '.join(missing)}")

        for line, row in enumerate(reader, start=1):
            if not row["replace"]:
                result.skipped += 1
            else:
                try:
                    result.updated += replace_text_in_a_record(
                        db, row["table"], row["column"], row["match"], row["replace"], int(row["id"])
                    )
                    result.processed += 1
                except UnsupportedColumnType as e:
                    logger.warning("Line %d: %s", line, e)
                    result.failed += 1

            if on_progress:
                percent = 100.0 if total <= 0 else min(100.0, round(100 * line / total, 2))
                on_progress(percent, f"Replacing in {row['table']}:{row['column']}")

    logger.info(
        "Replace from %s done: %d applied (%d rows updated), %d skipped, %d failed",
        path.name,
        result.processed,
        result.updated,
        result.skipped,
        result.failed,
    )
    return result
