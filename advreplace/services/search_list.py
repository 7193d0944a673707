from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from advreplace.core.config import Settings, settings
from advreplace.models.file_search import FileSearch
from advreplace.models.search import Search
from advreplace.services.predicates import split_list, split_pair
from advreplace.services.schema import ColumnDescriptor, SchemaProvider

# Flag to indicate we search all columns in a table
ALL_COLUMNS = "all columns"

# The tool's own job tables are never searched
ALWAYS_SKIP_TABLES = (Search.__tablename__, FileSearch.__tablename__)

# Host tables that must never be rewritten: configuration, sessions, queues, the file index
REPLACE_SKIP_TABLES = frozenset(
    {
        "config",
        "config_plugins",
        "filter_config",
        "sessions",
        "events_queue",
        "repository_instance_config",
        "block_instances",
        "files",
    }
)

_LOG_TABLE_RE = re.compile(r"(^|_)logs?($|_)")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def should_replace(table: str, column: str = "") -> bool:
    """Host policy: whether a table/column may be searched for replacement."""
    if table in REPLACE_SKIP_TABLES:
        return False
    # Never touch anything that looks like a log table
    if _LOG_TABLE_RE.search(table):
        return False
    if column == "id":
        return False
    return True


@dataclass(frozen=True)
class PlannerConfig:
    exclude_tables: tuple[str, ...] = ()
    include_tables: str = ""
    always_skip_tables: tuple[str, ...] = ALWAYS_SKIP_TABLES
    should_replace: Callable[[str, str], bool] = field(default=should_replace)

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "PlannerConfig":
        return cls(
            exclude_tables=tuple(split_list(s.exclude_tables)),
            include_tables=",".join(split_list(s.include_tables)),
        )


def min_search_length(search_string: str) -> int:
    """Characters any matching value must at least hold (special characters ignored)."""
    return len(_NON_ALNUM_RE.sub("", search_string or ""))


def parse_table_spec(tables: str) -> dict[str, list[str]]:
    """
    'page,assign:intro,assign:intro' -> {'page': [ALL_COLUMNS], 'assign': ['intro']}

    A table flagged with ALL_COLUMNS ignores later column entries and
    duplicate columns are kept once.
    """
    searchlist: dict[str, list[str]] = {}
    for spec in split_list(tables):
        table, column = split_pair(spec)
        if not table:
            continue
        current = searchlist.setdefault(table, [])
        if ALL_COLUMNS in current:
            continue
        wanted = column or ALL_COLUMNS
        if wanted not in current:
            current.append(wanted)
    return searchlist


def get_columns(
    provider: SchemaProvider,
    table: str,
    searching_columns: list[str],
    skip_tables: set[str],
    skip_columns: set[str],
    search_string: str = "",
    policy: Callable[[str, str], bool] = should_replace,
) -> list[ColumnDescriptor]:
    """Columns of one table that are eligible for searching."""
    if table in skip_tables:
        return []

    # No id column means [] here
    columns = provider.get_columns(table)

    columns = [c for c in columns if c.name not in skip_columns]

    if ALL_COLUMNS not in searching_columns:
        columns = [c for c in columns if c.name in searching_columns]

    columns = [c for c in columns if policy(table, c.name)]
    columns = [c for c in columns if c.is_searchable]

    # Companion formatting flags, e.g. introformat
    columns = [c for c in columns if "format" not in c.name]

    min_length = min_search_length(search_string)
    if min_length:
        columns = [c for c in columns if c.max_length is None or c.max_length >= min_length]

    return sorted(columns, key=lambda c: c.name)


def build_search_list(
    provider: SchemaProvider,
    tables: str = "",
    skip_tables: str = "",
    skip_columns: str = "",
    search_string: str = "",
    row_counts: dict[str, int] | None = None,
    config: PlannerConfig | None = None,
) -> tuple[int, dict[str, list[ColumnDescriptor]]]:
    """
    Resolve which table columns a search will scan.

    Returns the estimated number of entries to search (columns weighted by
    estimated table rows) and the columns per table, both ordered by name.
    """
    config = config or PlannerConfig()
    row_counts = row_counts or {}

    # Explicit tables win over the admin include list
    searchlist = parse_table_spec(tables or config.include_tables)
    if not searchlist:
        searchlist = {table: [ALL_COLUMNS] for table in provider.get_tables()}

    skip_table_set = set(split_list(skip_tables)) | set(config.exclude_tables) | set(config.always_skip_tables)
    skip_column_set = set(split_list(skip_columns))

    count = 0
    actual: dict[str, list[ColumnDescriptor]] = {}
    for table in sorted(searchlist):
        columns = get_columns(
            provider,
            table,
            searchlist[table],
            skip_table_set,
            skip_column_set,
            search_string,
            config.should_replace,
        )
        weight = row_counts.get(table, 1)
        count += len(columns) * weight
        # A known-empty table adds nothing to the total and would only stall progress
        if columns and weight > 0:
            actual[table] = columns
    return count, actual
