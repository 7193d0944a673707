from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect
from sqlalchemy import types as sqltypes
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Candidate names for the column tying a row to a course
COURSE_FIELDS = ("course", "courseid")
COURSE_TABLE = "course"

# Engines with a native regex match operator (SQLAlchemy regexp_match)
REGEX_DIALECTS = {"postgresql", "mysql", "mariadb", "sqlite", "oracle"}

# Engines with a native REPLACE(str, from, to) function
REPLACE_DIALECTS = {"postgresql", "mysql", "mariadb", "sqlite", "mssql", "oracle"}


class MetaType(str, enum.Enum):
    TEXT = "text"  # unbounded text / clob
    CHAR = "char"  # varchar / char with an optional declared length
    OTHER = "other"


@dataclass(frozen=True)
class ColumnDescriptor:
    table: str
    name: str
    meta_type: MetaType
    max_length: int | None = None

    @property
    def is_searchable(self) -> bool:
        return self.meta_type in (MetaType.TEXT, MetaType.CHAR)


def meta_type_for(sqltype: Any) -> tuple[MetaType, int | None]:
    """
    Classify a reflected SQLAlchemy type.
    Text is a subclass of String, so it has to be checked first.
    """
    if isinstance(sqltype, sqltypes.Text):
        return MetaType.TEXT, None
    if isinstance(sqltype, sqltypes.Enum):
        return MetaType.OTHER, None
    if isinstance(sqltype, sqltypes.String):
        return MetaType.CHAR, getattr(sqltype, "length", None)
    return MetaType.OTHER, None


class SchemaProvider:
    """
    Live view of the host schema through SQLAlchemy's inspector.

    Table names are handled without the host table prefix; the prefix is
    added back by full_name() whenever SQL is built.
    """

    def __init__(self, db: Session, prefix: str = ""):
        self.db = db
        self.prefix = prefix or ""
        # Bind to the engine, not the session connection, so checkpoint commits don't invalidate it
        self._inspector = inspect(db.get_bind())

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    def supports_regex(self) -> bool:
        return self.dialect in REGEX_DIALECTS

    def supports_replace_all_text(self) -> bool:
        return self.dialect in REPLACE_DIALECTS

    def full_name(self, table: str) -> str:
        return f"{self.prefix}{table}"

    def get_tables(self) -> list[str]:
        names = self._inspector.get_table_names()
        if self.prefix:
            names = [n[len(self.prefix):] for n in names if n.startswith(self.prefix)]
        return sorted(names)

    def _reflect(self, table: str) -> list[ColumnDescriptor]:
        try:
            raw = self._inspector.get_columns(self.full_name(table))
        except NoSuchTableError:
            logger.warning("Table %s does not exist, skipping", self.full_name(table))
            return []

        columns = []
        for col in raw:
            meta, max_length = meta_type_for(col["type"])
            columns.append(ColumnDescriptor(table=table, name=col["name"], meta_type=meta, max_length=max_length))
        return columns

    def get_columns(self, table: str) -> list[ColumnDescriptor]:
        """
        Columns of a table, or [] when the table has no id column.
        Every match is reported against a record id, so such tables cannot be searched.
        """
        columns = self._reflect(table)
        if not any(c.name == "id" for c in columns):
            return []
        return columns

    def get_column(self, table: str, name: str) -> ColumnDescriptor | None:
        for col in self._reflect(table):
            if col.name == name:
                return col
        return None

    def find_association_field(self, table: str) -> str | None:
        """
        Best-effort course column of a table, used only to label output rows.
        Renamed schemas will not be detected.
        """
        names = [c.name for c in self._reflect(table)]
        if table == COURSE_TABLE and "id" in names:
            return "id"
        for name in names:
            if name in COURSE_FIELDS:
                return name
        return None
