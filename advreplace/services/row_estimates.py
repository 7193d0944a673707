from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.orm import Session

_MYSQL_SQL = """
    SELECT table_name AS table_name, table_rows AS table_rows
      FROM information_schema.tables
     WHERE table_schema = DATABASE()
       AND table_type = 'BASE TABLE'
       AND table_name LIKE :prefix
"""

_POSTGRES_SQL = """
    SELECT relname AS table_name, GREATEST(reltuples::BIGINT, 0) AS table_rows
      FROM pg_class
     WHERE relkind = 'r'
       AND relnamespace IN (SELECT oid FROM pg_namespace WHERE nspname = current_schema())
       AND relname LIKE :prefix
"""

_SQL_BY_DIALECT = {
    "mysql": _MYSQL_SQL,
    "mariadb": _MYSQL_SQL,
    "postgresql": _POSTGRES_SQL,
}


def estimate_table_rows(db: Session, prefix: str = "") -> dict[str, int]:
    """
    Approximate row count per table (prefix stripped) from the engine's catalog.

    Used to weight progress by table size. Engines without a supported
    catalog return {}; callers treat a missing table as weight 1.
    """
    sql = _SQL_BY_DIALECT.get(db.get_bind().dialect.name)
    if sql is None:
        return {}

    # "_" is a LIKE wildcard, the prefix has to match literally
    like = prefix.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%") + "%"
    rows = db.execute(text(sql), {"prefix": like}).mappings().all()

    estimates: dict[str, int] = {}
    for row in rows:
        name = row["table_name"]
        if prefix and name.startswith(prefix):
            name = name[len(prefix):]
        estimates[name] = int(row["table_rows"] or 0)
    return estimates
