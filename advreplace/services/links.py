"""
Links from a matched row back to the page showing it.

Resolvers are looked up once per (table, column) while the search list is
planned, then called per matched row.
"""
from __future__ import annotations

from typing import Protocol

from sqlalchemy import text
from sqlalchemy.orm import Session

from advreplace.services.schema import SchemaProvider

ANY_COLUMN = "*"


class LinkResolver(Protocol):
    def url(self, db: Session, record_id: int) -> str | None: ...


class CourseLink:
    def __init__(self, wwwroot: str):
        self.wwwroot = wwwroot.rstrip("/")

    def url(self, db: Session, record_id: int) -> str | None:
        return f"{self.wwwroot}/course/view.php?id={record_id}"


class ModuleLink:
    """Activity module instance -> its course module view page."""

    def __init__(self, wwwroot: str, module: str, provider: SchemaProvider):
        self.wwwroot = wwwroot.rstrip("/")
        self.module = module
        self.sql = text(
            f"""
            SELECT cm.id
              FROM {provider.full_name('course_modules')} cm
              JOIN {provider.full_name('modules')} m ON m.id = cm.module
             WHERE cm.instance = :instance AND m.name = :module
            """
        )

    def url(self, db: Session, record_id: int) -> str | None:
        cmid = db.execute(self.sql, {"instance": record_id, "module": self.module}).scalar()
        if cmid is None:
            return None
        return f"{self.wwwroot}/mod/{self.module}/view.php?id={cmid}"


class LinkRegistry:
    def __init__(self, wwwroot: str, provider: SchemaProvider):
        self.wwwroot = wwwroot
        self.provider = provider
        self._resolvers: dict[tuple[str, str], LinkResolver] = {}
        self._modules: set[str] | None = None

        self.register("course", ANY_COLUMN, CourseLink(wwwroot))

    def register(self, table: str, column: str, resolver: LinkResolver) -> None:
        self._resolvers[(table, column)] = resolver

    def _module_names(self) -> set[str]:
        if self._modules is None:
            tables = set(self.provider.get_tables())
            if "modules" in tables and "course_modules" in tables:
                sql = text(f"SELECT name FROM {self.provider.full_name('modules')}")
                self._modules = set(self.provider.db.execute(sql).scalars().all())
            else:
                self._modules = set()
        return self._modules

    def find(self, table: str, column: str) -> LinkResolver | None:
        resolver = self._resolvers.get((table, column)) or self._resolvers.get((table, ANY_COLUMN))
        if resolver is not None:
            return resolver
        # Activity module tables are named after the module
        if table in self._module_names():
            return ModuleLink(self.wwwroot, table, self.provider)
        return None

    def resolve_all(self, searchlist: dict) -> dict[tuple[str, str], LinkResolver]:
        resolved = {}
        for table, columns in searchlist.items():
            for col in columns:
                resolver = self.find(table, col.name)
                if resolver is not None:
                    resolved[(table, col.name)] = resolver
        return resolved
