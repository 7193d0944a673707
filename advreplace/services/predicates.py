"""
Translate the comma/colon separated filter lists entered by an operator into
parameterized SQL.

Grammar for every list: commas separate alternatives, and inside an
alternative an optional colon separates a parent value from a child
qualifier (component:filearea, table:column). Values are trimmed; empty
alternatives are ignored. Values are always bound as named parameters.
"""
from __future__ import annotations

import re

_LIST_SEPARATORS = re.compile(r"[,\n\r]+")


def split_list(value: str | None) -> list[str]:
    """Split a comma (or newline) separated list, dropping blanks."""
    return [v.strip() for v in _LIST_SEPARATORS.split(value or "") if v.strip()]


def split_pair(value: str) -> tuple[str, str]:
    """'parent:child' -> ('parent', 'child'); the child is '' when absent."""
    parent, _, child = value.partition(":")
    return parent.strip(), child.strip()


class _ParamCounter:
    def __init__(self) -> None:
        self.params: dict[str, str] = {}

    def bind(self, value: str) -> str:
        name = f"param{len(self.params) + 1}"
        self.params[name] = value
        return name


def make_where_clause(
    components: str = "",
    skip_components: str = "",
    skip_areas: str = "",
    mimetypes: str = "",
    skip_mimetypes: str = "",
    filenames: str = "",
    skip_filenames: str = "",
) -> tuple[str, dict[str, str]]:
    """
    Build the where clause selecting file records.

    Include lists become one parenthesized OR group each; skip lists add one
    negated clause per value. Clause order is fixed: components, mimetypes,
    filenames, then skip components, skip mimetypes, skip filenames, skip areas.

    Example:
      make_where_clause("mod_hvp:content,course")
      -> ("( (component=:param1 AND filearea=:param2) OR (component=:param3) )",
          {"param1": "mod_hvp", "param2": "content", "param3": "course"})
    """
    counter = _ParamCounter()
    clauses: list[str] = []

    alternatives = []
    for spec in split_list(components):
        component, area = split_pair(spec)
        parts = []
        if component:
            parts.append(f"component=:{counter.bind(component)}")
        if area:
            parts.append(f"filearea=:{counter.bind(area)}")
        if parts:
            alternatives.append("(" + " AND ".join(parts) + ")")
    if alternatives:
        clauses.append("( " + " OR ".join(alternatives) + " )")

    for field, values in (("mimetype", mimetypes), ("filename", filenames)):
        alternatives = [f"({field}=:{counter.bind(v)})" for v in split_list(values)]
        if alternatives:
            clauses.append("( " + " OR ".join(alternatives) + " )")

    for field, values in (
        ("component", skip_components),
        ("mimetype", skip_mimetypes),
        ("filename", skip_filenames),
        ("filearea", skip_areas),
    ):
        for v in split_list(values):
            clauses.append(f"({field}!=:{counter.bind(v)})")

    return " AND ".join(clauses), counter.params
