from __future__ import annotations

import re
from collections.abc import Iterator
from typing import AnyStr

from sqlalchemy.sql.elements import ColumnElement

from advreplace.services.errors import ValidationError

# (offset, text) per group; group 0 is the whole match.
# Groups that did not take part in a match are (None, None).
GroupSpans = list[tuple[int | None, AnyStr | None]]


class RegexMatcher:
    """
    One place for everything regex: the SQL expression selecting candidate
    rows, and extraction of the actual matches in process.

    Engines differ in whether (and how) they expose match offsets, so rows
    are selected by the engine and the matches themselves are taken from
    the retrieved value with Python's re, numbering groups the same way for
    every match.
    """

    def __init__(self, pattern: str, ignore_case: bool = False):
        self.pattern = pattern
        self.ignore_case = ignore_case
        self._flags = re.IGNORECASE if ignore_case else 0
        self._text_re = self._compile(pattern)
        # Only file contents are matched as bytes
        self._bytes_re: re.Pattern | None = None

    def _compile(self, pattern: AnyStr) -> re.Pattern:
        try:
            return re.compile(pattern, self._flags)
        except re.error as e:
            raise ValidationError(f"Invalid regular expression {self.pattern!r}: {e}") from e

    @property
    def bytes_re(self) -> re.Pattern:
        if self._bytes_re is None:
            self._bytes_re = self._compile(self.pattern.encode("utf-8"))
        return self._bytes_re

    @property
    def group_count(self) -> int:
        return self._text_re.groups

    def sql_condition(self, column: ColumnElement) -> ColumnElement:
        if self.ignore_case:
            return column.regexp_match(self.pattern, flags="i")
        return column.regexp_match(self.pattern)

    def _compiled(self, value: AnyStr) -> re.Pattern:
        return self.bytes_re if isinstance(value, bytes) else self._text_re

    def search(self, value: AnyStr | None) -> bool:
        if value is None:
            return False
        return self._compiled(value).search(value) is not None

    def find_all(self, value: AnyStr | None) -> Iterator[GroupSpans]:
        """Yield the group spans of every match in value."""
        if value is None:
            return
        for m in self._compiled(value).finditer(value):
            spans: GroupSpans = []
            for group in range(self.group_count + 1):
                start = m.start(group)
                if start < 0:
                    spans.append((None, None))
                else:
                    spans.append((start, m.group(group)))
            yield spans
