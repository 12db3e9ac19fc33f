from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

from gpuidle.errors import PatternError


class NameMatcher(Protocol):
    def is_ignored(self, name: str) -> bool: ...


class RegexIgnoreMatcher:
    """Ignores a process when any configured regex matches part of its name.

    Patterns are compiled up front so a malformed one fails at startup rather
    than on the first tick.
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns: list[re.Pattern[str]] = []
        for raw in patterns:
            try:
                self._patterns.append(re.compile(raw))
            except re.error as exc:
                raise PatternError(f"Invalid ignore pattern {raw!r}: {exc}") from exc

    @property
    def patterns(self) -> list[str]:
        return [pattern.pattern for pattern in self._patterns]

    def is_ignored(self, name: str) -> bool:
        for pattern in self._patterns:
            if pattern.search(name):
                return True
        return False
