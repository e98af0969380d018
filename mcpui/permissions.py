"""Granted-scope registry kept independently by each side of a session."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List


class ScopeRegistry:
    """Set of granted capability scopes.

    Every mutator is idempotent: granting a granted scope or revoking an
    ungranted one is a no-op.
    """

    def __init__(self, scopes: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._scopes: Dict[str, None] = dict.fromkeys(str(scope) for scope in scopes)

    def grant(self, scope: str) -> bool:
        """Add ``scope``; returns True when it was not already granted."""
        with self._lock:
            if scope in self._scopes:
                return False
            self._scopes[scope] = None
            return True

    def grant_many(self, scopes: Iterable[str]) -> None:
        with self._lock:
            for scope in scopes:
                self._scopes.setdefault(str(scope), None)

    def revoke(self, scope: str) -> bool:
        """Remove ``scope``; returns True when it was granted."""
        with self._lock:
            if scope not in self._scopes:
                return False
            del self._scopes[scope]
            return True

    def replace(self, scopes: Iterable[str]) -> None:
        with self._lock:
            self._scopes = dict.fromkeys(str(scope) for scope in scopes)

    def clear(self) -> None:
        with self._lock:
            self._scopes.clear()

    def has(self, scope: str) -> bool:
        with self._lock:
            return scope in self._scopes

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._scopes)

    def __contains__(self, scope: object) -> bool:
        return isinstance(scope, str) and self.has(scope)

    def __len__(self) -> int:
        with self._lock:
            return len(self._scopes)
