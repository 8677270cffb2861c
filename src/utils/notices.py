"""Transient banner messages shown at the top of the page."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from config import BANNER_TTL_S


@dataclass(frozen=True)
class Notice:
    kind: str  # "success" | "error" | "warning"
    message: str
    created_at: float


class NoticeBoard:
    """Holds at most one banner; a new banner replaces the previous one."""

    def __init__(self, ttl_s: float = BANNER_TTL_S, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._current: Notice | None = None

    def push(self, kind: str, message: str) -> Notice:
        self._current = Notice(kind=kind, message=message, created_at=self._clock())
        return self._current

    def success(self, message: str) -> Notice:
        return self.push("success", message)

    def error(self, message: str) -> Notice:
        return self.push("error", message)

    def warning(self, message: str) -> Notice:
        return self.push("warning", message)

    def active(self) -> Notice | None:
        """Return the current banner, dropping it once it has expired."""
        if self._current is None:
            return None
        if self._clock() - self._current.created_at >= self.ttl_s:
            self._current = None
        return self._current

    def dismiss(self) -> None:
        self._current = None
