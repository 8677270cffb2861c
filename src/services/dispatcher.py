"""Intent dispatch: views emit ``Intent`` values, controllers register handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

LOGGER = logging.getLogger("studybuddy.dispatch")

Handler = Callable[[dict[str, Any]], Any]


class UnknownIntentError(KeyError):
    """No handler is registered for the intent type."""


@dataclass(frozen=True)
class Intent:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)


class Dispatcher:
    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, intent_type: str, handler: Handler) -> None:
        if intent_type in self._handlers:
            raise ValueError(f"Handler already registered for {intent_type!r}")
        self._handlers[intent_type] = handler

    def handles(self, intent_type: str) -> bool:
        return intent_type in self._handlers

    def dispatch(self, intent: Intent) -> Any:
        handler = self._handlers.get(intent.type)
        if handler is None:
            raise UnknownIntentError(intent.type)
        LOGGER.debug("Dispatching %s %s", intent.type, intent.payload)
        return handler(intent.payload)
