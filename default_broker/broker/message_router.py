"""
Single ingress for broker messages: dispatches on the message's type.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Handler = Callable[[object], None]


class MessageRouter:
    """Type-keyed dispatch table. Messages of unregistered types are dropped."""

    def __init__(self):
        self._handlers: dict[type, Handler] = {}

    def register(self, kind: type, handler: Handler):
        self._handlers[kind] = handler

    def handles(self, kind: type) -> bool:
        return kind in self._handlers

    def route(self, msg: object) -> bool:
        """Deliver msg to its handler. Returns False if nothing handled it."""
        if msg is None:
            return False
        handler = self._handlers.get(type(msg))
        if handler is None:
            logger.debug(f"ignoring {type(msg).__name__}")
            return False
        handler(msg)
        return True
