from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .logger import get_logger

logger = get_logger(__name__)

_LOG_LEVELS = {
    "default": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Severity(str, Enum):
    DEFAULT = "default"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity = Severity.DEFAULT) -> Any: ...


@dataclass
class NotificationCenter:
    items: list[dict[str, Any]] = field(default_factory=list)

    def notify(self, message: str, severity: Severity | str = Severity.DEFAULT, trace_id: str | None = None) -> dict[str, Any]:
        level = Severity(severity).value
        payload = {"level": level, "message": message, "trace_id": trace_id}
        self.items.append(payload)
        logger.log(_LOG_LEVELS[level], message)
        return payload

    def by_level(self, severity: Severity | str) -> list[dict[str, Any]]:
        level = Severity(severity).value
        return [item for item in self.items if item["level"] == level]

    def render(self) -> dict[str, Any]:
        return {"count": len(self.items), "messages": list(self.items)}

    def clear(self) -> None:
        self.items.clear()
