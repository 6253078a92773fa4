"""Host side-channels for bridge nodes.

Nodes never return results to a caller. Instead they report through four
channels owned by the host runtime: ``status`` for phase transitions,
``error`` for failures, ``debug`` for diagnostic dumps and ``info`` for
informational signals. ``LoggingHost`` is the default implementation and
routes every channel to the standard ``logging`` module.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, TypeAlias

logger = logging.getLogger("diagrams_bridge.host")

StatusShape: TypeAlias = Literal["ring", "dot"]

DEFAULT_HISTORY_SIZE = 50


@dataclass(frozen=True, slots=True)
class StatusSignal:
    """Observable description of the current pipeline phase."""

    fill: str
    shape: StatusShape
    text: str

    def as_dict(self) -> dict[str, str]:
        """Return the signal as a JSON-compatible dictionary."""
        return asdict(self)


class NodeHost(Protocol):
    """Channels a node uses to report back to its host runtime."""

    def status(self, signal: StatusSignal) -> None:
        """Publish a status transition."""
        ...

    def error(self, message: str, context: Any = None) -> None:
        """Report an error, optionally with the triggering event."""
        ...

    def debug(self, text: str) -> None:
        """Emit a free-form diagnostic dump."""
        ...

    def info(self, message: str) -> None:
        """Emit an informational signal."""
        ...


class LoggingHost:
    """Host that logs every signal and remembers recent status transitions."""

    def __init__(self, name: str = "diagrams-bridge", *, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self.name = name
        self._history: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._last_error: dict[str, Any] | None = None

    def status(self, signal: StatusSignal) -> None:
        logger.info("[%s] status %s (%s/%s)", self.name, signal.text, signal.fill, signal.shape)
        self._history.append({**signal.as_dict(), "at": datetime.now(UTC).isoformat()})

    def error(self, message: str, context: Any = None) -> None:
        logger.error("[%s] %s", self.name, message)
        self._last_error = {
            "message": message,
            "context": context,
            "at": datetime.now(UTC).isoformat(),
        }

    def debug(self, text: str) -> None:
        logger.debug("[%s] %s", self.name, text)

    def info(self, message: str) -> None:
        logger.info("[%s] %s", self.name, message)

    @property
    def current_status(self) -> dict[str, Any] | None:
        """Return the most recent status transition, if any."""
        return self._history[-1] if self._history else None

    @property
    def history(self) -> list[dict[str, Any]]:
        """Return recent status transitions, oldest first."""
        return list(self._history)

    @property
    def last_error(self) -> dict[str, Any] | None:
        """Return the most recent error report, if any."""
        return self._last_error


__all__ = ["LoggingHost", "NodeHost", "StatusShape", "StatusSignal"]
