"""Error-reporting collaborator for failures the engine recovers from."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ErrorReporter(Protocol):
    """Receives recoverable errors the engine chose not to raise."""

    def report(self, exc: BaseException, context: dict[str, Any]) -> None:
        ...


class LoggingErrorReporter:
    """Default reporter: log a warning with the traceback."""

    def report(self, exc: BaseException, context: dict[str, Any]) -> None:
        logger.warning("Recoverable permission error (%s): %s", context, exc, exc_info=exc)


class CollectingErrorReporter:
    """Keeps reported errors in memory, for tests and the CLI summary."""

    def __init__(self) -> None:
        self.errors: list[tuple[BaseException, dict[str, Any]]] = []

    def report(self, exc: BaseException, context: dict[str, Any]) -> None:
        self.errors.append((exc, dict(context)))
