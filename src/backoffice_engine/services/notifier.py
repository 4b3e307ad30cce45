"""User-facing notifications (success/error toasts) as an injected interface."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class UserNotifier(Protocol):
    """Receives messages meant for the operator using the console."""

    def notify_success(self, message: str) -> None:
        ...

    def notify_error(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes operator messages to the log."""

    def notify_success(self, message: str) -> None:
        logger.info(message)

    def notify_error(self, message: str) -> None:
        logger.warning(message)


class CollectingNotifier:
    """Keeps messages in memory so an HTTP response can return them."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def notify_success(self, message: str) -> None:
        self.successes.append(message)

    def notify_error(self, message: str) -> None:
        self.errors.append(message)
