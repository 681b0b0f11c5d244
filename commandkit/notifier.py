"""Boundary to the external fault-reporting sink.

`notify(error)` is fire-and-forget and is invoked at most once per top-level
invocation; `breadcrumb(data, label)` leaves a diagnostic trail before each
command body runs.
"""

from __future__ import annotations

import logging
import traceback
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from commandkit.context_inspect import render_error
from commandkit.recorder import utc_now_iso8601

logger = logging.getLogger(__name__)

NOTIFIED_ATTR = "commandkit_notified"


class Notifier(Protocol):
    def notify(self, error: BaseException) -> None:
        ...

    def breadcrumb(self, data: dict[str, Any], label: str) -> None:
        ...


class LoggingNotifier:
    def __init__(self, log: logging.Logger | None = None, *, breadcrumbs: bool = True):
        self.logger = log or logging.getLogger("commandkit.faults")
        self.breadcrumbs = breadcrumbs

    def notify(self, error: BaseException) -> None:
        self.logger.error(
            "Command failure reported: %s",
            render_error(error),
            exc_info=(type(error), error, error.__traceback__),
        )

    def breadcrumb(self, data: dict[str, Any], label: str) -> None:
        if self.breadcrumbs:
            self.logger.debug("Breadcrumb %s: %s", label, data)


class NullNotifier:
    def notify(self, error: BaseException) -> None:
        return

    def breadcrumb(self, data: dict[str, Any], label: str) -> None:
        return


class WebhookNotifier:
    """Posts JSON fault reports to an HTTP endpoint.

    Breadcrumbs are buffered in memory and sent along with the next report.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        breadcrumbs: bool = True,
        max_breadcrumbs: int = 50,
        session: requests.Session | None = None,
    ):
        if not isinstance(url, str) or not url.strip():
            raise ValueError("WebhookNotifier url must be a non-empty string")
        self.url = url.strip()
        self.timeout_seconds = float(timeout_seconds)
        self.breadcrumbs_enabled = breadcrumbs
        self._breadcrumbs: deque[dict[str, Any]] = deque(maxlen=max_breadcrumbs)
        self._session = session or requests.Session()

    def breadcrumb(self, data: dict[str, Any], label: str) -> None:
        if not self.breadcrumbs_enabled:
            return
        self._breadcrumbs.append(
            {"label": label, "data": {k: str(v) for k, v in data.items()}, "created_at": utc_now_iso8601()}
        )

    def build_payload(self, error: BaseException) -> dict[str, Any]:
        return {
            "error": {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            },
            "breadcrumbs": list(self._breadcrumbs),
            "created_at": utc_now_iso8601(),
        }

    def notify(self, error: BaseException) -> None:
        payload = self.build_payload(error)
        response = self._session.post(self.url, json=payload, timeout=self.timeout_seconds)
        response.raise_for_status()
        self._breadcrumbs.clear()


def _validate_notifier(notifier: Any) -> None:
    for name in ("notify", "breadcrumb"):
        method = getattr(notifier, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Notifier missing required method: {name}")


_state: dict[str, Notifier] = {"notifier": LoggingNotifier()}


def configure_notifier(notifier: Notifier | None) -> Notifier:
    """Install the process-wide notifier (None restores the logging default)."""

    resolved = notifier if notifier is not None else LoggingNotifier()
    _validate_notifier(resolved)
    _state["notifier"] = resolved
    return resolved


def get_notifier() -> Notifier:
    return _state["notifier"]


@dataclass
class NotifyScope:
    """Shared by every invocation nested under one top-level invocation."""

    notified: bool = False


_scope: ContextVar[NotifyScope | None] = ContextVar("commandkit_notify_scope", default=None)


@contextmanager
def notification_scope() -> Iterator[NotifyScope]:
    current = _scope.get()
    if current is not None:
        yield current
        return
    scope = NotifyScope()
    token = _scope.set(scope)
    try:
        yield scope
    finally:
        _scope.reset(token)


def already_notified(error: BaseException | None) -> bool:
    return bool(getattr(error, NOTIFIED_ATTR, False))


def _mark_notified(error: BaseException) -> None:
    try:
        setattr(error, NOTIFIED_ATTR, True)
    except AttributeError:
        logger.debug("Cannot tag %s as notified", type(error).__name__)


def report(error: BaseException) -> bool:
    """Send `error` to the notifier unless it, or anything else in the current
    top-level invocation, was already reported."""

    scope = _scope.get()
    if already_notified(error) or (scope is not None and scope.notified):
        return False
    if scope is not None:
        scope.notified = True
    _mark_notified(error)
    try:
        get_notifier().notify(error)
    except Exception:
        logger.exception("Notifier failed while reporting %s", render_error(error))
    return True


def leave_breadcrumb(data: dict[str, Any], label: str) -> None:
    try:
        get_notifier().breadcrumb(data, label)
    except Exception:
        logger.exception("Notifier failed while recording breadcrumb for %s", label)
