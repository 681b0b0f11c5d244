"""Instrumentation hooks fired around command execution and rollback."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from commandkit.context import Context

logger = logging.getLogger("commandkit")


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class CommandRecorder(Protocol):
    def on_command_start(self, ctx: "Context", name: str, **metrics: Any) -> None:
        ...

    def on_command_end(self, ctx: "Context", record: dict[str, Any]) -> None:
        ...

    def on_command_error(self, ctx: "Context", name: str, exc: BaseException) -> None:
        ...

    def on_rollback(self, ctx: "Context", name: str) -> None:
        ...


class DefaultCommandRecorder:
    def __init__(self, log: logging.Logger | None = None):
        self.logger = log or logger

    def on_command_start(self, ctx: "Context", name: str, **metrics: Any) -> None:
        tokens: list[str] = []
        node_type = metrics.get("node_type")
        if isinstance(node_type, str) and node_type.strip():
            tokens.append(f"type={node_type.strip()}")
        if metrics.get("in_chain"):
            tokens.append("in_chain=true")
        tokens.append(f"arguments={int(metrics.get('arguments', 0) or 0)}")
        self.logger.info("Command: %s (%s)", name, ", ".join(tokens))

    def on_command_end(self, ctx: "Context", record: dict[str, Any]) -> None:
        name = record.get("name", "<unknown>")
        if record.get("success"):
            steps = record.get("completed_steps")
            if steps:
                self.logger.info("Completed command %s (steps=%s)", name, ", ".join(steps))
            else:
                self.logger.info("Completed command %s", name)
            return
        self.logger.warning(
            "Command %s failed (error=%s, no_notify=%s)",
            name,
            record.get("error_type") or "<none>",
            bool(record.get("no_notify")),
        )

    def on_command_error(self, ctx: "Context", name: str, exc: BaseException) -> None:
        self.logger.error("Command raised: %s (%s)", name, exc)

    def on_rollback(self, ctx: "Context", name: str) -> None:
        self.logger.info("Rolling back %s", name)


class NullCommandRecorder:
    def on_command_start(self, ctx: "Context", name: str, **metrics: Any) -> None:
        return

    def on_command_end(self, ctx: "Context", record: dict[str, Any]) -> None:
        return

    def on_command_error(self, ctx: "Context", name: str, exc: BaseException) -> None:
        return

    def on_rollback(self, ctx: "Context", name: str) -> None:
        return


def _validate_recorder(recorder: Any) -> None:
    required = ("on_command_start", "on_command_end", "on_command_error", "on_rollback")
    for name in required:
        method = getattr(recorder, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Command recorder missing required method: {name}")


_state: dict[str, CommandRecorder] = {"recorder": DefaultCommandRecorder()}


def configure_recorder(recorder: CommandRecorder | None) -> CommandRecorder:
    """Install the process-wide recorder (None restores the default)."""

    resolved = recorder if recorder is not None else DefaultCommandRecorder()
    _validate_recorder(resolved)
    _state["recorder"] = resolved
    return resolved


def get_recorder() -> CommandRecorder:
    return _state["recorder"]


def build_record(ctx: "Context", name: str) -> dict[str, Any]:
    record: dict[str, Any] = {
        "type": "chain" if ctx.chain else "command",
        "name": name,
        "success": ctx.succeeded,
        "in_chain": ctx.in_chain,
        "created_at": utc_now_iso8601(),
    }
    if ctx.error is not None:
        record["error_type"] = type(ctx.error).__name__
        record["error"] = ctx.full_error_message
        record["no_notify"] = ctx.no_notify
    completed = getattr(ctx, "completed_steps", None)
    if completed:
        record["completed_steps"] = [step.__name__ for step in completed]
    return record
