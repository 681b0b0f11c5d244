"""Error taxonomy for command invocation.

Structural errors (`CommandArgumentError`, `ArgumentTypeError`) are caller-fixable
and raised or recorded at call time. `ContractDefinitionError` is raised while the
class statement of a misdeclared command executes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from commandkit.validation import FieldErrors


class CommandkitError(Exception):
    """Base class for errors raised by the framework itself."""


class ContractDefinitionError(CommandkitError, ValueError):
    pass


class CommandArgumentError(CommandkitError, TypeError):
    pass


class ArgumentTypeError(CommandArgumentError):
    def __init__(self, name: str, expected: Any):
        self.name = name
        self.expected = expected
        super().__init__(f"{name} is not {_with_article(describe_type(expected))}")


class ValidationFailed(CommandkitError):
    """Aggregate of every field error collected for one invocation."""

    def __init__(self, errors: "FieldErrors"):
        self.errors = errors
        messages = ", ".join(errors.full_messages())
        super().__init__(f"Validation failed: {messages}" if messages else "Validation failed")


class StopAndFail(CommandkitError):
    def __init__(self, payload: Any = None):
        self.payload = payload
        super().__init__(*(() if payload is None else (payload,)))

    def __str__(self) -> str:
        payload = self.payload
        if payload is None:
            return type(self).__name__
        if isinstance(payload, (list, tuple)):
            seen: list[str] = []
            for item in payload:
                text = str(item)
                if text not in seen:
                    seen.append(text)
            return ", ".join(seen)
        return str(payload)


class ChainNotRunError(CommandkitError, RuntimeError):
    pass


class ChainReturnError(CommandkitError):
    pass


class CommandNoNotifyError(CommandkitError):
    """Marks a raised failure as expected; only ever used as `__cause__`."""


def describe_type(expected: Any) -> str:
    if isinstance(expected, tuple):
        return " or ".join(describe_type(item) for item in expected)
    return getattr(expected, "__name__", None) or repr(expected)


def _with_article(noun: str) -> str:
    article = "an" if noun[:1].lower() in ("a", "e", "i", "o", "u") else "a"
    return f"{article} {noun}"


def is_no_notify_error(exc: BaseException | None) -> bool:
    if exc is None:
        return False
    if isinstance(exc, ValidationFailed):
        return True
    return isinstance(exc.__cause__, CommandNoNotifyError)
