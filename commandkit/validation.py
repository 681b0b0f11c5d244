"""Field-level validation attached to commands.

The rule engine is deliberately small: a rule is any callable that receives the
running command and adds messages to `command.errors`. Commands list their rules
in a `validators` class attribute; they run before `call`, and `call` may add
more messages by hand without stopping execution.
"""

from __future__ import annotations

import numbers
import re
from collections.abc import Collection, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

if TYPE_CHECKING:
    from commandkit.command import Command

BASE = "base"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Collection):
        return len(value) == 0
    return False


def humanize(field: str) -> str:
    text = field.replace("_", " ").strip()
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def full_message(self) -> str:
        if self.field == BASE:
            return self.message
        return f"{humanize(self.field)} {self.message}"


class FieldErrors:
    """Ordered, de-duplicated collection of field errors."""

    def __init__(self, errors: Iterable[FieldError] = ()):
        self._errors: list[FieldError] = []
        for error in errors:
            self._append(error)

    def _append(self, error: FieldError) -> bool:
        if error in self._errors:
            return False
        self._errors.append(error)
        return True

    def add(self, field: str, message: str) -> FieldError:
        if not isinstance(field, str) or not field.strip():
            raise TypeError("Field error field must be a non-empty string")
        if not isinstance(message, str) or not message.strip():
            raise TypeError(f"Field error message for {field} must be a non-empty string")
        error = FieldError(field=field.strip(), message=message.strip())
        self._append(error)
        return error

    def merge(self, other: "FieldErrors") -> None:
        for error in other:
            self._append(error)

    def messages_for(self, field: str) -> list[str]:
        return [error.message for error in self._errors if error.field == field]

    def full_messages(self) -> list[str]:
        return [error.full_message() for error in self._errors]

    def copy(self) -> "FieldErrors":
        return FieldErrors(self._errors)

    def clear(self) -> None:
        self._errors.clear()

    def to_dict(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for error in self._errors:
            out.setdefault(error.field, []).append(error.message)
        return out

    def __iter__(self) -> Iterator[FieldError]:
        return iter(list(self._errors))

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldErrors):
            return self._errors == other._errors
        return NotImplemented

    def __repr__(self) -> str:
        return f"FieldErrors({self.full_messages()!r})"


class ValidationRule(Protocol):
    def __call__(self, command: "Command") -> None:
        ...


def _value(command: "Command", field: str) -> Any:
    return command.context.snapshot().get(field)


def presence(*fields: str, message: str = "can't be blank") -> ValidationRule:
    if not fields:
        raise TypeError("presence() needs at least one field")

    def rule(command: "Command") -> None:
        for field in fields:
            if is_blank(_value(command, field)):
                command.errors.add(field, message)

    return rule


def _parse_number(value: Any) -> numbers.Number | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Number):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    return None


def numericality(
    field: str,
    *,
    only_integer: bool = False,
    allow_none: bool = False,
    message: str = "is not a number",
) -> ValidationRule:
    def rule(command: "Command") -> None:
        value = _value(command, field)
        if value is None and allow_none:
            return
        number = _parse_number(value)
        if number is None:
            command.errors.add(field, message)
            return
        if only_integer and not isinstance(number, numbers.Integral):
            command.errors.add(field, "must be an integer")

    return rule


def matches(field: str, pattern: str | re.Pattern[str], *, message: str = "is invalid") -> ValidationRule:
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

    def rule(command: "Command") -> None:
        value = _value(command, field)
        if not isinstance(value, str) or compiled.fullmatch(value) is None:
            command.errors.add(field, message)

    return rule


def inclusion(
    field: str,
    choices: Iterable[Any],
    *,
    message: str = "{value} is not included in the list",
) -> ValidationRule:
    allowed = tuple(choices)

    def rule(command: "Command") -> None:
        value = _value(command, field)
        if value not in allowed:
            command.errors.add(field, message.format(value=value))

    return rule


def satisfies(
    field: str,
    predicate: Callable[[Any], bool],
    *,
    message: str = "is invalid",
) -> ValidationRule:
    def rule(command: "Command") -> None:
        if not predicate(_value(command, field)):
            command.errors.add(field, message)

    return rule
