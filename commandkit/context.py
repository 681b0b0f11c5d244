"""Per-invocation context objects.

Each command class gets its own `Context` subclass, generated once when the class
is defined, with one property per declared argument/return name. Instances are
slot-based, so assigning an undeclared attribute raises `AttributeError`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from commandkit.context_inspect import render_error, render_params, render_value
from commandkit.contract import Contract
from commandkit.errors import CommandArgumentError, StopAndFail, ValidationFailed, is_no_notify_error
from commandkit.validation import BASE, FieldErrors

if TYPE_CHECKING:
    from commandkit.command import Command


def _as_error(error: Any) -> BaseException:
    if isinstance(error, BaseException):
        return error
    if isinstance(error, type) and issubclass(error, BaseException):
        return error()
    return StopAndFail(error)


def _same_error(left: BaseException | None, right: BaseException) -> bool:
    if left is None:
        return False
    if left is right:
        return True
    return type(left) is type(right) and str(left) == str(right)


def _error_message(error: BaseException) -> str:
    text = str(error).strip()
    if isinstance(error, StopAndFail):
        return text
    return f"Command Error: {text or type(error).__name__}"


class Context:
    __slots__ = (
        "command_class",
        "contract",
        "arguments",
        "returns",
        "errors",
        "raise_on_failure",
        "in_chain",
        "_failed",
        "_error",
        "_no_notify",
        "_written",
    )

    chain = False

    def __init__(
        self,
        command_class: type["Command"],
        *,
        raise_on_failure: bool = False,
        in_chain: bool = False,
        allow_unknown_arguments: bool = False,
        **values: Any,
    ):
        contract: Contract = command_class.contract
        self.command_class = command_class
        self.contract = contract
        self.arguments: dict[str, Any] = {name: None for name in contract.arguments}
        self.returns: dict[str, Any] = {name: None for name in contract.returns}
        self.errors = FieldErrors()
        self.raise_on_failure = bool(raise_on_failure)
        self.in_chain = bool(in_chain)
        self._failed = False
        self._error: BaseException | None = None
        self._no_notify = False
        self._written: set[str] = set()

        self._setup(values)
        self.assign_many(values, lenient=allow_unknown_arguments)
        self._written.clear()

    def _setup(self, values: Mapping[str, Any]) -> None:
        return

    # -- state -------------------------------------------------------------

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def succeeded(self) -> bool:
        return not self._failed

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def no_notify(self) -> bool:
        return self._no_notify or is_no_notify_error(self._error)

    @property
    def full_error_message(self) -> str | None:
        if self._error is None:
            return None
        return str(self._error).strip() or type(self._error).__name__

    def mark_no_notify(self, value: bool = True) -> None:
        self._no_notify = bool(value)

    def fail(self, error: Any = None) -> "Context":
        """Mark the context failed; repeated calls with an equivalent error are no-ops."""

        self._failed = True
        if error is None:
            return self

        normalized = _as_error(error)
        if _same_error(self._error, normalized):
            normalized = self._error  # type: ignore[assignment]
        else:
            self._error = normalized

        if isinstance(normalized, ValidationFailed):
            if normalized.errors is not self.errors:
                self.errors.merge(normalized.errors)
        else:
            self.errors.add(BASE, _error_message(normalized))
        return self

    # -- values ------------------------------------------------------------

    def assign(self, name: str, value: Any, *, lenient: bool = False) -> bool:
        known = False
        if name in self.arguments:
            self.arguments[name] = value
            known = True
        if name in self.returns:
            self.returns[name] = value
            self._written.add(name)
            known = True
        if not known and not lenient:
            raise CommandArgumentError(
                f"{self.command_class.__name__}: unknown context name {name!r}"
            )
        return known

    def assign_many(self, values: Mapping[str, Any], *, lenient: bool = False) -> None:
        unknown = [name for name in values if not self._assignable(name)]
        if unknown and not lenient:
            names = ", ".join(repr(name) for name in unknown)
            raise CommandArgumentError(
                f"{self.command_class.__name__}: unknown context name(s): {names}"
            )
        for name, value in values.items():
            self.assign(name, value, lenient=True)

    def _assignable(self, name: str) -> bool:
        return name in self.arguments or name in self.returns

    def written(self, name: str) -> bool:
        return name in self._written

    def read(self, name: str) -> Any:
        if name in self.returns:
            return self.returns[name]
        if name in self.arguments:
            return self.arguments[name]
        raise AttributeError(f"{self.command_class.__name__} context has no value {name!r}")

    def snapshot(self) -> dict[str, Any]:
        """Arguments then returns; a return wins over a same-named argument."""

        return {**self.arguments, **self.returns}

    # -- inspection ----------------------------------------------------------

    def _inspect_values(self) -> list[str]:
        return [
            f"error={render_error(self._error)}",
            f"success={self.succeeded}",
            "arguments={" + render_params(self.arguments) + "}",
            "returns={" + render_params(self.returns) + "}",
        ]

    def __repr__(self) -> str:
        values = [*self._inspect_values(), f"class={self.command_class.__name__}"]
        return f"<commandkit.{type(self).__mro__[1].__name__} " + ", ".join(values) + ">"


class ChainContext(Context):
    __slots__ = ("completed_steps", "chain_values")

    chain = True

    def _setup(self, values: Mapping[str, Any]) -> None:
        self.completed_steps: list[type["Command"]] = []
        self.chain_values: dict[str, Any] = {
            name: None for name in self.command_class.chain_arguments_and_returns()
        }

    def _assignable(self, name: str) -> bool:
        return super()._assignable(name) or name in self.chain_values

    def assign(self, name: str, value: Any, *, lenient: bool = False) -> bool:
        in_chain_values = name in self.chain_values
        if in_chain_values:
            self.chain_values[name] = value
        return super().assign(name, value, lenient=lenient or in_chain_values) or in_chain_values

    def read(self, name: str) -> Any:
        if name not in self.arguments and name not in self.returns and name in self.chain_values:
            return self.chain_values[name]
        return super().read(name)

    def chain_snapshot(self) -> dict[str, Any]:
        return {**self.chain_values, **self.snapshot()}

    def _inspect_values(self) -> list[str]:
        return [*super()._inspect_values(), f"completed_steps={render_value(self.completed_steps)}"]


def _accessor(name: str) -> property:
    def getter(self: Context) -> Any:
        return self.read(name)

    def setter(self: Context, value: Any) -> None:
        self.assign(name, value)

    return property(getter, setter, doc=f"Context value {name!r}.")


def build_context_class(
    command_class: type["Command"], base: type[Context], names: Iterable[str]
) -> type[Context]:
    namespace: dict[str, Any] = {"__slots__": ()}
    for name in names:
        namespace[name] = _accessor(name)
    return type(f"{command_class.__name__}Context", (base,), namespace)


def public_names(cls: type) -> frozenset[str]:
    names: set[str] = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        names.update(name for name in vars(klass) if not name.startswith("_"))
    return frozenset(names)
