"""Command base class and the invocation protocol.

A command declares its contract with class attributes and implements `call`:

    class SquareRoot(Command):
        requires = {"number": numbers.Number}
        returns = ("root",)

        def call(self):
            return math.sqrt(self.number)

`SquareRoot.invoke(number=4)` returns a context; it never raises for failures
of the command itself. `invoke_or_raise` re-raises the original error instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, ClassVar, NoReturn

from commandkit.context import Context, ChainContext, build_context_class, public_names
from commandkit.contract import CONTROL_OPTIONS, Contract, Declaration
from commandkit.errors import (
    CommandArgumentError,
    CommandNoNotifyError,
    ContractDefinitionError,
    StopAndFail,
    ValidationFailed,
    is_no_notify_error,
)
from commandkit.notifier import leave_breadcrumb, notification_scope, report
from commandkit.recorder import build_record, get_recorder
from commandkit.validation import BASE, FieldErrors, ValidationRule

logger = logging.getLogger(__name__)

# Assigned on every Command instance.
COMMAND_ATTRIBUTES: tuple[str, ...] = ("context",)

RESERVED_NAMES: frozenset[str] = (
    frozenset(CONTROL_OPTIONS) | frozenset(COMMAND_ATTRIBUTES) | public_names(ChainContext)
)


class _StopSignal(BaseException):
    """Unwinds a command body to the single catch point in `_perform`."""

    def __init__(self, payload: Any = None):
        super().__init__()
        self.payload = payload


def _payload_message(payload: Any) -> str:
    if isinstance(payload, type) and issubclass(payload, BaseException):
        return payload.__name__
    if isinstance(payload, BaseException):
        return str(payload).strip() or type(payload).__name__
    return str(StopAndFail(payload))


def _framework_surface(cls: type) -> frozenset[str]:
    names: set[str] = set()
    for klass in cls.__mro__:
        if klass is object or not klass.__module__.startswith("commandkit."):
            continue
        names.update(name for name in vars(klass) if not name.startswith("_"))
    return frozenset(names)


def _command_accessor(name: str) -> property:
    def getter(self: "Command") -> Any:
        return self.context.read(name)

    return property(getter, doc=f"Read-only view of context value {name!r}.")


def _guarded(label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.exception("Command recorder failed during %s", label)


class Command:
    requires: ClassVar[Declaration] = ()
    allows: ClassVar[Declaration] = ()
    returns: ClassVar[Declaration] = ()
    validators: ClassVar[tuple[ValidationRule, ...]] = ()
    error_handlers: ClassVar[Mapping[type[BaseException], str]] = {}

    contract: ClassVar[Contract]
    context_class: ClassVar[type[Context]]
    context_base: ClassVar[type[Context]] = Context

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._register()

    @classmethod
    def _register(cls) -> None:
        reserved = RESERVED_NAMES | _framework_surface(cls)
        cls.contract = Contract.from_declaration(
            cls.__name__,
            requires=cls.requires,
            allows=cls.allows,
            returns=cls.returns,
            reserved=reserved,
        )

        validators = tuple(cls.validators or ())
        for rule in validators:
            if not callable(rule):
                raise ContractDefinitionError(
                    f"{cls.__name__}.validators must contain callables (got {type(rule).__name__})"
                )
        cls.validators = validators

        for error_cls, handler in dict(cls.error_handlers or {}).items():
            if not (isinstance(error_cls, type) and issubclass(error_cls, BaseException)):
                raise ContractDefinitionError(
                    f"{cls.__name__}.error_handlers keys must be exception classes (got {error_cls!r})"
                )
            if not isinstance(handler, str) or not callable(getattr(cls, handler, None)):
                raise ContractDefinitionError(
                    f"{cls.__name__}.error_handlers[{error_cls.__name__}] must name a method (got {handler!r})"
                )

        names = cls.context_names()
        cls.context_class = build_context_class(cls, cls.context_base, names)
        for name in names:
            if not hasattr(cls, name):
                setattr(cls, name, _command_accessor(name))

    # -- entry points ------------------------------------------------------

    @classmethod
    def invoke(cls, *args: Any, **kwargs: Any) -> Context:
        if args:
            raise CommandArgumentError(
                f"{cls.__name__}.invoke only supports keyword arguments, not positional - "
                f"you passed: {args!r}"
            )
        raise_on_failure = bool(kwargs.pop("raise_on_failure", False))
        in_chain = bool(kwargs.pop("in_chain", False))
        allow_unknown = bool(kwargs.pop("allow_unknown_arguments", False))

        # Unknown names are dropped here and reported by validate_call_args,
        # so the error is attributed to this invocation.
        context = cls.build_context(
            raise_on_failure=raise_on_failure,
            in_chain=in_chain,
            allow_unknown_arguments=True,
            **kwargs,
        )
        with notification_scope():
            return cls(context)._perform(kwargs, allow_unknown=allow_unknown)

    @classmethod
    def invoke_or_raise(cls, *args: Any, **kwargs: Any) -> Context:
        kwargs["raise_on_failure"] = True
        return cls.invoke(*args, **kwargs)

    @classmethod
    def build_context(
        cls,
        *,
        raise_on_failure: bool = False,
        in_chain: bool = False,
        allow_unknown_arguments: bool = False,
        **values: Any,
    ) -> Context:
        return cls.context_class(
            cls,
            raise_on_failure=raise_on_failure,
            in_chain=in_chain,
            allow_unknown_arguments=allow_unknown_arguments,
            **values,
        )

    @classmethod
    def arguments(cls) -> tuple[str, ...]:
        return cls.contract.arguments

    @classmethod
    def arguments_and_returns(cls) -> tuple[str, ...]:
        return cls.contract.arguments_and_returns

    @classmethod
    def context_names(cls) -> tuple[str, ...]:
        return cls.contract.arguments_and_returns

    @classmethod
    def is_chain(cls) -> bool:
        return issubclass(cls.context_base, ChainContext)

    # -- instance ----------------------------------------------------------

    def __init__(self, context: Context | None = None):
        self.context = context if context is not None else self.build_context()
        self._call_started = False
        self._rolled_back = False
        self._notified = False
        self._rolling_back = False

    @property
    def errors(self) -> FieldErrors:
        return self.context.errors

    def call(self) -> Any:
        raise NotImplementedError(f"You must define the `call` method on {type(self).__name__}")

    def rollback(self) -> None:
        """Compensate for a failed invocation; no-op unless overridden."""

    def stop_and_fail(self, payload: Any = None, *, no_notify: bool = False) -> NoReturn:
        """End the invocation as a controlled failure.

        `payload` may be a message, a list of messages, or an exception instance or
        class; messages are wrapped in `StopAndFail`. Inside `rollback` the
        context keeps its original error and the payload becomes a rollback error.
        """

        if self._rolling_back:
            raise _StopSignal(payload)
        self.context.mark_no_notify(no_notify)
        self.context.fail(StopAndFail() if payload is None else payload)
        raise _StopSignal()

    def validate_fields(self) -> bool:
        for rule in self.validators:
            rule(self)
        return not self.errors

    # -- protocol ----------------------------------------------------------

    def _perform(self, supplied: Mapping[str, Any], *, allow_unknown: bool = False) -> Context:
        ctx = self.context
        try:
            self._run(supplied, allow_unknown=allow_unknown)
        except _StopSignal:
            pass
        except Exception as exc:
            _guarded("error handling", get_recorder().on_command_error, ctx, type(self).__name__, exc)
            if is_no_notify_error(exc):
                ctx.mark_no_notify()
            ctx.fail(exc)

        if ctx.failed:
            return self._handle_failure()
        _guarded("command end", get_recorder().on_command_end, ctx, build_record(ctx, type(self).__name__))
        return ctx

    def _run(self, supplied: Mapping[str, Any], *, allow_unknown: bool) -> None:
        ctx = self.context
        name = type(self).__name__
        self.contract.validate_call_args(supplied, allow_unknown=allow_unknown)

        leave_breadcrumb({"context": repr(ctx)}, name)
        _guarded(
            "command start",
            get_recorder().on_command_start,
            ctx,
            name,
            node_type="chain" if ctx.chain else "command",
            in_chain=ctx.in_chain,
            arguments=len(supplied),
        )

        if not self.validate_fields():
            self.stop_and_fail(ValidationFailed(self.errors), no_notify=True)

        self._call_started = True
        returned = self._call_with_handlers()
        self._assign_returns(returned)
        self._after_call()

        if self.errors and not ctx.failed:
            self.stop_and_fail(ValidationFailed(self.errors), no_notify=True)

    def _call_with_handlers(self) -> Any:
        try:
            return self.call()
        except Exception as exc:
            handler = self._handler_for(exc)
            if handler is None:
                raise
            getattr(self, handler)(exc)
            return None

    def _handler_for(self, exc: Exception) -> str | None:
        handlers = self.error_handlers or {}
        for klass in type(exc).__mro__:
            if klass in handlers:
                return handlers[klass]
        return None

    def _assign_returns(self, returned: Any) -> None:
        if returned is None or isinstance(returned, Context):
            return
        returns = self.contract.returns
        if len(returns) != 1 or self.context.written(returns[0]):
            return
        self.context.assign(returns[0], returned)

    def _after_call(self) -> None:
        return

    def _rollback_steps(self) -> None:
        return

    def _call_rollbacks(self) -> None:
        if self._rolled_back or not self._call_started:
            return
        self._rolled_back = True
        _guarded("rollback", get_recorder().on_rollback, self.context, type(self).__name__)

        self._rollback_steps()
        self._run_rollback(self)

    def _run_rollback(self, command: "Command") -> None:
        name = type(command).__name__
        command._rolling_back = True
        try:
            command.rollback()
        except _StopSignal as signal:
            message = _payload_message(signal.payload)
            logger.error("Rollback stopped for %s: %s", name, message)
            self.context.errors.add(BASE, f"Rollback Error ({name}): {message}")
        except Exception as exc:
            logger.exception("Rollback failed for %s", name)
            self.context.errors.add(BASE, f"Rollback Error ({name}): {exc}")
        finally:
            command._rolling_back = False

    def _handle_failure(self) -> Context:
        ctx = self.context
        if ctx.error is None:
            ctx.fail(StopAndFail())

        self._call_rollbacks()
        _guarded("command end", get_recorder().on_command_end, ctx, build_record(ctx, type(self).__name__))

        if not (self._notified or ctx.raise_on_failure or ctx.no_notify):
            report(ctx.error)  # type: ignore[arg-type]
            self._notified = True

        if not ctx.raise_on_failure:
            return ctx

        error = ctx.error
        assert error is not None
        if ctx.no_notify and not isinstance(error.__cause__, CommandNoNotifyError):
            raise error from CommandNoNotifyError(f"{type(self).__name__} failure is not notifiable")
        raise error


Command._register()
