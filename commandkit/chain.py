"""Chains: commands that run an ordered list of child commands.

    class CreateNormalizedEntity(Chain):
        requires = ("ein",)
        returns = ("entity",)
        chain = (NormalizeEin, CreateEntity)

Values flow through the chain context: each step receives the current value of
every argument it declares, and its returns are merged back before the next
step runs. When a step fails, the chain fails with the step's error and the
completed steps are rolled back in reverse order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, ClassVar

from commandkit.command import Command
from commandkit.context import ChainContext
from commandkit.errors import ChainNotRunError, ChainReturnError, ContractDefinitionError

logger = logging.getLogger(__name__)

UNCHAINED_MESSAGE = (
    "run_chain() was never called. Either define `call` and call run_chain() "
    "from it, or remove `call` to use the default."
)


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


class Chain(Command):
    chain: ClassVar[tuple[type[Command], ...]] = ()

    context_base = ChainContext

    @classmethod
    def _register(cls) -> None:
        steps = tuple(cls.chain or ())
        for step in steps:
            if not (isinstance(step, type) and issubclass(step, Command)):
                raise ContractDefinitionError(
                    f"{cls.__name__}.chain must contain Command subclasses (got {step!r})"
                )
        cls.chain = steps
        super()._register()

    @classmethod
    def commands(cls) -> tuple[type[Command], ...]:
        return cls.chain

    @classmethod
    def chain_arguments(cls) -> tuple[str, ...]:
        return _unique([*cls.contract.arguments, *(n for step in cls.chain for n in step.contract.arguments)])

    @classmethod
    def chain_returns(cls) -> tuple[str, ...]:
        return _unique([*cls.contract.returns, *(n for step in cls.chain for n in step.contract.returns)])

    @classmethod
    def chain_arguments_and_returns(cls) -> tuple[str, ...]:
        return _unique([*cls.chain_arguments(), *cls.chain_returns()])

    @classmethod
    def context_names(cls) -> tuple[str, ...]:
        return cls.chain_arguments_and_returns()

    def __init__(self, context: ChainContext | None = None):
        super().__init__(context)
        self._chain_called = False
        self._chain_skipped = False

    def call(self) -> Any:
        self.run_chain()

    def skip_chain(self) -> None:
        """Finish without running any step; the chain still succeeds."""

        self._chain_skipped = True

    def run_chain(self, **args: Any) -> ChainContext:
        """Run every step in order, stopping at the first failure.

        Keyword arguments overwrite context values before the first step.
        """

        ctx: ChainContext = self.context  # type: ignore[assignment]
        if self._chain_called:
            raise ChainNotRunError(f"{type(self).__name__}: run_chain() must be called exactly once")
        self._chain_called = True
        ctx.assign_many(args)

        for step in self.commands():
            values = ctx.chain_snapshot()
            step_args = {name: values.get(name) for name in step.contract.arguments}
            result = step.invoke(raise_on_failure=ctx.raise_on_failure, in_chain=True, **step_args)
            written = {name: value for name, value in result.returns.items() if result.written(name)}
            ctx.assign_many(written, lenient=True)

            if result.succeeded:
                ctx.completed_steps.append(step)
                continue

            # The failing step has already reported its own error.
            self._notified = True
            if result.no_notify:
                ctx.mark_no_notify()
            ctx.errors.merge(result.errors)
            ctx.fail(result.error)
            break
        return ctx

    def _after_call(self) -> None:
        if not (self._chain_called or self._chain_skipped):
            raise ChainNotRunError(UNCHAINED_MESSAGE)
        ctx = self.context
        if ctx.failed or self._chain_skipped:
            return
        missing = [name for name in self.contract.returns if not ctx.written(name)]
        if missing:
            names = ", ".join(repr(name) for name in missing)
            raise ChainReturnError(f"{type(self).__name__}: chain finished without setting return(s): {names}")

    def _rollback_steps(self) -> None:
        ctx: ChainContext = self.context  # type: ignore[assignment]
        for step in reversed(ctx.completed_steps):
            values = ctx.chain_snapshot()
            step_values = {name: values.get(name) for name in step.contract.arguments_and_returns}
            step_context = step.build_context(allow_unknown_arguments=True, **step_values)
            logger.debug("Rolling back chain step %s of %s", step.__name__, type(self).__name__)
            self._run_rollback(step(step_context))
