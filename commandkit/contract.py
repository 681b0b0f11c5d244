from __future__ import annotations

import keyword
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeAlias

from commandkit.errors import ArgumentTypeError, CommandArgumentError, ContractDefinitionError
from commandkit.validation import is_blank

Declaration: TypeAlias = "Mapping[str, Any] | Iterable[str] | None"

CONTROL_OPTIONS: tuple[str, ...] = ("raise_on_failure", "allow_unknown_arguments", "in_chain")


def _keys_str(keys: Iterable[str]) -> str:
    names = list(keys)
    noun = "argument" if len(names) == 1 else "arguments"
    return f"keyword {noun}: " + ", ".join(repr(name) for name in names)


def _check_name(owner: str, name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ContractDefinitionError(f"{owner}: declared names must be non-empty strings (got {name!r})")
    normalized = name.strip()
    if not normalized.isidentifier() or keyword.iskeyword(normalized):
        raise ContractDefinitionError(f"{owner}: {normalized!r} is not a valid identifier")
    if normalized.startswith("_"):
        raise ContractDefinitionError(f"{owner}: {normalized!r} must not start with an underscore")
    return normalized


def _check_type(owner: str, name: str, expected: Any) -> Any:
    if expected is None or isinstance(expected, type):
        return expected
    if isinstance(expected, tuple) and expected and all(isinstance(item, type) for item in expected):
        return expected
    raise ContractDefinitionError(
        f"{owner}: type for {name!r} must be a class, a tuple of classes or None (got {expected!r})"
    )


def _normalize(owner: str, label: str, declaration: Any) -> dict[str, Any]:
    if declaration is None:
        return {}
    if isinstance(declaration, str):
        raise ContractDefinitionError(
            f"{owner}.{label} must be a sequence of names or a mapping (got a bare string {declaration!r})"
        )
    out: dict[str, Any] = {}
    if isinstance(declaration, Mapping):
        items = declaration.items()
    elif isinstance(declaration, Iterable):
        items = ((name, None) for name in declaration)
    else:
        raise ContractDefinitionError(
            f"{owner}.{label} must be a sequence of names or a mapping (type={type(declaration).__name__})"
        )
    for raw_name, expected in items:
        name = _check_name(owner, raw_name)
        if name in out:
            raise ContractDefinitionError(f"{owner}.{label} declares {name!r} twice")
        out[name] = _check_type(owner, name, expected)
    return out


@dataclass(frozen=True)
class Contract:
    """Immutable argument/return declaration of one command class."""

    owner: str
    requires: Mapping[str, Any] = field(default_factory=dict)
    allows: Mapping[str, Any] = field(default_factory=dict)
    returns: tuple[str, ...] = ()

    @classmethod
    def from_declaration(
        cls,
        owner: str,
        *,
        requires: Declaration = None,
        allows: Declaration = None,
        returns: Declaration = None,
        reserved: Iterable[str] = CONTROL_OPTIONS,
    ) -> "Contract":
        required = _normalize(owner, "requires", requires)
        allowed = _normalize(owner, "allows", allows)
        returned = tuple(_normalize(owner, "returns", returns).keys())

        duplicated = [name for name in required if name in allowed]
        if duplicated:
            raise ContractDefinitionError(
                f"{owner}: duplicated in both requires and allows: {', '.join(duplicated)}"
            )

        reserved_set = set(reserved)
        used = [name for name in (*required, *allowed, *returned) if name in reserved_set]
        if used:
            raise ContractDefinitionError(
                f"{owner}: reserved name(s) used: {', '.join(sorted(set(used)))} "
                "(see commandkit.RESERVED_NAMES for the full list)"
            )

        return cls(
            owner=owner,
            requires=MappingProxyType(required),
            allows=MappingProxyType(allowed),
            returns=returned,
        )

    @property
    def arguments(self) -> tuple[str, ...]:
        return (*self.requires.keys(), *self.allows.keys())

    @property
    def arguments_and_returns(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys((*self.arguments, *self.returns)))

    def expected_type(self, name: str) -> Any:
        if name in self.requires:
            return self.requires[name]
        return self.allows.get(name)

    def validate_call_args(
        self, supplied: Mapping[str, Any], *, allow_unknown: bool = False
    ) -> dict[str, Any]:
        """Check supplied named arguments; returns the accepted subset.

        Raises:
            CommandArgumentError: missing or (unless `allow_unknown`) unknown names.
            ArgumentTypeError: a value does not satisfy its declared type.
        """

        names = [name for name in supplied if name not in CONTROL_OPTIONS]

        missing = [name for name in self.requires if name not in supplied]
        if missing:
            raise CommandArgumentError(f"{self.owner}: missing {_keys_str(missing)}")

        known = set(self.arguments)
        unknown = [name for name in names if name not in known]
        if unknown and not allow_unknown:
            raise CommandArgumentError(f"{self.owner}: unknown {_keys_str(unknown)}")

        accepted = {name: supplied[name] for name in names if name in known}

        for name in self.arguments:
            expected = self.expected_type(name)
            if expected is None:
                continue
            value = accepted.get(name)
            if name in self.allows and is_blank(value):
                continue
            if not isinstance(value, expected):
                raise ArgumentTypeError(name, expected)

        return accepted
