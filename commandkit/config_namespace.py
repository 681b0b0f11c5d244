"""Strict configuration namespace helper with consumed-keys enforcement."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

_MISSING = object()


@dataclass
class ConfigNamespace:
    """Reads one config section; every key present must be read exactly once.

    `assert_consumed()` raises for keys nobody asked for, which catches typos in
    YAML files instead of silently ignoring them.
    """

    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def _key_path(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(key for key in self.data if key not in self._consumed))

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_keys()
        if unknown:
            consumed = ", ".join(sorted(self._consumed)) or "<none>"
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {consumed})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def namespace(self, key: str, *, default: Mapping[str, Any] | None | object = _MISSING) -> "ConfigNamespace":
        if key in self._children:
            return self._children[key]
        self._consumed.add(key)

        raw = self.data.get(key)
        if raw is None:
            if default is _MISSING:
                raise ValueError(f"Missing required config namespace: {self._key_path(key)}")
            raw = default or {}
        if not isinstance(raw, Mapping):
            raise TypeError(f"{self._key_path(key)} must be a mapping (type={type(raw).__name__})")

        child = ConfigNamespace(dict(raw), path=self._key_path(key))
        self._children[key] = child
        return child

    def _value(self, key: str, default: Any, accepts: tuple[type, ...], label: str) -> Any:
        self._consumed.add(key)
        if key not in self.data:
            if default is _MISSING:
                raise ValueError(f"Missing required config key: {self._key_path(key)}")
            return default
        value = self.data[key]
        # bool is an int subclass; only get_bool accepts it.
        if (isinstance(value, bool) and bool not in accepts) or not isinstance(value, accepts):
            raise TypeError(f"{self._key_path(key)} must be {label} (type={type(value).__name__})")
        return value

    def _check_min(self, key: str, value: float, min_value: float | None) -> None:
        if min_value is not None and value < min_value:
            raise ValueError(f"{self._key_path(key)} must be >= {min_value} (got {value})")

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        return self._value(key, default, (bool,), "a boolean")

    def get_int(self, key: str, *, default: int | object = _MISSING, min_value: int | None = None) -> int:
        value = self._value(key, default, (int,), "an int")
        self._check_min(key, value, min_value)
        return value

    def get_float(
        self, key: str, *, default: float | object = _MISSING, min_value: float | None = None
    ) -> float:
        value = float(self._value(key, default, (int, float), "a float"))
        self._check_min(key, value, min_value)
        return value

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        raw = self._value(key, default, (str,), "a string")
        if raw is None:
            return None
        value = raw.strip()
        if not value:
            raise ValueError(f"{self._key_path(key)} cannot be empty")
        if choices is not None and value not in choices:
            allowed = ", ".join(sorted(choices))
            raise ValueError(f"{self._key_path(key)} must be one of: {allowed} (got {value!r})")
        return value
