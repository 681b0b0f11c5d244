"""Compact rendering of context values for `repr`, logs and fault breadcrumbs.

Contexts often carry large objects (data frames, ORM-ish records); rendering them
in full makes breadcrumbs unreadable, so those are summarized instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pandas as pd

_settings: dict[str, int] = {"max_items": 25, "max_depth": 4}


def configure_inspect(*, max_items: int | None = None, max_depth: int | None = None) -> None:
    if max_items is not None:
        if isinstance(max_items, bool) or not isinstance(max_items, int) or max_items < 1:
            raise ValueError(f"max_items must be a positive int (got {max_items!r})")
        _settings["max_items"] = max_items
    if max_depth is not None:
        if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1:
            raise ValueError(f"max_depth must be a positive int (got {max_depth!r})")
        _settings["max_depth"] = max_depth


def _object_with_id(value: Any, key: str) -> str:
    obj_id = getattr(value, key)
    id_text = str(obj_id) if isinstance(obj_id, int) and not isinstance(obj_id, bool) else f'"{obj_id}"'
    return f"#<{type(value).__name__} {key}={id_text}>"


def render_value(value: Any, *, max_depth: int | None = None) -> str:
    depth = _settings["max_depth"] if max_depth is None else max_depth
    max_items = _settings["max_items"]
    if depth <= 0:
        return "..."
    if value is None or isinstance(value, (bool, int, float)):
        return repr(value)
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, type):
        return value.__name__
    if isinstance(value, pd.DataFrame):
        columns = ", ".join(str(column) for column in list(value.columns)[:max_items])
        if len(value.columns) > max_items:
            columns += ", ..."
        return f"#<DataFrame rows={len(value)}, columns=[{columns}]>"
    if isinstance(value, pd.Series):
        return f"#<Series name={value.name!r}, length={len(value)}>"
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        rendered = [render_value(item, max_depth=depth - 1) for item in items[:max_items]]
        if len(items) > max_items:
            rendered.append(f"<{len(items) - max_items} more>")
        body = ", ".join(rendered)
        if isinstance(value, tuple):
            return f"({body},)" if len(items) == 1 else f"({body})"
        if isinstance(value, (set, frozenset)):
            return "{" + body + "}" if items else "set()"
        return f"[{body}]"
    if isinstance(value, Mapping):
        return "{" + render_params(value, max_depth=depth - 1) + "}"
    if not callable(value):
        for key in ("uuid", "id"):
            if hasattr(value, key) and not callable(getattr(value, key)):
                return _object_with_id(value, key)
    return repr(value)


def render_params(values: Mapping[str, Any], *, max_depth: int | None = None) -> str:
    depth = _settings["max_depth"] if max_depth is None else max_depth
    max_items = _settings["max_items"]
    parts: list[str] = []
    for idx, (key, value) in enumerate(values.items()):
        if idx >= max_items:
            parts.append(f"<{len(values) - max_items} more>")
            break
        parts.append(f"{key}: {render_value(value, max_depth=depth)}")
    return ", ".join(parts)


def render_error(error: BaseException | None) -> str:
    if error is None:
        return "None"
    message = str(error)
    name = type(error).__name__
    return f"{name}({message!r})" if message and message != name else name
