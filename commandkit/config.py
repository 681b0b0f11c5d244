"""YAML configuration for the framework's ambient collaborators.

    cfg, meta = load_config()
    settings = CommandkitSettings.from_dict(cfg)
    configure_from_settings(settings)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
import yaml

from commandkit.config_namespace import ConfigNamespace
from commandkit.context_inspect import configure_inspect
from commandkit.logging_utils import setup_command_logger
from commandkit.notifier import LoggingNotifier, Notifier, NullNotifier, WebhookNotifier, configure_notifier
from commandkit.recorder import DefaultCommandRecorder, NullCommandRecorder, configure_recorder

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COMMANDKIT_CONFIG"
NOTIFIER_KINDS = ("logging", "webhook", "null")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        if (candidate / "pyproject.toml").is_file() or (candidate / ".git").exists():
            return str(candidate)

    raise FileNotFoundError(
        f"Cannot locate repo root: searched from {start_path} for pyproject.toml, .git"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def _kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return "scalar"


def _deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    """Overlay wins; mappings merge key by key and a container never replaces a scalar or vice versa."""

    if base is None or overlay is None:
        return overlay
    if _kind(base) != _kind(overlay):
        raise ValueError(
            f"Invalid config overlay merge at {path}: base is {_kind(base)} "
            f"but overlay is {type(overlay).__name__}"
        )
    if not isinstance(base, Mapping):
        return list(overlay) if isinstance(overlay, tuple) else overlay

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        child_path = f"{path}.{key}" if path else str(key)
        merged[key] = _deep_merge(base.get(key), value, path=child_path)
    return merged


def load_config(
    *,
    config_path: str | None = None,
    env_var: str | None = CONFIG_ENV_VAR,
    config_dir: str = "config",
    config_name: str = "commandkit",
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the framework config.

    An explicit `config_path` (or the file named by `env_var`) is loaded on its
    own. Otherwise `<repo>/<config_dir>/<config_name>.yaml` is loaded and
    `<config_name>.local.yaml` next to it, when present, is merged over it.
    Returns `(cfg, meta)` where meta records which files were read.
    """

    explicit_path = (config_path or "").strip() or None
    if explicit_path is None and env_var:
        explicit_path = os.environ.get(env_var, "").strip() or None

    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        cfg = _load_yaml_mapping(expanded)
        meta = {
            "mode": "explicit" if config_path else "env",
            "paths": [expanded],
            "env_var": env_var,
            "repo_root": None,
        }
        return cfg, meta

    if os.path.isabs(config_dir):
        repo_root = None
        directory = config_dir
    else:
        repo_root = find_repo_root(start_dir)
        directory = os.path.join(repo_root, config_dir)

    base_path = os.path.join(directory, f"{config_name}.yaml")
    if not os.path.exists(base_path):
        raise FileNotFoundError(f"Missing base config file: {base_path}")

    cfg = _load_yaml_mapping(base_path)
    paths = [os.path.abspath(base_path)]
    mode = "base"

    local_path = os.path.join(directory, f"{config_name}.local.yaml")
    if os.path.exists(local_path):
        cfg = _deep_merge(cfg, _load_yaml_mapping(local_path), path="")
        paths.append(os.path.abspath(local_path))
        mode = "base+local"

    return cfg, {"mode": mode, "paths": paths, "env_var": env_var, "repo_root": repo_root}


@dataclass(frozen=True)
class CommandkitSettings:
    notifier_kind: str = "logging"
    webhook_url: str | None = None
    timeout_seconds: float = 5.0
    breadcrumbs: bool = True
    log_level: str = "INFO"
    log_dir: str | None = None
    recorder_enabled: bool = True
    inspect_max_items: int = 25

    def __post_init__(self) -> None:
        if self.notifier_kind not in NOTIFIER_KINDS:
            raise ValueError(
                f"notifier kind must be one of: {', '.join(NOTIFIER_KINDS)} (got {self.notifier_kind!r})"
            )
        if self.notifier_kind == "webhook" and not self.webhook_url:
            raise ValueError("commandkit.notifier.webhook_url is required when kind is 'webhook'")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0 (got {self.timeout_seconds})")

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any]) -> "CommandkitSettings":
        if not isinstance(cfg, Mapping):
            raise TypeError(f"config must be a mapping (type={type(cfg).__name__})")

        root = ConfigNamespace(cfg, path="")
        section = root.namespace("commandkit", default=None)

        notifier = section.namespace("notifier", default=None)
        kind = notifier.get_str("kind", default="logging", choices=NOTIFIER_KINDS)
        webhook_url = notifier.get_str("webhook_url", default=None)
        timeout_seconds = notifier.get_float("timeout_seconds", default=5.0, min_value=0.001)
        breadcrumbs = notifier.get_bool("breadcrumbs", default=True)

        log_cfg = section.namespace("logging", default=None)
        level = log_cfg.get_str("level", default="INFO")
        if level is None or level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"commandkit.logging.level must be one of: {', '.join(LOG_LEVELS)} (got {level!r})"
            )
        log_dir = log_cfg.get_str("log_dir", default=None)

        recorder_enabled = section.namespace("recorder", default=None).get_bool("enabled", default=True)
        max_items = section.namespace("inspect", default=None).get_int("max_items", default=25, min_value=1)

        section.assert_consumed()
        return cls(
            notifier_kind=str(kind),
            webhook_url=webhook_url,
            timeout_seconds=timeout_seconds,
            breadcrumbs=breadcrumbs,
            log_level=level.upper(),
            log_dir=log_dir,
            recorder_enabled=recorder_enabled,
            inspect_max_items=max_items,
        )


def build_notifier(settings: CommandkitSettings, *, session: requests.Session | None = None) -> Notifier:
    if settings.notifier_kind == "null":
        return NullNotifier()
    if settings.notifier_kind == "webhook":
        return WebhookNotifier(
            str(settings.webhook_url),
            timeout_seconds=settings.timeout_seconds,
            breadcrumbs=settings.breadcrumbs,
            session=session,
        )
    return LoggingNotifier(breadcrumbs=settings.breadcrumbs)


def configure_from_settings(
    settings: CommandkitSettings,
    *,
    session: requests.Session | None = None,
    setup_logging: bool = True,
) -> Notifier:
    """Install the notifier, recorder and inspection limits described by `settings`."""

    if setup_logging:
        setup_command_logger(level=settings.log_level, log_dir=settings.log_dir)
    configure_inspect(max_items=settings.inspect_max_items)
    configure_recorder(DefaultCommandRecorder() if settings.recorder_enabled else NullCommandRecorder())
    notifier = configure_notifier(build_notifier(settings, session=session))
    logger.info(
        "Commandkit configured (notifier=%s, recorder=%s)",
        settings.notifier_kind,
        "on" if settings.recorder_enabled else "off",
    )
    return notifier
