import os
from pathlib import Path

import pytest

from commandkit import (
    CommandkitSettings,
    ConfigNamespace,
    NullCommandRecorder,
    NullNotifier,
    WebhookNotifier,
    configure_from_settings,
    get_notifier,
    get_recorder,
    load_config,
)
from commandkit.config import find_repo_root

ENV_VAR = "TEST_COMMANDKIT_CONFIG"


def test_load_config_base_only(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "commandkit.yaml").write_text("a: 1\nb:\n  c: 2\n", encoding="utf-8")

    cfg, meta = load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert cfg == {"a": 1, "b": {"c": 2}}
    assert meta["mode"] == "base"
    assert os.path.basename(meta["paths"][0]) == "commandkit.yaml"


def test_load_config_base_plus_local_overlay(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "commandkit.yaml").write_text("a: 1\nb:\n  c: 2\n", encoding="utf-8")
    (tmp_path / "commandkit.local.yaml").write_text("b:\n  c: 3\n  d: 4\n", encoding="utf-8")

    cfg, meta = load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert cfg == {"a": 1, "b": {"c": 3, "d": 4}}
    assert meta["mode"] == "base+local"
    assert len(meta["paths"]) == 2


def test_load_config_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "commandkit.yaml").write_text("a:\n  b: 1\n", encoding="utf-8")
    (tmp_path / "commandkit.local.yaml").write_text("a: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"Invalid config overlay merge at a"):
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)


def test_load_config_invalid_yaml_names_the_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "commandkit.yaml").write_text("a: 1\n", encoding="utf-8")
    (tmp_path / "commandkit.local.yaml").write_text("a: [1, 2\n", encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert "commandkit.local.yaml" in str(excinfo.value)


def test_load_config_env_override_loads_single_file(tmp_path, monkeypatch):
    base_dir = tmp_path / "base"
    base_dir.mkdir()
    (base_dir / "commandkit.yaml").write_text("a: 1\n", encoding="utf-8")
    (base_dir / "commandkit.local.yaml").write_text("a: 2\n", encoding="utf-8")
    env_path = tmp_path / "override.yaml"
    env_path.write_text("a: 999\n", encoding="utf-8")
    monkeypatch.setenv(ENV_VAR, str(env_path))

    cfg, meta = load_config(config_dir=str(base_dir), env_var=ENV_VAR)

    assert cfg == {"a": 999}
    assert meta["mode"] == "env"
    assert [Path(path).resolve() for path in meta["paths"]] == [env_path.resolve()]


def test_load_config_missing_base_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)

    with pytest.raises(FileNotFoundError, match="Missing base config file"):
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)


def test_load_config_finds_repo_root_from_subdir(monkeypatch):
    repo_root = Path(__file__).resolve().parents[1]
    monkeypatch.delenv(ENV_VAR, raising=False)
    monkeypatch.chdir(repo_root / "tests")

    cfg, meta = load_config(env_var=ENV_VAR)

    assert Path(meta["paths"][0]).resolve() == (repo_root / "config" / "commandkit.yaml").resolve()
    assert Path(str(meta["repo_root"])).resolve() == repo_root.resolve()
    assert CommandkitSettings.from_dict(cfg) == CommandkitSettings()


def test_find_repo_root_without_markers_raises(tmp_path):
    isolated = tmp_path / "nowhere"
    isolated.mkdir()
    if any((parent / "pyproject.toml").is_file() or (parent / ".git").exists() for parent in isolated.parents):
        pytest.skip("temporary directory lives inside a repository")

    with pytest.raises(FileNotFoundError, match="Cannot locate repo root"):
        find_repo_root(isolated)


def test_settings_defaults_when_section_missing():
    assert CommandkitSettings.from_dict({}) == CommandkitSettings()
    assert CommandkitSettings.from_dict({"other_app": {"x": 1}}).notifier_kind == "logging"


def test_settings_parse_full_section():
    settings = CommandkitSettings.from_dict(
        {
            "commandkit": {
                "notifier": {
                    "kind": "webhook",
                    "webhook_url": "https://faults.example.com/hook",
                    "timeout_seconds": 3,
                    "breadcrumbs": False,
                },
                "logging": {"level": "debug", "log_dir": "logs"},
                "recorder": {"enabled": False},
                "inspect": {"max_items": 10},
            }
        }
    )

    assert settings == CommandkitSettings(
        notifier_kind="webhook",
        webhook_url="https://faults.example.com/hook",
        timeout_seconds=3.0,
        breadcrumbs=False,
        log_level="DEBUG",
        log_dir="logs",
        recorder_enabled=False,
        inspect_max_items=10,
    )


def test_settings_reject_unknown_keys():
    with pytest.raises(ValueError, match=r"Unknown config keys under commandkit.notifier: kinds"):
        CommandkitSettings.from_dict({"commandkit": {"notifier": {"kinds": "null"}}})

    with pytest.raises(ValueError, match=r"Unknown config keys under commandkit: retries"):
        CommandkitSettings.from_dict({"commandkit": {"retries": 3}})


def test_settings_reject_bad_values():
    with pytest.raises(ValueError, match="must be one of: logging, null, webhook"):
        CommandkitSettings.from_dict({"commandkit": {"notifier": {"kind": "email"}}})

    with pytest.raises(ValueError, match="webhook_url is required"):
        CommandkitSettings.from_dict({"commandkit": {"notifier": {"kind": "webhook"}}})

    with pytest.raises(TypeError, match=r"commandkit.recorder.enabled must be a boolean \(type=str\)"):
        CommandkitSettings.from_dict({"commandkit": {"recorder": {"enabled": "yes"}}})

    with pytest.raises(ValueError, match="commandkit.logging.level must be one of"):
        CommandkitSettings.from_dict({"commandkit": {"logging": {"level": "LOUD"}}})


def test_configure_from_settings_installs_collaborators():
    notifier = configure_from_settings(
        CommandkitSettings(notifier_kind="null", recorder_enabled=False),
        setup_logging=False,
    )

    assert isinstance(notifier, NullNotifier)
    assert get_notifier() is notifier
    assert isinstance(get_recorder(), NullCommandRecorder)


def test_configure_from_settings_builds_webhook_with_session():
    session = object()
    settings = CommandkitSettings(notifier_kind="webhook", webhook_url="https://faults.example.com/hook")

    notifier = configure_from_settings(settings, session=session, setup_logging=False)

    assert isinstance(notifier, WebhookNotifier)
    assert notifier.url == "https://faults.example.com/hook"
    assert notifier._session is session


def test_config_namespace_tracks_consumed_keys():
    ns = ConfigNamespace({"a": 1, "b": {"c": True}, "d": "x"}, path="root")

    assert ns.get_int("a", min_value=0) == 1
    assert ns.namespace("b").get_bool("c") is True
    assert ns.unconsumed_keys() == ("d",)
    with pytest.raises(ValueError, match="Unknown config keys under root: d"):
        ns.assert_consumed()

    assert ns.get_str("d", choices=("x", "y")) == "x"
    ns.assert_consumed()


def test_config_namespace_type_range_and_missing_errors():
    ns = ConfigNamespace({"n": 0, "f": 0.5, "flag": 1, "nested": [1]}, path="limits")

    with pytest.raises(ValueError, match=r"limits.n must be >= 1 \(got 0\)"):
        ns.get_int("n", min_value=1)
    with pytest.raises(TypeError, match=r"limits.flag must be a boolean \(type=int\)"):
        ns.get_bool("flag")
    with pytest.raises(TypeError, match=r"limits.nested must be a mapping \(type=list\)"):
        ns.namespace("nested")
    with pytest.raises(ValueError, match=r"limits.f must be >= 1.0"):
        ns.get_float("f", min_value=1.0)
    with pytest.raises(ValueError, match="Missing required config key: limits.missing"):
        ns.get_int("missing")
