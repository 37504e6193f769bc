from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from kvstore.config import AppConfig, format_app_config_to_toml, load_app_config
from kvstore.contracts import BadInputError

_ENV_KEYS = (
    "KVSTORE_INITIAL_CAPACITY",
    "KVSTORE_DATA_FILE",
    "KVSTORE_SHELL_PROMPT",
    "KVSTORE_MAX_VALUE_LENGTH",
    "KVSTORE_AUTOLOAD",
    "KVSTORE_AUTOSAVE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    cfg = load_app_config(None)
    assert cfg.store.initial_capacity == 16
    assert cfg.store.data_file == "kvstore_data.bin"
    assert cfg.store.autoload is True
    assert cfg.store.autosave is True
    assert cfg.shell.prompt == "kvs> "
    assert cfg.shell.max_value_length == 512


def test_load_from_toml(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                "[store]",
                "initial_capacity = 64",
                'data_file = "custom.bin"',
                'autosave = "off"',
                "",
                "[shell]",
                'prompt = "> "',
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_app_config(str(path))
    assert cfg.store.initial_capacity == 64
    assert cfg.store.data_file == "custom.bin"
    assert cfg.store.autosave is False
    assert cfg.shell.prompt == "> "
    assert cfg.shell.max_value_length == 512


def test_env_overrides_win(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[store]\ninitial_capacity = 64\n", encoding="utf-8")
    monkeypatch.setenv("KVSTORE_INITIAL_CAPACITY", "128")
    monkeypatch.setenv("KVSTORE_DATA_FILE", "env.bin")
    monkeypatch.setenv("KVSTORE_AUTOLOAD", "no")
    monkeypatch.setenv("KVSTORE_MAX_VALUE_LENGTH", "10")
    cfg = load_app_config(str(path))
    assert cfg.store.initial_capacity == 128
    assert cfg.store.data_file == "env.bin"
    assert cfg.store.autoload is False
    assert cfg.shell.max_value_length == 10


@pytest.mark.parametrize(
    ("var", "raw"),
    [
        ("KVSTORE_INITIAL_CAPACITY", "lots"),
        ("KVSTORE_INITIAL_CAPACITY", "0"),
        ("KVSTORE_AUTOSAVE", "maybe"),
        ("KVSTORE_MAX_VALUE_LENGTH", "-1"),
    ],
)
def test_bad_env_override(var: str, raw: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(var, raw)
    with pytest.raises(BadInputError):
        load_app_config(None)


@pytest.mark.parametrize(
    "text",
    [
        "[store]\nunknown = 1\n",
        "[store]\ninitial_capacity = -4\n",
        'store = "flat"\n',
        "[shell]\nmax_value_length = true\n",
        "not toml at all [",
    ],
)
def test_bad_config_file(tmp_path: Path, text: str) -> None:
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(BadInputError):
        load_app_config(str(path))


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(BadInputError, match="not found"):
        load_app_config(str(tmp_path / "absent.toml"))


def test_formatted_config_parses_back() -> None:
    cfg = AppConfig()
    cfg.store.data_file = 'odd "name".bin'
    cfg.shell.prompt = "db> "
    parsed = AppConfig.from_dict(tomllib.loads(format_app_config_to_toml(cfg)))
    assert parsed == cfg
