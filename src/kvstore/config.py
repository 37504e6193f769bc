"""Typed configuration loader for the key-value store CLI."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .contracts.error import BadInputError

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE_WORDS:
            return True
        if normalized in _FALSE_WORDS:
            return False
    raise BadInputError(f"{name} must be boolean")


@dataclass
class StorePolicy:
    initial_capacity: int = 16
    data_file: str = "kvstore_data.bin"
    autoload: bool = True
    autosave: bool = True

    def validate(self) -> None:
        if isinstance(self.initial_capacity, bool) or not isinstance(self.initial_capacity, int):
            raise BadInputError("store.initial_capacity must be an integer")
        if self.initial_capacity <= 0:
            raise BadInputError("store.initial_capacity must be > 0")
        if not isinstance(self.data_file, str) or not self.data_file.strip():
            raise BadInputError("store.data_file must be a non-empty path")


@dataclass
class ShellPolicy:
    prompt: str = "kvs> "
    max_value_length: int = 512

    def validate(self) -> None:
        if not isinstance(self.prompt, str):
            raise BadInputError("shell.prompt must be a string")
        if isinstance(self.max_value_length, bool) or not isinstance(self.max_value_length, int):
            raise BadInputError("shell.max_value_length must be an integer")
        if self.max_value_length <= 0:
            raise BadInputError("shell.max_value_length must be > 0")


@dataclass
class AppConfig:
    store: StorePolicy = field(default_factory=StorePolicy)
    shell: ShellPolicy = field(default_factory=ShellPolicy)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        store_data = data.get("store", {})
        if not isinstance(store_data, dict):
            raise BadInputError("[store] section must be a table")
        shell_data = data.get("shell", {})
        if not isinstance(shell_data, dict):
            raise BadInputError("[shell] section must be a table")

        store_kwargs = dict(store_data)
        for flag in ("autoload", "autosave"):
            if flag in store_kwargs:
                store_kwargs[flag] = _parse_bool(store_kwargs[flag], f"store.{flag}")
        try:
            store = StorePolicy(**store_kwargs)
            shell = ShellPolicy(**shell_data)
        except TypeError as exc:
            raise BadInputError(f"Unknown config key: {exc}") from exc
        return cls(store=store, shell=shell)

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        mapping: dict[str, tuple[object, str, Callable[[str], Any]]] = {
            "KVSTORE_INITIAL_CAPACITY": (self.store, "initial_capacity", int),
            "KVSTORE_DATA_FILE": (self.store, "data_file", str),
            "KVSTORE_SHELL_PROMPT": (self.shell, "prompt", str),
            "KVSTORE_MAX_VALUE_LENGTH": (self.shell, "max_value_length", int),
        }
        for key, (section, attr, caster) in mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(section, attr, value)

        for key, attr in (("KVSTORE_AUTOLOAD", "autoload"), ("KVSTORE_AUTOSAVE", "autosave")):
            raw_flag = env.get(key)
            if raw_flag is None:
                continue
            try:
                setattr(self.store, attr, _parse_bool(raw_flag, key))
            except BadInputError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_flag!r}") from exc

    def validate(self) -> None:
        self.store.validate()
        self.shell.validate()


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_app_config_to_toml(cfg: AppConfig) -> str:
    store = cfg.store
    shell = cfg.shell
    lines = [
        "[store]",
        f"initial_capacity = {store.initial_capacity}",
        f"data_file = {_toml_string(store.data_file)}",
        f"autoload = {str(store.autoload).lower()}",
        f"autosave = {str(store.autosave).lower()}",
        "",
        "[shell]",
        f"prompt = {_toml_string(shell.prompt)}",
        f"max_value_length = {shell.max_value_length}",
        "",
    ]
    return "\n".join(lines)


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)
