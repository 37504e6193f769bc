#!/usr/bin/env python3
"""
app.py

Command-line front end for the key-value store:
- One-shot commands (set/get/del/items/stats) against a binary data file
- Data file inspection (header check + table invariants)
- Probe-path tracing for a single key
- Interactive shell with autoload/autosave
- JSON success envelopes (--json) and JSON error envelopes on stderr
- Console or rotating-file logging, optionally as JSON lines
"""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

from kvstore.cli.commands import CLIContext, register_subcommands
from kvstore.cli.shell import Shell
from kvstore.config import AppConfig, load_app_config
from kvstore.contracts.error import PolicyError, guard_cli
from kvstore.core.store import KVStore
from kvstore.io.datafile import PathLike, file_exists

# --------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------
logger = logging.getLogger("kvstore")
logger.setLevel(logging.INFO)
logger.propagate = False

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_LOG_MAX_BYTES = 5_000_000
DEFAULT_LOG_BACKUP_COUNT = 5


class JsonFormatter(logging.Formatter):
    """Render log records as JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, DEFAULT_LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> None:
    """Configure console (and optional rotating file) logging."""

    formatter: logging.Formatter
    if use_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_LOG_DATEFMT)

    for handler in list(logger.handlers):
        with contextlib.suppress(Exception):
            handler.close()
        logger.removeHandler(handler)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


configure_logging()

APP_CONFIG: AppConfig = AppConfig()
OUTPUT_JSON: bool = False


def set_app_config(cfg: AppConfig) -> None:
    global APP_CONFIG
    APP_CONFIG = cfg


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None
) -> None:
    if OUTPUT_JSON:
        payload: dict[str, Any] = {"ok": True, "command": command}
        if data:
            payload.update(data)
        if text is not None and "result" not in payload:
            payload["result"] = text
        print(json.dumps(payload, ensure_ascii=False))
    else:
        if text:
            print(text)


# --------------------------------------------------------------------
# Store plumbing
# --------------------------------------------------------------------
def resolve_data_file(path: str | None) -> str:
    return path or APP_CONFIG.store.data_file


def open_store(path: PathLike) -> KVStore:
    """Return a store seeded from ``path`` when that file exists."""

    store = KVStore(APP_CONFIG.store.initial_capacity)
    if file_exists(path):
        store.load(path)
    else:
        logger.debug("No data file at %s; starting empty", path)
    return store


def save_store(store: KVStore, path: PathLike) -> int:
    return store.save(path)


def run_shell(path: str, *, autoload: bool = True, autosave: bool = True) -> int:
    shell_cfg = APP_CONFIG.shell
    shell = Shell(
        KVStore(APP_CONFIG.store.initial_capacity),
        default_file=path,
        prompt=shell_cfg.prompt,
        max_value_length=shell_cfg.max_value_length,
    )
    return shell.run(autoload=autoload, autosave=autosave)


def main(argv: list[str]) -> int:
    p = argparse.ArgumentParser(
        description=(
            "Key-value store CLI: integer keys, string values, persisted to a "
            "binary data file; includes an interactive shell and diagnostics."
        )
    )
    p.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional log file path (rotates at 5MB, keeps 5 backups by default)",
    )
    p.add_argument(
        "--log-max-bytes",
        type=int,
        default=DEFAULT_LOG_MAX_BYTES,
        help="Max bytes per log file before rotation (default: %(default)s)",
    )
    p.add_argument(
        "--log-backup-count",
        type=int,
        default=DEFAULT_LOG_BACKUP_COUNT,
        help="Number of rotated log files to keep (default: %(default)s)",
    )
    p.add_argument(
        "--json", action="store_true", help="Emit machine-readable success output to stdout"
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to TOML config file (overrides defaults and env overrides)",
    )
    p.add_argument(
        "--data-file",
        default=None,
        help="Data file to operate on (default: store.data_file from config)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    ctx = CLIContext(
        emit_success=emit_success,
        resolve_data_file=resolve_data_file,
        open_store=open_store,
        save_store=save_store,
        run_shell=run_shell,
        app_config=lambda: APP_CONFIG,
        logger=logger,
        json_enabled=lambda: OUTPUT_JSON,
        guard=guard_cli,
    )

    handlers = register_subcommands(sub, ctx)

    args = p.parse_args(argv)

    global OUTPUT_JSON
    OUTPUT_JSON = bool(args.json)

    configure_logging(
        args.log_json,
        args.log_file,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backup_count,
    )

    cfg_path = args.config or os.getenv("KVSTORE_CONFIG")
    cfg = guard_cli(load_app_config)(cfg_path)
    set_app_config(cfg)
    if cfg_path:
        logger.info("Loaded config from %s", cfg_path)

    handler = handlers.get(args.cmd)
    if handler is None:
        raise PolicyError(f"Unknown command {args.cmd}")
    return handler(args)


def console_main() -> None:
    """Entry point for console_scripts."""

    try:
        raise SystemExit(main(sys.argv[1:]))
    except SystemExit:
        raise
    except Exception as e:  # noqa: BLE001
        logger.exception("Fatal error: %s", e)
        raise SystemExit(2) from e


__all__ = [
    "JsonFormatter",
    "configure_logging",
    "console_main",
    "emit_success",
    "main",
    "open_store",
    "resolve_data_file",
    "run_shell",
    "save_store",
    "set_app_config",
]


if __name__ == "__main__":
    console_main()
