"""CLI command registration and handlers for the key-value store."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from kvstore.analysis import format_trace_lines, trace_probe
from kvstore.config import AppConfig, format_app_config_to_toml
from kvstore.contracts.error import Exit, InvariantError
from kvstore.core.store import KVStore
from kvstore.core.table import OpenAddressingTable
from kvstore.io.datafile import describe_file, load_from_file

from .shell import parse_key


@dataclass(frozen=True)
class CLIContext:
    """Runtime hooks supplied by the top-level CLI entrypoint."""

    emit_success: Callable[..., None]
    resolve_data_file: Callable[[Optional[str]], str]
    open_store: Callable[[str], KVStore]
    save_store: Callable[[KVStore, str], int]
    run_shell: Callable[..., int]
    app_config: Callable[[], AppConfig]
    logger: logging.Logger
    json_enabled: Callable[[], bool]
    guard: Callable[[Callable[[argparse.Namespace], int]], Callable[[argparse.Namespace], int]]


def register_subcommands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ctx: CLIContext,
) -> Dict[str, Callable[[argparse.Namespace], int]]:
    """Define CLI subcommands and return their handlers."""

    handlers: Dict[str, Callable[[argparse.Namespace], int]] = {}

    def _register(
        name: str,
        help_text: Optional[str],
        configure: Callable[[argparse.ArgumentParser], Callable[[argparse.Namespace], int]],
    ) -> None:
        parser = subparsers.add_parser(name, help=help_text)
        handler = configure(parser)
        handlers[name] = ctx.guard(handler)

    _register("set", "Set KEY to VALUE in the data file.", lambda p: _configure_set(p, ctx))
    _register("get", "Print the value stored for KEY.", lambda p: _configure_get(p, ctx))
    _register("del", "Delete KEY from the data file.", lambda p: _configure_del(p, ctx))
    _register("items", "List every key/value pair.", lambda p: _configure_items(p, ctx))
    _register("stats", "Show entry count, capacity and load factor.", lambda p: _configure_stats(p, ctx))
    _register(
        "inspect",
        "Validate a data file header and the invariants of its contents.",
        lambda p: _configure_inspect(p, ctx),
    )
    _register(
        "probe",
        "Trace the slot-by-slot probe path for KEY (text/JSON).",
        lambda p: _configure_probe(p, ctx),
    )
    _register(
        "config-show",
        "Print the effective configuration as TOML.",
        lambda p: _configure_config_show(p, ctx),
    )
    _register("shell", "Start the interactive shell.", lambda p: _configure_shell(p, ctx))
    return handlers


def _configure_set(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")
    parser.add_argument("value")

    def handler(args: argparse.Namespace) -> int:
        key = parse_key(args.key)
        path = ctx.resolve_data_file(args.data_file)
        store = ctx.open_store(path)
        store.set(key, args.value)
        ctx.save_store(store, path)
        data = {"key": key, "value": args.value, "entries": store.count(), "data_file": path}
        ctx.emit_success("set", text="OK", data=data)
        return int(Exit.OK)

    return handler


def _configure_get(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")

    def handler(args: argparse.Namespace) -> int:
        key = parse_key(args.key)
        store = ctx.open_store(ctx.resolve_data_file(args.data_file))
        value = store.get(key)
        text = value if value is not None else f"Key {key} not found."
        data = {"key": key, "found": value is not None, "value": value}
        ctx.emit_success("get", text=text, data=data)
        return int(Exit.OK)

    return handler


def _configure_del(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")

    def handler(args: argparse.Namespace) -> int:
        key = parse_key(args.key)
        path = ctx.resolve_data_file(args.data_file)
        store = ctx.open_store(path)
        deleted = store.delete(key)
        if deleted:
            ctx.save_store(store, path)
        text = f"Deleted key: {key}" if deleted else f"Key {key} not found."
        ctx.emit_success("del", text=text, data={"key": key, "deleted": deleted})
        return int(Exit.OK)

    return handler


def _configure_items(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        store = ctx.open_store(ctx.resolve_data_file(args.data_file))
        items = [{"key": key, "value": value} for key, value in store.items()]
        text = "\n".join(f'{item["key"]}: "{item["value"]}"' for item in items)
        ctx.emit_success("items", text=text, data={"count": len(items), "items": items})
        return int(Exit.OK)

    return handler


def _configure_stats(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        store = ctx.open_store(ctx.resolve_data_file(args.data_file))
        stats = store.stats()
        ctx.emit_success("stats", text="\n".join(stats.format_lines()), data=stats.to_dict())
        return int(Exit.OK)

    return handler


def _configure_inspect(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("file", nargs="?", default=None, help="Data file (default: --data-file)")
    parser.add_argument("--verbose", action="store_true", help="Include table statistics")

    def handler(args: argparse.Namespace) -> int:
        path = args.file or ctx.resolve_data_file(args.data_file)
        descriptor = describe_file(path)
        table = OpenAddressingTable(ctx.app_config().store.initial_capacity)
        applied = load_from_file(table, path)
        problems: List[str] = table.verify()
        if applied != len(table):
            problems.append(f"{applied} records collapsed to {len(table)} keys (duplicate keys)")
        data: Dict[str, Any] = {
            "file": descriptor.path,
            "size_bytes": descriptor.size_bytes,
            "magic": f"{descriptor.header.magic:#010x}",
            "version": descriptor.header.version,
            "entry_count": descriptor.header.entry_count,
            "entries": len(table),
            "problems": problems,
        }
        lines = [
            f"File: {descriptor.path} ({descriptor.size_bytes} bytes)",
            f"Magic: {data['magic']} | Version: {descriptor.header.version}"
            f" | Entries: {descriptor.header.entry_count}",
        ]
        if args.verbose:
            data["capacity"] = table.capacity
            data["load_factor"] = table.load_factor()
            lines.append(f"Capacity: {table.capacity} | Load factor: {table.load_factor():.3f}")
        if problems:
            for message in problems:
                ctx.logger.warning("Data file check failed: %s", message)
            raise InvariantError(
                f"{path}: {len(problems)} invariant violation(s): " + "; ".join(problems)
            )
        lines.append("OK: data file verified")
        ctx.emit_success("inspect", text="\n".join(lines), data=data)
        return int(Exit.OK)

    return handler


def _configure_probe(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")
    parser.add_argument(
        "--op",
        choices=["get", "set"],
        default="get",
        help="Trace a lookup or the slot an insertion would use (default: %(default)s)",
    )

    def handler(args: argparse.Namespace) -> int:
        key = parse_key(args.key)
        path = ctx.resolve_data_file(args.data_file)
        store = ctx.open_store(path)
        trace = trace_probe(store.table, key, args.op)
        text = "\n".join(format_trace_lines(trace, data_file=path))
        ctx.emit_success("probe", text=text, data={"trace": trace})
        return int(Exit.OK)

    return handler


def _configure_config_show(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        cfg = ctx.app_config()
        text = format_app_config_to_toml(cfg).rstrip("\n")
        data = {
            "store": {
                "initial_capacity": cfg.store.initial_capacity,
                "data_file": cfg.store.data_file,
                "autoload": cfg.store.autoload,
                "autosave": cfg.store.autosave,
            },
            "shell": {"prompt": cfg.shell.prompt, "max_value_length": cfg.shell.max_value_length},
        }
        ctx.emit_success("config-show", text=text, data=data)
        return int(Exit.OK)

    return handler


def _configure_shell(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument(
        "--no-autoload", action="store_true", help="Do not load the data file on start"
    )
    parser.add_argument(
        "--no-autosave", action="store_true", help="Do not save the data file on exit"
    )

    def handler(args: argparse.Namespace) -> int:
        cfg = ctx.app_config()
        return ctx.run_shell(
            ctx.resolve_data_file(args.data_file),
            autoload=cfg.store.autoload and not args.no_autoload,
            autosave=cfg.store.autosave and not args.no_autosave,
        )

    return handler


__all__ = ["CLIContext", "register_subcommands"]
