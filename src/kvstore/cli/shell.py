"""Interactive shell over a :class:`KVStore`."""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional

from kvstore.contracts.error import InvalidParameterError, KVStoreError, error_string
from kvstore.core.store import KVStore
from kvstore.core.table import check_key
from kvstore.io.datafile import file_exists

_KEY_RE = re.compile(r"[+-]?[0-9]+")


def parse_key(raw: str) -> int:
    """Parse a base-10 signed 32-bit key, rejecting anything else."""

    text = raw.strip()
    if not _KEY_RE.fullmatch(text):
        raise InvalidParameterError(
            f"Invalid key {raw!r}", hint="Keys are base-10 integers, e.g. 42 or -7"
        )
    return check_key(int(text))


def _split_command(line: str) -> tuple[str, str]:
    parts = line.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def help_lines(default_file: str) -> list[str]:
    return [
        "",
        "Available commands:",
        "  set <key> <value>  - Set a key-value pair",
        "  get <key>          - Get value for a key",
        "  delete <key>       - Delete a key-value pair",
        "  list               - List all key-value pairs",
        "  stats              - Show store statistics",
        f"  save [filename]    - Save store to file (default: {default_file})",
        f"  load [filename]    - Load store from file (default: {default_file})",
        "  clear              - Clear all entries",
        "  help               - Show this help message",
        "  quit               - Exit the program",
        "",
    ]


class Shell:
    """Line-oriented command loop; I/O goes through ``input_fn``/``print_fn``."""

    def __init__(
        self,
        store: KVStore,
        *,
        default_file: str,
        prompt: str = "kvs> ",
        max_value_length: int = 512,
        input_fn: Optional[Callable[[str], str]] = None,
        print_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.store = store
        self.default_file = default_file
        self.prompt = prompt
        self.max_value_length = max_value_length
        self._input = input_fn or input
        self._print = print_fn or print
        self._commands: Dict[str, Callable[[str], None]] = {
            "set": self._cmd_set,
            "get": self._cmd_get,
            "delete": self._cmd_delete,
            "del": self._cmd_delete,
            "list": self._cmd_list,
            "ls": self._cmd_list,
            "stats": self._cmd_stats,
            "save": self._cmd_save,
            "load": self._cmd_load,
            "clear": self._cmd_clear,
            "help": self._cmd_help,
            "?": self._cmd_help,
        }

    def run(self, *, autoload: bool = True, autosave: bool = True) -> int:
        self._print("Key-Value Store Interactive Shell")
        self._print("Type 'help' for available commands, 'quit' or 'exit' to leave.")
        self._print("")
        if autoload and file_exists(self.default_file):
            try:
                self.store.load(self.default_file)
                self._print(f"Loaded {self.store.count()} entries from '{self.default_file}'")
            except KVStoreError as exc:
                self._print(f"Warning: Could not load '{self.default_file}': {exc.describe()}")
            self._print("")

        while True:
            try:
                line = self._input(self.prompt)
            except (EOFError, KeyboardInterrupt):
                self._print("")
                break
            if not self.handle_line(line):
                break

        if autosave and self.store.count() > 0:
            self._print(f"Auto-saving data to '{self.default_file}'...")
            try:
                self.store.save(self.default_file)
            except KVStoreError as exc:
                self._print(f"Warning: Could not save data: {exc.describe()}")
        self._print("Goodbye!")
        return 0

    def handle_line(self, line: str) -> bool:
        """Run one command line; returns False when the shell should exit."""

        command, args = _split_command(line)
        if not command:
            return True
        if command in {"quit", "exit"}:
            return False
        handler = self._commands.get(command)
        if handler is None:
            self._print(f"Unknown command: {command} (type 'help' for available commands)")
            return True
        try:
            handler(args)
        except KVStoreError as exc:
            self._print(f"Error: {exc.describe()}")
        return True

    def _key_or_report(self, raw: str, usage: str) -> Optional[int]:
        if not raw.strip():
            self._print(f"Error: Missing key. Usage: {usage}")
            return None
        try:
            return parse_key(raw)
        except InvalidParameterError:
            self._print("Error: Invalid key. Key must be a 32-bit integer.")
            return None

    def _cmd_set(self, args: str) -> None:
        key_text, value = _split_command(args)
        key = self._key_or_report(key_text, "set <key> <value>")
        if key is None:
            return
        value = value.strip()
        if not value:
            self._print("Error: Missing value. Usage: set <key> <value>")
            return
        if len(value) > self.max_value_length:
            self._print(f"Error: Value too long (max {self.max_value_length} characters).")
            return
        self.store.set(key, value)
        self._print(f'Set: {key} = "{value}"')

    def _cmd_get(self, args: str) -> None:
        key = self._key_or_report(args, "get <key>")
        if key is None:
            return
        value = self.store.get(key)
        if value is None:
            self._print(f"Key {key} not found.")
        else:
            self._print(f'Get: {key} = "{value}"')

    def _cmd_delete(self, args: str) -> None:
        key = self._key_or_report(args, "delete <key>")
        if key is None:
            return
        if self.store.delete(key):
            self._print(f"Deleted key: {key}")
        else:
            self._print(f"Key {key} not found.")

    def _cmd_list(self, _args: str) -> None:
        count = self.store.count()
        if count == 0:
            self._print("Key-value store is empty")
            return
        self._print(f"Key-value store contents ({count} entries):")
        for key, value in self.store.items():
            self._print(f'  {key}: "{value}"')

    def _cmd_stats(self, _args: str) -> None:
        for line in self.store.stats().format_lines():
            self._print(line)

    def _cmd_save(self, args: str) -> None:
        filename = args.strip() or self.default_file
        try:
            self.store.save(filename)
        except KVStoreError as exc:
            self._print(f"Error: Failed to save to file: {error_string(exc.kind)} ({exc})")
            return
        self._print(f"Saved {self.store.count()} entries to '{filename}'")

    def _cmd_load(self, args: str) -> None:
        filename = args.strip() or self.default_file
        if not file_exists(filename):
            self._print(f"Error: File '{filename}' does not exist.")
            return
        try:
            self.store.load(filename)
        except KVStoreError as exc:
            self._print(f"Error: Failed to load from file: {error_string(exc.kind)} ({exc})")
            return
        self._print(f"Loaded {self.store.count()} entries from '{filename}'")

    def _cmd_clear(self, _args: str) -> None:
        removed = self.store.clear()
        self._print(f"Cleared {removed} entries")

    def _cmd_help(self, _args: str) -> None:
        for line in help_lines(self.default_file):
            self._print(line)


__all__ = ["Shell", "help_lines", "parse_key"]
