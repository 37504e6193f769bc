"""Error kinds, exception hierarchy and exit codes for the key-value store."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from functools import wraps
from typing import Any, NoReturn, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class ErrorKind(IntEnum):
    """Failure categories shared by the table, the codec and the CLI."""

    SUCCESS = 0
    OUT_OF_MEMORY = 1
    KEY_NOT_FOUND = 2
    INVALID_PARAM = 3
    FILE_IO = 4
    CORRUPTION = 5
    UNKNOWN = 6


_ERROR_STRINGS: dict[ErrorKind, str] = {
    ErrorKind.SUCCESS: "Success",
    ErrorKind.OUT_OF_MEMORY: "Memory allocation failed",
    ErrorKind.KEY_NOT_FOUND: "Key not found",
    ErrorKind.INVALID_PARAM: "Invalid parameter",
    ErrorKind.FILE_IO: "File I/O error",
    ErrorKind.CORRUPTION: "Data corruption detected",
    ErrorKind.UNKNOWN: "Unknown error",
}


def error_string(kind: ErrorKind | int) -> str:
    """Return the human-readable description of ``kind``."""

    try:
        return _ERROR_STRINGS[ErrorKind(kind)]
    except ValueError:
        return _ERROR_STRINGS[ErrorKind.UNKNOWN]


class Exit(IntEnum):
    """Stable exit codes shared across the CLI."""

    OK = 0
    BAD_INPUT = 2
    INVARIANT = 3
    POLICY = 4
    IO = 5
    CORRUPTION = 6


@dataclass(slots=True)
class ErrorEnvelope:
    """Machine-readable error contract for CLI failures."""

    error: str
    detail: str
    hint: str | None = None

    def to_json(self) -> str:
        payload = {"error": self.error, "detail": self.detail}
        if self.hint:
            payload["hint"] = self.hint
        return json.dumps(payload, ensure_ascii=False)


def die(code: Exit, kind: str, detail: str, hint: str | None = None) -> NoReturn:
    """Emit standardized JSON error on stderr and exit with a stable code."""

    env = ErrorEnvelope(error=kind, detail=detail, hint=hint)
    sys.stderr.write(env.to_json() + "\n")
    try:
        sys.stderr.flush()
    finally:
        sys.exit(int(code))


class EnvelopeError(Exception):
    """Base exception that carries an optional hint for the error envelope."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class BadInputError(EnvelopeError):
    """Raised for malformed user input (keys, flags, config values)."""


class InvariantError(EnvelopeError):
    """Raised when internal consistency checks fail."""


class PolicyError(EnvelopeError):
    """Raised for unsupported operations or contract violations."""


class IOErrorEnvelope(EnvelopeError):  # noqa: N818 - public API name
    """Raised for IO errors that should map to Exit.IO."""


class KVStoreError(EnvelopeError):
    """Base class for failures reported by the table and the codec."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def describe(self) -> str:
        return f"{error_string(self.kind)}: {self}"


class InvalidParameterError(KVStoreError, BadInputError):
    """Absent value, reserved or out-of-range key, bad capacity or path."""

    kind = ErrorKind.INVALID_PARAM


class OutOfMemoryError(KVStoreError, InvariantError):
    """Allocation failure or an exhausted slot array; the table is unchanged."""

    kind = ErrorKind.OUT_OF_MEMORY


class FileIOError(KVStoreError, IOErrorEnvelope):
    """Open/read/write failure or a truncated stream."""

    kind = ErrorKind.FILE_IO


class CorruptionError(KVStoreError):
    """Bad magic, unsupported version or an implausible record."""

    kind = ErrorKind.CORRUPTION


def kind_of(exc: BaseException) -> ErrorKind:
    """Map an exception to the error kind used for diagnostics."""

    if isinstance(exc, KVStoreError):
        return exc.kind
    if isinstance(exc, MemoryError):
        return ErrorKind.OUT_OF_MEMORY
    if isinstance(exc, OSError):
        return ErrorKind.FILE_IO
    return ErrorKind.UNKNOWN


_EXCEPTION_ORDER: tuple[tuple[type[EnvelopeError], Exit, str], ...] = (
    (CorruptionError, Exit.CORRUPTION, "Corruption"),
    (BadInputError, Exit.BAD_INPUT, "BadInput"),
    (InvariantError, Exit.INVARIANT, "Invariant"),
    (PolicyError, Exit.POLICY, "Policy"),
    (IOErrorEnvelope, Exit.IO, "IO"),
)


def guard_cli(fn: Callable[..., T]) -> Callable[..., T]:
    """Decorate a CLI handler to enforce exit codes and error envelopes."""

    @wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except EnvelopeError as exc:
            for exc_type, exit_code, label in _EXCEPTION_ORDER:
                if isinstance(exc, exc_type):
                    die(exit_code, label, str(exc), hint=getattr(exc, "hint", None))
            die(Exit.POLICY, "UnhandledEnvelope", str(exc), hint=getattr(exc, "hint", None))
        except FileNotFoundError as exc:
            die(Exit.IO, "FileNotFound", str(exc))
        except Exception as exc:  # pragma: no cover - unexpected handler failure
            logger.exception("Unhandled CLI exception")
            die(Exit.POLICY, "Unhandled", f"{type(exc).__name__}: {exc}")

    return _wrapped


__all__ = [
    "ErrorKind",
    "error_string",
    "kind_of",
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "InvariantError",
    "PolicyError",
    "IOErrorEnvelope",
    "KVStoreError",
    "InvalidParameterError",
    "OutOfMemoryError",
    "FileIOError",
    "CorruptionError",
    "guard_cli",
    "die",
]
