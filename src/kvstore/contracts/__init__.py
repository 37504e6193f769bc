"""Contract helpers for the key-value store."""

from .error import (
    BadInputError,
    CorruptionError,
    EnvelopeError,
    ErrorEnvelope,
    ErrorKind,
    Exit,
    FileIOError,
    InvalidParameterError,
    InvariantError,
    IOErrorEnvelope,
    KVStoreError,
    OutOfMemoryError,
    PolicyError,
    die,
    error_string,
    guard_cli,
    kind_of,
)

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
