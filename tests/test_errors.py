from __future__ import annotations

import json

import pytest

from kvstore.contracts import (
    BadInputError,
    CorruptionError,
    ErrorKind,
    Exit,
    FileIOError,
    InvalidParameterError,
    InvariantError,
    IOErrorEnvelope,
    KVStoreError,
    OutOfMemoryError,
    PolicyError,
    error_string,
    guard_cli,
    kind_of,
)


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (ErrorKind.SUCCESS, "Success"),
        (ErrorKind.OUT_OF_MEMORY, "Memory allocation failed"),
        (ErrorKind.KEY_NOT_FOUND, "Key not found"),
        (ErrorKind.INVALID_PARAM, "Invalid parameter"),
        (ErrorKind.FILE_IO, "File I/O error"),
        (ErrorKind.CORRUPTION, "Data corruption detected"),
        (ErrorKind.UNKNOWN, "Unknown error"),
        (99, "Unknown error"),
        (-1, "Unknown error"),
    ],
)
def test_error_string(kind: int, expected: str) -> None:
    assert error_string(kind) == expected


def test_exception_kinds_and_bases() -> None:
    assert InvalidParameterError("x").kind is ErrorKind.INVALID_PARAM
    assert OutOfMemoryError("x").kind is ErrorKind.OUT_OF_MEMORY
    assert FileIOError("x").kind is ErrorKind.FILE_IO
    assert CorruptionError("x").kind is ErrorKind.CORRUPTION
    assert isinstance(InvalidParameterError("x"), BadInputError)
    assert isinstance(FileIOError("x"), IOErrorEnvelope)
    assert isinstance(OutOfMemoryError("x"), InvariantError)


def test_describe_prefixes_error_string() -> None:
    exc = CorruptionError("bad magic")
    assert exc.describe() == "Data corruption detected: bad magic"
    assert InvalidParameterError("oops", hint="try 1").hint == "try 1"


def test_kind_of_maps_builtin_exceptions() -> None:
    assert kind_of(FileIOError("x")) is ErrorKind.FILE_IO
    assert kind_of(MemoryError()) is ErrorKind.OUT_OF_MEMORY
    assert kind_of(PermissionError()) is ErrorKind.FILE_IO
    assert kind_of(ValueError()) is ErrorKind.UNKNOWN
    assert kind_of(KVStoreError("x")) is ErrorKind.UNKNOWN


@pytest.mark.parametrize(
    ("exc", "code", "label"),
    [
        (InvalidParameterError("bad key", hint="use ints"), Exit.BAD_INPUT, "BadInput"),
        (BadInputError("bad flag"), Exit.BAD_INPUT, "BadInput"),
        (InvariantError("broken"), Exit.INVARIANT, "Invariant"),
        (OutOfMemoryError("full"), Exit.INVARIANT, "Invariant"),
        (PolicyError("nope"), Exit.POLICY, "Policy"),
        (FileIOError("disk"), Exit.IO, "IO"),
        (CorruptionError("magic"), Exit.CORRUPTION, "Corruption"),
        (FileNotFoundError("gone"), Exit.IO, "FileNotFound"),
    ],
)
def test_guard_cli_maps_exit_codes(
    exc: Exception, code: Exit, label: str, capsys: pytest.CaptureFixture[str]
) -> None:
    @guard_cli
    def handler() -> int:
        raise exc

    with pytest.raises(SystemExit) as excinfo:
        handler()
    assert excinfo.value.code == int(code)
    envelope = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert envelope["error"] == label
    if getattr(exc, "hint", None):
        assert envelope["hint"] == exc.hint  # type: ignore[attr-defined]


def test_guard_cli_passes_return_value() -> None:
    assert guard_cli(lambda: 0)() == 0
