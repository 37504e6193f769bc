"""Binary data file codec: ``[header][record]*``, little-endian, no padding.

Header is ``magic, version, entry_count, reserved`` (four u32). Each record
is ``key (i32), value_length (u32), value_bytes`` with UTF-8 values.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, List, Protocol, Tuple

from kvstore.contracts.error import (
    CorruptionError,
    FileIOError,
    InvalidParameterError,
    InvariantError,
)

MAGIC = 0x4B565301  # "KVS" + 0x01
VERSION = 1
HEADER_FMT = "<IIII"
HEADER_SIZE = struct.calcsize(HEADER_FMT)
RECORD_FMT = "<iI"
RECORD_SIZE = struct.calcsize(RECORD_FMT)
MAX_VALUE_BYTES = 100_000
_MAX_ENTRY_COUNT = 0xFFFFFFFF
_RESERVED_KEY = -(2**31)


class SupportsEntries(Protocol):
    def __len__(self) -> int: ...

    def items(self) -> Iterable[Tuple[int, str]]: ...

    def set(self, key: int, value: str) -> None: ...


@dataclass(slots=True, frozen=True)
class FileHeader:
    """Header at offset 0 of every data file."""

    entry_count: int = 0
    magic: int = MAGIC
    version: int = VERSION
    reserved: int = 0


def _pack_header(header: FileHeader) -> bytes:
    return struct.pack(HEADER_FMT, header.magic, header.version, header.entry_count, 0)


def _unpack_header(data: bytes) -> FileHeader:
    if len(data) < HEADER_SIZE:
        raise FileIOError(f"Header too short: {len(data)} of {HEADER_SIZE} bytes")
    magic, version, entry_count, reserved = struct.unpack(HEADER_FMT, data[:HEADER_SIZE])
    if magic != MAGIC:
        raise CorruptionError(f"Bad magic {magic:#010x} (expected {MAGIC:#010x})")
    if version != VERSION:
        raise CorruptionError(f"Unsupported data file version {version}")
    return FileHeader(entry_count=entry_count, magic=magic, version=version, reserved=reserved)


def _read_exact(stream: IO[bytes], size: int, what: str) -> bytes:
    chunks: List[bytes] = []
    remaining = size
    try:
        while remaining > 0:
            chunk = stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
    except OSError as exc:
        raise FileIOError(f"Read failed while reading {what}: {exc}") from exc
    data = b"".join(chunks)
    if len(data) != size:
        raise FileIOError(f"Truncated stream: {what} needs {size} bytes, got {len(data)}")
    return data


def read_header(stream: IO[bytes]) -> FileHeader:
    """Read and validate the header at the current stream position."""

    return _unpack_header(_read_exact(stream, HEADER_SIZE, "header"))


def iter_records(stream: IO[bytes], header: FileHeader) -> Iterator[Tuple[int, str]]:
    """Decode the ``header.entry_count`` records that follow the header."""

    for index in range(header.entry_count):
        key, value_len = struct.unpack(
            RECORD_FMT, _read_exact(stream, RECORD_SIZE, f"record {index} prefix")
        )
        if key == _RESERVED_KEY:
            raise CorruptionError(f"Record {index} uses the reserved key {key}")
        if value_len > MAX_VALUE_BYTES:
            raise CorruptionError(
                f"Record {index} declares a {value_len}-byte value (limit {MAX_VALUE_BYTES})"
            )
        raw = _read_exact(stream, value_len, f"record {index} value")
        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptionError(f"Record {index} value is not valid UTF-8") from exc
        yield key, value


def _encode_records(table: SupportsEntries) -> Tuple[int, bytes]:
    parts: List[bytes] = []
    count = 0
    for key, value in table.items():
        raw = value.encode("utf-8")
        if len(raw) > MAX_VALUE_BYTES:
            raise InvalidParameterError(
                f"Value for key {key} is {len(raw)} bytes; the data file limit is {MAX_VALUE_BYTES}"
            )
        parts.append(struct.pack(RECORD_FMT, key, len(raw)))
        parts.append(raw)
        count += 1
    return count, b"".join(parts)


def dumps(table: SupportsEntries) -> bytes:
    """Encode ``table`` as a complete data file image."""

    entry_count = len(table)
    if entry_count > _MAX_ENTRY_COUNT:
        raise InvalidParameterError(f"{entry_count} entries do not fit the u32 entry count")
    written, body = _encode_records(table)
    if written != entry_count:
        raise InvariantError(f"Table reported {entry_count} entries but iterated {written}")
    return _pack_header(FileHeader(entry_count=entry_count)) + body


def serialize(table: SupportsEntries, stream: IO[bytes]) -> int:
    """Write ``table`` to ``stream``; returns the number of records written.

    The image is built in memory before the single write, so encoding
    failures never reach the stream.
    """

    blob = dumps(table)
    try:
        stream.write(blob)
        stream.flush()
    except OSError as exc:
        raise FileIOError(f"Write failed: {exc}") from exc
    return len(table)


def deserialize(stream: IO[bytes], table: SupportsEntries) -> int:
    """Read a data file image from ``stream`` and merge it into ``table``.

    Every record is decoded and validated before the first insertion, so a
    corrupt or truncated stream leaves ``table`` untouched. Returns the number
    of records applied.
    """

    header = read_header(stream)
    records = list(iter_records(stream, header))
    for key, value in records:
        table.set(key, value)
    return len(records)


def loads(blob: bytes, table: SupportsEntries) -> int:
    """Merge the data file image ``blob`` into ``table``."""

    return deserialize(io.BytesIO(blob), table)


__all__ = [
    "FileHeader",
    "HEADER_FMT",
    "HEADER_SIZE",
    "MAGIC",
    "MAX_VALUE_BYTES",
    "RECORD_FMT",
    "RECORD_SIZE",
    "SupportsEntries",
    "VERSION",
    "deserialize",
    "dumps",
    "iter_records",
    "loads",
    "read_header",
    "serialize",
]
