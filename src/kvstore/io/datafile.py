"""Path-level save/load helpers for key-value data files."""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from kvstore.contracts.error import FileIOError, InvalidParameterError

from .codec import FileHeader, SupportsEntries, deserialize, read_header, serialize

logger = logging.getLogger("kvstore")

PathLike = Union[str, "os.PathLike[str]"]


def _require_path(path: PathLike | None) -> Path:
    if path is None or not str(path):
        raise InvalidParameterError("a filename is required")
    return Path(path)


def file_exists(path: PathLike | None) -> bool:
    """Return True when ``path`` names a readable regular file."""

    if path is None or not str(path):
        return False
    target = Path(path)
    return target.is_file() and os.access(target, os.R_OK)


def save_to_file(table: SupportsEntries, path: PathLike) -> int:
    """Write ``table`` to ``path`` atomically via a sibling temp file."""

    target = _require_path(path)
    try:
        tmp = tempfile.NamedTemporaryFile(
            delete=False,
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
        )
    except OSError as exc:
        raise FileIOError(f"Cannot create temp file next to {target}: {exc}") from exc
    tmp_path = Path(tmp.name)
    try:
        with tmp:
            count = serialize(table, tmp)
        os.replace(tmp_path, target)
    except OSError as exc:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise FileIOError(f"Failed to write {target}: {exc}") from exc
    except Exception:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise
    logger.debug("Wrote %d entries to %s", count, target)
    return count


def load_from_file(table: SupportsEntries, path: PathLike) -> int:
    """Merge the entries stored at ``path`` into ``table``."""

    target = _require_path(path)
    try:
        fh = open(target, "rb")
    except OSError as exc:
        raise FileIOError(f"Cannot open {target}: {exc.strerror or exc}") from exc
    with fh:
        count = deserialize(fh, table)
    logger.debug("Read %d entries from %s", count, target)
    return count


@dataclass(slots=True, frozen=True)
class DataFileDescriptor:
    """Header and size of a data file, read without decoding records."""

    path: str
    header: FileHeader
    size_bytes: int


def describe_file(path: PathLike) -> DataFileDescriptor:
    target = _require_path(path)
    try:
        size = target.stat().st_size
        with open(target, "rb") as fh:
            header = read_header(fh)
    except OSError as exc:
        raise FileIOError(f"Cannot read {target}: {exc.strerror or exc}") from exc
    return DataFileDescriptor(path=str(target), header=header, size_bytes=size)


__all__ = [
    "DataFileDescriptor",
    "describe_file",
    "file_exists",
    "load_from_file",
    "save_to_file",
]
