"""Store wrapper: a table plus the data file it was last saved to or loaded from."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from kvstore.io.datafile import PathLike, load_from_file, save_to_file

from .table import DEFAULT_CAPACITY, OpenAddressingTable

logger = logging.getLogger("kvstore")


@dataclass(frozen=True)
class StoreStats:
    entries: int
    capacity: int
    tombstones: int
    load_factor: float
    filename: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def format_lines(self) -> List[str]:
        return [
            "Key-Value Store Statistics:",
            f"  Entries: {self.entries}",
            f"  Capacity: {self.capacity}",
            f"  Tombstones: {self.tombstones}",
            f"  Load Factor: {self.load_factor * 100:.2f}%",
            f"  Associated file: {self.filename or 'None'}",
        ]


class KVStore:
    """Thin facade over :class:`OpenAddressingTable` with file bookkeeping."""

    def __init__(self, initial_capacity: int = 0) -> None:
        self._table = OpenAddressingTable(initial_capacity)
        self._filename: Optional[str] = None

    def __len__(self) -> int:
        return len(self._table)

    @property
    def table(self) -> OpenAddressingTable:
        return self._table

    @property
    def filename(self) -> Optional[str]:
        return self._filename

    def set(self, key: int, value: str) -> None:
        self._table.set(key, value)

    def get(self, key: int) -> Optional[str]:
        return self._table.get(key)

    def delete(self, key: int) -> bool:
        return self._table.delete(key)

    def count(self) -> int:
        return len(self._table)

    def items(self) -> Iterator[Tuple[int, str]]:
        return self._table.items()

    def save(self, filename: PathLike) -> int:
        count = save_to_file(self._table, filename)
        self._filename = str(filename)
        logger.info("Saved %d entries to %s", count, filename)
        return count

    def load(self, filename: PathLike) -> int:
        """Merge entries from ``filename``; existing keys are overwritten."""

        applied = load_from_file(self._table, filename)
        self._filename = str(filename)
        logger.info("Loaded %d records from %s (%d entries now)", applied, filename, len(self))
        return applied

    def clear(self) -> int:
        removed = len(self._table)
        self._table = OpenAddressingTable(DEFAULT_CAPACITY)
        return removed

    def stats(self) -> StoreStats:
        return StoreStats(
            entries=len(self._table),
            capacity=self._table.capacity,
            tombstones=self._table.tombstones,
            load_factor=self._table.load_factor(),
            filename=self._filename,
        )


__all__ = ["KVStore", "StoreStats"]
