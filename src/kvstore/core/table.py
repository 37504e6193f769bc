"""Open-addressing hash table with linear probing and tombstone deletion."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from kvstore.contracts.error import InvalidParameterError, OutOfMemoryError

INT32_MIN: int = -(2**31)
INT32_MAX: int = 2**31 - 1
# Never stored; rejected by set/get/delete so data files stay compatible.
RESERVED_KEY: int = INT32_MIN

DEFAULT_CAPACITY: int = 16
LOAD_FACTOR_THRESHOLD: float = 0.75
GROWTH_FACTOR: int = 2

_FNV_OFFSET_BASIS: int = 2166136261
_FNV_PRIME: int = 16777619
_U32_MASK: int = 0xFFFFFFFF

_NOT_FOUND: int = -1


def fnv1a_32(key: int) -> int:
    """FNV-1a over the four little-endian bytes of a signed 32-bit key."""

    h = _FNV_OFFSET_BASIS
    for byte in (key & _U32_MASK).to_bytes(4, "little"):
        h ^= byte
        h = (h * _FNV_PRIME) & _U32_MASK
    return h


def check_key(key: Any) -> int:
    if isinstance(key, bool) or not isinstance(key, int):
        raise InvalidParameterError(f"key must be an int, got {type(key).__name__}")
    if key == RESERVED_KEY:
        raise InvalidParameterError(
            f"key {RESERVED_KEY} is reserved", hint="Use a key in [-2147483647, 2147483647]"
        )
    if not INT32_MIN < key <= INT32_MAX:
        raise InvalidParameterError(f"key {key} is outside the signed 32-bit range")
    return key


class _Tombstone:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<tombstone>"


_TOMBSTONE = _Tombstone()


@dataclass
class _Entry:
    key: int
    value: str


Slot = Optional[Union[_Entry, _Tombstone]]


def _find_slot(slots: List[Slot], key: int, for_insertion: bool) -> int:
    """Linear probe from the key's home slot for at most one full cycle.

    Lookups skip tombstones and stop at the first empty slot. Insertions also
    return a live match directly, otherwise the first tombstone seen before
    reaching an empty slot (or the empty slot itself).
    """

    cap = len(slots)
    idx = fnv1a_32(key) % cap
    first_tombstone = _NOT_FOUND
    for _ in range(cap):
        slot = slots[idx]
        if slot is None:
            if not for_insertion:
                return _NOT_FOUND
            return first_tombstone if first_tombstone != _NOT_FOUND else idx
        if isinstance(slot, _Entry):
            if slot.key == key:
                return idx
        elif for_insertion and first_tombstone == _NOT_FOUND:
            first_tombstone = idx
        idx = (idx + 1) % cap
    return first_tombstone if for_insertion else _NOT_FOUND


def _insert_into(slots: List[Slot], key: int, value: str) -> Slot:
    """Place ``key`` in ``slots`` and return whatever the chosen slot held before."""

    idx = _find_slot(slots, key, for_insertion=True)
    if idx == _NOT_FOUND:
        raise OutOfMemoryError(f"no free slot for key {key} in a table of {len(slots)} slots")
    previous = slots[idx]
    if isinstance(previous, _Entry):
        previous.value = value
    else:
        slots[idx] = _Entry(key, value)
    return previous


def _capacity_for_insert(size: int, tombstones: int, cap: int, *, reuses_tombstone: bool) -> int:
    """Capacity required before adding one new key (``cap`` when no growth is due).

    Filling a tombstone leaves ``size + tombstones`` unchanged, so it never
    forces growth on its own.
    """

    projected = size + tombstones + (0 if reuses_tombstone else 1)
    if projected / cap < LOAD_FACTOR_THRESHOLD:
        return cap
    new_cap = cap * GROWTH_FACTOR
    while (size + 1) / new_cap >= LOAD_FACTOR_THRESHOLD:
        new_cap *= GROWTH_FACTOR
    return new_cap


class OpenAddressingTable:
    """Integer-keyed, string-valued hash table.

    Slots are empty (``None``), occupied (``_Entry``) or tombstones. Growth is
    triggered before an insertion would push ``(live + tombstones) / capacity``
    to 0.75 or beyond; resizing rebuilds into a fresh slot list and drops every
    tombstone.
    """

    __slots__ = ("_slots", "_cap", "_size", "_tombstones", "_mutations")

    def __init__(self, initial_capacity: int = DEFAULT_CAPACITY) -> None:
        if isinstance(initial_capacity, bool) or not isinstance(initial_capacity, int):
            raise InvalidParameterError("initial_capacity must be an int")
        if initial_capacity <= 0:
            initial_capacity = DEFAULT_CAPACITY
        try:
            self._slots: List[Slot] = [None] * initial_capacity
        except MemoryError as exc:
            raise OutOfMemoryError(f"could not allocate {initial_capacity} slots") from exc
        self._cap = initial_capacity
        self._size = 0
        self._tombstones = 0
        self._mutations = 0

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return (
            f"OpenAddressingTable(size={self._size}, capacity={self._cap}, "
            f"tombstones={self._tombstones})"
        )

    @property
    def capacity(self) -> int:
        return self._cap

    @property
    def tombstones(self) -> int:
        return self._tombstones

    def load_factor(self) -> float:
        return self._size / self._cap

    def occupancy(self) -> float:
        return (self._size + self._tombstones) / self._cap

    def tombstone_ratio(self) -> float:
        return self._tombstones / self._cap

    def probe_start(self, key: int) -> int:
        return fnv1a_32(check_key(key)) % self._cap

    def set(self, key: int, value: str) -> None:
        """Insert ``key`` or overwrite its value.

        Raises:
            InvalidParameterError: reserved/out-of-range key, or a value that is
                not a ``str``.
            OutOfMemoryError: allocation failed or no slot could be found; the
                table is left as it was.
        """

        check_key(key)
        if not isinstance(value, str):
            raise InvalidParameterError("value must be a str")
        try:
            idx = _find_slot(self._slots, key, for_insertion=True)
            current = self._slots[idx] if idx != _NOT_FOUND else None
            if isinstance(current, _Entry):
                current.value = value
                return

            new_cap = _capacity_for_insert(
                self._size, self._tombstones, self._cap, reuses_tombstone=current is _TOMBSTONE
            )
            if new_cap != self._cap:
                self.resize(new_cap)

            previous = _insert_into(self._slots, key, value)
        except MemoryError as exc:
            raise OutOfMemoryError(f"could not store value for key {key}") from exc
        if previous is _TOMBSTONE:
            self._tombstones -= 1
        self._size += 1
        self._mutations += 1

    def get(self, key: int) -> Optional[str]:
        check_key(key)
        idx = _find_slot(self._slots, key, for_insertion=False)
        if idx == _NOT_FOUND:
            return None
        slot = self._slots[idx]
        assert isinstance(slot, _Entry)
        return slot.value

    def delete(self, key: int) -> bool:
        check_key(key)
        idx = _find_slot(self._slots, key, for_insertion=False)
        if idx == _NOT_FOUND:
            return False
        self._slots[idx] = _TOMBSTONE
        self._size -= 1
        self._tombstones += 1
        self._mutations += 1
        return True

    def resize(self, new_capacity: int) -> None:
        """Rebuild into ``new_capacity`` slots; all-or-nothing."""

        if isinstance(new_capacity, bool) or not isinstance(new_capacity, int):
            raise InvalidParameterError("new_capacity must be an int")
        if new_capacity <= self._cap:
            raise InvalidParameterError(
                f"new capacity {new_capacity} must exceed current capacity {self._cap}"
            )
        try:
            fresh: List[Slot] = [None] * new_capacity
            live = 0
            for slot in self._slots:
                if isinstance(slot, _Entry):
                    _insert_into(fresh, slot.key, slot.value)
                    live += 1
        except MemoryError as exc:
            raise OutOfMemoryError(f"could not grow table to {new_capacity} slots") from exc
        self._slots = fresh
        self._cap = new_capacity
        self._size = live
        self._tombstones = 0
        self._mutations += 1

    def items(self) -> Iterator[Tuple[int, str]]:
        """Yield live ``(key, value)`` pairs in slot order."""

        expected = self._mutations
        for slot in self._slots:
            if self._mutations != expected:
                raise RuntimeError("table mutated during iteration")
            if isinstance(slot, _Entry):
                yield slot.key, slot.value
        if self._mutations != expected:
            raise RuntimeError("table mutated during iteration")

    def keys(self) -> Iterator[int]:
        for key, _ in self.items():
            yield key

    def values(self) -> Iterator[str]:
        for _, value in self.items():
            yield value

    def __iter__(self) -> Iterator[int]:
        return self.keys()

    def __contains__(self, key: object) -> bool:
        if isinstance(key, bool) or not isinstance(key, int):
            return False
        if key == RESERVED_KEY or not INT32_MIN < key <= INT32_MAX:
            return False
        return _find_slot(self._slots, key, for_insertion=False) != _NOT_FOUND

    def verify(self) -> List[str]:
        """Return a list of invariant violations (empty when consistent)."""

        problems: List[str] = []
        if len(self._slots) != self._cap:
            problems.append(f"Slot list length {len(self._slots)} != capacity {self._cap}")
        live = sum(1 for slot in self._slots if isinstance(slot, _Entry))
        dead = sum(1 for slot in self._slots if slot is _TOMBSTONE)
        if live != self._size:
            problems.append(f"Live count {self._size} != occupied slots {live}")
        if dead != self._tombstones:
            problems.append(f"Tombstone count {self._tombstones} != tombstone slots {dead}")
        if live + dead > self._cap:
            problems.append(f"Bound violated: live+tombstones={live + dead} > cap={self._cap}")
        elif (live + dead) / self._cap >= LOAD_FACTOR_THRESHOLD:
            problems.append(
                f"Occupancy {(live + dead) / self._cap:.3f} at or above {LOAD_FACTOR_THRESHOLD}"
            )
        seen: set[int] = set()
        for idx, slot in enumerate(self._slots):
            if not isinstance(slot, _Entry):
                continue
            if slot.key in seen:
                problems.append(f"Duplicate key {slot.key} at slot {idx}")
            seen.add(slot.key)
            if _find_slot(self._slots, slot.key, for_insertion=False) != idx:
                problems.append(f"Key {slot.key} at slot {idx} unreachable by lookup")
        return problems


__all__ = [
    "DEFAULT_CAPACITY",
    "GROWTH_FACTOR",
    "INT32_MAX",
    "INT32_MIN",
    "LOAD_FACTOR_THRESHOLD",
    "OpenAddressingTable",
    "RESERVED_KEY",
    "check_key",
    "fnv1a_32",
]
