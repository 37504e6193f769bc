"""Probe-path tracing for :class:`OpenAddressingTable`."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from kvstore.core.table import (
    OpenAddressingTable,
    _Entry,
    _TOMBSTONE,
    _capacity_for_insert,
    _find_slot,
    _insert_into,
    check_key,
    fnv1a_32,
)

ProbeTrace = Dict[str, Any]


def trace_probe_get(table: OpenAddressingTable, key: int) -> ProbeTrace:
    check_key(key)
    slots = table._slots  # pylint: disable=protected-access
    cap = len(slots)
    start_idx = fnv1a_32(key) % cap
    idx = start_idx
    path: List[Dict[str, Any]] = []
    found = False
    terminal = "exhausted"
    for scanned in range(cap):
        slot = slots[idx]
        step: Dict[str, Any] = {"step": scanned, "slot": idx}
        if slot is None:
            step["state"] = "empty"
            path.append(step)
            terminal = "empty"
            break
        if slot is _TOMBSTONE:
            step["state"] = "tombstone"
            path.append(step)
        elif isinstance(slot, _Entry):
            matches = slot.key == key
            step.update(
                {
                    "state": "occupied",
                    "occupant_key": slot.key,
                    "home_slot": fnv1a_32(slot.key) % cap,
                    "matches": matches,
                }
            )
            path.append(step)
            if matches:
                found = True
                terminal = "match"
                break
        idx = (idx + 1) % cap
    return {
        "operation": "get",
        "key": key,
        "start_slot": start_idx,
        "capacity": cap,
        "found": found,
        "terminal": terminal,
        "path": path,
    }


def trace_probe_set(table: OpenAddressingTable, key: int) -> ProbeTrace:
    """Trace where ``set(key, ...)`` would land, including any pending growth.

    The table itself is never modified; growth is simulated on a copy.
    """

    check_key(key)
    slots = table._slots  # pylint: disable=protected-access
    idx = _find_slot(slots, key, for_insertion=True)
    current = slots[idx] if idx >= 0 else None
    resized = False
    if not isinstance(current, _Entry):
        new_cap = _capacity_for_insert(
            len(table), table.tombstones, table.capacity, reuses_tombstone=current is _TOMBSTONE
        )
        if new_cap != table.capacity:
            grown: List[Any] = [None] * new_cap
            for slot in slots:
                if isinstance(slot, _Entry):
                    _insert_into(grown, slot.key, slot.value)
            slots = grown
            resized = True

    cap = len(slots)
    start_idx = fnv1a_32(key) % cap
    idx = start_idx
    path: List[Dict[str, Any]] = []
    first_tombstone: Optional[int] = None
    terminal = "exhausted"
    for scanned in range(cap):
        slot = slots[idx]
        step: Dict[str, Any] = {"step": scanned, "slot": idx}
        if slot is None:
            step["state"] = "empty"
            if first_tombstone is None:
                step["action"] = "insert"
                terminal = "insert-empty"
            else:
                step["action"] = "stop"
                terminal = "reuse-tombstone"
            path.append(step)
            break
        if slot is _TOMBSTONE:
            step["state"] = "tombstone"
            if first_tombstone is None:
                first_tombstone = idx
                step["action"] = "remember"
            else:
                step["action"] = "advance"
            path.append(step)
        elif isinstance(slot, _Entry):
            matches = slot.key == key
            step.update(
                {
                    "state": "occupied",
                    "occupant_key": slot.key,
                    "matches": matches,
                    "action": "update" if matches else "advance",
                }
            )
            path.append(step)
            if matches:
                terminal = "update"
                break
        idx = (idx + 1) % cap
    else:
        if first_tombstone is not None:
            terminal = "reuse-tombstone"
    target = first_tombstone if terminal == "reuse-tombstone" else None
    if terminal in {"insert-empty", "update"}:
        target = path[-1]["slot"]
    return {
        "operation": "set",
        "key": key,
        "start_slot": start_idx,
        "capacity": cap,
        "resized": resized,
        "found": terminal == "update",
        "terminal": terminal,
        "target_slot": target,
        "path": path,
    }


def trace_probe(table: OpenAddressingTable, key: int, operation: str = "get") -> ProbeTrace:
    if operation == "get":
        return trace_probe_get(table, key)
    if operation == "set":
        return trace_probe_set(table, key)
    raise ValueError(f"unknown probe operation: {operation}")


def format_trace_lines(
    trace: Dict[str, Any],
    *,
    data_file: Optional[Union[str, Path]] = None,
) -> List[str]:
    """Return a human-friendly rendering of a probe trace."""

    lines: List[str] = []
    operation = str(trace.get("operation", "?"))
    lines.append(f"Probe trace {operation.upper()} key={trace.get('key')}")
    lines.append(f"Found: {trace.get('found')} | Terminal: {trace.get('terminal')}")
    capacity_line = f"Capacity: {trace.get('capacity')} | Start slot: {trace.get('start_slot')}"
    if trace.get("resized"):
        capacity_line += " (after resize)"
    lines.append(capacity_line)
    if trace.get("target_slot") is not None:
        lines.append(f"Target slot: {trace['target_slot']}")
    if data_file:
        lines.append(f"Data file: {data_file}")
    lines.append("Steps:")
    path = trace.get("path")
    if not isinstance(path, list) or not path:
        lines.append("  (no path recorded)")
        return lines
    for item in path:
        attrs: List[str] = []
        for key in ("slot", "state", "action", "occupant_key", "home_slot", "matches"):
            if key in item and item[key] is not None:
                value = item[key]
                if isinstance(value, bool):
                    value = str(value).lower()
                attrs.append(f"{key}={value}")
        lines.append(f"  Step {item.get('step')}: " + ", ".join(attrs))
    return lines


__all__ = ["trace_probe", "trace_probe_get", "trace_probe_set", "format_trace_lines"]
