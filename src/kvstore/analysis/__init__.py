"""Analysis helpers for the key-value store."""

from .probe import format_trace_lines, trace_probe, trace_probe_get, trace_probe_set

__all__ = ["trace_probe", "trace_probe_get", "trace_probe_set", "format_trace_lines"]
