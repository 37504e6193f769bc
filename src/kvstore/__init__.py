"""Integer-keyed string store with a binary data file format."""

from . import analysis, config, contracts, core, io

__all__ = [
    "analysis",
    "config",
    "contracts",
    "core",
    "io",
]
