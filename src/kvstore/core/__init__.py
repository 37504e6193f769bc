from .store import KVStore, StoreStats
from .table import (
    DEFAULT_CAPACITY,
    GROWTH_FACTOR,
    INT32_MAX,
    INT32_MIN,
    LOAD_FACTOR_THRESHOLD,
    RESERVED_KEY,
    OpenAddressingTable,
    check_key,
    fnv1a_32,
)

__all__ = [
    "KVStore",
    "StoreStats",
    "OpenAddressingTable",
    "check_key",
    "fnv1a_32",
    "DEFAULT_CAPACITY",
    "GROWTH_FACTOR",
    "INT32_MAX",
    "INT32_MIN",
    "LOAD_FACTOR_THRESHOLD",
    "RESERVED_KEY",
]
