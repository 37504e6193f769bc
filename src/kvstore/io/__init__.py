"""I/O helpers for the key-value store."""

from .codec import (
    FileHeader,
    deserialize,
    dumps,
    loads,
    read_header,
    serialize,
)
from .datafile import (
    DataFileDescriptor,
    describe_file,
    file_exists,
    load_from_file,
    save_to_file,
)

__all__ = [
    "FileHeader",
    "deserialize",
    "dumps",
    "loads",
    "read_header",
    "serialize",
    "DataFileDescriptor",
    "describe_file",
    "file_exists",
    "load_from_file",
    "save_to_file",
]
