"""Module entry-point shim for `python -m kvstore`."""

from __future__ import annotations

from kvstore.cli.app import console_main

if __name__ == "__main__":  # pragma: no cover - thin wrapper
    console_main()
