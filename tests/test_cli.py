from __future__ import annotations

import contextlib
import io
import json
import struct
from pathlib import Path

import pytest

from kvstore.cli import app
from kvstore.io.codec import MAGIC, VERSION


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in ("KVSTORE_CONFIG", "KVSTORE_DATA_FILE", "KVSTORE_INITIAL_CAPACITY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def run_cli(*argv: str) -> tuple[int, str, str]:
    stdout = io.StringIO()
    stderr = io.StringIO()
    with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
        try:
            code = app.main(list(argv))
        except SystemExit as exc:
            code = exc.code if isinstance(exc.code, int) else 1
        finally:
            app.OUTPUT_JSON = False
    return code, stdout.getvalue().strip(), stderr.getvalue().strip()


def parse_error(stderr: str) -> dict:
    if not stderr.strip():
        return {}
    return json.loads(stderr.splitlines()[-1])


def test_set_get_round_trip_json(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    code, out, _ = run_cli("--json", "--data-file", data, "set", "7", "seven")
    assert code == 0
    payload = json.loads(out)
    assert payload["ok"] is True
    assert payload["command"] == "set"
    assert payload["entries"] == 1

    code, out, _ = run_cli("--json", "--data-file", data, "get", "7")
    assert code == 0
    payload = json.loads(out)
    assert payload["found"] is True
    assert payload["value"] == "seven"


def test_negative_key_positional(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    assert run_cli("--data-file", data, "set", "-12", "minus")[0] == 0
    code, out, _ = run_cli("--data-file", data, "get", "-12")
    assert code == 0
    assert out == "minus"


def test_get_missing_key_is_not_an_error(tmp_path: Path) -> None:
    code, out, err = run_cli("--json", "--data-file", str(tmp_path / "none.bin"), "get", "1")
    assert code == 0
    payload = json.loads(out)
    assert payload["found"] is False
    assert payload["value"] is None
    assert err == ""


@pytest.mark.parametrize("key", ["abc", "2147483648", "-2147483648", "1.5"])
def test_invalid_key_is_bad_input(tmp_path: Path, key: str) -> None:
    code, _, err = run_cli("--data-file", str(tmp_path / "store.bin"), "set", key, "v")
    assert code == 2
    env = parse_error(err)
    assert env["error"] == "BadInput"
    assert not (tmp_path / "store.bin").exists()


def test_delete_reports_result(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    run_cli("--data-file", data, "set", "1", "one")
    code, out, _ = run_cli("--json", "--data-file", data, "del", "1")
    assert code == 0
    assert json.loads(out)["deleted"] is True
    code, out, _ = run_cli("--json", "--data-file", data, "del", "1")
    assert json.loads(out)["deleted"] is False


def test_items_and_stats(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    for key in ("1", "2", "3"):
        run_cli("--data-file", data, "set", key, f"v{key}")
    code, out, _ = run_cli("--json", "--data-file", data, "items")
    assert code == 0
    payload = json.loads(out)
    assert payload["count"] == 3
    assert {item["key"]: item["value"] for item in payload["items"]} == {
        1: "v1",
        2: "v2",
        3: "v3",
    }

    code, out, _ = run_cli("--data-file", data, "stats")
    assert code == 0
    assert "Key-Value Store Statistics:" in out
    assert "  Entries: 3" in out


def test_default_data_file_comes_from_config(tmp_path: Path) -> None:
    config = tmp_path / "kv.toml"
    config.write_text('[store]\ndata_file = "from-config.bin"\n', encoding="utf-8")
    code, _, _ = run_cli("--config", str(config), "set", "4", "four")
    assert code == 0
    assert (tmp_path / "from-config.bin").exists()


def test_inspect_valid_file(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    run_cli("--data-file", data, "set", "1", "one")
    code, out, _ = run_cli("--json", "inspect", data, "--verbose")
    assert code == 0
    payload = json.loads(out)
    assert payload["entry_count"] == 1
    assert payload["problems"] == []
    assert payload["magic"] == "0x4b565301"
    assert payload["capacity"] == 16


def test_inspect_corrupt_file_exit_code(tmp_path: Path) -> None:
    bad = tmp_path / "bad.bin"
    bad.write_bytes(struct.pack("<IIII", 0xCAFEBABE, VERSION, 0, 0))
    code, _, err = run_cli("inspect", str(bad))
    assert code == 6
    assert parse_error(err)["error"] == "Corruption"


def test_inspect_truncated_file_exit_code(tmp_path: Path) -> None:
    bad = tmp_path / "short.bin"
    bad.write_bytes(struct.pack("<IIII", MAGIC, VERSION, 3, 0) + b"\x01\x00")
    code, _, err = run_cli("inspect", str(bad))
    assert code == 5
    assert parse_error(err)["error"] == "IO"


def test_inspect_missing_file_exit_code(tmp_path: Path) -> None:
    code, _, err = run_cli("inspect", str(tmp_path / "absent.bin"))
    assert code == 5
    assert parse_error(err)["error"] == "IO"


def test_inspect_duplicate_records_is_invariant_failure(tmp_path: Path) -> None:
    dup = tmp_path / "dup.bin"
    record = struct.pack("<iI", 5, 1) + b"x"
    dup.write_bytes(struct.pack("<IIII", MAGIC, VERSION, 2, 0) + record + record)
    code, _, err = run_cli("inspect", str(dup))
    assert code == 3
    env = parse_error(err)
    assert env["error"] == "Invariant"
    assert "duplicate" in env["detail"]


def test_probe_json(tmp_path: Path) -> None:
    data = str(tmp_path / "store.bin")
    run_cli("--data-file", data, "set", "10", "ten")
    code, out, _ = run_cli("--json", "--data-file", data, "probe", "10")
    assert code == 0
    trace = json.loads(out)["trace"]
    assert trace["found"] is True
    assert trace["terminal"] == "match"

    code, out, _ = run_cli("--data-file", data, "probe", "11", "--op", "set")
    assert code == 0
    assert out.splitlines()[0] == "Probe trace SET key=11"


def test_config_show(tmp_path: Path) -> None:
    config = tmp_path / "kv.toml"
    config.write_text("[store]\ninitial_capacity = 32\n", encoding="utf-8")
    code, out, _ = run_cli("--config", str(config), "config-show")
    assert code == 0
    assert "initial_capacity = 32" in out

    code, out, _ = run_cli("--json", "--config", str(config), "config-show")
    assert json.loads(out)["store"]["initial_capacity"] == 32


def test_bad_config_is_bad_input(tmp_path: Path) -> None:
    config = tmp_path / "kv.toml"
    config.write_text("[store]\nbogus = 1\n", encoding="utf-8")
    code, _, err = run_cli("--config", str(config), "stats")
    assert code == 2
    assert parse_error(err)["error"] == "BadInput"


def test_config_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "kv.toml"
    config.write_text("[shell]\nmax_value_length = 9\n", encoding="utf-8")
    monkeypatch.setenv("KVSTORE_CONFIG", str(config))
    code, out, _ = run_cli("--json", "config-show")
    assert code == 0
    assert json.loads(out)["shell"]["max_value_length"] == 9


def test_shell_command_uses_data_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    data = tmp_path / "shell.bin"
    feed = iter(["set 3 three", "quit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(feed))
    code, out, _ = run_cli("--data-file", str(data), "shell")
    assert code == 0
    assert 'Set: 3 = "three"' in out
    assert data.exists()

    code, out, _ = run_cli("--data-file", str(data), "get", "3")
    assert out == "three"


def test_shell_no_autosave_flag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    data = tmp_path / "shell.bin"
    feed = iter(["set 3 three", "quit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(feed))
    code, _, _ = run_cli("--data-file", str(data), "shell", "--no-autosave")
    assert code == 0
    assert not data.exists()
