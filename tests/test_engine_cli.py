import json
import os
import subprocess
import sys
from pathlib import Path

from chartrade.engine import run_commands  # type: ignore
from chartrade.replay import ReplaySession  # type: ignore

ROWS = [
    {"Date": "2024-01-02", "Open": 10.0, "High": 11.0, "Low": 9.0, "Close": 10.0, "Volume": 100},
    {"Date": "2024-01-03", "Open": 10.0, "High": 12.0, "Low": 9.5, "Close": 11.0, "Volume": 100},
    {"Date": "2024-01-04", "Open": 11.0, "High": 13.0, "Low": 10.5, "Close": 12.0, "Volume": 100},
]


def _env() -> dict:
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join([str(Path(__file__).parent.parent), env.get("PYTHONPATH", "")])
    # Force UTF-8 stdout/stderr in the child process to handle unicode symbols.
    env["PYTHONIOENCODING"] = "utf-8"
    return env


def test_engine_cli_replays_command_script(tmp_path, make_csv):
    csv_path = make_csv(ROWS, filename="TEST.csv")
    script = tmp_path / "commands.txt"
    script.write_text("# demo\nlong\nnext\nshort\nclose long 100\nnext 5\nstatus\n", encoding="utf-8")

    cmd = [
        sys.executable, "-m", "chartrade.engine",
        "--file", str(csv_path),
        "--start", "2024-01-02",
        "--commands", str(script),
        "--export-dir", str(tmp_path / "out"),
    ]
    res = subprocess.run(
        cmd, capture_output=True, text=True, env=_env(), check=True, encoding="utf-8", errors="replace"
    )

    assert "short: nothing happened" in res.stdout  # free account
    assert "replay finished" in res.stdout
    for needle in ["Replay Summary", "Realised PnL               : 100.00", "Trade Log"]:
        assert needle in res.stdout
    assert (tmp_path / "out" / "trade.log").exists()


def test_engine_cli_rejects_missing_file(tmp_path):
    cmd = [sys.executable, "-m", "chartrade.engine", "--file", str(tmp_path / "nope.csv"), "--start", "2024-01-01"]
    res = subprocess.run(cmd, capture_output=True, text=True, env=_env(), input="")
    assert res.returncode != 0
    assert "Data file not found" in res.stderr


def test_engine_cli_reports_malformed_chart_json(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(
        json.dumps({"chart": {"result": [{
            "timestamp": [1704205800, 1704292200],
            "indicators": {"quote": [{"open": [1.0], "high": [2.0], "low": [0.5], "close": [1.5]}]},
        }]}}),
        encoding="utf-8",
    )
    cmd = [sys.executable, "-m", "chartrade.engine", "--file", str(bad), "--start", "2024-01-01"]
    res = subprocess.run(cmd, capture_output=True, text=True, env=_env(), input="")
    assert res.returncode != 0
    assert "Error:" in res.stderr
    assert "Traceback" not in res.stderr


def test_run_commands_reports_bad_input(make_candles):
    session = ReplaySession()
    session.load_data(make_candles([1.0, 2.0]), "T")
    out = run_commands(session, ["long", "fly away", "close sideways", "quit", "long"])
    assert out == [
        "long: nothing happened",
        "[warn] unknown command 'fly'",
        "[warn] unknown side 'sideways' (use long/short)",
    ]
