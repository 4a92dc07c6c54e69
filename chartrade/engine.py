# chartrade/engine.py
"""Replay a price file bar by bar from the terminal.

This module:
  1) Loads candles from a CSV / chart-JSON file, or downloads a symbol.
  2) Starts a replay at ``--start`` (first bar on or after that date).
  3) Reads one command per line from ``--commands`` (or stdin) and feeds it
     to a :class:`~chartrade.replay.ReplaySession`.
  4) Prints the replay summary and trade log, optionally exporting them.

Commands:
  next [n]                    advance n bars (default 1)
  long | short                open one lot at the current close
  close long|short [amount]   close FIFO at the current close
  toggle ma <period>|rsi|macd|volume
  weekly                      toggle the weekly chart
  status                      print the current bar and P&L
  quit                        stop reading commands
Blank lines and lines starting with ``#`` are ignored.
"""
from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

import matplotlib

from chartrade import report
from chartrade.config import SimulationConfig
from chartrade.data_feed import IngestionError, load_file
from chartrade.replay import IndicatorKind, Phase, ReplaySession, current_candle
from chartrade.types import Side


# ───────────────────────────────────────── helpers ─────────────────────────────────────────
def _status_line(session: ReplaySession) -> str:
    bar = current_candle(session.state)
    when = bar.time.isoformat() if bar else "-"
    close = f"{bar.close:.2f}" if bar else "-"
    state = session.state
    return (
        f"[{when}] close={close} realised={state.realized_pl:.2f} "
        f"unrealised={state.unrealized_pl:.2f} total={session.total_pl:.2f}"
    )


def _parse_side(word: str) -> Side:
    try:
        return Side(word.lower())
    except ValueError:
        raise ValueError(f"unknown side {word!r} (use long/short)") from None


def run_command(session: ReplaySession, line: str) -> Optional[str]:
    """Apply one command line to ``session``.

    Returns:
        Text to print, or None. Rejected intents report ``nothing happened``.

    Raises:
        ValueError: On a command that cannot be parsed.
    """
    words = line.split()
    cmd, args = words[0].lower(), words[1:]
    before = session.state

    if cmd == "next":
        steps = int(args[0]) if args else 1
        for _ in range(steps):
            session.advance_day()
    elif cmd in ("long", "short"):
        session.trade(_parse_side(cmd))
    elif cmd == "close":
        if not args:
            raise ValueError("close needs a side")
        amount = float(args[1]) if len(args) > 1 else None
        session.close_position(_parse_side(args[0]), amount)
    elif cmd == "toggle":
        if not args:
            raise ValueError("toggle needs an indicator")
        kind = IndicatorKind(args[0].lower())
        key = args[1] if len(args) > 1 else None
        session.toggle_indicator(kind, key)
    elif cmd == "weekly":
        session.toggle_weekly_chart()
    elif cmd == "status":
        return _status_line(session)
    else:
        raise ValueError(f"unknown command {cmd!r}")

    if session.state is before:
        return f"{line.strip()}: nothing happened"
    if cmd == "next" and session.phase is not Phase.REPLAYING:
        return "replay finished"
    return None


def run_commands(session: ReplaySession, lines: Iterable[str]) -> List[str]:
    """Run command lines until EOF or ``quit``; return the printed output."""
    out: List[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower() == "quit":
            break
        try:
            msg = run_command(session, line)
        except ValueError as exc:
            msg = f"[warn] {exc}"
        if msg:
            print(msg)
            out.append(msg)
    return out


# ────────────────────────────────────────── CLI ───────────────────────────────────────────
def _build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser."""
    p = argparse.ArgumentParser(description="Replay a price series and trade it bar by bar.")

    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="CSV (Date,Open,High,Low,Close,Volume) or chart JSON file.")
    src.add_argument("--symbol", help="Download daily candles for this ticker (needs yfinance).")

    p.add_argument("--start", required=True, help="Replay start date (YYYY-MM-DD).")
    p.add_argument("--commands", help="File with one command per line (default: stdin).")
    p.add_argument("--premium", action="store_true", help="Treat the account as premium.")
    p.add_argument(
        "--allow-free-short",
        action="store_true",
        help="Let non-premium accounts open short positions.",
    )
    p.add_argument("--lot-size", type=float, default=100, help="Units per long/short command.")
    p.add_argument("--export-dir", help="Write trade.log and trades.png into this directory.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log rejected actions.")
    return p


def _read_commands(path: Optional[str], stdin: TextIO) -> List[str]:
    if path:
        return Path(path).read_text(encoding="utf-8").splitlines()
    return stdin.read().splitlines()


# ───────────────────────────────────────── runner ─────────────────────────────────────────
def run(argv: Optional[List[str]] = None) -> None:
    """Load data, replay the command script and print the summary."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        start = dt.date.fromisoformat(args.start)
    except ValueError:
        sys.exit(f"Invalid --start date: {args.start}")

    if args.file:
        path = Path(args.file)
        if not path.exists():
            sys.exit(f"Data file not found: {path}")
        try:
            candles, title = load_file(path)
        except IngestionError as exc:
            sys.exit(f"Error: {exc}")
    else:
        from chartrade.data_downloader import YahooDownloader

        try:
            candles = YahooDownloader().download(args.symbol)
        except Exception as exc:  # noqa: BLE001
            sys.exit(f"Error: {exc}")
        title = args.symbol.upper()

    config = SimulationConfig(
        lot_size=args.lot_size,
        close_amount=args.lot_size,
        short_requires_premium=not args.allow_free_short,
    )
    session = ReplaySession(is_premium=args.premium, config=config)
    session.load_data(candles, title)
    session.start_replay(start)
    if session.phase is not Phase.REPLAYING:
        sys.exit(f"No bar on or after {start.isoformat()} in {title}")
    print(_status_line(session))

    run_commands(session, _read_commands(args.commands, sys.stdin))

    # Console outputs.
    print(report.summary(session.state))
    print(report.trade_logs(session.state))

    if args.export_dir:
        matplotlib.use("Agg")  # the chart is only written to a file
        log_dir = Path(args.export_dir)
        report.export_logs(session.state, log_dir)
        print(f"\nLogs & chart saved to: {log_dir.resolve()}")


if __name__ == "__main__":
    run()
