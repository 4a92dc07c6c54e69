import csv
import datetime as dt
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import pytest

from chartrade.types import Candle  # type: ignore


@pytest.fixture
def make_csv(tmp_path):
    """Create a minimal OHLCV CSV and return its path.

    Usage:
        path = make_csv(
            rows=[{"Date": "2024-01-01", "Open": 10.0, ...}, ...],
            filename="TEST.csv"
        )
    """
    def _make_csv(rows: Iterable[Mapping], filename: str = "TEST.csv") -> Path:
        path = tmp_path / filename
        rows = list(rows)
        if not rows:
            raise ValueError("rows must be non-empty")
        fieldnames = list(rows[0].keys())
        with path.open("w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for r in rows:
                writer.writerow(r)
        return path

    return _make_csv


@pytest.fixture
def make_candles():
    """Build daily candles from a list of closes, one per calendar day.

    Open/high/low are derived from the close so every bar is well formed.
    """
    def _make_candles(closes: Sequence[float], start: dt.date = dt.date(2024, 1, 1)) -> tuple:
        return tuple(
            Candle(
                time=start + dt.timedelta(days=i),
                open=float(c),
                high=float(c) + 1.0,
                low=float(c) - 1.0,
                close=float(c),
                volume=1000.0,
            )
            for i, c in enumerate(closes)
        )

    return _make_candles
