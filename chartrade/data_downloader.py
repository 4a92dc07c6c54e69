# data_downloader.py
"""Yahoo Finance daily-candle downloader.

This module provides:
    * BaseDownloader: Abstract façade for market-data providers.
    * YahooDownloader: Concrete implementation using `yfinance`.

Downloaded frames are flattened to canonical ``open/high/low/close/volume``
columns, turned into :class:`~chartrade.types.Candle` objects and validated
exactly like file uploads, so a replay never sees the provider's raw shape.
"""
from __future__ import annotations

import abc
import datetime as dt
import sys
from pathlib import Path
from typing import Final, List, Tuple

import pandas as pd

from chartrade.data_feed import validate
from chartrade.types import Candle

_DATE_FMT: Final[str] = "%Y-%m-%d"
_FIELD_NAMES: Final[frozenset[str]] = frozenset({"open", "high", "low", "close", "volume"})


# -----------------------------------------------------------------------------
# Frame helpers
# -----------------------------------------------------------------------------
def flatten_columns(raw: pd.DataFrame) -> pd.DataFrame:
    """Return a frame with single-level, lower-case OHLCV columns.

    Handles the MultiIndex columns yfinance returns for single tickers by
    picking whichever level holds the field names.

    Raises:
        KeyError: If no level contains OHLCV field names.
    """
    if isinstance(raw.columns, pd.MultiIndex):
        for level in range(raw.columns.nlevels):
            names = [str(c).lower().replace(" ", "") for c in raw.columns.get_level_values(level)]
            if _FIELD_NAMES & set(names):
                raw = raw.copy()
                raw.columns = names
                break
        else:
            raise KeyError("Could not locate OHLCV field names in MultiIndex columns.")
    else:
        raw = raw.rename(columns=lambda c: str(c).lower().replace(" ", ""))

    missing = _FIELD_NAMES - {"volume"} - set(raw.columns)
    if missing:
        raise KeyError(f"Missing OHLC fields: {sorted(missing)}")
    return raw


def frame_to_candles(frame: pd.DataFrame) -> Tuple[Candle, ...]:
    """Convert a date-indexed OHLCV frame into validated candles."""
    frame = flatten_columns(frame).dropna(subset=["open", "high", "low", "close"])
    candles: List[Candle] = []
    for ts, row in frame.iterrows():
        volume = row.get("volume", 0.0)
        candles.append(
            Candle(
                time=pd.Timestamp(ts).date(),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=0.0 if pd.isna(volume) else float(volume),
            )
        )
    return validate(candles)


def candles_to_frame(candles: Tuple[Candle, ...]) -> pd.DataFrame:
    """Inverse of :func:`frame_to_candles`, indexed by ``time``."""
    frame = pd.DataFrame(
        [
            {"time": pd.Timestamp(c.time), "open": c.open, "high": c.high,
             "low": c.low, "close": c.close, "volume": c.volume}
            for c in candles
        ],
        columns=["time", "open", "high", "low", "close", "volume"],
    )
    return frame.set_index("time")


# -----------------------------------------------------------------------------
# Abstract base
# -----------------------------------------------------------------------------
class BaseDownloader(abc.ABC):
    """Abstract façade for market-data providers."""

    @abc.abstractmethod
    def download(self, symbol: str, start: dt.date | None, end: dt.date | None) -> Tuple[Candle, ...]:
        """Fetch daily candles for ``symbol`` between ``start`` and ``end``."""
        raise NotImplementedError


# -----------------------------------------------------------------------------
# Concrete Yahoo Finance implementation
# -----------------------------------------------------------------------------
class YahooDownloader(BaseDownloader):
    """Free Yahoo Finance downloader (no API key required)."""

    def download(
        self,
        symbol: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> Tuple[Candle, ...]:
        """Download daily candles for ``symbol``.

        Args:
            symbol: Ticker symbol.
            start: Inclusive start date; if both start and end are None, a
                one-year lookback is used by default.
            end: Exclusive end date.

        Raises:
            ValueError: If start date is later than end date.
            RuntimeError: If the provider returns an empty DataFrame.
        """
        import yfinance as yf  # Local import keeps dependency optional.

        if not start and not end:
            start = dt.date.today() - dt.timedelta(days=365)
        if start and end and start > end:
            raise ValueError("start must be ≤ end")

        raw = yf.download(
            tickers=symbol,
            start=start.strftime(_DATE_FMT) if start else None,
            end=end.strftime(_DATE_FMT) if end else None,
            interval="1d",
            auto_adjust=False,
            progress=False,
            group_by="column",
        )
        if raw is None or raw.empty:
            raise RuntimeError(f"No data returned for symbol={symbol!r}")
        return frame_to_candles(raw)

    def download_csv(self, symbol: str, out_csv: str | Path | None = None, **kwargs) -> Path:
        """Download and write ``Date,Open,High,Low,Close,Volume`` CSV."""
        frame = candles_to_frame(self.download(symbol, **kwargs))
        frame.index = frame.index.strftime(_DATE_FMT)
        frame.index.name = "Date"
        frame.columns = [c.capitalize() for c in frame.columns]

        out_path = Path(out_csv or f"data/{symbol.upper()}.csv")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(out_path)
        return out_path


# -----------------------------------------------------------------------------
# CLI convenience
# -----------------------------------------------------------------------------
def _parse_date(date_str: str | None) -> dt.date | None:
    """Parse 'YYYY-MM-DD' string to a date, or return None for falsy input."""
    return dt.datetime.strptime(date_str, _DATE_FMT).date() if date_str else None


def _cli() -> None:
    """Download a symbol's daily candles into a CSV the replay engine can load."""
    import argparse

    parser = argparse.ArgumentParser(description="Download Yahoo Finance daily candles.")
    parser.add_argument("symbol", help="Ticker symbol, e.g., AAPL")
    grp = parser.add_mutually_exclusive_group()
    grp.add_argument("--days", type=int, help="Look-back window (days)")
    grp.add_argument("--start", type=str, help="YYYY-MM-DD start date")
    parser.add_argument("--end", type=str, help="YYYY-MM-DD end date (default today)")
    parser.add_argument("--out", metavar="PATH", help="Output CSV path")
    args = parser.parse_args()

    start = _parse_date(args.start)
    end = _parse_date(args.end)
    if args.days and not start:
        start = dt.date.today() - dt.timedelta(days=args.days)

    try:
        path = YahooDownloader().download_csv(args.symbol, out_csv=args.out, start=start, end=end)
        print(f"Data saved → {path}")
    except Exception as err:  # Surface error and exit with non-zero status.
        sys.exit(f"Error: {err}")


if __name__ == "__main__":
    _cli()
