# data_feed.py
"""CSV / chart-JSON → Candle adapters.

This module turns vendor payloads into the clean candle sequence the replay
engine expects: sorted ascending, unique dates, finite OHLC values, at least
one row. Anything else raises :class:`IngestionError` before it can reach a
simulation.
"""
from __future__ import annotations

import csv
import datetime as dt
import io
import json
import math
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chartrade.types import Candle

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# -----------------------------------------------------------------------------
# Helper constants (canonical field → accepted aliases)
# -----------------------------------------------------------------------------
_REQUIRED: Tuple[str, ...] = ("open", "high", "low", "close")
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "time": ("date", "time"),
    "open": ("open",),
    "high": ("high",),
    "low": ("low",),
    "close": ("close",),
    "volume": ("volume", "vol"),
}


class IngestionError(ValueError):
    """Raised when a price payload cannot be turned into valid candles."""


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------
def validate(candles: Iterable[Candle]) -> Tuple[Candle, ...]:
    """Sort ``candles`` by date and check the engine's input contract.

    Raises:
        IngestionError: On an empty sequence, duplicate dates or non-finite
            OHLC values.
    """
    ordered = sorted(candles, key=lambda c: c.time)
    if not ordered:
        raise IngestionError("No price rows found.")
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.time == cur.time:
            raise IngestionError(f"Duplicate date: {cur.time.isoformat()}")
    for bar in ordered:
        if not all(math.isfinite(v) for v in (bar.open, bar.high, bar.low, bar.close)):
            raise IngestionError(f"Non-finite price on {bar.time.isoformat()}")
    return tuple(ordered)


def _parse_float(raw_val: Optional[str]) -> float:
    """Parse a cell to float; blanks and junk become NaN (caught by validate)."""
    try:
        return float(raw_val) if raw_val not in (None, "") else math.nan
    except ValueError:
        return math.nan


# -----------------------------------------------------------------------------
# CSV
# -----------------------------------------------------------------------------
def _norm(col: str) -> str:
    """Normalize a column name for matching (lowercase, no quotes/separators)."""
    return col.strip().strip('"').lower().replace(" ", "").replace("_", "")


def _header_map(header: List[str]) -> Dict[str, str]:
    """Return a mapping from canonical → CSV column names.

    Raises:
        IngestionError: If a date column or any OHLC column is missing.
    """
    norm2raw = {_norm(col): col for col in header}
    mapping: Dict[str, str] = {}
    for canon, aliases in _ALIASES.items():
        for alias in aliases:
            if alias in norm2raw:
                mapping[canon] = norm2raw[alias]
                break
    missing = [c for c in ("time", *_REQUIRED) if c not in mapping]
    if missing:
        raise IngestionError(
            "Invalid CSV header; expected Date, Open, High, Low, Close, Volume "
            f"(missing: {', '.join(missing)})"
        )
    return mapping


def parse_csv(text: str) -> Tuple[Candle, ...]:
    """Parse ``Date,Open,High,Low,Close,Volume`` CSV text into candles.

    Rows whose date is not ``YYYY-MM-DD`` are skipped.
    """
    reader = csv.DictReader(io.StringIO(text.strip()))
    if not reader.fieldnames:
        raise IngestionError("CSV file has no data.")
    mapping = _header_map(list(reader.fieldnames))

    candles: List[Candle] = []
    for row in reader:
        date_str = (row.get(mapping["time"]) or "").strip()
        if not _DATE_RE.match(date_str):
            continue
        volume = _parse_float(row.get(mapping["volume"])) if "volume" in mapping else 0.0
        candles.append(
            Candle(
                time=dt.date.fromisoformat(date_str),
                open=_parse_float(row.get(mapping["open"])),
                high=_parse_float(row.get(mapping["high"])),
                low=_parse_float(row.get(mapping["low"])),
                close=_parse_float(row.get(mapping["close"])),
                volume=volume if math.isfinite(volume) else 0.0,
            )
        )
    return validate(candles)


class CSVFeed:
    """Lightweight CSV file adapter."""

    def __init__(self, csv_path: str | Path, *, title: str | None = None) -> None:
        """Initialize the feed.

        Args:
            csv_path: Path to a CSV file with Date/Open/High/Low/Close columns.
            title: Optional display title; if omitted, inferred from filename.
        """
        self._path = Path(csv_path)
        self.title = title or self._path.stem.upper()

    def candles(self) -> Tuple[Candle, ...]:
        return parse_csv(self._path.read_text(encoding="utf-8"))


# -----------------------------------------------------------------------------
# Chart JSON (Yahoo chart API shape)
# -----------------------------------------------------------------------------
def parse_chart_json(text: str) -> Tuple[Tuple[Candle, ...], str]:
    """Parse a ``{"chart": {"result": [...]}}`` payload.

    Rows where any OHLC value is null are dropped (market holidays in the
    vendor feed). Timestamps are taken as UTC dates.

    Returns:
        ``(candles, title)``; the title is ``"longName (symbol)"`` when the
        payload carries a long name, else the symbol.
    """
    try:
        payload: Dict[str, Any] = json.loads(text)
        result = payload["chart"]["result"][0]
        timestamps = result["timestamp"]
        quote = result["indicators"]["quote"][0]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise IngestionError(f"Unsupported chart JSON: {exc}") from exc

    if not isinstance(result, dict) or not isinstance(quote, dict):
        raise IngestionError("Unsupported chart JSON: result is not an object")

    meta = result.get("meta")
    if not isinstance(meta, dict):
        meta = {}
    symbol = meta.get("symbol") or ""
    long_name = meta.get("longName")
    title = f"{long_name} ({symbol})" if long_name else symbol

    if not isinstance(timestamps, list):
        raise IngestionError("Chart JSON timestamp is not a list")
    n = len(timestamps)
    columns: Dict[str, List[Any]] = {}
    for key in (*_REQUIRED, "volume"):
        col = quote.get(key)
        if col is None:
            col = [None] * n
        if not isinstance(col, list) or len(col) != n:
            raise IngestionError(f"Chart JSON '{key}' does not match {n} timestamps")
        columns[key] = col

    candles: List[Candle] = []
    for i, ts in enumerate(timestamps):
        values = [columns[k][i] for k in _REQUIRED]
        if ts is None or any(v is None for v in values):
            continue
        try:
            o, h, l, c = (float(v) for v in values)
            day = dt.datetime.fromtimestamp(int(ts), tz=dt.timezone.utc).date()
            volume = float(columns["volume"][i] or 0)
        except (ValueError, TypeError, OverflowError, OSError) as exc:
            raise IngestionError(f"Bad chart JSON row {i}: {exc}") from exc
        candles.append(Candle(time=day, open=o, high=h, low=l, close=c, volume=volume))
    return validate(candles), title


def load_file(path: str | Path) -> Tuple[Tuple[Candle, ...], str]:
    """Load a ``.csv`` or ``.json`` price file, returning ``(candles, title)``."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        candles, title = parse_chart_json(path.read_text(encoding="utf-8"))
        return candles, title or path.name
    feed = CSVFeed(path)
    return feed.candles(), feed.title
