# types.py
"""Candles, indicator points, and the position/lot/trade records of a replay."""
from __future__ import annotations

import dataclasses
import datetime as dt
from enum import Enum
from typing import NewType, Optional, Tuple

# ───────────────────────────────────────────────────────────── primitives ────
LotId = NewType("LotId", str)


# ────────────────────────────────────────────────────────────────── sides ────
class Side(Enum):
    """Direction of a simulated position."""
    LONG = "long"
    SHORT = "short"


# ─────────────────────────────────────────────────────────── market bars ────
@dataclasses.dataclass(slots=True, frozen=True)
class Candle:
    """One daily (or weekly) OHLCV bar.

    Attributes:
        time: Calendar date of the bar.
        open: Open price.
        high: High price.
        low: Low price.
        close: Close price.
        volume: Traded volume (0 when the source has none).
    """
    time: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclasses.dataclass(slots=True, frozen=True)
class LinePoint:
    """A point of a single-valued overlay; ``value`` is NaN during warm-up."""
    time: dt.date
    value: float


@dataclasses.dataclass(slots=True, frozen=True)
class MacdPoint:
    """A MACD point. Missing components are ``None``."""
    time: dt.date
    macd: Optional[float] = None
    signal: Optional[float] = None
    histogram: Optional[float] = None


# ──────────────────────────────────────────────────────── position models ────
@dataclasses.dataclass(slots=True, frozen=True)
class Lot:
    """One opening fill, tracked individually for FIFO closing."""
    id: LotId
    price: float
    size: float
    date: dt.date


@dataclasses.dataclass(slots=True, frozen=True)
class Position:
    """All open lots on one side, oldest first."""
    side: Side
    lots: Tuple[Lot, ...]

    @property
    def total_size(self) -> float:
        return sum(lot.size for lot in self.lots)

    @property
    def avg_price(self) -> float:
        """Size-weighted average entry price (0 if no lots)."""
        size = self.total_size
        if size <= 0:
            return 0.0
        return sum(lot.price * lot.size for lot in self.lots) / size


@dataclasses.dataclass(slots=True, frozen=True)
class ClosedTrade:
    """A realised trade generated when (part of) a lot is closed."""
    id: str
    side: Side
    entry_price: float
    exit_price: float
    size: float
    entry_date: dt.date
    exit_date: dt.date
    profit: float  # absolute profit in quote currency
    lot_id: Optional[LotId] = None
