# indicators.py
"""Technical overlays computed over candle closes.

This module provides:
    * ``mean`` and ``ema`` helpers over plain float lists.
    * ``RollingWindow`` for fixed-size trailing windows.
    * Chart series aligned point-for-point with the input candles:
      ``sma`` (moving average), ``rsi`` (Wilder's RSI) and ``macd``.

Every series is recomputed from scratch on each call; there is no cached
state, so identical inputs always give identical outputs.
"""
from __future__ import annotations

import math
from collections import deque
from decimal import ROUND_HALF_UP, Decimal
from typing import Deque, List, Optional, Sequence

from chartrade.types import Candle, LinePoint, MacdPoint

NAN = math.nan
_CENT = Decimal("0.01")


def _check_period(name: str, period: int) -> None:
    if period <= 0:
        raise ValueError(f"{name} must be positive")


def mean(values: Sequence[float]) -> float:
    """Return the arithmetic mean of ``values``.

    Raises:
        ZeroDivisionError: If ``values`` is empty.
    """
    return sum(values) / len(values)


def round_price(value: float) -> float:
    """Round to 2 decimals, ties away from zero on the exact binary value."""
    return float(Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def ema(values: Sequence[float], period: int) -> List[Optional[float]]:
    """Exponential moving average seeded with a simple average.

    The first ``period - 1`` entries are ``None``. Entry ``period - 1`` is the
    mean of the first ``period`` values; later entries follow
    ``prev + k * (value - prev)`` with ``k = 2 / (period + 1)``.

    Args:
        values: Input values, oldest first.
        period: Smoothing period (> 0).

    Returns:
        A list the same length as ``values``.
    """
    _check_period("period", period)
    out: List[Optional[float]] = [None] * len(values)
    if len(values) < period:
        return out

    k = 2.0 / (period + 1)
    prev = mean(values[:period])
    out[period - 1] = prev
    for i in range(period, len(values)):
        prev = (values[i] - prev) * k + prev
        out[i] = prev
    return out


class RollingWindow:
    """Fixed-size rolling window storing recent floats."""

    def __init__(self, size: int) -> None:
        self._dq: Deque[float] = deque(maxlen=size)

    def push(self, value: float) -> None:
        self._dq.append(value)

    @property
    def full(self) -> bool:
        """True once the window holds ``size`` values."""
        return len(self._dq) == self._dq.maxlen

    def mean(self) -> float:
        return mean(list(self._dq))


# ─────────────────────────────────────────────────────────── chart series ────
def sma(data: Sequence[Candle], period: int) -> List[LinePoint]:
    """Simple moving average of closes, rounded to 2 decimals.

    Points before ``period - 1`` are NaN. Input shorter than ``period`` gives
    an all-NaN series of the same length.
    """
    _check_period("period", period)
    window = RollingWindow(period)
    points: List[LinePoint] = []
    for bar in data:
        window.push(bar.close)
        value = round_price(window.mean()) if window.full else NAN
        points.append(LinePoint(time=bar.time, value=value))
    return points


def rsi(data: Sequence[Candle], period: int = 14) -> List[LinePoint]:
    """Wilder's smoothed RSI of closes.

    Indices ``0 .. period - 1`` are warm-up (NaN). Index ``period`` uses the
    simple means of the first ``period`` close-to-close changes; later points
    apply Wilder's smoothing. A zero average loss saturates RSI at 100.
    """
    _check_period("period", period)
    points = [LinePoint(time=bar.time, value=NAN) for bar in data]
    if len(data) <= period:
        return points

    closes = [bar.close for bar in data]
    changes = [cur - prev for prev, cur in zip(closes, closes[1:])]

    avg_gain = mean([max(c, 0.0) for c in changes[:period]])
    avg_loss = mean([max(-c, 0.0) for c in changes[:period]])
    points[period] = LinePoint(time=data[period].time, value=_rsi_value(avg_gain, avg_loss))

    for i in range(period + 1, len(data)):
        change = changes[i - 1]
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period
        points[i] = LinePoint(time=data[i].time, value=_rsi_value(avg_gain, avg_loss))
    return points


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(
    data: Sequence[Candle],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> List[MacdPoint]:
    """MACD line, signal line and histogram of closes.

    The signal EMA starts counting at the first defined MACD value, so the
    first signal sits at index ``slow + signal - 2``. Input shorter than
    ``slow`` gives an empty list.
    """
    _check_period("fast", fast)
    _check_period("slow", slow)
    _check_period("signal", signal)
    if len(data) < slow:
        return []

    closes = [bar.close for bar in data]
    ema_fast = ema(closes, fast)
    ema_slow = ema(closes, slow)
    line: List[Optional[float]] = [
        f - s if f is not None and s is not None else None
        for f, s in zip(ema_fast, ema_slow)
    ]

    first = next((i for i, v in enumerate(line) if v is not None), len(line))
    defined = [v for v in line[first:] if v is not None]
    signal_line: List[Optional[float]] = [None] * first + ema(defined, signal)

    points: List[MacdPoint] = []
    for bar, m, s in zip(data, line, signal_line):
        hist = m - s if m is not None and s is not None else None
        points.append(MacdPoint(time=bar.time, macd=m, signal=s, histogram=hist))
    return points
