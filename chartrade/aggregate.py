# aggregate.py
"""Daily → weekly candle resampling.

Weeks start on Sunday. Each weekly candle carries the date of the *last*
daily bar that contributed to it, so the weekly chart lines up with the
daily bar a user last saw.
"""
from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Tuple

from chartrade.types import Candle


def week_start(day: dt.date) -> dt.date:
    """Return the Sunday on or before ``day``."""
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - dt.timedelta(days=(day.weekday() + 1) % 7)


def to_weekly(daily: Iterable[Candle]) -> Tuple[Candle, ...]:
    """Collapse daily candles into one candle per Sunday-started week.

    Args:
        daily: Daily candles in ascending time order.

    Returns:
        Weekly candles ordered by week start. ``open`` is the first day's open,
        ``close`` the last day's close, ``high``/``low`` the extremes and
        ``volume`` the sum. Empty input gives an empty tuple.
    """
    weeks: Dict[dt.date, Candle] = {}

    for day in daily:
        key = week_start(day.time)
        week = weeks.get(key)
        if week is None:
            weeks[key] = Candle(
                time=day.time,
                open=day.open,
                high=day.high,
                low=day.low,
                close=day.close,
                volume=day.volume or 0.0,
            )
            continue
        weeks[key] = Candle(
            time=day.time,
            open=week.open,
            high=max(week.high, day.high),
            low=min(week.low, day.low),
            close=day.close,
            volume=week.volume + (day.volume or 0.0),
        )

    ordered: List[Candle] = [weeks[k] for k in sorted(weeks)]
    return tuple(ordered)
