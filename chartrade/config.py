"""Configuration objects.

Two groups live here:
- view settings (overlays, colors) that survive data reloads
- simulation knobs (lot sizes, short-selling entitlement)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping


@dataclass(frozen=True)
class MAConfig:
    """One moving-average overlay."""

    period: int
    color: str
    visible: bool = True


def default_ma_configs() -> Dict[str, MAConfig]:
    """Moving averages shown on a fresh chart, keyed by period string."""
    return {
        "5": MAConfig(period=5, color="#FF5252"),
        "10": MAConfig(period=10, color="#4CAF50"),
        "20": MAConfig(period=20, color="#2196F3"),
        "50": MAConfig(period=50, color="#9C27B0"),
        "100": MAConfig(period=100, color="#FF9800"),
    }


@dataclass(frozen=True)
class RSIConfig:
    visible: bool = False
    period: int = 14


@dataclass(frozen=True)
class MACDConfig:
    visible: bool = False
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9


@dataclass(frozen=True)
class VolumeConfig:
    visible: bool = True


@dataclass(frozen=True)
class ViewConfig:
    """Chart presentation settings.

    Preserved across ``LoadData``; only toggles and color changes touch it.
    """

    ma_configs: Mapping[str, MAConfig] = field(default_factory=default_ma_configs)
    rsi: RSIConfig = RSIConfig()
    macd: MACDConfig = MACDConfig()
    volume: VolumeConfig = VolumeConfig()
    show_weekly_chart: bool = False
    up_color: str = "#ef5350"
    down_color: str = "#26a69a"

    def with_ma_visible(self, key: str, visible: bool) -> "ViewConfig":
        """Return a copy with MA ``key`` set to ``visible``."""
        configs = dict(self.ma_configs)
        configs[key] = replace(configs[key], visible=visible)
        return replace(self, ma_configs=configs)


@dataclass(frozen=True)
class SimulationConfig:
    """Replay trading knobs."""

    # size of one TRADE click and of one CLOSE click
    lot_size: float = 100
    close_amount: float = 100

    # whether opening shorts needs a premium account
    short_requires_premium: bool = True
