"""Premium feature gate.

Pure predicates only; the premium flag is always passed in by the caller.
"""
from __future__ import annotations

from enum import Enum, auto
from typing import FrozenSet


class Feature(Enum):
    MOVING_AVERAGE = auto()
    VOLUME = auto()
    LONG = auto()
    SHORT = auto()
    RSI = auto()
    MACD = auto()


PREMIUM_INDICATORS: FrozenSet[Feature] = frozenset({Feature.RSI, Feature.MACD})


def is_allowed(feature: Feature, is_premium: bool, *, short_requires_premium: bool = True) -> bool:
    """Return True if ``feature`` may be used by this account.

    Args:
        feature: Feature being enabled or used.
        is_premium: Entitlement flag of the current account.
        short_requires_premium: Whether opening shorts is a premium feature.
    """
    if feature in PREMIUM_INDICATORS:
        return is_premium is True
    if feature is Feature.SHORT and short_requires_premium:
        return is_premium is True
    return True
