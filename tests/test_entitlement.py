import pytest

from chartrade.entitlement import Feature, is_allowed  # type: ignore


@pytest.mark.parametrize("feature", [Feature.MOVING_AVERAGE, Feature.VOLUME, Feature.LONG])
def test_free_features_always_allowed(feature):
    assert is_allowed(feature, False)
    assert is_allowed(feature, True)


@pytest.mark.parametrize("feature", [Feature.RSI, Feature.MACD])
def test_premium_indicators(feature):
    assert not is_allowed(feature, False)
    assert is_allowed(feature, True)
    # the short-selling switch never unlocks indicators
    assert not is_allowed(feature, False, short_requires_premium=False)


def test_short_selling_switch():
    assert not is_allowed(Feature.SHORT, False)
    assert is_allowed(Feature.SHORT, True)
    assert is_allowed(Feature.SHORT, False, short_requires_premium=False)
