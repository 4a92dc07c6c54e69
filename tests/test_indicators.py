import math

import pytest

from chartrade.indicators import RollingWindow, ema, macd, mean, round_price, rsi, sma  # type: ignore


def test_mean_and_rolling_window():
    assert mean([1.0, 2.0, 3.0]) == pytest.approx(2.0)
    rw = RollingWindow(3)
    for v in [1, 2, 3, 4]:
        rw.push(v)
    assert rw.full is True
    assert rw.mean() == pytest.approx(3.0)


def test_sma_warmup_and_rounding(make_candles):
    data = make_candles([1.0, 2.0, 3.0, 4.0, 5.001])
    series = sma(data, 3)

    assert len(series) == len(data)
    assert [p.time for p in series] == [b.time for b in data]
    assert math.isnan(series[0].value) and math.isnan(series[1].value)
    assert series[2].value == pytest.approx(2.0)
    assert series[3].value == pytest.approx(3.0)
    assert series[4].value == 4.0  # (3 + 4 + 5.001) / 3 rounded to 2 dp


def test_sma_rounds_exact_ties_up(make_candles):
    # (10.25 + 10.0) / 2 == 10.125 exactly in binary
    assert sma(make_candles([10.25, 10.0]), 2)[1].value == 10.13
    assert round_price(-10.125) == -10.13
    # 1.005 is stored just below the tie, so it rounds down
    assert round_price(1.005) == 1.0


def test_sma_length_equal_to_period_has_one_point(make_candles):
    closes = [10.0, 11.0, 12.0, 15.0]
    series = sma(make_candles(closes), 4)
    defined = [p for p in series if not math.isnan(p.value)]
    assert len(defined) == 1
    assert series[-1].value == pytest.approx(sum(closes) / 4)


def test_sma_short_input_is_all_nan(make_candles):
    series = sma(make_candles([1.0, 2.0]), 5)
    assert len(series) == 2
    assert all(math.isnan(p.value) for p in series)


def test_sma_rejects_non_positive_period(make_candles):
    with pytest.raises(ValueError):
        sma(make_candles([1.0]), 0)


def test_rsi_saturates_on_rising_series(make_candles):
    data = make_candles([float(i) for i in range(1, 31)])
    series = rsi(data, 14)

    assert len(series) == 30
    assert all(math.isnan(p.value) for p in series[:14])
    assert all(p.value == pytest.approx(100.0) for p in series[14:])


def test_rsi_falling_series_is_zero(make_candles):
    series = rsi(make_candles([float(i) for i in range(30, 10, -1)]), 5)
    assert all(p.value == pytest.approx(0.0) for p in series[5:])


def test_rsi_wilder_smoothing(make_candles):
    # changes: +1, -1, +2, then -2
    series = rsi(make_candles([10.0, 11.0, 10.0, 12.0, 10.0]), 3)
    assert all(math.isnan(p.value) for p in series[:3])

    avg_gain, avg_loss = 3.0 / 3, 1.0 / 3
    assert series[3].value == pytest.approx(100 - 100 / (1 + avg_gain / avg_loss))  # 75

    avg_gain = (avg_gain * 2 + 0.0) / 3
    avg_loss = (avg_loss * 2 + 2.0) / 3
    assert series[4].value == pytest.approx(100 - 100 / (1 + avg_gain / avg_loss))


def test_rsi_short_input_is_all_nan(make_candles):
    series = rsi(make_candles([1.0, 2.0, 3.0]), 3)
    assert len(series) == 3
    assert all(math.isnan(p.value) for p in series)


def test_ema_seed_and_recurrence():
    out = ema([1.0, 2.0, 3.0, 4.0], 3)
    assert out[:2] == [None, None]
    assert out[2] == pytest.approx(2.0)
    assert out[3] == pytest.approx(2.0 + 0.5 * (4.0 - 2.0))


def test_macd_length_26_has_single_macd_value(make_candles):
    data = make_candles([100.0 + i * 0.5 for i in range(26)])
    series = macd(data, 12, 26, 9)

    assert len(series) == 26
    assert [i for i, p in enumerate(series) if p.macd is not None] == [25]
    assert all(p.signal is None and p.histogram is None for p in series)


def test_macd_signal_starts_after_warmup(make_candles):
    closes = [100.0 + math.sin(i / 3.0) * 5 for i in range(60)]
    series = macd(make_candles(closes), 12, 26, 9)

    first_signal = next(i for i, p in enumerate(series) if p.signal is not None)
    assert first_signal == 26 + 9 - 2

    # signal seed = mean of the first 9 defined macd values
    macd_vals = [p.macd for p in series[25:34]]
    assert series[first_signal].signal == pytest.approx(sum(macd_vals) / 9)
    for p in series[first_signal:]:
        assert p.histogram == pytest.approx(p.macd - p.signal)


def test_macd_short_input_is_empty(make_candles):
    assert macd(make_candles([1.0] * 25)) == []


def test_recomputation_is_identical(make_candles):
    data = make_candles([100.0 + (i % 7) - (i % 3) for i in range(50)])
    assert macd(data) == macd(data)
    first, second = rsi(data), rsi(data)
    assert [p.time for p in first] == [p.time for p in second]
    for a, b in zip(first, second):
        assert (math.isnan(a.value) and math.isnan(b.value)) or a.value == b.value
