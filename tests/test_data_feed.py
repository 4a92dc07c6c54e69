import datetime as dt
import json

import pytest

from chartrade.data_feed import (  # type: ignore
    CSVFeed,
    IngestionError,
    load_file,
    parse_chart_json,
    parse_csv,
)


def test_csvfeed_parses_rows_and_sorts(make_csv):
    path = make_csv(
        [
            {"Date": "2024-01-03", "Open": "11", "High": "12", "Low": "10", "Close": "11.5", "Volume": "300"},
            {"Date": "2024-01-02", "Open": "10", "High": "11", "Low": "9", "Close": "10.5", "Volume": "200"},
            {"Date": "not-a-date", "Open": "1", "High": "1", "Low": "1", "Close": "1", "Volume": "1"},
        ],
        filename="aapl.csv",
    )
    feed = CSVFeed(path)
    candles = feed.candles()

    assert feed.title == "AAPL"
    assert [c.time for c in candles] == [dt.date(2024, 1, 2), dt.date(2024, 1, 3)]
    assert candles[1].close == 11.5
    assert candles[0].volume == 200.0


def test_csv_header_is_case_insensitive_and_volume_optional():
    candles = parse_csv('"date","OPEN","high","Low","close"\n2024-01-02,1,2,0.5,1.5\n')
    assert len(candles) == 1
    assert candles[0].volume == 0.0


def test_csv_missing_column_raises():
    with pytest.raises(IngestionError, match="close"):
        parse_csv("Date,Open,High,Low\n2024-01-02,1,2,0.5\n")


def test_csv_without_rows_raises():
    with pytest.raises(IngestionError):
        parse_csv("Date,Open,High,Low,Close,Volume\n")


def test_csv_non_finite_price_raises():
    with pytest.raises(IngestionError, match="Non-finite"):
        parse_csv("Date,Open,High,Low,Close,Volume\n2024-01-02,1,2,0.5,abc,10\n")


def test_csv_duplicate_dates_raise():
    text = "Date,Open,High,Low,Close,Volume\n2024-01-02,1,2,0.5,1,10\n2024-01-02,1,2,0.5,1,10\n"
    with pytest.raises(IngestionError, match="Duplicate"):
        parse_csv(text)


def _chart_payload() -> dict:
    # 2024-01-02 and 2024-01-03 at 14:30 UTC; the middle row is a null holiday row
    return {
        "chart": {
            "result": [
                {
                    "meta": {"symbol": "7203.T", "longName": "Toyota Motor"},
                    "timestamp": [1704205800, 1704249000, 1704292200],
                    "indicators": {
                        "quote": [
                            {
                                "open": [10.0, None, 11.0],
                                "high": [11.0, None, 12.0],
                                "low": [9.0, None, 10.0],
                                "close": [10.5, None, 11.5],
                                "volume": [100, None, 200],
                            }
                        ]
                    },
                }
            ]
        }
    }


def test_parse_chart_json():
    candles, title = parse_chart_json(json.dumps(_chart_payload()))
    assert title == "Toyota Motor (7203.T)"
    assert [c.time for c in candles] == [dt.date(2024, 1, 2), dt.date(2024, 1, 3)]
    assert candles[1].volume == 200.0


def test_parse_chart_json_rejects_other_shapes():
    with pytest.raises(IngestionError):
        parse_chart_json('{"data": []}')
    with pytest.raises(IngestionError):
        parse_chart_json("not json")


def test_parse_chart_json_ragged_arrays_raise():
    payload = _chart_payload()
    quote = payload["chart"]["result"][0]["indicators"]["quote"][0]
    quote["close"] = [10.5]
    with pytest.raises(IngestionError, match="close"):
        parse_chart_json(json.dumps(payload))

    payload = _chart_payload()
    payload["chart"]["result"][0]["indicators"]["quote"][0]["volume"] = [100]
    with pytest.raises(IngestionError, match="volume"):
        parse_chart_json(json.dumps(payload))


def test_parse_chart_json_string_price_raises():
    payload = _chart_payload()
    payload["chart"]["result"][0]["indicators"]["quote"][0]["open"] = ["x", None, 11.0]
    with pytest.raises(IngestionError, match="row 0"):
        parse_chart_json(json.dumps(payload))


def test_parse_chart_json_without_volume():
    payload = _chart_payload()
    del payload["chart"]["result"][0]["indicators"]["quote"][0]["volume"]
    candles, _ = parse_chart_json(json.dumps(payload))
    assert [c.volume for c in candles] == [0.0, 0.0]


def test_load_file_dispatches_on_suffix(tmp_path):
    path = tmp_path / "toyota.json"
    path.write_text(json.dumps(_chart_payload()), encoding="utf-8")
    candles, title = load_file(path)
    assert len(candles) == 2
    assert title == "Toyota Motor (7203.T)"
