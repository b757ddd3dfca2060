"""Offline tests for the Yahoo price and FRED inflation providers."""

from __future__ import annotations

from dataclasses import replace
from datetime import date

import numpy as np
import pandas as pd
import pytest
import requests

from wealth_builder.data import fetchers
from wealth_builder.data.cache import cache_read, key_path
from wealth_builder.data.fetchers import (
    BASE_PRICES,
    InflationSeriesProvider,
    PriceSeriesProvider,
    extract_close_frame,
    synthetic_inflation,
    synthetic_prices,
    ticker_history,
    trailing_window,
)

AS_OF = date(2024, 6, 14)


class _Downloader:
    def __init__(self, frame: pd.DataFrame | None = None, exc: Exception | None = None) -> None:
        self.frame = frame
        self.exc = exc
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, symbol, **kwargs):
        self.calls.append((symbol, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.frame


def _yahoo_frame(symbol: str) -> pd.DataFrame:
    idx = pd.bdate_range("2023-06-14", "2024-06-14")
    cols = pd.MultiIndex.from_tuples([("Close", symbol), ("Volume", symbol)], names=["Price", "Ticker"])
    data = np.column_stack([np.linspace(100.0, 120.0, len(idx)), np.ones(len(idx))])
    return pd.DataFrame(data, index=idx, columns=cols)


class _Response:
    def __init__(self, text: str, status: int = 200) -> None:
        self.text = text
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class _Session:
    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.urls: list[str] = []
        self.trust_env = True

    def get(self, url, **kwargs):
        self.urls.append(url)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _cpi_csv(start: str = "2019-01-01", end: str = "2024-05-01", monthly: float = 0.0025) -> str:
    idx = pd.date_range(start, end, freq="MS")
    levels = 250.0 * (1 + monthly) ** np.arange(len(idx))
    lines = ["observation_date,CPIAUCSL"] + [f"{d:%Y-%m-%d},{v:.6f}" for d, v in zip(idx, levels)]
    return "\n".join(lines)


def test_price_provider_parses_multiindex_download(provider_config) -> None:
    dl = _Downloader(_yahoo_frame("VTI"))
    result = PriceSeriesProvider(provider_config, downloader=dl).fetch("VTI", 1, as_of=AS_OF)
    assert result.source == "fetched"
    assert not result.is_fallback
    assert result.series[0].close == pytest.approx(100.0)
    assert result.series[-1].close == pytest.approx(120.0)
    assert result.series[-1].date == AS_OF
    symbol, kwargs = dl.calls[0]
    assert symbol == "VTI"
    assert kwargs["start"] == "2023-06-14"
    assert kwargs["auto_adjust"] is True


def test_extract_close_frame_single_level() -> None:
    idx = pd.bdate_range("2024-01-01", periods=3)
    frame = pd.DataFrame({"Close": [1.0, 2.0, 3.0], "Open": [1.0, 2.0, 3.0]}, index=idx)
    out = extract_close_frame(frame, ["SPY"])
    assert list(out.columns) == ["SPY"]
    with pytest.raises(RuntimeError):
        extract_close_frame(pd.DataFrame({"Open": [1.0]}), ["SPY"])


@pytest.mark.parametrize(
    "downloader",
    [
        _Downloader(exc=ConnectionError("offline")),
        _Downloader(frame=pd.DataFrame()),
        _Downloader(frame=pd.DataFrame({"Open": [1.0]}, index=pd.bdate_range("2024-01-01", periods=1))),
    ],
)
def test_price_provider_falls_back_instead_of_raising(provider_config, downloader) -> None:
    result = PriceSeriesProvider(provider_config, downloader=downloader).fetch("AAPL", 2, as_of=AS_OF)
    assert result.is_fallback
    assert result.reason
    start, end = trailing_window(2, AS_OF)
    assert len(result.series) == len(pd.bdate_range(start, end))
    assert result.series[0].date >= start
    assert all(p.close >= 0.01 for p in result.series)
    assert result.series[0].close == pytest.approx(BASE_PRICES["AAPL"], rel=0.05)


def test_seeded_fallback_is_reproducible_per_symbol(provider_config) -> None:
    provider = PriceSeriesProvider(provider_config, downloader=_Downloader(exc=RuntimeError("down")))
    a = provider.fetch("QQQ", 3, as_of=AS_OF)
    b = provider.fetch("QQQ", 3, as_of=AS_OF)
    c = provider.fetch("SPY", 3, as_of=AS_OF)
    assert a.series == b.series
    assert [p.close for p in a.series] != [p.close for p in c.series]


def test_synthetic_prices_follow_expected_return_without_noise() -> None:
    start, end = date(2020, 1, 1), date(2021, 1, 1)
    series = synthetic_prices("XYZ", start, end, annual_return=10.0, volatility=0.0)
    n = len(pd.bdate_range(start, end))
    assert series[-1].close == pytest.approx(100.0 * 1.10 ** (n / 252))


def test_price_provider_uses_cache(provider_config) -> None:
    cfg = replace(provider_config, use_cache=True)
    dl = _Downloader(_yahoo_frame("VTI"))
    provider = PriceSeriesProvider(cfg, downloader=dl)
    first = provider.fetch("VTI", 1, as_of=AS_OF)
    second = provider.fetch("VTI", 1, as_of=AS_OF)
    assert len(dl.calls) == 1
    assert [p.close for p in first.series] == pytest.approx([p.close for p in second.series])
    assert second.source == "fetched"


def test_inflation_provider_computes_year_over_year(provider_config) -> None:
    session = _Session([_Response(_cpi_csv())])
    result = InflationSeriesProvider(provider_config, session=session).fetch(3, as_of=AS_OF)
    assert result.source == "fetched"
    assert session.trust_env is False
    assert len(result.series) == 36
    assert result.series[0].date == date(2021, 6, 30)
    assert result.series[-1].date == date(2024, 5, 31)
    expected = (1.0025 ** 12 - 1) * 100
    assert all(p.rate == pytest.approx(expected, rel=1e-6) for p in result.series)


def test_inflation_provider_tries_second_endpoint(provider_config) -> None:
    session = _Session([requests.ConnectionError("dns"), _Response(_cpi_csv())])
    result = InflationSeriesProvider(provider_config, session=session).fetch(2, as_of=AS_OF)
    assert result.source == "fetched"
    assert len(session.urls) == 2
    assert "fredgraph" in session.urls[1]


def test_inflation_provider_handles_date_header_variant(provider_config) -> None:
    text = _cpi_csv().replace("observation_date,CPIAUCSL", "DATE,VALUE")
    session = _Session([_Response(text)])
    result = InflationSeriesProvider(provider_config, session=session).fetch(1, as_of=AS_OF)
    assert result.source == "fetched"
    assert len(result.series) == 12


@pytest.mark.parametrize(
    "responses",
    [
        [_Response("<html>maintenance</html>"), _Response("", status=503)],
        [requests.Timeout("slow"), requests.Timeout("slow")],
        [_Response(_cpi_csv(end="2019-06-01")), _Response(_cpi_csv(end="2019-06-01"))],
    ],
)
def test_inflation_provider_falls_back(provider_config, responses) -> None:
    result = InflationSeriesProvider(provider_config, session=_Session(responses)).fetch(4, as_of=AS_OF)
    assert result.is_fallback
    assert len(result.series) == 48
    assert all(1.5 <= p.rate <= 3.5 for p in result.series)
    assert result.series[-1].date < AS_OF


def test_synthetic_inflation_floor_and_seed() -> None:
    a = synthetic_inflation(2, AS_OF, base=-5.0, volatility=1.0, rng=np.random.default_rng(1))
    b = synthetic_inflation(2, AS_OF, base=-5.0, volatility=1.0, rng=np.random.default_rng(1))
    assert a == b
    assert all(p.rate == -2.0 for p in a)


@pytest.mark.parametrize(
    "content",
    [b"\xff\xff\xfe\x00\x81garbage\n\xff", b"date,close\nnot-a-date,5.0\n"],
    ids=["undecodable", "bad-dates"],
)
def test_unreadable_price_cache_falls_through_to_download(provider_config, content) -> None:
    cfg = replace(provider_config, use_cache=True)
    start, end = trailing_window(1, AS_OF)
    path = key_path(cfg.cache_dir, "yahoo", f"VTI|{start}|{end}")
    path.parent.mkdir(parents=True)
    path.write_bytes(content)

    dl = _Downloader(_yahoo_frame("VTI"))
    result = PriceSeriesProvider(cfg, downloader=dl).fetch("VTI", 1, as_of=AS_OF)
    assert result.source == "fetched"
    assert len(dl.calls) == 1
    assert "close" in cache_read(path).columns


def test_unreadable_inflation_cache_falls_through_to_download(provider_config) -> None:
    cfg = replace(provider_config, use_cache=True)
    path = key_path(cfg.cache_dir, "fred", f"CPIAUCSL|{AS_OF:%Y-%m}")
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\xff\xfe\x00\x81\xff")

    session = _Session([_Response(_cpi_csv())])
    result = InflationSeriesProvider(cfg, session=session).fetch(2, as_of=AS_OF)
    assert result.source == "fetched"
    assert len(session.urls) == 1
    assert "CPIAUCSL" in cache_read(path).columns


class _Ticker:
    calls: list[tuple[str, dict]] = []

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol

    def history(self, **kwargs) -> pd.DataFrame:
        _Ticker.calls.append((self.symbol, kwargs))
        idx = pd.bdate_range("2023-06-14", "2024-06-14", tz="America/New_York")
        return pd.DataFrame({"Open": 1.0, "Close": np.linspace(50.0, 60.0, len(idx))}, index=idx)


def test_default_downloader_uses_per_symbol_ticker_history(provider_config, monkeypatch) -> None:
    monkeypatch.setattr(fetchers.yf, "Ticker", _Ticker)
    monkeypatch.setattr(_Ticker, "calls", [])
    provider = PriceSeriesProvider(provider_config)
    assert provider._download is ticker_history

    result = provider.fetch("QQQ", 1, as_of=AS_OF)
    assert result.source == "fetched"
    assert result.series[0].close == pytest.approx(50.0)
    assert result.series[-1].close == pytest.approx(60.0)
    assert result.series[-1].date == AS_OF
    symbol, kwargs = _Ticker.calls[0]
    assert symbol == "QQQ"
    assert kwargs["start"] == "2023-06-14"
    assert kwargs["end"] == "2024-06-15"
    assert kwargs["auto_adjust"] is True
