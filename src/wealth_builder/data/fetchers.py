import io
import logging
import zlib
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, Optional, Tuple

import numpy as np
import pandas as pd
import requests, certifi
import yfinance as yf
from dateutil.relativedelta import relativedelta

from ..config import ProviderConfig
from .cache import cache_read, cache_write, key_path
from .series import (
    InflationPoint,
    PricePoint,
    inflation_from_series,
    prices_from_series,
    prices_to_series,
)

logger = logging.getLogger(__name__)

# Starting prices and annual returns (percent) for the synthetic fallback paths.
BASE_PRICES = {
    "AAPL": 150, "MSFT": 300, "GOOGL": 2500, "AMZN": 3000,
    "TSLA": 800, "NVDA": 400, "SPY": 400, "VTI": 200, "QQQ": 350,
}
FALLBACK_RETURNS = {
    "AAPL": 12, "MSFT": 11, "GOOGL": 13, "AMZN": 14,
    "TSLA": 25, "NVDA": 20, "SPY": 10, "VTI": 9, "QQQ": 12,
}
DEFAULT_BASE_PRICE = 100.0
DEFAULT_FALLBACK_RETURN = 8.0
TRADING_DAYS = 252
INFLATION_FLOOR = -2.0

FRED_URLS = (
    "https://fred.stlouisfed.org/series/{sid}/downloaddata/{sid}.csv&frequency=m",
    "https://fred.stlouisfed.org/graph/fredgraph.csv?id={sid}&frequency=m",
)

@dataclass(frozen=True)
class FetchResult:
    """Outcome of one provider call: real data, or a synthetic stand-in and why."""
    symbol: str
    series: Tuple
    source: Literal["fetched", "fallback"]
    reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"

def trailing_window(years: int, as_of: Optional[date] = None):
    end = as_of or date.today()
    return end - relativedelta(years=int(years)), end

def rng_for(seed: Optional[int], stream: str) -> np.random.Generator:
    # one independent stream per symbol so concurrent fetches stay reproducible
    if seed is None:
        return np.random.default_rng()
    return np.random.default_rng([int(seed), zlib.crc32(stream.encode())])

def synthetic_prices(symbol: str, start: date, end: date, annual_return: Optional[float] = None,
                     volatility: float = 0.02, rng: Optional[np.random.Generator] = None):
    """Random walk over business days from a per-symbol base price.

    Each day moves by the daily equivalent of ``annual_return`` (percent) plus a
    uniform shock in [-volatility, volatility]. Closes are floored at 0.01.
    """
    rng = rng if rng is not None else np.random.default_rng()
    days = pd.bdate_range(start, end)
    base = float(BASE_PRICES.get(symbol, DEFAULT_BASE_PRICE))
    annual = FALLBACK_RETURNS.get(symbol, DEFAULT_FALLBACK_RETURN) if annual_return is None else annual_return
    annual = max(float(annual), -99.0)
    daily = (1.0 + annual / 100.0) ** (1.0 / TRADING_DAYS) - 1.0
    shocks = rng.uniform(-volatility, volatility, size=len(days))
    path = np.maximum(base * np.cumprod(1.0 + daily + shocks), 0.01)
    return tuple(PricePoint(ts.date(), float(px)) for ts, px in zip(days, path))

def synthetic_inflation(years: int, as_of: Optional[date] = None, base: float = 2.5,
                        volatility: float = 1.0, rng: Optional[np.random.Generator] = None):
    """One YoY rate per month over the trailing window, ``base`` +/- ``volatility``."""
    rng = rng if rng is not None else np.random.default_rng()
    end = as_of or date.today()
    months = int(years) * 12
    variation = rng.uniform(-volatility, volatility, size=months)
    return tuple(
        InflationPoint(end - relativedelta(months=months - i), max(base + float(variation[i]), INFLATION_FLOOR))
        for i in range(months)
    )

def extract_close_frame(data, tickers):
    if isinstance(data, pd.DataFrame) and isinstance(data.columns, pd.MultiIndex):
        lvl0 = set(data.columns.get_level_values(0))
        if "Close" in lvl0:
            return data["Close"].copy()
        if "Adj Close" in lvl0:
            return data["Adj Close"].copy()
        for fld in ("Close", "Adj Close"):
            try:
                return data.xs(fld, level=1, axis=1).copy()
            except KeyError:
                pass
    if isinstance(data, pd.DataFrame):
        for fld in ("Close", "Adj Close"):
            if fld in data.columns:
                return data[[fld]].rename(columns={fld: tickers[0]}).copy()
    raise RuntimeError(f"Could not find Close/Adj Close columns. Columns={getattr(data, 'columns', None)}")

def ticker_history(symbol: str, **kwargs) -> pd.DataFrame:
    """Daily history for one symbol through its own ``yf.Ticker``.

    Each call owns its result frame, unlike ``yf.download`` which collects
    results in module-level state shared by concurrent callers.
    """
    return yf.Ticker(symbol).history(**kwargs)

class PriceSeriesProvider:
    """Daily closes from Yahoo Finance, with a synthetic series on any failure."""

    def __init__(self, config: Optional[ProviderConfig] = None, downloader=None):
        self.config = config or ProviderConfig()
        self._download = downloader or ticker_history

    def fetch(self, symbol: str, years: int, expected_return: Optional[float] = None,
              as_of: Optional[date] = None) -> FetchResult:
        start, end = trailing_window(years, as_of)
        try:
            series = self._fetch_remote(symbol, start, end)
        except Exception as e:
            logger.warning("Price fetch for %s failed (%s); using synthetic series", symbol, e)
            rng = rng_for(self.config.seed, symbol)
            fallback = synthetic_prices(symbol, start, end, expected_return,
                                        volatility=self.config.fallback_volatility, rng=rng)
            return FetchResult(symbol, fallback, "fallback", str(e))
        logger.info("Fetched %d closes for %s", len(series), symbol)
        return FetchResult(symbol, series, "fetched")

    def _fetch_remote(self, symbol, start, end):
        path = key_path(self.config.cache_dir, "yahoo", f"{symbol}|{start}|{end}")
        if self.config.use_cache:
            series = self._read_cached(path)
            if series:
                return series

        logger.debug("Downloading %s from Yahoo Finance (%s..%s)", symbol, start, end)
        data = self._download(
            symbol,
            start=start.isoformat(),
            end=(end + timedelta(days=1)).isoformat(),
            auto_adjust=True,
            interval="1d",
        )
        if data is None or len(data) == 0:
            raise RuntimeError(f"No price data returned for {symbol}")
        px = extract_close_frame(data, [symbol])
        if symbol not in px.columns:
            raise RuntimeError(f"{symbol} missing from downloaded columns {list(px.columns)}")
        series = prices_from_series(px[symbol])
        if not series:
            raise RuntimeError(f"No usable closes for {symbol}")

        if self.config.use_cache:
            cache_write(prices_to_series(series, name="close").to_frame(), path)
        return series

    @staticmethod
    def _read_cached(path):
        cached = cache_read(path)
        if cached is None or "close" not in cached.columns:
            return ()
        try:
            return prices_from_series(cached["close"])
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring cached closes in %s: %s", path, e)
            return ()

class InflationSeriesProvider:
    """Year-over-year CPI inflation from FRED, with a synthetic series on any failure."""

    def __init__(self, config: Optional[ProviderConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ProviderConfig()
        self._session = session

    def fetch(self, years: int, as_of: Optional[date] = None) -> FetchResult:
        sid = self.config.cpi_series
        start, end = trailing_window(years, as_of)
        try:
            yoy = self.yoy_rates(self.fetch_cpi(end))
            yoy = yoy[(yoy.index >= pd.Timestamp(start)) & (yoy.index <= pd.Timestamp(end))]
            series = inflation_from_series(yoy)
            if not series:
                raise ValueError(f"No {sid} observations between {start} and {end}")
        except Exception as e:
            logger.warning("Inflation fetch failed (%s); using synthetic series", e)
            rng = rng_for(self.config.seed, f"inflation|{sid}")
            fallback = synthetic_inflation(years, end, base=self.config.base_inflation,
                                           volatility=self.config.inflation_volatility, rng=rng)
            return FetchResult(sid, fallback, "fallback", str(e))
        logger.info("Fetched %d inflation observations from FRED", len(series))
        return FetchResult(sid, series, "fetched")

    @staticmethod
    def yoy_rates(cpi: pd.Series) -> pd.Series:
        """Percent change of a monthly CPI level series against 12 months earlier."""
        cpi = cpi.sort_index()
        return (cpi.pct_change(12, fill_method=None) * 100.0).dropna()

    def fetch_cpi(self, as_of: date) -> pd.Series:
        """
        Fetch the CPI series via the keyless FRED CSV endpoints, bypassing system proxies.
        Tries 'downloaddata' then 'fredgraph'. Cached as month-end data, refreshed monthly.
        """
        sid = self.config.cpi_series
        path = key_path(self.config.cache_dir, "fred", f"{sid}|{as_of:%Y-%m}")
        if self.config.use_cache:
            cached = cache_read(path)
            if cached is not None and sid in cached.columns and isinstance(cached.index, pd.DatetimeIndex):
                return cached[sid]

        sess = self._session or requests.Session()
        # ignore proxy environment variables that may be misconfigured
        sess.trust_env = False
        headers = {"User-Agent": self.config.user_agent, **dict(self.config.extra_headers)}

        last_exc = None
        for url in FRED_URLS:
            url = url.format(sid=sid)
            try:
                r = sess.get(
                    url,
                    timeout=self.config.timeout,
                    verify=certifi.where(),
                    headers=headers,
                    allow_redirects=True,
                    proxies={"http": None, "https": None},
                )
                r.raise_for_status()
                df = self._parse_csv(r.text, sid)
                if self.config.use_cache:
                    cache_write(df, path)
                return df[sid]
            except Exception as e:
                logger.debug("FRED attempt %s failed: %s", url, e)
                last_exc = e
                continue

        raise RuntimeError(f"Failed to fetch FRED series {sid}: {last_exc}")

    @staticmethod
    def _parse_csv(text: str, sid: str) -> pd.DataFrame:
        df = pd.read_csv(io.StringIO(text))
        cols_lower = {c.lower(): c for c in df.columns}
        # FRED CSV variants: DATE or observation_date
        date_col = cols_lower.get("observation_date") or cols_lower.get("date")
        if date_col is None:
            raise ValueError("CSV missing observation_date column")
        if sid not in df.columns:
            value_cols = [c for c in df.columns if c != date_col]
            if not value_cols:
                raise ValueError("CSV missing value column")
            df = df.rename(columns={value_cols[0]: sid})

        df[date_col] = pd.to_datetime(df[date_col], errors="coerce")
        df[sid] = pd.to_numeric(df[sid], errors="coerce")
        df = df.dropna(subset=[date_col, sid]).set_index(date_col)[[sid]]
        df.index.name = "date"
        if df.empty:
            raise ValueError(f"CSV for {sid} has no numeric observations")
        return df.resample("ME").last().dropna()
