import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd

FALLBACK_PRICE = 100.0
DEFAULT_INFLATION_RATE = 2.5   # percent, used when no observation falls in the window

@dataclass(frozen=True)
class PricePoint:
    date: date
    close: float

@dataclass(frozen=True)
class InflationPoint:
    date: date
    rate: float   # year-over-year, percent

PriceSeries = Tuple[PricePoint, ...]
InflationSeries = Tuple[InflationPoint, ...]

def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()

def normalize_prices(points: Iterable[PricePoint]) -> PriceSeries:
    """Sort oldest first and drop non-positive or non-finite closes."""
    clean = [
        PricePoint(_as_date(p.date), float(p.close))
        for p in points
        if p.close is not None and math.isfinite(float(p.close)) and float(p.close) > 0
    ]
    clean.sort(key=lambda p: p.date)
    return tuple(clean)

def prices_from_series(s: pd.Series) -> PriceSeries:
    """Convert a date-indexed close series (e.g. a yfinance column) to a PriceSeries."""
    s = pd.to_numeric(s, errors="coerce").dropna()
    return normalize_prices(PricePoint(_as_date(ts), float(v)) for ts, v in s.items())

def inflation_from_series(s: pd.Series) -> InflationSeries:
    s = pd.to_numeric(s, errors="coerce").dropna().sort_index()
    return tuple(InflationPoint(_as_date(ts), float(v)) for ts, v in s.items())

def prices_to_series(series: Sequence[PricePoint], name: Optional[str] = None) -> pd.Series:
    idx = pd.DatetimeIndex([pd.Timestamp(p.date) for p in series], name="date")
    return pd.Series([p.close for p in series], index=idx, name=name, dtype=float)

def inflation_to_series(series: Sequence[InflationPoint], name: Optional[str] = None) -> pd.Series:
    idx = pd.DatetimeIndex([pd.Timestamp(p.date) for p in series], name="date")
    return pd.Series([p.rate for p in series], index=idx, name=name, dtype=float)

def nearest_price(series: Sequence[PricePoint], target: date, fallback: float = FALLBACK_PRICE) -> float:
    """Close of the observation nearest to ``target``.

    Distance is symmetric in days; on a tie the first point in iteration order
    wins. An empty series yields ``fallback`` instead of raising.
    """
    if not series:
        return fallback
    target = _as_date(target)
    best = series[0]
    best_diff = abs((best.date - target).days)
    for p in series:
        diff = abs((p.date - target).days)
        if diff < best_diff:
            best, best_diff = p, diff
    return best.close

def average_inflation(series: Sequence[InflationPoint], start: date, end: date,
                      default: float = DEFAULT_INFLATION_RATE) -> float:
    """Mean YoY rate of observations dated within [start, end], floored at 0."""
    start, end = _as_date(start), _as_date(end)
    rates = [p.rate for p in series if start <= p.date <= end]
    if not rates:
        return default
    return max(sum(rates) / len(rates), 0.0)
