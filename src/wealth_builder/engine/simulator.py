import logging
import math
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple

from ..analytics.metrics import SimulationMetrics, compute_metrics
from ..config import SimulationConfig, TickerAllocation, validate_config
from ..data.series import (
    FALLBACK_PRICE,
    InflationPoint,
    PricePoint,
    average_inflation,
    nearest_price,
    normalize_prices,
)
from ..errors import SimulationError
from .schedule import add_months, is_contribution_month

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class HoldingsSnapshot:
    """Shares held per ticker after a month's events. Never modified in place."""
    month: int
    shares: Mapping[str, float]
    contributed: float

    @classmethod
    def seed(cls, config: SimulationConfig, prices: Mapping[str, float]) -> "HoldingsSnapshot":
        shares = {
            t.symbol: config.initial_investment * (t.weight / 100.0) / prices[t.symbol]
            for t in config.tickers
        }
        return cls(0, MappingProxyType(shares), float(config.initial_investment))

    def advance(self, month: int, contribution: float, weights: Mapping[str, float],
                prices: Mapping[str, float]) -> "HoldingsSnapshot":
        shares = dict(self.shares)
        if contribution:
            for sym, w in weights.items():
                shares[sym] += contribution * (w / 100.0) / prices[sym]
        return HoldingsSnapshot(month, MappingProxyType(shares), self.contributed + contribution)

    def values(self, prices: Mapping[str, float]) -> Dict[str, float]:
        return {sym: n * prices[sym] for sym, n in self.shares.items()}

@dataclass(frozen=True)
class TrajectoryPoint:
    month: int
    year_offset: float
    date: date
    is_historical: bool
    nominal_value: float
    real_value: float
    nominal_contributed: float
    real_contributed: float
    ticker_nominal_values: Mapping[str, float]
    ticker_real_values: Mapping[str, float]
    inflation_factor: float
    benchmark_value: Optional[float] = None

@dataclass(frozen=True)
class SimulationResult:
    trajectory: Tuple[TrajectoryPoint, ...]
    metrics: SimulationMetrics
    tickers: Tuple[TickerAllocation, ...]
    config: SimulationConfig
    as_of: date
    data_sources: Mapping[str, str] = field(default_factory=dict)

    @property
    def final(self) -> TrajectoryPoint:
        return self.trajectory[-1]

    @property
    def boundary_month(self) -> int:
        return self.config.historical_years * 12

    @property
    def benchmark(self) -> Optional[str]:
        return self.config.benchmark

class TickerPricer:
    """Resolves one ticker's price for any simulated month.

    Historical months use the nearest observed close. Forecast months compound
    the close nearest the boundary date by the ticker's expected return,
    monthly. With no observations at all the whole horizon is projected from
    ``FALLBACK_PRICE``.
    """

    def __init__(self, allocation: TickerAllocation, series: Sequence[PricePoint],
                 boundary_month: int, boundary_date: date):
        self.symbol = allocation.symbol
        self.series = normalize_prices(series)
        self.monthly_growth = 1.0 + allocation.expected_return / 100.0 / 12.0
        self.boundary_month = boundary_month
        self.boundary_date = boundary_date
        self.boundary_price = nearest_price(self.series, boundary_date)

    @property
    def has_history(self) -> bool:
        return bool(self.series)

    def opening_price(self, start: date) -> float:
        """First close dated inside the historical segment.

        Falls back to the close nearest ``start`` when no observation lies in
        ``[start, boundary_date]``, and to ``FALLBACK_PRICE`` without history.
        """
        if not self.has_history:
            return FALLBACK_PRICE
        for p in self.series:
            if start <= p.date <= self.boundary_date:
                return p.close
        return nearest_price(self.series, start)

    def price(self, month: int, when: date, historical: bool) -> float:
        if not self.has_history:
            return FALLBACK_PRICE * self.monthly_growth ** month
        if historical:
            return nearest_price(self.series, when)
        return self.boundary_price * self.monthly_growth ** (month - self.boundary_month)

class PortfolioSimulationEngine:
    """Month-by-month accumulation of a weighted basket over a split horizon.

    The first ``floor(2/3 * horizon_years)`` years end at ``as_of`` and replay
    observed prices. The remaining years run forward from ``as_of`` on each
    ticker's expected return. Holdings are tracked in shares so historical
    drawdowns and rallies show through. Initial shares are bought at each
    ticker's first close inside the historical segment.

    With ``config.benchmark`` set, every point also carries the benchmark's
    growth since month 0 applied to the capital contributed so far. The
    benchmark is priced like a ticker but must have observations.
    """

    def simulate(
        self,
        config: SimulationConfig,
        historical_prices: Mapping[str, Sequence[PricePoint]],
        inflation_series: Optional[Sequence[InflationPoint]] = None,
        as_of: Optional[date] = None,
        data_sources: Optional[Mapping[str, str]] = None,
    ) -> SimulationResult:
        validate_config(config).raise_for_errors()
        as_of = as_of or date.today()

        hist_months = config.historical_years * 12
        total_months = config.horizon_years * 12
        start = add_months(as_of, -hist_months)
        boundary = add_months(start, hist_months)

        pricers = {}
        for t in config.tickers:
            series = historical_prices.get(t.symbol) or ()
            pricer = TickerPricer(t, series, hist_months, boundary)
            if not pricer.has_history:
                logger.warning("No price history for %s; projecting from %.0f at %.2f%%/yr",
                               t.symbol, FALLBACK_PRICE, t.expected_return)
            pricers[t.symbol] = pricer
        opening = {sym: p.opening_price(start) for sym, p in pricers.items()}
        bench = self._benchmark_pricer(config, historical_prices, hist_months, boundary)
        bench_open = bench.opening_price(start) if bench is not None else None
        weights = {t.symbol: t.weight for t in config.tickers}
        inflation = tuple(inflation_series) if inflation_series is not None else None

        trajectory = []
        snapshot = None
        for month in range(total_months + 1):
            when = add_months(start, month)
            historical = month <= hist_months
            try:
                prices = {sym: p.price(month, when, historical) for sym, p in pricers.items()}
                bench_price = bench.price(month, when, historical) if bench is not None else None
                factor = self._inflation_factor(config, inflation, month, start, when, historical)
            except OverflowError as e:
                raise SimulationError(f"Projection overflowed at month {month}") from e

            if snapshot is None:
                snapshot = HoldingsSnapshot.seed(config, opening)
            else:
                contribution = (config.recurring_contribution
                                if is_contribution_month(month, config.contribution_cadence) else 0.0)
                snapshot = snapshot.advance(month, contribution, weights, prices)

            benchmark_value = None
            if bench is not None:
                benchmark_value = bench_price / bench_open * snapshot.contributed
            trajectory.append(self._point(snapshot, prices, month, when, historical, factor, benchmark_value))

        metrics = compute_metrics(trajectory[-1], config)
        logger.info("Simulated %d months for %s: final %.2f (real %.2f)",
                    total_months, ",".join(config.symbols()),
                    metrics.final_value, metrics.real_final_value)
        return SimulationResult(
            trajectory=tuple(trajectory),
            metrics=metrics,
            tickers=config.tickers,
            config=config,
            as_of=as_of,
            data_sources=MappingProxyType(dict(data_sources or {})),
        )

    @staticmethod
    def _benchmark_pricer(config, historical_prices, hist_months, boundary) -> Optional[TickerPricer]:
        if not config.benchmark:
            return None
        series = historical_prices.get(config.benchmark) or ()
        pricer = TickerPricer(TickerAllocation(config.benchmark, 0.0, config.benchmark_expected_return),
                              series, hist_months, boundary)
        if not pricer.has_history:
            raise SimulationError(f"No usable price data for benchmark {config.benchmark}")
        return pricer

    @staticmethod
    def _inflation_factor(config, inflation, month, window_start, when, historical) -> float:
        years = month / 12.0
        if inflation is not None and historical:
            rate = average_inflation(inflation, window_start, when)
        else:
            rate = config.inflation_rate
        return (1.0 + rate / 100.0) ** years

    @staticmethod
    def _point(snapshot, prices, month, when, historical, factor, benchmark_value=None) -> TrajectoryPoint:
        values = snapshot.values(prices)
        nominal = math.fsum(values.values())
        if not math.isfinite(nominal) or not math.isfinite(factor) or nominal < 0 or factor <= 0:
            raise SimulationError(
                f"Unusable portfolio state at month {month}: value={nominal}, inflation factor={factor}"
            )
        if benchmark_value is not None and not (math.isfinite(benchmark_value) and benchmark_value >= 0):
            raise SimulationError(f"Unusable benchmark value at month {month}: {benchmark_value}")
        return TrajectoryPoint(
            month=month,
            year_offset=month / 12.0,
            date=when,
            is_historical=historical,
            nominal_value=nominal,
            real_value=nominal / factor,
            nominal_contributed=snapshot.contributed,
            real_contributed=snapshot.contributed / factor,
            ticker_nominal_values=MappingProxyType(values),
            ticker_real_values=MappingProxyType({sym: v / factor for sym, v in values.items()}),
            inflation_factor=factor,
            benchmark_value=benchmark_value,
        )
