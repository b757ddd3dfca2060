import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from ..config import ProviderConfig, SimulationConfig, validate_config
from ..data.fetchers import FetchResult, InflationSeriesProvider, PriceSeriesProvider
from .simulator import PortfolioSimulationEngine, SimulationResult

logger = logging.getLogger(__name__)

class SimulationRunner:
    """Non-blocking front door: fetch data concurrently, then simulate.

    Each ``simulate`` call returns a future. Only the most recent call counts:
    a run that finishes after a newer one was submitted resolves to ``None``
    and is not reported to ``on_result``.
    Runs that are already stale when they leave the queue skip their fetches.
    ``on_result`` is called in generation order.
    """

    def __init__(self, price_provider: Optional[PriceSeriesProvider] = None,
                 inflation_provider: Optional[InflationSeriesProvider] = None,
                 engine: Optional[PortfolioSimulationEngine] = None,
                 on_result: Optional[Callable[[SimulationResult], None]] = None,
                 max_workers: int = 8, provider_config: Optional[ProviderConfig] = None):
        provider_config = provider_config or ProviderConfig()
        self.price_provider = price_provider or PriceSeriesProvider(provider_config)
        self.inflation_provider = inflation_provider or InflationSeriesProvider(provider_config)
        self.engine = engine or PortfolioSimulationEngine()
        self.on_result = on_result
        self._fetch_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="wb-fetch")
        self._run_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="wb-run")
        # reentrant so on_result may call back into simulate()
        self._lock = threading.RLock()
        self._generation = 0
        self.latest_result: Optional[SimulationResult] = None

    def simulate(self, config: SimulationConfig, use_fetched_inflation: bool = False,
                 as_of: Optional[date] = None) -> "Future[Optional[SimulationResult]]":
        # invalid configs are rejected here, before any fetch is issued
        validate_config(config).raise_for_errors()
        with self._lock:
            self._generation += 1
            generation = self._generation
        as_of = as_of or date.today()
        return self._run_pool.submit(self._run, generation, config, use_fetched_inflation, as_of)

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def fetch_all(self, config: SimulationConfig, use_fetched_inflation: bool,
                  as_of: date) -> Tuple[Dict[str, FetchResult], Optional[FetchResult]]:
        """Fan out one fetch per symbol (plus inflation) and wait for all of them.

        The benchmark, when configured and not already held, is one more symbol.
        """
        years = max(config.historical_years, 1)
        drifts = {t.symbol: t.expected_return for t in config.tickers}
        if config.benchmark and config.benchmark not in drifts:
            drifts[config.benchmark] = config.benchmark_expected_return
        futures = {
            sym: self._fetch_pool.submit(self._safe_price_fetch, sym, years, drift, as_of)
            for sym, drift in drifts.items()
        }
        inflation_future = None
        if use_fetched_inflation:
            inflation_future = self._fetch_pool.submit(self._safe_inflation_fetch, years, as_of)
        results = {sym: fut.result() for sym, fut in futures.items()}
        inflation = inflation_future.result() if inflation_future is not None else None
        return results, inflation

    # Providers are not supposed to raise; a broken one only loses its own slot.
    def _safe_price_fetch(self, symbol, years, expected_return, as_of) -> FetchResult:
        try:
            return self.price_provider.fetch(symbol, years, expected_return=expected_return, as_of=as_of)
        except Exception as e:
            logger.error("Price provider raised for %s: %s", symbol, e)
            return FetchResult(symbol, (), "fallback", f"provider error: {e}")

    def _safe_inflation_fetch(self, years, as_of) -> Optional[FetchResult]:
        try:
            return self.inflation_provider.fetch(years, as_of=as_of)
        except Exception as e:
            logger.error("Inflation provider raised: %s; using the fixed rate", e)
            return None

    def _run(self, generation, config, use_fetched_inflation, as_of) -> Optional[SimulationResult]:
        if not self.is_current(generation):
            logger.info("Skipping run %d: superseded while queued", generation)
            return None
        fetched, inflation = self.fetch_all(config, use_fetched_inflation, as_of)
        if not self.is_current(generation):
            logger.info("Discarding run %d: superseded before simulation", generation)
            return None

        prices = {sym: r.series for sym, r in fetched.items()}
        sources = {sym: r.source for sym, r in fetched.items()}
        if inflation is not None:
            sources["inflation"] = inflation.source

        result = self.engine.simulate(
            config,
            prices,
            inflation_series=inflation.series if inflation is not None else None,
            as_of=as_of,
            data_sources=sources,
        )
        # check and publish under one lock hold
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding run %d: superseded by run %d", generation, self._generation)
                return None
            self.latest_result = result
            if self.on_result is not None:
                self.on_result(result)
        return result

    def shutdown(self, wait: bool = True):
        self._run_pool.shutdown(wait=wait)
        self._fetch_pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
        return False
