import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Mapping, Optional, Tuple

from .errors import InvalidConfigError

Cadence = Literal["monthly", "yearly"]
CADENCES = ("monthly", "yearly")

@dataclass(frozen=True)
class TickerAllocation:
    symbol: str
    weight: float           # 0..100
    expected_return: float  # annual, percent

@dataclass(frozen=True)
class SimulationConfig:
    tickers: Tuple[TickerAllocation, ...]
    initial_investment: float
    recurring_contribution: float = 0.0
    contribution_cadence: Cadence = "monthly"
    horizon_years: int = 10
    inflation_rate: float = 3.0   # annual, percent; used unless a fetched series is requested
    benchmark: Optional[str] = None          # compared against, never held
    benchmark_expected_return: float = 10.0  # annual, percent; drives the benchmark forecast

    def __post_init__(self):
        # freeze the caller's list so later edits on their side can't leak in
        object.__setattr__(self, "tickers", tuple(self.tickers))

    def symbols(self) -> List[str]:
        return [t.symbol for t in self.tickers]

    @property
    def historical_years(self) -> int:
        return (2 * int(self.horizon_years)) // 3

    @property
    def forecast_years(self) -> int:
        return int(self.horizon_years) - self.historical_years

    def validate(self) -> "ValidationResult":
        return validate_config(self)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "SimulationConfig":
        """Build a config from a JSON-style mapping.

        Accepts ``tickers`` as a list of ``{symbol, weight, expected_return}``
        mappings (``expectedReturn`` is accepted as well).
        ``benchmark`` names an optional comparison symbol.
        """
        tickers = []
        for item in payload.get("tickers", []):
            expected = item.get("expected_return", item.get("expectedReturn", 0.0))
            tickers.append(TickerAllocation(
                symbol=str(item["symbol"]).strip().upper(),
                weight=float(item["weight"]),
                expected_return=float(expected),
            ))
        benchmark = payload.get("benchmark")
        return cls(
            tickers=tuple(tickers),
            initial_investment=float(payload["initial_investment"]),
            recurring_contribution=float(payload.get("recurring_contribution", 0.0)),
            contribution_cadence=str(payload.get("contribution_cadence", "monthly")),
            horizon_years=int(payload.get("horizon_years", 10)),
            inflation_rate=float(payload.get("inflation_rate", 3.0)),
            benchmark=str(benchmark).strip().upper() if benchmark is not None else None,
            benchmark_expected_return=float(payload.get("benchmark_expected_return", 10.0)),
        )

@dataclass(frozen=True)
class ValidationResult:
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self):
        if self.errors:
            raise InvalidConfigError(list(self.errors))

def validate_config(config: SimulationConfig) -> ValidationResult:
    """Check every precondition a simulation run relies on.

    Weights must add up to exactly 100. They are summed with ``math.fsum`` so
    that e.g. 33.3 + 33.3 + 33.4 is not rejected for binary rounding noise,
    while 99 or 100.5 always is.
    """
    errors = []
    if not config.tickers:
        errors.append("portfolio needs at least one ticker")
    seen = set()
    for t in config.tickers:
        if not t.symbol or not str(t.symbol).strip():
            errors.append("ticker symbol must be non-empty")
        elif t.symbol in seen:
            errors.append(f"duplicate ticker {t.symbol}")
        seen.add(t.symbol)
        if not (0.0 <= t.weight <= 100.0):
            errors.append(f"weight for {t.symbol or '?'} must be within 0..100, got {t.weight}")
        if not (math.isfinite(t.expected_return) and t.expected_return > -100.0):
            errors.append(f"expected return for {t.symbol or '?'} must be a finite percent above -100")
    if config.tickers:
        total = math.fsum(t.weight for t in config.tickers)
        if total != 100.0:
            errors.append(f"weights must sum to 100, got {total:g}")
    if not (config.initial_investment > 0):
        errors.append("initial investment must be positive")
    if not (config.recurring_contribution >= 0):
        errors.append("recurring contribution cannot be negative")
    if config.contribution_cadence not in CADENCES:
        errors.append(f"contribution cadence must be one of {CADENCES}, got {config.contribution_cadence!r}")
    if isinstance(config.horizon_years, bool) or not isinstance(config.horizon_years, int) or config.horizon_years < 1:
        errors.append("horizon must be a whole number of years >= 1")
    if not (config.inflation_rate >= 0):
        errors.append("inflation rate cannot be negative")
    if config.benchmark is not None and not str(config.benchmark).strip():
        errors.append("benchmark symbol must be non-empty when given")
    if not (math.isfinite(config.benchmark_expected_return) and config.benchmark_expected_return > -100.0):
        errors.append("benchmark expected return must be a finite percent above -100")
    return ValidationResult(tuple(errors))

def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}

@dataclass(frozen=True)
class ProviderConfig:
    cache_dir: Path = Path("data_cache")
    use_cache: bool = True
    timeout: float = 30.0
    user_agent: str = "wealth-builder/0.1"
    cpi_series: str = "CPIAUCSL"
    seed: Optional[int] = None          # fixes the synthetic fallback paths
    fallback_volatility: float = 0.02   # daily uniform shock half-width
    base_inflation: float = 2.5
    inflation_volatility: float = 1.0
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        seed = os.environ.get("WEALTH_BUILDER_SEED")
        return cls(
            cache_dir=Path(os.environ.get("WEALTH_BUILDER_CACHE_DIR", "data_cache")),
            use_cache=_env_flag("WEALTH_BUILDER_USE_CACHE", True),
            timeout=float(os.environ.get("WEALTH_BUILDER_TIMEOUT", 30.0)),
            seed=int(seed) if seed else None,
        )
