from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np

@dataclass(frozen=True)
class SimulationMetrics:
    total_contributed: float
    final_value: float
    real_final_value: float
    total_return: float        # percent
    real_total_return: float   # percent
    cagr: float                # percent
    real_cagr: float           # percent
    inflation_impact: float    # percent of nominal value lost to inflation
    # populated only when a benchmark is configured
    benchmark_final_value: Optional[float] = None
    benchmark_return: Optional[float] = None    # percent
    benchmark_cagr: Optional[float] = None      # percent
    outperformance: Optional[float] = None      # percentage points of total return

    def as_dict(self):
        return asdict(self)

def total_return(final_value: float, contributed: float) -> float:
    if contributed <= 0:
        return float("nan")
    return (final_value - contributed) / contributed * 100.0

def cagr(final_value: float, initial_value: float, years: float) -> float:
    """Constant annual rate (percent) growing ``initial_value`` into ``final_value``."""
    if initial_value <= 0 or years <= 0:
        return float("nan")
    with np.errstate(divide="ignore", invalid="ignore"):
        return float((np.float64(final_value) / initial_value) ** (1.0 / years) - 1.0) * 100.0

def inflation_impact(nominal: float, real: float) -> float:
    if nominal == 0:
        return 0.0
    return (nominal - real) / nominal * 100.0

def compute_metrics(final_point, config) -> SimulationMetrics:
    """Summary metrics from the last trajectory point.

    CAGR is measured against the initial lump sum only, not against total
    contributed capital, so with large recurring contributions it can diverge
    sharply from a money-weighted return. The benchmark CAGR uses the same base.
    """
    years = config.horizon_years
    nominal_return = total_return(final_point.nominal_value, final_point.nominal_contributed)
    bench = {}
    if final_point.benchmark_value is not None:
        bench_return = total_return(final_point.benchmark_value, final_point.nominal_contributed)
        bench = dict(
            benchmark_final_value=final_point.benchmark_value,
            benchmark_return=bench_return,
            benchmark_cagr=cagr(final_point.benchmark_value, config.initial_investment, years),
            outperformance=nominal_return - bench_return,
        )
    return SimulationMetrics(
        total_contributed=final_point.nominal_contributed,
        final_value=final_point.nominal_value,
        real_final_value=final_point.real_value,
        total_return=nominal_return,
        real_total_return=total_return(final_point.real_value, final_point.real_contributed),
        cagr=cagr(final_point.nominal_value, config.initial_investment, years),
        real_cagr=cagr(final_point.real_value, config.initial_investment, years),
        inflation_impact=inflation_impact(final_point.nominal_value, final_point.real_value),
        **bench,
    )
