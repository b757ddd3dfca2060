"""Shared pytest setup: import from ``src/`` and keep tests off the network and off the real cache."""

from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest


def _insert_src() -> None:
    src = Path(__file__).resolve().parents[1] / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


_insert_src()

from wealth_builder.config import ProviderConfig, SimulationConfig, TickerAllocation  # noqa: E402
from wealth_builder.data.series import PricePoint  # noqa: E402
from wealth_builder.engine.schedule import add_months  # noqa: E402

AS_OF = date(2024, 6, 15)


@pytest.fixture(autouse=True)
def _quiet_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEALTH_BUILDER_LOG_LEVEL", "INFO")


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def provider_config(tmp_path: Path) -> ProviderConfig:
    return ProviderConfig(cache_dir=tmp_path / "cache", use_cache=False, seed=7)


def flat_series(start: date, end: date, price: float = 100.0) -> tuple[PricePoint, ...]:
    days = (end - start).days
    return tuple(PricePoint(start + timedelta(days=i), price) for i in range(0, days + 1, 7))


def monthly_growth_series(start: date, months: int, monthly_rate: float, p0: float = 50.0) -> tuple[PricePoint, ...]:
    """One point per simulated month date, growing by ``monthly_rate`` each month."""
    return tuple(PricePoint(add_months(start, m), p0 * (1 + monthly_rate) ** m) for m in range(months + 1))


def make_config(**overrides) -> SimulationConfig:
    params = dict(
        tickers=(TickerAllocation("AAPL", 60, 10.0), TickerAllocation("VTI", 40, 8.0)),
        initial_investment=10_000.0,
        recurring_contribution=250.0,
        contribution_cadence="monthly",
        horizon_years=6,
        inflation_rate=3.0,
    )
    params.update(overrides)
    return SimulationConfig(**params)
