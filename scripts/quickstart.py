import argparse
from dataclasses import replace

from wealth_builder.analytics.export import write_csv
from wealth_builder.config import ProviderConfig, SimulationConfig, TickerAllocation
from wealth_builder.engine.runner import SimulationRunner
from wealth_builder.errors import InvalidConfigError
from wealth_builder.log import setup_logging

def main():
    ap = argparse.ArgumentParser(description="Project a weighted basket over a split historical/forecast horizon.")
    ap.add_argument("--years", type=int, default=15)
    ap.add_argument("--initial", type=float, default=10_000)
    ap.add_argument("--recurring", type=float, default=500)
    ap.add_argument("--cadence", choices=["monthly", "yearly"], default="monthly")
    ap.add_argument("--inflation", type=float, default=3.0)
    ap.add_argument("--benchmark", default="SPY", help="comparison symbol; empty string disables it")
    ap.add_argument("--fetch-inflation", action="store_true", help="use FRED CPI for the historical segment")
    ap.add_argument("--seed", type=int, default=None, help="fix the synthetic fallback data")
    ap.add_argument("--csv", default=None, help="write the trajectory to this CSV file")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args()

    setup_logging(args.log_level)

    # 1) Portfolio
    cfg = SimulationConfig(
        tickers=(
            TickerAllocation("VTI", 40, 9.0),
            TickerAllocation("QQQ", 30, 12.0),
            TickerAllocation("AAPL", 15, 12.0),
            TickerAllocation("MSFT", 15, 11.0),
        ),
        initial_investment=args.initial,
        recurring_contribution=args.recurring,
        contribution_cadence=args.cadence,
        horizon_years=args.years,
        inflation_rate=args.inflation,
        benchmark=args.benchmark or None,
    )

    # 2) Fetch + simulate
    provider_cfg = ProviderConfig.from_env()
    if args.seed is not None:
        provider_cfg = replace(provider_cfg, seed=args.seed)
    try:
        with SimulationRunner(provider_config=provider_cfg) as runner:
            result = runner.simulate(cfg, use_fetched_inflation=args.fetch_inflation).result()
    except InvalidConfigError as e:
        ap.error(str(e))

    # 3) Summary
    m = result.metrics
    print(f"=== {cfg.horizon_years}-year projection "
          f"({cfg.historical_years}y historical + {cfg.forecast_years}y forecast) ===")
    for sym, src in result.data_sources.items():
        print(f"  {sym}: {src}")
    print(f"Total contributed:  ${m.total_contributed:,.0f}")
    print(f"Final value:        ${m.final_value:,.0f} (real ${m.real_final_value:,.0f})")
    print(f"Total return:       {m.total_return:.1f}% (real {m.real_total_return:.1f}%)")
    print(f"CAGR:               {m.cagr:.2f}% (real {m.real_cagr:.2f}%)")
    print(f"Inflation impact:   {m.inflation_impact:.1f}%")
    if m.benchmark_return is not None:
        print(f"Benchmark {result.benchmark}:      ${m.benchmark_final_value:,.0f} "
              f"(return {m.benchmark_return:.1f}%, CAGR {m.benchmark_cagr:.2f}%)")
        print(f"Outperformance:     {m.outperformance:+.1f} pts")

    if args.csv:
        path = write_csv(result, args.csv)
        print(f"Saved: {path}")

if __name__ == "__main__":
    main()
