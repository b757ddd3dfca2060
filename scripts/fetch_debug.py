# scripts/fetch_debug.py
# Run:  python scripts/fetch_debug.py VTI QQQ --years 5

import argparse

from wealth_builder.config import ProviderConfig
from wealth_builder.data.fetchers import InflationSeriesProvider, PriceSeriesProvider
from wealth_builder.data.series import inflation_to_series, prices_to_series
from wealth_builder.log import setup_logging

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("tickers", nargs="*", default=["VTI", "TLT", "GLD"])
    ap.add_argument("--years", type=int, default=5)
    ap.add_argument("--no-cache", action="store_true")
    args = ap.parse_args()

    setup_logging("DEBUG")
    cfg = ProviderConfig(use_cache=not args.no_cache)

    # 1) Yahoo daily closes
    prices = PriceSeriesProvider(cfg)
    for sym in args.tickers:
        res = prices.fetch(sym, args.years)
        s = prices_to_series(res.series, name=sym)
        print(f"\n=== {sym}: {res.source} ({len(s)} rows) ===")
        if res.reason:
            print(f"reason: {res.reason}")
        print(s.head(5))
        print(s.tail(5))

    # 2) FRED YoY inflation
    res = InflationSeriesProvider(cfg).fetch(args.years)
    s = inflation_to_series(res.series, name="yoy_pct")
    print(f"\n=== {res.symbol} YoY inflation: {res.source} ({len(s)} rows) ===")
    if res.reason:
        print(f"reason: {res.reason}")
    print(s.tail(12))

if __name__ == "__main__":
    main()
