from pathlib import Path
from typing import Dict, List

import pandas as pd

def trajectory_rows(result) -> List[Dict[str, object]]:
    """Flat rows (date, nominal value, real value, contributed) for CSV export.

    A ``benchmark_value`` column is added when the run had a benchmark.
    """
    rows = []
    for p in result.trajectory:
        row = {
            "date": p.date,
            "nominal_value": p.nominal_value,
            "real_value": p.real_value,
        }
        if result.benchmark:
            row["benchmark_value"] = p.benchmark_value
        row["contributed"] = p.nominal_contributed
        rows.append(row)
    return rows

def trajectory_frame(result) -> pd.DataFrame:
    """Whole trajectory as a date-indexed frame, one column per ticker value."""
    records = []
    for p in result.trajectory:
        row = {
            "date": pd.Timestamp(p.date),
            "year": p.year_offset,
            "historical": p.is_historical,
            "nominal_value": p.nominal_value,
            "real_value": p.real_value,
            "contributed": p.nominal_contributed,
            "real_contributed": p.real_contributed,
            "inflation_factor": p.inflation_factor,
        }
        if result.benchmark:
            row["benchmark_value"] = p.benchmark_value
        for sym, v in p.ticker_nominal_values.items():
            row[f"{sym}_nominal"] = v
        for sym, v in p.ticker_real_values.items():
            row[f"{sym}_real"] = v
        records.append(row)
    return pd.DataFrame.from_records(records).set_index("date")

def write_csv(result, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame.from_records(trajectory_rows(result))
    df.to_csv(path, index=False, float_format="%.2f")
    return path
