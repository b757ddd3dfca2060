from datetime import date, timedelta
from typing import List

from dateutil.relativedelta import relativedelta

SCHEDULE_CADENCES = ("daily", "weekly", "monthly", "yearly")

def add_months(start: date, months: int) -> date:
    """``start`` shifted by whole months, clamped to the last day of the target month."""
    return start + relativedelta(months=int(months))

def _step(start: date, cadence: str, k: int) -> date:
    if cadence == "daily":
        return start + timedelta(days=k)
    if cadence == "weekly":
        return start + timedelta(weeks=k)
    if cadence == "monthly":
        return add_months(start, k)
    if cadence == "yearly":
        return add_months(start, 12 * k)
    raise ValueError(f"Unknown cadence: {cadence!r}")

def schedule(start: date, end: date, cadence: str) -> List[date]:
    """Contribution dates from ``start`` (inclusive) while ``<= end``.

    The k-th date is always computed from ``start`` rather than from the
    previous date, so a Jan 31 start gives Feb 28/29 then Mar 31 instead of
    drifting to the 28th for the rest of the schedule.
    """
    if cadence not in SCHEDULE_CADENCES:
        raise ValueError(f"Unknown cadence: {cadence!r}")
    dates = []
    k = 0
    current = start
    while current <= end:
        dates.append(current)
        k += 1
        current = _step(start, cadence, k)
    return dates

def is_contribution_month(month: int, cadence: str) -> bool:
    # month 0 is the initial lump sum, never a recurring contribution
    if month <= 0:
        return False
    if cadence == "monthly":
        return True
    if cadence == "yearly":
        return month % 12 == 0
    raise ValueError(f"Unknown cadence: {cadence!r}")
