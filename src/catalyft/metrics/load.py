"""Training load analytics: rolling ACWR and the Fitness-Fatigue model."""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple


ACUTE_WINDOW_DAYS = 7
CHRONIC_WINDOW_DAYS = 28

CTL_TIME_CONSTANT = 42
ATL_TIME_CONSTANT = 7
MIN_CTL_THRESHOLD = 10.0


@dataclass
class LoadDay:
    """One day of the rolling acute:chronic workload view."""

    day: date
    daily_load: float
    acute_7d: float
    chronic_28d: float
    acwr_7_28: float

    @property
    def risk_zone(self) -> str:
        return determine_risk_zone(self.acwr_7_28)

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "daily_load": self.daily_load,
            "acute_7d": self.acute_7d,
            "chronic_28d": self.chronic_28d,
            "acwr_7_28": self.acwr_7_28,
        }


@dataclass
class FitnessMetrics:
    """Daily fitness metrics from the Fitness-Fatigue model."""

    date: date
    daily_load: float
    ctl: float  # Chronic Training Load (fitness) - 42 day EWMA
    atl: float  # Acute Training Load (fatigue) - 7 day EWMA
    tsb: float  # Training Stress Balance (form) = CTL - ATL
    acwr: float
    risk_zone: str

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "daily_load": self.daily_load,
            "ctl": self.ctl,
            "atl": self.atl,
            "tsb": self.tsb,
            "acwr": self.acwr,
            "risk_zone": self.risk_zone,
        }


def determine_risk_zone(acwr: float) -> str:
    """
    Determine injury risk zone based on ACWR.

    - < 0.8: Undertrained (not enough stimulus)
    - 0.8 - 1.3: Optimal
    - 1.3 - 1.5: Caution (elevated injury risk)
    - > 1.5: Danger (high injury risk)
    """
    if acwr < 0.8:
        return "undertrained"
    elif acwr <= 1.3:
        return "optimal"
    elif acwr <= 1.5:
        return "caution"
    else:
        return "danger"


def fill_daily_loads(
    daily_loads: Iterable[Tuple[date, float]],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Tuple[date, float]]:
    """
    Collapse loads to one value per calendar day and fill gaps with zero.

    Several sessions on the same day are summed. When ``start``/``end`` are
    omitted the range spans the first and last day present in the input.
    """
    totals: dict[date, float] = {}
    for day, load in daily_loads:
        totals[day] = totals.get(day, 0.0) + float(load or 0.0)

    if not totals and (start is None or end is None):
        return []

    first = start or min(totals)
    last = end or max(totals)
    if last < first:
        return []

    filled = []
    current = first
    while current <= last:
        filled.append((current, totals.get(current, 0.0)))
        current += timedelta(days=1)
    return filled


def rolling_average(loads: Sequence[float], index: int, window: int) -> float:
    """
    Sum of the ``window`` loads ending at ``index`` divided by ``window``.

    The divisor is fixed, so the first days of a series read low until the
    window has filled.
    """
    start = max(0, index - window + 1)
    return sum(loads[start:index + 1]) / window


def calculate_acwr_series(
    daily_loads: Iterable[Tuple[date, float]],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[LoadDay]:
    """
    Calculate the rolling 7:28 day acute:chronic workload ratio.

    Args:
        daily_loads: (date, load) pairs, need not be consecutive or unique
        start: First day to report (defaults to the earliest load)
        end: Last day to report (defaults to the latest load)

    Returns:
        One LoadDay per calendar day. ACWR is 0 while chronic load is 0.
    """
    filled = fill_daily_loads(daily_loads, start, end)
    loads = [load for _, load in filled]

    series = []
    for i, (day, load) in enumerate(filled):
        acute = rolling_average(loads, i, ACUTE_WINDOW_DAYS)
        chronic = rolling_average(loads, i, CHRONIC_WINDOW_DAYS)
        acwr = acute / chronic if chronic > 0 else 0.0
        series.append(
            LoadDay(
                day=day,
                daily_load=round(load, 1),
                acute_7d=round(acute, 1),
                chronic_28d=round(chronic, 1),
                acwr_7_28=round(acwr, 2),
            )
        )
    return series


def latest_acwr(series: Sequence[LoadDay]) -> Optional[LoadDay]:
    """Most recent day of a series, or None for an empty series."""
    return series[-1] if series else None


def calculate_ewma(
    current_value: float,
    previous_ewma: float,
    time_constant: int,
) -> float:
    """
    Exponentially Weighted Moving Average.

    EWMA_n = EWMA_{n-1} * decay + value * (1 - decay), decay = e^(-1/time_constant)
    """
    decay = math.exp(-1 / time_constant)
    return previous_ewma * decay + current_value * (1 - decay)


def calculate_fitness_metrics(
    daily_loads: Iterable[Tuple[date, float]],
    initial_ctl: float = 0.0,
    initial_atl: float = 0.0,
) -> List[FitnessMetrics]:
    """
    Calculate CTL, ATL, TSB and EWMA-based ACWR for a series of daily loads.

    Gaps between sessions are treated as rest days. While CTL is below
    MIN_CTL_THRESHOLD the ratio is reported as 1.0.
    """
    filled = fill_daily_loads(daily_loads)

    results = []
    ctl = initial_ctl
    atl = initial_atl
    for day, load in filled:
        ctl = calculate_ewma(load, ctl, CTL_TIME_CONSTANT)
        atl = calculate_ewma(load, atl, ATL_TIME_CONSTANT)
        tsb = ctl - atl
        acwr = atl / ctl if ctl > MIN_CTL_THRESHOLD else 1.0

        results.append(
            FitnessMetrics(
                date=day,
                daily_load=round(load, 1),
                ctl=round(ctl, 1),
                atl=round(atl, 1),
                tsb=round(tsb, 1),
                acwr=round(acwr, 2),
                risk_zone=determine_risk_zone(acwr),
            )
        )

    return results
