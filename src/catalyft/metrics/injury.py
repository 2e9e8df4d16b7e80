"""Injury risk score from readiness, sleep and muscle load deviation."""

import math
from dataclasses import dataclass
from typing import Optional, Sequence


HIGH_RISK_THRESHOLD = 75.0
TARGET_SLEEP_HOURS = 8.0

# Used when an athlete has too little history for a meaningful baseline
DEFAULT_LOAD_MEAN = 50.0
DEFAULT_LOAD_VARIANCE = 225.0
MIN_LOAD_STD = 1.0

STRESS_WEIGHT = 0.4
SLEEP_DEFICIT_WEIGHT = 10.0
LOAD_DEVIATION_WEIGHT = 15.0


@dataclass
class LoadStats:
    """Baseline of an athlete's recent daily muscle load."""

    mean: float = DEFAULT_LOAD_MEAN
    variance: float = DEFAULT_LOAD_VARIANCE
    samples: int = 0

    @property
    def std(self) -> float:
        return max(MIN_LOAD_STD, math.sqrt(self.variance))


@dataclass
class InjuryRiskAssessment:
    """
    Result of one daily injury risk calculation.

    Values are unrounded; ``to_dict()`` rounds them for output.
    """

    risk: float
    stress: float
    sleep_deficit: float
    z_load: float

    @property
    def is_high_risk(self) -> bool:
        return self.risk >= HIGH_RISK_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "risk": round(self.risk, 1),
            "stress": round(self.stress, 1),
            "sleep_deficit": round(self.sleep_deficit, 2),
            "z_load": round(self.z_load, 2),
            "high_risk": self.is_high_risk,
        }


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_stress(readiness: float) -> float:
    """Stress is the complement of readiness, bounded to 0-100."""
    return clamp(100 - readiness, 0, 100)


def sleep_deficit(sleep_hours: float) -> float:
    return max(0.0, TARGET_SLEEP_HOURS - sleep_hours)


def z_score(value: float, mean: float, std: float) -> float:
    if std == 0:
        return 0.0
    return (value - mean) / std


def historical_load_stats(loads: Sequence[float]) -> LoadStats:
    """
    Mean and sample variance of an athlete's daily loads.

    Two-pass calculation over whatever rows were returned. Fewer than two
    rows fall back to the default variance; no rows fall back to the
    default mean as well.
    """
    values = [float(v) for v in loads if v is not None]
    if not values:
        return LoadStats()

    mean = sum(values) / len(values)
    if len(values) < 2:
        return LoadStats(mean=mean, variance=DEFAULT_LOAD_VARIANCE, samples=len(values))

    variance = sum((v - mean) ** 2 for v in values) / (len(values) - 1)
    return LoadStats(mean=mean, variance=variance, samples=len(values))


def calculate_injury_risk(
    readiness: float,
    sleep_hours: float,
    load_score: float,
    stats: Optional[LoadStats] = None,
) -> InjuryRiskAssessment:
    """
    Daily injury risk on a 0-100 scale.

        risk = clamp(stress * 0.4 + sleep_deficit * 10 + |z_load| * 15, 0, 100)

    Args:
        readiness: Readiness score for the day (0-100)
        sleep_hours: Hours slept the night before
        load_score: Average muscle load score for the day
        stats: 30-day load baseline (defaults to mean 50, std 15)
    """
    stats = stats or LoadStats()
    stress = calculate_stress(readiness)
    deficit = sleep_deficit(sleep_hours)
    z_load = z_score(load_score, stats.mean, stats.std)

    risk = clamp(
        stress * STRESS_WEIGHT + deficit * SLEEP_DEFICIT_WEIGHT + abs(z_load) * LOAD_DEVIATION_WEIGHT,
        0,
        100,
    )

    return InjuryRiskAssessment(risk=risk, stress=stress, sleep_deficit=deficit, z_load=z_load)
