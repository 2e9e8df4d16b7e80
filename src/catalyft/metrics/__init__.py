"""Training metrics calculations."""

from .load import (
    LoadDay,
    FitnessMetrics,
    calculate_acwr_series,
    calculate_ewma,
    calculate_fitness_metrics,
    determine_risk_zone,
    latest_acwr,
)
from .readiness import calculate_readiness, readiness_zone
from .injury import (
    HIGH_RISK_THRESHOLD,
    InjuryRiskAssessment,
    LoadStats,
    calculate_injury_risk,
    historical_load_stats,
)

__all__ = [
    "LoadDay",
    "FitnessMetrics",
    "calculate_acwr_series",
    "calculate_ewma",
    "calculate_fitness_metrics",
    "determine_risk_zone",
    "latest_acwr",
    "calculate_readiness",
    "readiness_zone",
    "HIGH_RISK_THRESHOLD",
    "InjuryRiskAssessment",
    "LoadStats",
    "calculate_injury_risk",
    "historical_load_stats",
]
