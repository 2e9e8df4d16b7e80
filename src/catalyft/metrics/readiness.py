"""Daily readiness score from HRV, sleep, soreness and jump height."""

import math
from dataclasses import dataclass
from typing import Optional


HRV_REFERENCE_MS = 100.0
SLEEP_REFERENCE_MIN = 480.0
JUMP_REFERENCE_CM = 50.0
SORENESS_MAX = 10.0
SIGNAL_WEIGHT = 0.25


@dataclass
class ReadinessInputs:
    """Raw inputs after defaults for missing readings were applied."""

    hrv_rmssd: float = 0.0
    sleep_min: float = 0.0
    soreness_score: float = SORENESS_MAX
    jump_cm: float = 0.0

    def to_dict(self) -> dict:
        return {
            "hrv_rmssd": self.hrv_rmssd,
            "sleep_min": self.sleep_min,
            "soreness_score": self.soreness_score,
            "jump_cm": self.jump_cm,
        }


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_readiness(
    hrv_rmssd: Optional[float] = None,
    sleep_min: Optional[float] = None,
    soreness_score: Optional[float] = None,
    jump_cm: Optional[float] = None,
) -> int:
    """
    Combine four recovery signals into a 0-100 readiness score.

    Each signal is normalised to [0, 1] and the four are averaged with equal
    weight. Soreness is inverted (1 is fresh, 10 is very sore). Missing
    readings count as the worst value: no HRV, no sleep, maximum soreness,
    no jump.

    Args:
        hrv_rmssd: Morning HRV (RMSSD, ms)
        sleep_min: Sleep duration in minutes
        soreness_score: Self-reported soreness, 1-10
        jump_cm: Countermovement jump height in cm

    Returns:
        Integer readiness score, 0-100
    """
    inputs = ReadinessInputs(
        hrv_rmssd=hrv_rmssd if hrv_rmssd is not None else 0.0,
        sleep_min=sleep_min if sleep_min is not None else 0.0,
        soreness_score=soreness_score if soreness_score is not None else SORENESS_MAX,
        jump_cm=jump_cm if jump_cm is not None else 0.0,
    )

    norm_hrv = clamp(inputs.hrv_rmssd / HRV_REFERENCE_MS)
    norm_sleep = clamp(inputs.sleep_min / SLEEP_REFERENCE_MIN)
    norm_soreness = clamp((SORENESS_MAX - inputs.soreness_score) / (SORENESS_MAX - 1))
    norm_jump = clamp(inputs.jump_cm / JUMP_REFERENCE_CM)

    weighted = (
        norm_hrv * SIGNAL_WEIGHT
        + norm_sleep * SIGNAL_WEIGHT
        + norm_soreness * SIGNAL_WEIGHT
        + norm_jump * SIGNAL_WEIGHT
    )
    return _round_half_up(weighted * 100)


def readiness_zone(score: float) -> str:
    """Traffic-light zone for a readiness score."""
    if score >= 67:
        return "green"
    elif score >= 34:
        return "yellow"
    return "red"
