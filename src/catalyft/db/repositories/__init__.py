"""Supabase repositories."""

from .base import SupabaseRepository
from .athletes import AthleteRepository
from .programs import ProgramRepository
from .wearables import WearableRepository

__all__ = [
    "SupabaseRepository",
    "AthleteRepository",
    "ProgramRepository",
    "WearableRepository",
]
