"""Database access: Supabase repositories and the offline SQLite store."""

from .local_store import LocalStore, PendingSet, SCHEMA
from .repositories import (
    AthleteRepository,
    ProgramRepository,
    SupabaseRepository,
    WearableRepository,
)

__all__ = [
    "LocalStore",
    "PendingSet",
    "SCHEMA",
    "AthleteRepository",
    "ProgramRepository",
    "SupabaseRepository",
    "WearableRepository",
]
