"""Catalyft coach: athlete coaching functions over Supabase, WHOOP and OpenAI."""

__version__ = "0.1.0"
