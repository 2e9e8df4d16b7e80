"""Function routes, mounted under ``/functions/v1``."""
