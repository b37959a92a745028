"""Shared utilities."""
from backend.utils.datetime_helpers import ensure_utc, utc_now

__all__ = ["ensure_utc", "utc_now"]
