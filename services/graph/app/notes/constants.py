"""
Notes domain — limits.
"""
from __future__ import annotations

from datetime import timedelta

NOTE_MAX_LENGTH: int = 60
NOTE_TTL: timedelta = timedelta(hours=24)
