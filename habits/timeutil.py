"""Timestamp helpers shared by the repetition endpoints.

Clients send either epoch seconds or epoch milliseconds; anything below
``SECONDS_THRESHOLD`` is treated as seconds.
"""

from __future__ import annotations

SECONDS_THRESHOLD = 100_000_000_000
MS_PER_DAY = 86_400_000


def normalize_units_to_ms(ts: int) -> int:
    return ts * 1000 if ts < SECONDS_THRESHOLD else ts


def to_utc_midnight(epoch_ms: int) -> int:
    # Python's % already floors toward negative infinity
    return epoch_ms - (epoch_ms % MS_PER_DAY)
