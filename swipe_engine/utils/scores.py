"""
Sigmoid compression, decay and time utilities shared by the
embedding services and the scorers.
"""

import math
from datetime import datetime, timezone
from typing import Optional

LN2 = math.log(2)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def sigmoid(x: float, steepness: float = 5.0, midpoint: float = 0.5) -> float:
    """Logistic curve centered on `midpoint`; maps midpoint to exactly 0.5."""
    z = -steepness * (x - midpoint)
    # math.exp overflows past ~709
    if z > 700:
        return 0.0
    return 1.0 / (1.0 + math.exp(z))


def half_life_decay(age: float, half_life: float) -> float:
    """exp(-ln2 * age / half_life); 1.0 at age 0, 0.5 at one half-life."""
    if half_life <= 0:
        return 0.0
    return math.exp(-LN2 * max(age, 0.0) / half_life)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def hours_since(dt: datetime, now: Optional[datetime] = None) -> float:
    """Hours elapsed since `dt` (never negative)."""
    now = ensure_utc(now) if now is not None else utcnow()
    delta = now - ensure_utc(dt)
    return max(delta.total_seconds() / 3600.0, 0.0)


def days_since(dt: datetime, now: Optional[datetime] = None) -> float:
    return hours_since(dt, now) / 24.0
