"""
Temporal relevance — hour of day (0.4), day of week (0.2), content
freshness (0.3) and event relevance (0.1), sigmoid-compressed.

Without a context there is no notion of "now", so the score is neutral.
"""

from typing import Dict, Optional

from ...models.config import TemporalFactors
from ...models.profile import RecommendationContext
from ...utils.scores import clamp, half_life_decay, hours_since, sigmoid
from .base import BaseScorer, ScoringTarget, weighted_mean


def _in_range(hour: int, bounds) -> bool:
    return bounds[0] <= hour <= bounds[1]


def hour_relevance(hour: int, f: TemporalFactors) -> float:
    if _in_range(hour, f.morning_hours):
        return f.morning_weight
    if _in_range(hour, f.midday_hours):
        return f.midday_weight
    if _in_range(hour, f.afternoon_hours):
        return f.afternoon_weight
    if _in_range(hour, f.evening_hours):
        return f.evening_weight
    return f.night_weight


def day_relevance(day_of_week: int, f: TemporalFactors) -> float:
    """Sunday = 0."""
    base = f.weekend_weight if day_of_week in (0, 6) else f.weekday_weight
    return clamp(base + f.day_adjustments.get(day_of_week, 0.0))


def freshness(age_hours: float, f: TemporalFactors) -> float:
    return clamp(0.3 + 0.7 * half_life_decay(age_hours, f.content_half_life_hours), 0.1, 1.0)


def event_relevance(hour: int, is_weekend: bool, f: TemporalFactors) -> float:
    value = f.event_base
    if is_weekend:
        value += f.holiday_boost
    if hour in f.peak_hours or (is_weekend and _in_range(hour, f.weekend_peak_hours)):
        value += f.peak_hour_boost
    return clamp(clamp(value) ** f.event_decay_factor, 0.1, 1.0)


class TemporalScorer(BaseScorer):
    name = "temporal"
    factors_type = TemporalFactors

    def details(
        self,
        target: ScoringTarget,
        context: Optional[RecommendationContext],
        factors: Optional[TemporalFactors] = None,
    ) -> Dict[str, Optional[float]]:
        f = factors if factors is not None else self.factors
        if context is None:
            return {"final": None}
        hour = context.hour
        day = context.weekday

        created_at = None
        if target.candidate is not None:
            created_at = target.candidate.created_at
        elif target.cluster is not None:
            created_at = target.cluster.updated_at
        fresh = freshness(hours_since(created_at, context.now), f) if created_at else None

        components = {
            "hour": hour_relevance(hour, f),
            "day": day_relevance(day, f),
            "freshness": fresh,
            "event": event_relevance(hour, context.is_weekend, f),
        }
        raw = weighted_mean(
            [
                (components["hour"], f.hour_weight),
                (components["day"], f.day_weight),
                (components["freshness"], f.freshness_weight),
                (components["event"], f.event_weight),
            ]
        )
        components["raw"] = raw
        components["final"] = (
            sigmoid(raw, steepness=f.sigmoid_steepness) if raw is not None else None
        )
        return components

    def _score(self, subject, target, context, factors) -> Optional[float]:
        return self.details(target, context, factors)["final"]
