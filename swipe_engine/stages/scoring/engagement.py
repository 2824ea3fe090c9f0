"""
Engagement — the user's own engagement with the target's cluster plus the
candidate's global popularity.

user signal: sum of type weight * 2^(-age / type half-life) over the user's
interactions with cluster members, mapped by 1 - exp(-total * factor);
no_relevant_score when the user has history but none of it touches the cluster.
popularity: log-scaled weighted counters.
"""

import math
from typing import Optional

from ...models.candidate import Candidate
from ...models.config import EngagementFactors
from ...utils.scores import clamp, half_life_decay, hours_since, sigmoid
from .base import BaseScorer, ScoringSubject, ScoringTarget, weighted_mean


def popularity(candidate: Candidate, factors: EngagementFactors) -> float:
    s = candidate.statistics
    weighted = 0.1 * s.views + s.likes + 2.0 * s.comments + 3.0 * s.shares + 2.0 * s.saves
    return min(1.0, math.log10(1.0 + max(weighted, 0.0)) / factors.popularity_log_scale)


def user_signal(
    subject: ScoringSubject,
    target: ScoringTarget,
    factors: EngagementFactors,
    now=None,
) -> Optional[float]:
    interactions = subject.interactions
    if not interactions:
        return None
    members = set(target.cluster.member_ids) if target.cluster is not None else set()
    if target.candidate is not None:
        members.add(target.candidate.id)
    if not members:
        return None

    recent = sorted(interactions, key=lambda i: i.timestamp, reverse=True)
    recent = recent[: factors.max_interactions_per_user]
    relevant = [i for i in recent if i.entity_id in members]
    if not relevant:
        return factors.no_relevant_score

    total = 0.0
    for interaction in relevant:
        weight = factors.interaction_weights.get(interaction.type, factors.default_weight)
        half_life = factors.half_life_hours.get(interaction.type, factors.default_half_life_hours)
        total += weight * half_life_decay(hours_since(interaction.timestamp, now), half_life)
    return clamp(1.0 - math.exp(-total * factors.normalization_factor))


class EngagementScorer(BaseScorer):
    name = "engagement"
    factors_type = EngagementFactors

    def _score(self, subject, target: ScoringTarget, context, factors: EngagementFactors) -> Optional[float]:
        now = context.now if context is not None else None
        user = user_signal(subject, target, factors, now)
        pop = popularity(target.candidate, factors) if target.candidate is not None else None
        raw = weighted_mean(
            [(user, factors.user_signal_weight), (pop, factors.popularity_weight)]
        )
        return sigmoid(raw, steepness=factors.sigmoid_steepness) if raw is not None else None
