"""
Diversity — how much the target widens what the user has been seeing.

topic: share r of new topics scored by 1 - |r - target| / target, floored;
creator / format: 1 - share of recent interactions with the same owner / format.
"""

from typing import List, Optional

from ...models.config import DiversityFactors
from ...models.content import normalize_tag
from ...models.interaction import UserInteraction
from ...utils.scores import sigmoid
from .base import BaseScorer, ScoringTarget, weighted_mean


def topic_diversity(new_share: float, factors: DiversityFactors) -> float:
    target = factors.target_topic_novelty
    return max(factors.min_topic_diversity, 1.0 - abs(new_share - target) / target)


def _repeat_share(values: List[str], value: Optional[str]) -> Optional[float]:
    if value is None or not values:
        return None
    return sum(1 for v in values if v == value) / len(values)


class DiversityScorer(BaseScorer):
    name = "diversity"
    factors_type = DiversityFactors

    def _score(self, subject, target: ScoringTarget, context, factors: DiversityFactors) -> Optional[float]:
        profile = subject.profile
        if profile is None:
            return None
        recent: List[UserInteraction] = sorted(
            profile.interactions, key=lambda i: i.timestamp, reverse=True
        )[: factors.recent_interactions]

        topic = None
        topics = set(target.topics)
        if topics:
            known = {normalize_tag(t) for t in profile.interests}
            known.update(normalize_tag(t) for i in recent for t in i.topics)
            new_share = len(topics - known) / len(topics)
            topic = topic_diversity(new_share, factors)

        candidate = target.candidate
        creator = format_ = None
        if candidate is not None:
            owners = [i.owner_id for i in recent if i.owner_id]
            share = _repeat_share(owners, candidate.owner_id)
            creator = 1.0 - share if share is not None else None
            formats = [i.content_format for i in recent if i.content_format]
            share = _repeat_share(formats, candidate.format)
            format_ = 1.0 - share if share is not None else None

        raw = weighted_mean(
            [
                (topic, factors.topic_weight),
                (creator, factors.creator_weight),
                (format_, factors.format_weight),
            ]
        )
        return sigmoid(raw, steepness=factors.sigmoid_steepness) if raw is not None else None
