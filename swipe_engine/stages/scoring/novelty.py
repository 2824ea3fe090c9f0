"""
How new the target is to this user.

content novelty: a seen candidate recovers as 1 - exp(-days / decay_period);
a cluster whose members the user mostly saw is discounted.
topic novelty: share of target topics the user has not interacted with.
"""

import math
from datetime import datetime
from typing import Dict, Optional

from ...models.config import NoveltyFactors
from ...models.content import normalize_tag
from ...utils.scores import days_since, sigmoid
from .base import BaseScorer, ScoringSubject, ScoringTarget, weighted_mean


def _last_seen(subject: ScoringSubject) -> Dict[str, datetime]:
    seen: Dict[str, datetime] = {}
    for interaction in subject.interactions or ():
        prior = seen.get(interaction.entity_id)
        if prior is None or interaction.timestamp > prior:
            seen[interaction.entity_id] = interaction.timestamp
    return seen


class NoveltyScorer(BaseScorer):
    name = "novelty"
    factors_type = NoveltyFactors

    def _score(self, subject, target: ScoringTarget, context, factors: NoveltyFactors) -> Optional[float]:
        if subject.interactions is None:
            return None
        now = context.now if context is not None else None
        seen = _last_seen(subject)

        content = 1.0
        if target.candidate is not None and target.candidate.id in seen:
            age_days = days_since(seen[target.candidate.id], now)
            content = 1.0 - math.exp(-age_days / factors.novelty_decay_period_days)
        if target.cluster is not None and target.cluster.member_ids:
            members = target.cluster.member_ids
            seen_share = sum(1 for m in members if m in seen) / len(members)
            content = min(content, 1.0 - factors.similar_content_discount * seen_share)

        topics = set(target.topics)
        if not topics:
            topic = None
        else:
            known = {
                normalize_tag(t)
                for interaction in subject.interactions
                for t in interaction.topics
            }
            topic = len(topics - known) / len(topics)

        raw = weighted_mean(
            [(content, factors.viewed_content_weight), (topic, factors.topic_novelty_weight)]
        )
        return sigmoid(raw, steepness=factors.sigmoid_steepness) if raw is not None else None
