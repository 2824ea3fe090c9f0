"""
Affinity — how close a user is to a cluster.

raw = weighted mean of
  embedding similarity  (cos + 1) / 2 of user vector vs centroid   0.7
  shared interests      Jaccard(interests, topics)^decay, sigmoid  0.2
  network proximity     recency-weighted interactions with members 0.1
  cluster centrality    size / density / topic breadth             0.05
over the components that have input. Below min_similarity_threshold the
raw score is scaled by 0.3 + 0.7 * sim / threshold; the result is
compressed with 1 / (1 + e^(-5 (x - 0.5))).
"""

import logging
import math
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ...models.cluster import ClusterInfo
from ...models.config import AffinityFactors
from ...models.interaction import UserInteraction
from ...models.profile import RecommendationContext, UserProfile
from ...utils.scores import clamp, hours_since, sigmoid
from ...utils.vectors import cosine_similarity
from .base import BaseScorer, ScoringSubject, ScoringTarget, weighted_mean

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w]")


def normalize_topic(topic: str) -> str:
    return _NON_WORD.sub("", topic.lower())


def _topic_set(topics: Iterable[str]) -> set:
    return {t for t in (normalize_topic(x) for x in topics) if t}


def embedding_similarity(
    user_vector: Optional[Sequence[float]],
    centroid: Optional[Sequence[float]],
) -> Optional[float]:
    """(cos + 1) / 2; vectors of different length are compared on their common prefix."""
    if user_vector is None or centroid is None or not any(user_vector) or not len(centroid):
        return None
    if len(user_vector) != len(centroid):
        n = min(len(user_vector), len(centroid))
        logger.warning(
            "[affinity] VECTOR_DIM_MISMATCH user_len=%s centroid_len=%s",
            len(user_vector),
            len(centroid),
        )
        user_vector, centroid = list(user_vector)[:n], list(centroid)[:n]
    return (cosine_similarity(user_vector, centroid) + 1.0) / 2.0


def topic_similarity(
    interests: Iterable[str],
    topics: Iterable[str],
    factors: AffinityFactors,
) -> Optional[float]:
    a, b = _topic_set(interests), _topic_set(topics)
    if not a or not b:
        return None
    jaccard = len(a & b) / len(a | b)
    decayed = jaccard ** factors.topic_decay_factor
    return sigmoid(decayed, steepness=factors.topic_sigmoid_steepness)


def network_proximity(
    interactions: Sequence[UserInteraction],
    cluster: ClusterInfo,
    factors: AffinityFactors,
    now: Optional[datetime] = None,
) -> Optional[float]:
    """
    0.5 + 0.5 * (signed weight of interactions touching the cluster) /
    (total absolute weight), each weight decayed by exp(-age_h / half_life).
    """
    recent = sorted(interactions, key=lambda i: i.timestamp, reverse=True)
    recent = recent[: factors.max_historical_interactions]
    if not recent:
        return None
    members = set(cluster.member_ids)
    topics = _topic_set(cluster.topics)
    total = 0.0
    related = 0.0
    for interaction in recent:
        base = factors.interaction_weights.get(interaction.type, factors.default_interaction_weight)
        weight = base * math.exp(-hours_since(interaction.timestamp, now) / factors.network_half_life_hours)
        total += abs(weight)
        if interaction.entity_id in members or (topics & _topic_set(interaction.topics)):
            related += weight
    if total == 0:
        return None
    return clamp(0.5 + 0.5 * related / total)


def cluster_centrality(cluster: ClusterInfo) -> float:
    size_factor = min(1.0, cluster.size / 50.0)
    density = clamp(cluster.density) if cluster.density is not None else 0.5
    topic_factor = min(1.0, len(cluster.topics) / 10.0) if cluster.topics else 0.5
    return clamp(0.4 * size_factor + 0.3 * density + 0.3 * topic_factor, 0.1, 1.0)


def _interests(profile: Optional[UserProfile]) -> List[str]:
    if profile is None:
        return []
    interests = list(profile.interests)
    if profile.demographics is not None:
        interests.extend(profile.demographics.interests)
    return interests


class AffinityScorer(BaseScorer):
    name = "affinity"
    factors_type = AffinityFactors

    def details(
        self,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext] = None,
        factors: Optional[AffinityFactors] = None,
    ) -> Dict[str, Optional[float]]:
        """Component values, raw weighted score and final score."""
        f = factors if factors is not None else self.factors
        cluster = target.cluster
        if cluster is None:
            return {"final": None}
        now = context.now if context is not None else None
        profile = subject.profile

        emb = embedding_similarity(subject.embedding, cluster.centroid)
        topic = topic_similarity(_interests(profile), cluster.topics, f)
        network = (
            network_proximity(profile.interactions, cluster, f, now)
            if profile is not None
            else None
        )
        centrality = cluster_centrality(cluster)

        raw = weighted_mean(
            [
                (emb, f.embedding_similarity_weight),
                (topic, f.shared_interests_weight),
                (network, f.network_proximity_weight),
                (centrality, f.cluster_centrality_weight),
            ]
        )
        if raw is None or (emb is None and topic is None and network is None):
            # Centrality alone says nothing about this user.
            final = None
        else:
            threshold = f.min_similarity_threshold
            if emb is not None and threshold > 0 and emb < threshold:
                raw *= 0.3 + 0.7 * (emb / threshold)
            final = sigmoid(raw, steepness=f.sigmoid_steepness)
        return {
            "embedding_similarity": emb,
            "topic_similarity": topic,
            "network_proximity": network,
            "cluster_centrality": centrality,
            "raw": raw,
            "final": final,
        }

    def _score(self, subject, target, context, factors) -> Optional[float]:
        return self.details(subject, target, context, factors)["final"]
