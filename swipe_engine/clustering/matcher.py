"""
Cluster matcher — ranks clusters for a user.

score = weighted mean of embedding similarity ((cos + 1) / 2), interest
overlap with cluster topics and session-topic overlap, over whichever of
those signals are available. Clusters whose raw cosine falls below
match_threshold are dropped; the top max_clusters are returned.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..errors import DimensionMismatch
from ..models.cluster import ClusterInfo, MatchResult
from ..models.config import CandidateSelectorSettings
from ..models.content import normalize_tag
from ..models.profile import RecommendationContext, UserProfile
from ..utils.vectors import cosine_similarity

# Embedding component when the user has no usable vector.
NEUTRAL_SIMILARITY_SCORE = 0.5


def _overlap(wanted: Sequence[str], topics: Sequence[str]) -> Optional[float]:
    a = {normalize_tag(t) for t in wanted if normalize_tag(t)}
    b = {normalize_tag(t) for t in topics if normalize_tag(t)}
    if not a or not b:
        return None
    return len(a & b) / min(len(a), len(b))


class ClusterMatcher:
    def __init__(
        self,
        settings: Optional[CandidateSelectorSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or CandidateSelectorSettings()
        self.logger = logger or logging.getLogger(__name__)

    def match(
        self,
        user_vector: Optional[Sequence[float]],
        clusters: Sequence[ClusterInfo],
        profile: Optional[UserProfile] = None,
        context: Optional[RecommendationContext] = None,
        max_clusters: Optional[int] = None,
    ) -> List[MatchResult]:
        s = self.settings
        has_vector = user_vector is not None and any(user_vector)
        if not has_vector:
            self.logger.info("[cluster_matcher] PROFILE_ONLY_MATCH clusters=%s", len(clusters))

        results: List[MatchResult] = []
        for cluster in clusters:
            if cluster.is_noise:
                continue
            components: List[Tuple[float, float]] = []
            similarity = 0.0
            if has_vector:
                try:
                    similarity = cosine_similarity(user_vector, cluster.centroid)
                except DimensionMismatch as e:
                    self.logger.warning(
                        "[cluster_matcher] CENTROID_DIM_MISMATCH cluster_id=%s error=%s",
                        cluster.id,
                        e,
                    )
                    continue
                if similarity < s.match_threshold:
                    continue
                components.append(((similarity + 1.0) / 2.0, s.embedding_weight))
            else:
                components.append((NEUTRAL_SIMILARITY_SCORE, s.embedding_weight))

            if profile is not None:
                interest = _overlap(profile.interests, cluster.topics)
                if interest is not None:
                    components.append((interest, s.interest_weight))
            if context is not None:
                session = _overlap(context.session_topics, cluster.topics)
                if session is not None:
                    components.append((session, s.context_weight))

            total_weight = sum(w for _, w in components)
            score = (
                sum(v * w for v, w in components) / total_weight
                if total_weight > 0
                else NEUTRAL_SIMILARITY_SCORE
            )
            results.append(
                MatchResult(cluster_id=cluster.id, similarity=similarity, score=score, cluster=cluster)
            )

        results.sort(key=lambda m: (-m.score, -m.similarity, m.cluster_id))
        return results[: max_clusters or s.max_clusters]
