"""
Post-pass cluster labeling: topics from member tags, stability against the
previous pass.
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence

from ..models.cluster import ClusterInfo
from ..models.content import normalize_tag
from ..stores.base import ContentMetadataRepository


def label_cluster_topics(
    clusters: Sequence[ClusterInfo],
    repository: ContentMetadataRepository,
    top_n: int = 5,
    logger: Optional[logging.Logger] = None,
) -> List[ClusterInfo]:
    """
    Topics = the `top_n` most frequent member tags (ties alphabetical).
    Members missing from the repository, or whose lookup fails, are skipped.
    """
    logger = logger or logging.getLogger(__name__)
    labeled = []
    for cluster in clusters:
        counts: Counter = Counter()
        for member_id in cluster.member_ids:
            try:
                content = repository.find(member_id)
            except Exception as e:
                logger.warning(
                    "[cluster_topics] HYDRATE_FAILED cluster_id=%s content_id=%s error=%s",
                    cluster.id,
                    member_id,
                    e,
                )
                continue
            if content is None:
                continue
            counts.update({normalize_tag(t) for t in content.tags if normalize_tag(t)})
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        topics = [tag for tag, _ in ranked[:top_n]]
        labeled.append(cluster.model_copy(update={"topics": topics}))
    return labeled


def _jaccard(a: set, b: set) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def assign_stability(
    clusters: Sequence[ClusterInfo],
    previous: Optional[Sequence[ClusterInfo]],
) -> List[ClusterInfo]:
    """Stability = best member-set Jaccard overlap with any previous cluster."""
    if not previous:
        return list(clusters)
    previous_sets = [set(p.member_ids) for p in previous if not p.is_noise]
    out = []
    for cluster in clusters:
        members = set(cluster.member_ids)
        best = max((_jaccard(members, p) for p in previous_sets), default=0.0)
        out.append(cluster.model_copy(update={"stability": best}))
    return out
