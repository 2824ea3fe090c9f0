"""
Candidate selection

Turns matched clusters into candidates: pulls member ids per cluster,
hydrates their metadata, drops excluded / self-owned / stale content and
tags survivors with the originating cluster's match score.
Returns candidates unordered; final ranking belongs to the scoring stage.

The public entry point is CandidateSelector.select_candidates.
"""

import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set

from ..models.candidate import Candidate
from ..models.cluster import MatchResult
from ..models.config import CandidateSelectorSettings
from ..models.content import ContentMetadata
from ..stores.base import ContentMetadataRepository
from ..utils.scores import hours_since


def _retained_clusters(matches: Sequence[MatchResult], minimum_score: float) -> List[MatchResult]:
    """Clusters scoring above the minimum, best first."""
    kept = [m for m in matches if m.score > minimum_score]
    return sorted(kept, key=lambda m: (-m.score, m.cluster_id))


def _per_cluster_quota(limit: int, cluster_count: int, buffer_size: int) -> int:
    return math.ceil(limit / cluster_count) + buffer_size


def _pull_member_ids(match: MatchResult, quota: int, excluded_ids: Set[str]) -> List[str]:
    """Up to `quota` member ids, skipping ids already known to be excluded."""
    pulled = []
    for member_id in match.cluster.member_ids:
        if len(pulled) >= quota:
            break
        if member_id in excluded_ids:
            continue
        pulled.append(member_id)
    return pulled


def _passes_filters(
    content: ContentMetadata,
    user_id: Optional[str],
    excluded_ids: Set[str],
    time_window_hours: float,
    now: Optional[datetime],
) -> bool:
    if content.id in excluded_ids:
        return False
    if user_id is not None and content.owner_id == user_id:
        return False
    if hours_since(content.created_at, now) > time_window_hours:
        return False
    return True


class CandidateSelector:
    """
    Usage:
        selector = CandidateSelector(content_repository, settings)
        candidates = selector.select_candidates(matches, limit=20, exclude_ids=seen, user_id="u1")
    """

    def __init__(
        self,
        repository: ContentMetadataRepository,
        settings: Optional[CandidateSelectorSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.repository = repository
        self.settings = settings or CandidateSelectorSettings()
        self.logger = logger or logging.getLogger(__name__)

    def select_candidates(
        self,
        matched_clusters: Sequence[MatchResult],
        limit: Optional[int] = None,
        exclude_ids: Optional[Iterable[str]] = None,
        user_id: Optional[str] = None,
        time_window_hours: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> List[Candidate]:
        s = self.settings
        if limit is None:
            limit = s.default_limit
        if limit <= 0:
            return []
        window = time_window_hours if time_window_hours is not None else s.time_window_hours
        excluded = set(exclude_ids or ())

        clusters = _retained_clusters(matched_clusters, s.minimum_cluster_score)
        if not clusters:
            self.logger.info(
                "[candidate_selector] NO_CLUSTERS user_id=%s matched=%s", user_id, len(matched_clusters)
            )
            return []

        quota = _per_cluster_quota(limit, len(clusters), s.buffer_size)
        candidates: List[Candidate] = []
        seen: Set[str] = set()

        for match in clusters:
            kept = 0
            for content_id in _pull_member_ids(match, quota, excluded):
                if content_id in seen:
                    continue
                try:
                    content = self.repository.find(content_id)
                except Exception as e:
                    self.logger.warning(
                        "[candidate_selector] HYDRATE_FAILED content_id=%s error=%s", content_id, e
                    )
                    continue
                if content is None:
                    continue
                if not _passes_filters(content, user_id, excluded, window, now):
                    continue
                seen.add(content_id)
                kept += 1
                candidates.append(
                    Candidate(
                        id=content.id,
                        owner_id=content.owner_id,
                        created_at=content.created_at,
                        statistics=content.counters,
                        cluster_score=match.score,
                        cluster_id=match.cluster_id,
                        tags=content.tags,
                        format=content.format,
                    )
                )
            if kept == 0:
                self.logger.info(
                    "[candidate_selector] CLUSTER_EMPTY cluster_id=%s user_id=%s",
                    match.cluster_id,
                    user_id,
                )

        self.logger.debug(
            "[candidate_selector] SELECTED user_id=%s clusters=%s candidates=%s",
            user_id,
            len(clusters),
            len(candidates),
        )
        return candidates
