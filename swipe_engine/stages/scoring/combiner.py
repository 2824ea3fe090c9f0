"""
Score combiner and parallel scoring.

final = sum(weight_i * score_i) over enabled scorers (divided by the sum of
enabled weights when `normalize` is set). Candidates are scored on a bounded
thread pool; when the request timeout expires, whatever was scored so far is
ranked and returned as a partial result.
"""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ...models.candidate import Candidate, RankedCandidate, ScoreBreakdown
from ...models.cluster import ClusterInfo
from ...models.config import CombinerWeights, EngineConfig
from ...models.profile import RecommendationContext
from ...utils.scores import clamp
from .affinity import AffinityScorer
from .base import NEUTRAL_SCORE, Scorer, ScoringSubject, ScoringTarget
from .diversity import DiversityScorer
from .engagement import EngagementScorer
from .novelty import NoveltyScorer
from .quality import QualityScorer
from .temporal import TemporalScorer

BUILTIN_SCORERS = ("affinity", "temporal", "novelty", "diversity", "quality", "engagement")


def default_scorers(config: EngineConfig, logger: Optional[logging.Logger] = None) -> List[Scorer]:
    return [
        AffinityScorer(config.affinity, logger),
        TemporalScorer(config.temporal, logger),
        NoveltyScorer(config.novelty, logger),
        DiversityScorer(config.diversity, logger),
        QualityScorer(config.quality, logger),
        EngagementScorer(config.engagement, logger),
    ]


def _tie_break_key(policy: str):
    if policy == "cluster_score":
        return lambda c: (-c.final_score, -c.cluster_score, c.id)
    if policy == "id":
        return lambda c: (-c.final_score, c.id)
    # recency: most recent first
    return lambda c: (-c.final_score, -c.created_at.timestamp(), c.id)


class ScoreCombiner:
    """
    Usage:
        combiner = ScoreCombiner(default_scorers(config), config.combiner)
        ranked, partial = combiner.score_candidates(subject, candidates, clusters_by_id, context)
    """

    def __init__(
        self,
        scorers: Sequence[Scorer],
        weights: Optional[CombinerWeights] = None,
        max_workers: Optional[int] = None,
        timeout_seconds: float = 2.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.weights = weights or CombinerWeights()
        weight_map = self.weights.as_dict()
        # Only scorers with a positive weight run.
        self.scorers = [s for s in scorers if weight_map.get(s.name, 0.0) > 0]
        self.max_workers = max_workers or os.cpu_count() or 1
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    def _safe_score(
        self,
        scorer: Scorer,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext],
    ) -> float:
        # Scorers outside BaseScorer carry no guard of their own.
        try:
            value = float(scorer.score(subject, target, context))
        except Exception as e:
            self.logger.warning(
                "[score_combiner] SCORER_FAILED scorer=%s user_id=%s candidate_id=%s error=%s",
                scorer.name,
                subject.user_id,
                target.candidate.id if target.candidate is not None else None,
                e,
            )
            return NEUTRAL_SCORE
        if not math.isfinite(value):
            return NEUTRAL_SCORE
        return clamp(value)

    def combine(
        self,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext] = None,
    ) -> Tuple[float, ScoreBreakdown]:
        weight_map = self.weights.as_dict()
        scores: Dict[str, float] = {}
        for scorer in self.scorers:
            scores[scorer.name] = self._safe_score(scorer, subject, target, context)

        total_weight = sum(weight_map[name] for name in scores)
        weighted = sum(weight_map[name] * value for name, value in scores.items())
        if not scores:
            final = NEUTRAL_SCORE
        elif self.weights.normalize and total_weight > 0:
            final = weighted / total_weight
        else:
            final = weighted

        breakdown = ScoreBreakdown(
            **{name: value for name, value in scores.items() if name in BUILTIN_SCORERS},
            extra={name: value for name, value in scores.items() if name not in BUILTIN_SCORERS},
        )
        return final, breakdown

    def _rank_one(
        self,
        subject: ScoringSubject,
        candidate: Candidate,
        cluster: Optional[ClusterInfo],
        context: Optional[RecommendationContext],
    ) -> RankedCandidate:
        final, breakdown = self.combine(
            subject, ScoringTarget(candidate=candidate, cluster=cluster), context
        )
        return RankedCandidate(**candidate.model_dump(), final_score=final, breakdown=breakdown)

    def rank(self, ranked: List[RankedCandidate]) -> List[RankedCandidate]:
        return sorted(ranked, key=_tie_break_key(self.weights.tie_break))

    def score_candidates(
        self,
        subject: ScoringSubject,
        candidates: Sequence[Candidate],
        clusters_by_id: Mapping[str, ClusterInfo],
        context: Optional[RecommendationContext] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Tuple[List[RankedCandidate], bool]:
        """Score in parallel; returns (ranked candidates, partial)."""
        if not candidates:
            return [], False
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(candidates)))
        try:
            futures = [
                executor.submit(
                    self._rank_one,
                    subject,
                    candidate,
                    clusters_by_id.get(candidate.cluster_id) if candidate.cluster_id else None,
                    context,
                )
                for candidate in candidates
            ]
            done, not_done = wait(futures, timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        ranked: List[RankedCandidate] = []
        for future in futures:
            if future not in done:
                continue
            error = future.exception()
            if error is not None:
                self.logger.warning(
                    "[score_combiner] CANDIDATE_FAILED user_id=%s error=%s", subject.user_id, error
                )
                continue
            ranked.append(future.result())

        partial = bool(not_done)
        if partial:
            self.logger.warning(
                "[score_combiner] SCORING_TIMEOUT user_id=%s scored=%s total=%s timeout=%s",
                subject.user_id,
                len(ranked),
                len(candidates),
                timeout,
            )
        return self.rank(ranked), partial
