"""
Scorer contract shared by every scoring component.

A scorer maps (subject, target, context, factors) to a float in [0, 1].
Scorers never raise: missing input and internal failures both degrade to
the neutral value 0.5.
"""

import logging
import math
from typing import List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel

from ...models.candidate import Candidate
from ...models.cluster import ClusterInfo
from ...models.content import normalize_tag
from ...models.interaction import UserInteraction
from ...models.profile import RecommendationContext, UserProfile
from ...utils.scores import clamp

NEUTRAL_SCORE = 0.5


class ScoringSubject(BaseModel):
    """The user being recommended to."""

    user_id: str
    embedding: Optional[List[float]] = None
    profile: Optional[UserProfile] = None

    @property
    def interactions(self) -> Optional[List[UserInteraction]]:
        return self.profile.interactions if self.profile is not None else None


class ScoringTarget(BaseModel):
    """A candidate and the cluster it was selected from; either may be absent."""

    candidate: Optional[Candidate] = None
    cluster: Optional[ClusterInfo] = None

    @property
    def topics(self) -> List[str]:
        if self.candidate is not None and self.candidate.tags:
            raw = self.candidate.tags
        elif self.cluster is not None:
            raw = self.cluster.topics
        else:
            raw = []
        return [t for t in (normalize_tag(x) for x in raw) if t]


class Scorer(Protocol):
    name: str

    def score(
        self,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext] = None,
        factors: Optional[BaseModel] = None,
    ) -> float:
        ...


def weighted_mean(components: Sequence[Tuple[Optional[float], float]]) -> Optional[float]:
    """Mean of present (value, weight) pairs; None when nothing is present."""
    present = [(v, w) for v, w in components if v is not None and w > 0]
    total = sum(w for _, w in present)
    if total <= 0:
        return None
    return sum(v * w for v, w in present) / total


class BaseScorer:
    """Wraps `_score` so callers always get a finite value in [0, 1]."""

    name = "base"
    factors_type = BaseModel

    def __init__(self, factors: Optional[BaseModel] = None, logger: Optional[logging.Logger] = None):
        self.factors = factors if factors is not None else self.factors_type()
        self.logger = logger or logging.getLogger(__name__)

    def score(
        self,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext] = None,
        factors: Optional[BaseModel] = None,
    ) -> float:
        factors = factors if factors is not None else self.factors
        try:
            value = self._score(subject, target, context, factors)
        except Exception as e:
            self.logger.warning(
                "[%s_scorer] SCORER_FAILED user_id=%s candidate_id=%s error=%s",
                self.name,
                subject.user_id,
                target.candidate.id if target.candidate else None,
                e,
            )
            return NEUTRAL_SCORE
        if value is None or not math.isfinite(value):
            return NEUTRAL_SCORE
        return clamp(value)

    def _score(
        self,
        subject: ScoringSubject,
        target: ScoringTarget,
        context: Optional[RecommendationContext],
        factors,
    ) -> Optional[float]:
        raise NotImplementedError
