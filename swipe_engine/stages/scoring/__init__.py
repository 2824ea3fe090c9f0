"""Scoring components and the combiner."""

from .affinity import AffinityScorer
from .base import NEUTRAL_SCORE, BaseScorer, Scorer, ScoringSubject, ScoringTarget, weighted_mean
from .combiner import ScoreCombiner, default_scorers
from .diversity import DiversityScorer
from .engagement import EngagementScorer
from .novelty import NoveltyScorer
from .quality import QualityScorer
from .temporal import TemporalScorer
