"""Pipeline stages: candidate selection and scoring."""

from .candidate_selector import CandidateSelector
from .scoring import ScoreCombiner, ScoringSubject, ScoringTarget, default_scorers
