"""
User embedding service — builds a user's vector from interaction history,
viewing patterns, declared preferences and demographics, and keeps it
current with an exponential-moving-average update per interaction.

When the text embedder is missing or fails, a lower-fidelity vector is
derived from numeric features instead; that path never raises.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Sequence

import numpy as np

from ..errors import EmbeddingUnavailable
from ..models.config import EmbeddingSettings
from ..models.embedding import EmbeddingResult, EmbeddingVector
from ..models.interaction import InteractionType, UserInteraction
from ..models.profile import Demographics, OnboardingData, UserSignals
from ..utils.scores import clamp, days_since
from ..utils.vectors import normalize_l2, resize_vector
from .feature_text import (
    interaction_feature_text,
    onboarding_feature_text,
    stable_slot,
    user_feature_text,
)
from .text_embedder import TextEmbedder, embed_text

AGE_RANGE_BUCKETS = {
    "13-17": 0.0,
    "18-24": 0.2,
    "25-34": 0.4,
    "35-44": 0.6,
    "45-54": 0.8,
    "55+": 1.0,
}

INTERACTION_SLOTS: List[str] = [t.value for t in InteractionType]


def blend(current: Sequence[float], incoming: Sequence[float], weight: float) -> List[float]:
    """current*(1-w) + incoming*w, L2-normalized."""
    w = clamp(weight)
    mixed = (1.0 - w) * np.asarray(current, dtype=float) + w * np.asarray(incoming, dtype=float)
    return normalize_l2(mixed)


class UserEmbeddingService:
    """
    Usage:
        service = UserEmbeddingService(embedder, settings)
        result = service.generate(signals)          # EmbeddingResult
        vector = service.update(result.vector, interaction)
    """

    def __init__(
        self,
        embedder: Optional[TextEmbedder],
        settings: Optional[EmbeddingSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.embedder = embedder
        self.settings = settings or EmbeddingSettings()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def dimension(self) -> int:
        return self.settings.dimension

    @property
    def model_version(self) -> str:
        return getattr(self.embedder, "model_name", None) or "unknown"

    def _embed(self, text: str) -> List[float]:
        return embed_text(self.embedder, text, self.dimension)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate(self, signals: UserSignals) -> EmbeddingResult:
        """Embed the user's feature text; numeric fallback on embedder failure."""
        try:
            values = self._embed(user_feature_text(signals))
        except EmbeddingUnavailable as e:
            self.logger.warning(
                "[embedding_fallback] EMBEDDER_FAILED user_id=%s error=%s", signals.user_id, e
            )
            return self._fallback_result(signals, str(e))
        return EmbeddingResult(vector=EmbeddingVector.from_values(values), source="model")

    def generate_initial(self, user_id: str, onboarding: OnboardingData) -> EmbeddingResult:
        """First embedding for a user with no interactions, from onboarding data."""
        try:
            values = self._embed(onboarding_feature_text(onboarding))
        except EmbeddingUnavailable as e:
            self.logger.warning(
                "[embedding_fallback] INITIAL_EMBEDDER_FAILED user_id=%s error=%s", user_id, e
            )
            signals = UserSignals(
                user_id=user_id,
                content_preferences=onboarding.interests,
                demographics=Demographics(
                    age_range=onboarding.age_range,
                    location=onboarding.location,
                    languages=onboarding.languages,
                    interests=onboarding.interests,
                ),
            )
            return self._fallback_result(signals, str(e))
        return EmbeddingResult(vector=EmbeddingVector.from_values(values), source="model")

    def _fallback_result(self, signals: UserSignals, reason: str) -> EmbeddingResult:
        zeros = EmbeddingVector.zeros(self.dimension)
        try:
            values = self.fallback_features(signals)
        except Exception as e:
            self.logger.error(
                "[embedding_fallback] FALLBACK_FAILED user_id=%s error=%s", signals.user_id, e
            )
            return EmbeddingResult(vector=zeros, source="error", error=f"{reason}; fallback failed: {e}")
        if not any(values):
            return EmbeddingResult(vector=zeros, source="error", error=f"{reason}; no usable signals")
        return EmbeddingResult(vector=EmbeddingVector.from_values(values), source="fallback", error=reason)

    def fallback_features(self, signals: UserSignals) -> List[float]:
        """
        Deterministic numeric vector:
        [interaction type shares | avg duration/100, avg completion |
         preference one-hot slots | demographic buckets], resized and L2-normalized.
        """
        features: List[float] = []

        shares = [0.0] * len(INTERACTION_SLOTS)
        history = signals.interaction_history
        for interaction in history:
            if interaction.type in INTERACTION_SLOTS:
                shares[INTERACTION_SLOTS.index(interaction.type)] += 1.0 / len(history)
        features.extend(shares)

        patterns = signals.viewing_patterns
        if patterns:
            avg_duration = sum(p.average_duration for p in patterns) / len(patterns)
            avg_completion = sum(p.completion_rate for p in patterns) / len(patterns)
            features.extend([avg_duration / 100.0, avg_completion])
        else:
            features.extend([0.0, 0.0])

        slots = self.settings.preference_slots
        preferences = [0.0] * slots
        if slots:
            for pref in signals.content_preferences:
                preferences[stable_slot(pref, slots)] = 1.0
        features.extend(preferences)

        features.extend(self._demographic_features(signals.demographics))
        return normalize_l2(resize_vector(features, self.dimension))

    @staticmethod
    def _demographic_features(demo: Optional[Demographics]) -> List[float]:
        if demo is None:
            return [0.0] * 5
        age = AGE_RANGE_BUCKETS.get(demo.age_range or "", 0.0)
        location = (stable_slot(demo.location, 1000) / 1000.0) if demo.location else 0.0
        return [
            age,
            location,
            min(len(demo.languages) / 5.0, 1.0),
            min(len(demo.interests) / 10.0, 1.0),
            1.0,
        ]

    # -------------------------------------------------------------------------
    # Incremental update
    # -------------------------------------------------------------------------

    def interaction_vector(self, interaction: UserInteraction) -> List[float]:
        """Embedding of a single interaction; numeric fallback on embedder failure."""
        try:
            return self._embed(interaction_feature_text(interaction))
        except EmbeddingUnavailable as e:
            self.logger.info(
                "[embedding_fallback] INTERACTION_FALLBACK interaction_id=%s error=%s",
                interaction.id,
                e,
            )
        features = [0.0] * len(INTERACTION_SLOTS)
        if interaction.type in INTERACTION_SLOTS:
            features[INTERACTION_SLOTS.index(interaction.type)] = 1.0
        for value in interaction.metadata.values():
            if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
                features.append(float(value))
        return normalize_l2(resize_vector(features, self.dimension))

    def update(self, current: EmbeddingVector, interaction: UserInteraction) -> EmbeddingVector:
        """
        EMA update: current*(1-w) + interaction*w, L2-normalized, where w is
        the interaction type's blend weight clipped to [0, 1]. A zero weight
        returns `current` unchanged.
        """
        weight = self.settings.blend_weight(interaction.type)
        if weight == 0.0:
            self.logger.debug(
                "[user_embedding] ZERO_WEIGHT_SKIP user_id=%s type=%s",
                interaction.user_id,
                interaction.type,
            )
            return current
        values = list(current.values)
        if len(values) != self.dimension:
            self.logger.warning(
                "[user_embedding] CURRENT_DIM_MISMATCH user_id=%s current=%s configured=%s",
                interaction.user_id,
                len(values),
                self.dimension,
            )
            values = resize_vector(values, self.dimension)
        return current.with_values(blend(values, self.interaction_vector(interaction), weight))

    # -------------------------------------------------------------------------
    # Activeness
    # -------------------------------------------------------------------------

    def activeness_factor(
        self,
        interactions: Sequence[UserInteraction],
        window_days: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> float:
        """
        Recency (0.6), frequency (0.3) and diversity (0.1) over the window,
        in [0, 1]. 0.0 when there is no activity inside the window.
        """
        window = window_days or self.settings.activeness_window_days
        recent = [i for i in interactions if days_since(i.timestamp, now) <= window]
        if not recent:
            return 0.0
        ordered = sorted(recent, key=lambda i: i.timestamp, reverse=True)
        n = len(ordered)

        recency = sum(
            math.exp(-days_since(i.timestamp, now) / window) * math.exp(-index / n)
            for index, i in enumerate(ordered)
        ) / n
        frequency = 1.0 / (1.0 + math.exp(-(n / window) + 3.0))
        unique_types = len({i.type for i in ordered})
        unique_entities = len({i.entity_id for i in ordered})
        diversity = 0.4 * min(unique_types / 5.0, 1.0) + 0.6 * min(unique_entities / 50.0, 1.0)

        s = self.settings
        weights = (
            s.activeness_recency_weight,
            s.activeness_frequency_weight,
            s.activeness_diversity_weight,
        )
        total = sum(weights)
        if total <= 0:
            return 0.0
        combined = (weights[0] * recency + weights[1] * frequency + weights[2] * diversity) / total
        return clamp(combined)
