"""
Turns structured signals into the natural-language-like text
handed to the TextEmbedder.
"""

import re
import zlib
from typing import Iterable, List

from ..models.content import ContentSignals, normalize_tag
from ..models.interaction import UserInteraction
from ..models.profile import OnboardingData, UserSignals

TOKEN_PATTERN = re.compile(r"#?\w+")


def hashtags(tags: Iterable[str]) -> str:
    return " ".join(f"#{normalize_tag(t)}" for t in tags if normalize_tag(t))


def _interaction_phrase(interaction: UserInteraction) -> str:
    phrase = f"{interaction.type} {interaction.entity_type}"
    if interaction.topics:
        phrase += f" about {hashtags(interaction.topics)}"
    return phrase


def user_feature_text(signals: UserSignals) -> str:
    parts: List[str] = []

    if signals.interaction_history:
        phrases = ", ".join(_interaction_phrase(i) for i in signals.interaction_history)
        parts.append(f"Interactions: {phrases}")

    if signals.viewing_patterns:
        patterns = ", ".join(
            f"{p.content_type} (average duration: {p.average_duration:g}s, "
            f"completion rate: {p.completion_rate * 100:g}%)"
            for p in signals.viewing_patterns
        )
        parts.append(f"Viewing patterns: {patterns}")

    if signals.content_preferences:
        parts.append(f"Preferences: {', '.join(signals.content_preferences)}")

    demo = signals.demographics
    if demo is not None:
        info: List[str] = []
        if demo.age_range:
            info.append(f"age {demo.age_range}")
        if demo.location:
            info.append(f"location {demo.location}")
        if demo.languages:
            info.append(f"languages: {', '.join(demo.languages)}")
        if demo.interests:
            info.append(f"interests: {', '.join(demo.interests)}")
        if info:
            parts.append(f"Demographics: {'; '.join(info)}")

    return "\n".join(parts)


def onboarding_feature_text(data: OnboardingData) -> str:
    parts: List[str] = []
    if data.interests:
        parts.append(f"Interests: {', '.join(data.interests)} {hashtags(data.interests)}")
    if data.languages:
        parts.append(f"Languages: {', '.join(data.languages)}")
    if data.age_range:
        parts.append(f"Age range: {data.age_range}")
    if data.location:
        parts.append(f"Location: {data.location}")
    return "\n".join(parts)


def interaction_feature_text(interaction: UserInteraction) -> str:
    parts = [f"Interaction type: {interaction.type} {interaction.entity_type}"]
    if interaction.topics:
        parts.append(f"Topics: {hashtags(interaction.topics)}")
    if interaction.metadata:
        entries = ", ".join(f"{k}: {v}" for k, v in sorted(interaction.metadata.items()))
        parts.append(f"Metadata: {entries}")
    return "\n".join(parts)


def content_text(signals: ContentSignals) -> str:
    return signals.text.strip()


def content_tags_text(signals: ContentSignals) -> str:
    return hashtags(signals.tags)


def stable_slot(value: str, slots: int) -> int:
    """Same value, same slot, across processes (unlike hash())."""
    return zlib.crc32(value.strip().lower().encode("utf-8")) % slots


def token_hash_vector(text: str, dimension: int) -> List[float]:
    """Bag of tokens hashed into `dimension` slots (unnormalized counts)."""
    vector = [0.0] * dimension
    for token in TOKEN_PATTERN.findall(text.lower()):
        vector[stable_slot(token, dimension)] += 1.0
    return vector
