"""
User-side inputs: profile, structured embedding signals, onboarding data
and the per-request recommendation context.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..utils.scores import ensure_utc, utcnow
from .interaction import UserInteraction


class Demographics(BaseModel):
    age_range: Optional[str] = None
    location: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)


class ViewingPattern(BaseModel):
    content_type: str
    average_duration: float = 0.0
    completion_rate: float = 0.0
    frequency: int = 0


class UserSignals(BaseModel):
    """Structured signals an embedding is generated from."""

    user_id: str
    interaction_history: List[UserInteraction] = Field(default_factory=list)
    viewing_patterns: List[ViewingPattern] = Field(default_factory=list)
    content_preferences: List[str] = Field(default_factory=list)
    demographics: Optional[Demographics] = None


class OnboardingData(BaseModel):
    """Declared data used to seed a user's first embedding."""

    interests: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    age_range: Optional[str] = None
    location: Optional[str] = None


class UserProfile(BaseModel):
    """What the scorers know about a user beyond the embedding."""

    user_id: str
    interests: List[str] = Field(default_factory=list)
    interactions: List[UserInteraction] = Field(default_factory=list)
    demographics: Optional[Demographics] = None

    @property
    def interacted_ids(self) -> List[str]:
        return [i.entity_id for i in self.interactions]


def _weekday_sunday_first(dt: datetime) -> int:
    # datetime.weekday(): Monday=0; context uses Sunday=0.
    return (dt.weekday() + 1) % 7


class RecommendationContext(BaseModel):
    """
    Per-request context. `day_of_week` counts from Sunday=0.
    `now` anchors every age computation for the request.
    """

    time_of_day: Optional[int] = Field(default=None, ge=0, le=23)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    now: datetime = Field(default_factory=utcnow)
    location: Optional[str] = None
    device: Optional[str] = None
    session_id: Optional[str] = None
    # Topics the user engaged with earlier in this session.
    session_topics: List[str] = Field(default_factory=list)

    @field_validator("now")
    @classmethod
    def now_is_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @classmethod
    def at(cls, moment: datetime, **kwargs) -> "RecommendationContext":
        moment = ensure_utc(moment)
        return cls(
            time_of_day=moment.hour,
            day_of_week=_weekday_sunday_first(moment),
            now=moment,
            **kwargs,
        )

    @property
    def hour(self) -> int:
        return self.time_of_day if self.time_of_day is not None else self.now.hour

    @property
    def weekday(self) -> int:
        return self.day_of_week if self.day_of_week is not None else _weekday_sunday_first(self.now)

    @property
    def is_weekend(self) -> bool:
        return self.weekday in (0, 6)
