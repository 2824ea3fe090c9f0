"""User embeddings, interactions and recommendations."""

import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from swipe_engine.models.interaction import InteractionType, UserInteraction, classify_view
from swipe_engine.models.profile import OnboardingData, RecommendationContext
from swipe_engine.utils.scores import utcnow

from ..models import (
    BuildEmbeddingRequest,
    CandidateCard,
    EmbeddingResponse,
    InteractionRequest,
    InteractionResponse,
    RecommendationResponse,
)
from ..state import get_state

router = APIRouter()


def _is_known_user(state, user_id: str) -> bool:
    if state.engine.user_store.get(user_id) is not None:
        return True
    return bool(state.interaction_log.recent(user_id, 1))


def _interaction_type(request: InteractionRequest) -> str:
    kind = request.type.strip().lower()
    if kind == InteractionType.VIEW.value and request.duration_seconds is not None:
        return classify_view(request.duration_seconds, request.watch_percentage or 0.0).value
    return kind


@router.post("/{user_id}/embedding", response_model=EmbeddingResponse)
def build_user_embedding(user_id: str, request: Optional[BuildEmbeddingRequest] = None):
    """
    Seed from onboarding data when given; otherwise rebuild from the
    user's interaction history.
    """
    request = request or BuildEmbeddingRequest()
    engine = get_state().engine
    if request.onboarding is not None:
        embedding = engine.initialize_user_embedding(
            user_id, OnboardingData(**request.onboarding.model_dump())
        )
    else:
        embedding = engine.build_user_embedding(user_id)
    return EmbeddingResponse.from_user_embedding(embedding, request.include_values)


@router.get("/{user_id}/embedding", response_model=EmbeddingResponse)
def get_user_embedding(user_id: str, include_values: bool = False):
    record = get_state().engine.user_store.get_record(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No embedding for user: {user_id}")
    return EmbeddingResponse.from_record(record, include_values)


@router.post("/{user_id}/interactions", response_model=InteractionResponse)
def record_interaction(user_id: str, request: InteractionRequest):
    """Append an interaction to the log and update the user's embedding."""
    state = get_state()
    metadata = dict(request.metadata)
    if request.entity_type == "content":
        content = state.content_repository.find(request.entity_id)
        if content is None:
            raise HTTPException(status_code=404, detail=f"Content not found: {request.entity_id}")
        metadata.setdefault("owner_id", content.owner_id)
        if content.format:
            metadata.setdefault("format", content.format)
        topics = request.topics or content.tags
    else:
        topics = request.topics
    if request.duration_seconds is not None:
        metadata.setdefault("duration", request.duration_seconds)
    if request.watch_percentage is not None:
        metadata.setdefault("completion_rate", request.watch_percentage / 100.0)

    interaction = UserInteraction(
        id=request.id or uuid.uuid4().hex,
        user_id=user_id,
        entity_id=request.entity_id,
        entity_type=request.entity_type,
        type=_interaction_type(request),
        timestamp=request.timestamp or utcnow(),
        topics=topics,
        metadata=metadata,
    )
    embedding = state.engine.record_interaction(interaction)
    return InteractionResponse(
        interaction_id=interaction.id,
        type=interaction.type,
        embedding=EmbeddingResponse.from_user_embedding(embedding),
    )


@router.get("/{user_id}/recommendations", response_model=RecommendationResponse)
def get_recommendations(
    user_id: str,
    limit: Optional[int] = Query(None, ge=1, le=200),
    hour: Optional[int] = Query(None, ge=0, le=23),
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
):
    """Ranked candidates for the user's next swipe batch."""
    state = get_state()
    if not _is_known_user(state, user_id):
        raise HTTPException(status_code=404, detail=f"Unknown user: {user_id}")
    context = RecommendationContext(time_of_day=hour, day_of_week=day_of_week)
    result = state.engine.select_and_score_candidates(user_id, context, limit)
    cards = [
        CandidateCard(
            id=c.id,
            owner_id=c.owner_id,
            created_at=c.created_at,
            cluster_id=c.cluster_id,
            cluster_score=c.cluster_score,
            final_score=c.final_score,
            tags=c.tags,
            breakdown=c.breakdown.model_dump(exclude={"extra"}) | c.breakdown.extra,
            queue_position=i + 1,
        )
        for i, c in enumerate(result.candidates)
    ]
    return RecommendationResponse(
        user_id=result.user_id,
        candidates=cards,
        partial=result.partial,
        no_candidates=result.no_candidates,
        matched_clusters=result.matched_clusters,
        embedding_source=result.embedding_source,
    )
