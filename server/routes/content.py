"""Content registration: store metadata and embed it."""

from fastapi import APIRouter, HTTPException

from swipe_engine.models.content import ContentMetadata, ContentSignals
from swipe_engine.utils.scores import utcnow

from ..models import ContentRequest, ContentResponse
from ..models.common import EmbeddingResponse
from ..state import get_state

router = APIRouter()


@router.post("", response_model=ContentResponse)
def register_content(request: ContentRequest):
    """Register content metadata and generate its embedding."""
    state = get_state()
    created_at = request.created_at or utcnow()
    state.content_repository.add(
        ContentMetadata(
            id=request.id,
            owner_id=request.owner_id,
            created_at=created_at,
            counters=request.counters,
            tags=request.tags,
            format=request.format,
            status=request.status,
            visibility=request.visibility,
        )
    )
    embedding = state.engine.embed_content(
        ContentSignals(
            content_id=request.id,
            text=request.text,
            tags=request.tags,
            counters=request.counters,
            author_id=request.owner_id,
            created_at=created_at,
        )
    )
    return ContentResponse(
        content_id=request.id,
        source=embedding.metadata.source,
        error=embedding.metadata.error,
    )


@router.get("/{content_id}/embedding", response_model=EmbeddingResponse)
def get_content_embedding(content_id: str, include_values: bool = False):
    state = get_state()
    record = state.engine.content_store.get_record(content_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Content not found: {content_id}")
    return EmbeddingResponse.from_record(record, include_values)
