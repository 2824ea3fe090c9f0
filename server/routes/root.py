"""Root and health endpoints."""

from fastapi import APIRouter

from ..state import get_state

router = APIRouter()


@router.get("/")
def root():
    state = get_state()
    engine = state.engine
    clusters = engine.clusters
    return {
        "name": "Swipe Engine API",
        "version": "0.1.0",
        "status": "ready" if clusters else "no_clusters",
        "embedder": type(state.embedder).__name__ if state.embedder else None,
        "store": state.config.embedding_store,
        "current": {
            "clusters": len(clusters),
            "content_embeddings": engine.content_store.count(),
            "user_embeddings": engine.user_store.count(),
        },
        "endpoints": {
            "users": [
                "/api/users/{user_id}/embedding",
                "/api/users/{user_id}/interactions",
                "/api/users/{user_id}/recommendations",
            ],
            "content": ["/api/content"],
            "clusters": ["/api/clusters", "/api/clusters/recompute"],
        },
    }


@router.get("/api/health")
def health():
    state = get_state()
    return {
        "status": "healthy",
        "embedder": {"available": state.embedder is not None},
        "clusters": len(state.engine.clusters),
    }
