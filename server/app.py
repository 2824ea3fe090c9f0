"""
Swipe Engine API — FastAPI app factory.

Use: uvicorn server.app:app
Or:  from server import app
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from swipe_engine.errors import ConfigurationError, OperationCancelled

from .routes import register_routes
from .state import get_state

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(OperationCancelled)
    async def operation_cancelled(request: Request, exc: OperationCancelled):
        return JSONResponse(status_code=504, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Build FastAPI app with CORS, routes, and startup."""
    app = FastAPI(
        title="Swipe Engine API",
        description="Embedding-based candidate selection and scoring for a swipe feed",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)
    register_routes(app)

    @app.on_event("startup")
    def _startup_logging():
        state = get_state()
        ok, errors = state.config.validate()
        for error in errors:
            logger.warning("[startup] CONFIG_INVALID error=%s", error)
        logger.info(
            "[startup] READY store=%s embedder=%s dimension=%s",
            state.config.embedding_store,
            type(state.embedder).__name__ if state.embedder else None,
            state.engine_config.embedding.dimension,
        )

    return app


app = create_app()
