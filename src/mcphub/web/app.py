import logging
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from .api.market import router as market_router
from .api.vector_search import router as vector_search_router
from .context import AppContext, build_context

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Create the API application around an existing or freshly built context."""
    if context is None:
        context = build_context()

    app = FastAPI(title="mcphub", version=__version__)
    app.state.context = context
    app.state.registry = context.registry
    app.state.search_service = context.search_service

    app.include_router(vector_search_router)
    app.include_router(market_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
