# campuschat/main.py

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campuschat.api.error_handlers import register_error_handlers
from campuschat.api.routes import conversations, health, ids, messages, metrics, presence, root
from campuschat.core.config import Settings, settings as default_settings
from campuschat.core.logging import get_logger, setup_logging
from campuschat.core.state import AppState, build_state

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state: AppState = app.state.chat
    logger.info("🚀 Application starting - campus membership core enabled")

    if state.settings.CAMPUS_ID:
        state.store.auto_join_system_conversations(state.settings.CAMPUS_ID)
    if state.settings.PRESENCE_SWEEP_INTERVAL_SECONDS > 0:
        state.gate.start_sweeper(state.settings.PRESENCE_SWEEP_INTERVAL_SECONDS)

    yield

    state.close()
    logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None, state: Optional[AppState] = None) -> FastAPI:
    """
    Build the FastAPI application around one AppState.

    Args:
        settings: Settings to build state from (defaults to environment)
        state: Prebuilt state, mostly for tests; settings is ignored when given
    """
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Campus Chat - Membership Core", lifespan=lifespan)
    app.state.chat = state or build_state(settings)

    # CORS (relaxed for a local client)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(conversations.router)
    app.include_router(presence.router)
    app.include_router(messages.router)
    app.include_router(ids.router)

    return app


def __getattr__(name: str):
    # `uvicorn campuschat.main:app` builds the app on first access only
    if name == "app":
        global app
        app = create_app()
        return app
    raise AttributeError(name)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("campuschat.main:app", host="0.0.0.0", port=8000)
