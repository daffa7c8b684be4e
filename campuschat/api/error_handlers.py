# campuschat/api/error_handlers.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from campuschat.core.errors import InvalidConversationId

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register global error handlers on the FastAPI app."""

    @app.exception_handler(InvalidConversationId)
    async def invalid_conversation_id_handler(request: Request, exc: InvalidConversationId):
        logger.warning(f"Invalid conversation id on {request.url.path}: {exc.reason}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Invalid conversation id: {exc.reason}"},
        )
