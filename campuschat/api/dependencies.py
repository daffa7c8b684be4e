# campuschat/api/dependencies.py

from fastapi import Request

from campuschat.core.state import AppState
from campuschat.services import topic_ids


def get_state(request: Request) -> AppState:
    """AppState built by create_app and stored on the application."""
    return request.app.state.chat


def conversation_id_from_path(id_hex: str) -> bytes:
    """Decode the {id_hex} path parameter. Malformed IDs become a 400 response."""
    return topic_ids.from_hex(id_hex)
