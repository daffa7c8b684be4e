# campuschat/api/routes/health.py

from fastapi import APIRouter, Depends

from campuschat.api.dependencies import get_state
from campuschat.core.state import AppState

router = APIRouter()


@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current status, joined conversation count and presence entries.

    Returns:
        dict: Status, joined count, presence entry count, store backend
    """
    return {
        "status": "healthy",
        "account_id": state.settings.ACCOUNT_ID,
        "store_backend": state.settings.STORE_BACKEND,
        "joined_conversations": len(state.store),
        "presence_entries": len(state.gate),
    }
