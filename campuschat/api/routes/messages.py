# campuschat/api/routes/messages.py

from fastapi import APIRouter, Depends

from campuschat.api.dependencies import get_state
from campuschat.core.state import AppState
from campuschat.models.models import InboundMessage

# ============================================================================
# INBOUND MESSAGE INTAKE
# ============================================================================

router = APIRouter(tags=["Messages"])


@router.post("/messages")
async def receive_message(message: InboundMessage, state: AppState = Depends(get_state)):
    """
    Hand an inbound message from the transport to the router.

    Flow:
        1. Optional presence claim is recorded
        2. Topic must be joined
        3. Sender must have live presence for the topic's campus
        4. Unread count of the conversation is incremented

    Returns:
        dict: {"accepted": bool}, with no reason on rejection
    """
    return {"accepted": state.router.handle(message)}
