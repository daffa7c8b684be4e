# campuschat/api/routes/presence.py

from fastapi import APIRouter, Depends

from campuschat.api.dependencies import get_state
from campuschat.core.state import AppState
from campuschat.models.models import PresenceAssertion

router = APIRouter(tags=["Presence"])


@router.post("/presence")
async def accept_presence(assertion: PresenceAssertion, state: AppState = Depends(get_state)):
    """
    Record a peer's presence claim.

    The claim is capped at PRESENCE_TTL_SECONDS from now. Already-expired
    claims are accepted too and simply never admit messages.
    """
    state.gate.accept_presence(assertion.sender_id, assertion.campus_id, assertion.exp)
    return {"status": "accepted"}
