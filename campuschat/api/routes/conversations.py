# campuschat/api/routes/conversations.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from campuschat.api.dependencies import conversation_id_from_path, get_state
from campuschat.core.state import AppState
from campuschat.models.models import (
    AutoJoinRequest,
    Conversation,
    JoinCourseRequest,
    JoinDirectRequest,
    JoinedConversation,
    ToggleRequest,
)

router = APIRouter(prefix="/conversations", tags=["Conversations"])

# ============================================================================
# READS
# ============================================================================

@router.get("", response_model=List[JoinedConversation])
async def list_conversations(state: AppState = Depends(get_state)):
    """
    List all joined conversations, most recently joined first.

    Returns:
        List[JoinedConversation]: Every joined conversation with its local state
    """
    return state.store.get_all_joined_conversations()


@router.get("/favorites", response_model=List[JoinedConversation])
async def list_favorites(state: AppState = Depends(get_state)):
    """Favorite conversations ordered by display name."""
    return state.store.get_favorite_conversations()


@router.get("/unread")
async def unread_counts(state: AppState = Depends(get_state)):
    return {
        "total": state.store.get_total_unread_count(),
        "unmuted": state.store.get_unmuted_unread_count(),
    }


@router.get("/{id_hex}", response_model=JoinedConversation)
async def get_conversation(
    conversation_id: bytes = Depends(conversation_id_from_path),
    state: AppState = Depends(get_state),
):
    """
    Get a joined conversation.

    Raises:
        HTTPException: 404 if the conversation is not joined
    """
    joined = state.store.get_joined_conversation(conversation_id)
    if joined is None:
        raise HTTPException(status_code=404, detail="Conversation not joined")
    return joined


# ============================================================================
# MEMBERSHIP
# ============================================================================

def _join(state: AppState, conversation: Conversation) -> Optional[JoinedConversation]:
    state.store.join_conversation(conversation)
    return state.store.get_joined_conversation(conversation.id)


@router.post("/course", response_model=JoinedConversation)
async def join_course(request: JoinCourseRequest, state: AppState = Depends(get_state)):
    """
    Derive a course (or course session) conversation and join it.

    Joining an already joined conversation returns it unchanged.
    """
    conversation = Conversation.course_conversation(
        department=request.department,
        number=request.number,
        term=request.term,
        campus_id=request.campus_id,
        session=request.session,
    )
    return _join(state, conversation)


@router.post("/direct", response_model=JoinedConversation)
async def join_direct(request: JoinDirectRequest, state: AppState = Depends(get_state)):
    conversation = Conversation.direct(request.peer_a, request.peer_b, request.campus_id)
    return _join(state, conversation)


@router.post("/system", response_model=List[JoinedConversation])
async def join_system(request: AutoJoinRequest, state: AppState = Depends(get_state)):
    """
    Auto-join and pin the campus Announcements and General conversations.

    Raises:
        HTTPException: 400 if no campus is given and CAMPUS_ID is not configured
    """
    campus_id = request.campus_id or state.settings.CAMPUS_ID
    if not campus_id:
        raise HTTPException(status_code=400, detail="campus_id required")
    return state.store.auto_join_system_conversations(campus_id)


@router.delete("/{id_hex}")
async def leave_conversation(
    conversation_id: bytes = Depends(conversation_id_from_path),
    state: AppState = Depends(get_state),
):
    """
    Leave a conversation. Leaving one that isn't joined is not an error.

    Returns:
        dict: Status and whether anything was removed
    """
    left = state.store.leave_conversation(conversation_id)
    return {"status": "left", "id": conversation_id.hex(), "was_joined": left}


# ============================================================================
# PER-CONVERSATION STATE
# ============================================================================
# Mutations on a conversation that isn't joined are no-ops, reported with
# "joined": false rather than 404 so a UI action racing a leave is harmless.

@router.post("/{id_hex}/favorite")
async def toggle_favorite(
    request: Optional[ToggleRequest] = None,
    conversation_id: bytes = Depends(conversation_id_from_path),
    state: AppState = Depends(get_state),
):
    value = request.value if request is not None else None
    applied = state.store.toggle_favorite(conversation_id, value)
    return {"joined": applied, "conversation": state.store.get_joined_conversation(conversation_id)}


@router.post("/{id_hex}/mute")
async def toggle_mute(
    request: Optional[ToggleRequest] = None,
    conversation_id: bytes = Depends(conversation_id_from_path),
    state: AppState = Depends(get_state),
):
    value = request.value if request is not None else None
    applied = state.store.toggle_mute(conversation_id, value)
    return {"joined": applied, "conversation": state.store.get_joined_conversation(conversation_id)}


@router.post("/{id_hex}/read")
async def mark_as_read(
    conversation_id: bytes = Depends(conversation_id_from_path),
    state: AppState = Depends(get_state),
):
    applied = state.store.mark_as_read(conversation_id)
    return {"joined": applied, "conversation": state.store.get_joined_conversation(conversation_id)}
