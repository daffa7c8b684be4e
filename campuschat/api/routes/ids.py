# campuschat/api/routes/ids.py

from typing import Optional

from fastapi import APIRouter

from campuschat.models.models import Conversation, SessionInfo
from campuschat.services import topic_ids

router = APIRouter(prefix="/ids", tags=["Identifiers"])


@router.get("/course")
async def course_conversation_id(
    campus_id: str,
    department: str,
    number: str,
    term: str,
    date: Optional[str] = None,
    slot: Optional[str] = None,
    building: Optional[str] = None,
    room: Optional[str] = None,
):
    """
    Derive a course conversation ID without joining it.

    A session ID segment is included only when all four session fields are given.
    """
    session = None
    if date is not None and slot is not None and building is not None and room is not None:
        session = SessionInfo(date=date, slot=slot, building=building, room=room)
    conversation = Conversation.course_conversation(department, number, term, campus_id, session)
    return {"id": conversation.id_hex, "kind": conversation.kind, "display_name": conversation.display_name}


@router.get("/system/{campus_id}")
async def system_conversation_ids(campus_id: str):
    return {
        "announcements": topic_ids.to_hex(topic_ids.announcements_id(campus_id)),
        "general": topic_ids.to_hex(topic_ids.general_id(campus_id)),
        "broadcast": topic_ids.to_hex(topic_ids.broadcast_id(campus_id)),
    }
