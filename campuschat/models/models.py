# campuschat/models/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from campuschat.services import topic_ids


class ConversationKind(str, Enum):
    COURSE = "course"
    SESSION = "session"
    GENERAL = "general"
    ANNOUNCEMENTS = "announcements"
    BROADCAST = "broadcast"
    DIRECT = "direct"


SYSTEM_KINDS = frozenset({ConversationKind.GENERAL, ConversationKind.ANNOUNCEMENTS})


class CourseInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    department: str
    number: str
    term: str


class SessionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    slot: str
    building: str
    room: str


class Conversation(BaseModel):
    """
    Semantic identity of a chat topic.

    Conversations are values: the same attributes always rebuild the same
    Conversation, so nothing but membership needs to be stored. Use the
    factory classmethods rather than the constructor so the ID always matches
    the attributes.
    """

    model_config = ConfigDict(frozen=True)

    id: bytes
    kind: ConversationKind
    campus_id: str
    display_name: str
    course: Optional[CourseInfo] = None
    session: Optional[SessionInfo] = None
    peers: Optional[Tuple[str, str]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _decode_id(cls, value):
        if isinstance(value, str):
            return topic_ids.from_hex(value)
        return value

    @field_validator("id")
    @classmethod
    def _check_id_size(cls, value: bytes) -> bytes:
        if len(value) != topic_ids.CONVERSATION_ID_SIZE:
            raise ValueError(f"conversation id must be {topic_ids.CONVERSATION_ID_SIZE} bytes")
        return value

    @field_serializer("id", when_used="json")
    def _encode_id(self, value: bytes) -> str:
        return topic_ids.to_hex(value)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def course_conversation(
        cls,
        department: str,
        number: str,
        term: str,
        campus_id: str,
        session: Optional[SessionInfo] = None,
    ) -> "Conversation":
        course_segment = topic_ids.course_id(department, number, term)
        if session is not None:
            session_segment = topic_ids.session_id(session.date, session.slot, session.building, session.room)
            display_name = f"{department}-{number} ({session.slot})"
            kind = ConversationKind.SESSION
        else:
            session_segment = topic_ids.EMPTY_SESSION
            display_name = f"{department}-{number}"
            kind = ConversationKind.COURSE

        return cls(
            id=topic_ids.topic_code(campus_id, course_segment, session_segment),
            kind=kind,
            campus_id=campus_id,
            display_name=display_name,
            course=CourseInfo(department=department, number=number, term=term),
            session=session,
        )

    @classmethod
    def announcements(cls, campus_id: str) -> "Conversation":
        return cls(
            id=topic_ids.announcements_id(campus_id),
            kind=ConversationKind.ANNOUNCEMENTS,
            campus_id=campus_id,
            display_name="Announcements",
        )

    @classmethod
    def general(cls, campus_id: str) -> "Conversation":
        return cls(
            id=topic_ids.general_id(campus_id),
            kind=ConversationKind.GENERAL,
            campus_id=campus_id,
            display_name="General",
        )

    @classmethod
    def broadcast(cls, campus_id: str) -> "Conversation":
        return cls(
            id=topic_ids.broadcast_id(campus_id),
            kind=ConversationKind.BROADCAST,
            campus_id=campus_id,
            display_name="Broadcast",
        )

    @classmethod
    def direct(cls, peer_a: str, peer_b: str, campus_id: str) -> "Conversation":
        low, high = sorted((peer_a, peer_b))
        return cls(
            id=topic_ids.dm_id(peer_a, peer_b, campus_id),
            kind=ConversationKind.DIRECT,
            campus_id=campus_id,
            display_name=f"{low} & {high}",
            peers=(low, high),
        )

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def id_hex(self) -> str:
        return topic_ids.to_hex(self.id)

    @property
    def is_system(self) -> bool:
        return self.kind in SYSTEM_KINDS

    @property
    def is_course(self) -> bool:
        return self.course is not None


class JoinedConversation(BaseModel):
    """Per-conversation local state, owned by ConversationStore."""

    conversation: Conversation
    is_favorite: bool = False
    is_muted: bool = False
    unread_count: int = Field(default=0, ge=0)
    last_read_at: Optional[datetime] = None
    joined_at: datetime


# ============================================================================
# REQUEST MODELS
# ============================================================================

class JoinCourseRequest(BaseModel):
    campus_id: str
    department: str
    number: str
    term: str
    session: Optional[SessionInfo] = None


class AutoJoinRequest(BaseModel):
    campus_id: Optional[str] = None


class JoinDirectRequest(BaseModel):
    campus_id: str
    peer_a: str
    peer_b: str


class ToggleRequest(BaseModel):
    value: Optional[bool] = None


class PresenceClaim(BaseModel):
    campus_id: str
    exp: int  # unix seconds claimed by the sender


class PresenceAssertion(PresenceClaim):
    sender_id: str


class InboundMessage(BaseModel):
    """A message as handed over by the transport layer."""

    sender_id: str
    conversation_id: Optional[str] = None  # hex
    content: Optional[str] = ""
    presence: Optional[PresenceClaim] = None
