# campuschat/services/topic_ids.py
"""
Deterministic conversation identifiers.

Every conversation ID is 32 bytes:

    [ campus segment (16) ][ topic segment (16) ]

The campus segment depends only on the campus identifier. The topic segment
is either course (8) ++ session (8), or a fixed pair of hashes reserved for a
system topic. Each 8-byte piece is a SHA-256 digest truncated to 64 bits.
"""

from __future__ import annotations

import binascii
import hashlib
from typing import Optional

from campuschat.core.errors import InvalidConversationId

SEGMENT_SIZE = 8
CAMPUS_SEGMENT_SIZE = 16
CONVERSATION_ID_SIZE = 32

# Course conversations without a session carry an all-zero session segment
EMPTY_SESSION = bytes(SEGMENT_SIZE)


def hash8(text: str) -> bytes:
    """First 8 bytes of SHA-256 over the UTF-8 encoding of text."""
    return hashlib.sha256(text.encode("utf-8")).digest()[:SEGMENT_SIZE]


# Reserved topic segments. Upper-case constants without "|" never collide
# with the "A|B|C" strings hashed for course and session segments.
ANNOUNCEMENTS_SEGMENT = hash8("ANNOUNCEMENTS") + hash8("SYSTEM")
GENERAL_SEGMENT = hash8("GENERAL") + hash8("CHAT")
BROADCAST_SEGMENT = hash8("BROADCAST") + hash8("PUBLIC")


def course_id(department: str, number: str, term: str) -> bytes:
    """Department and term are case-folded to upper; number is taken as-is."""
    return hash8(f"{department.upper()}|{number}|{term.upper()}")


def session_id(date: str, slot: str, building: str, room: str) -> bytes:
    return hash8(f"{date}|{slot}|{building}|{room}")


def campus_segment(campus_id: str) -> bytes:
    return hash8(f"campus|{campus_id}") + hash8(f"campus2|{campus_id}")


def topic_code(campus_id: str, course: bytes, session: bytes) -> bytes:
    return campus_segment(campus_id) + course + session


def announcements_id(campus_id: str) -> bytes:
    return campus_segment(campus_id) + ANNOUNCEMENTS_SEGMENT


def general_id(campus_id: str) -> bytes:
    return campus_segment(campus_id) + GENERAL_SEGMENT


def broadcast_id(campus_id: str) -> bytes:
    """Campus-wide broadcast topic, the replacement for untargeted public messages."""
    return campus_segment(campus_id) + BROADCAST_SEGMENT


def dm_id(peer_a: str, peer_b: str, campus_id: str) -> bytes:
    """
    Conversation ID for a 1:1 conversation.

    Peers are sorted first so both sides derive the same ID no matter who
    starts the conversation.
    """
    low, high = sorted((peer_a, peer_b))
    return campus_segment(campus_id) + hash8(f"DM|{low}") + hash8(f"DM|{high}")


def campus_prefix(conversation_id: bytes) -> Optional[bytes]:
    """Campus segment of a conversation ID, or None if the ID is not 32 bytes."""
    if len(conversation_id) != CONVERSATION_ID_SIZE:
        return None
    return conversation_id[:CAMPUS_SEGMENT_SIZE]


def to_hex(conversation_id: bytes) -> str:
    return conversation_id.hex()


def from_hex(value: str) -> bytes:
    """
    Decode a hex-encoded conversation ID.

    Raises:
        InvalidConversationId: if value is not exactly 32 bytes of hex
    """
    try:
        raw = bytes.fromhex(value)
    except (ValueError, TypeError, binascii.Error):
        raise InvalidConversationId(value) from None
    if len(raw) != CONVERSATION_ID_SIZE:
        raise InvalidConversationId(value, f"expected {CONVERSATION_ID_SIZE} bytes, got {len(raw)}")
    return raw


# Topics every campus member receives whether or not they joined them
ALWAYS_ACCESSIBLE_SEGMENTS = frozenset({ANNOUNCEMENTS_SEGMENT, BROADCAST_SEGMENT})


def is_always_accessible(conversation_id: bytes) -> bool:
    """True for a well-formed Announcements or Broadcast conversation ID."""
    if campus_prefix(conversation_id) is None:
        return False
    return conversation_id[CAMPUS_SEGMENT_SIZE:] in ALWAYS_ACCESSIBLE_SEGMENTS
