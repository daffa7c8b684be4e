# campuschat/services/message_router.py

from __future__ import annotations

from threading import Lock
from typing import Any, Dict
import logging

from pydantic import ValidationError

from campuschat.core.errors import InvalidConversationId
from campuschat.models.models import InboundMessage
from campuschat.services import topic_ids
from campuschat.services.conversation_store import ConversationStore
from campuschat.services.presence_gate import PresenceGate

logger = logging.getLogger(__name__)


# ============================================================================
# INBOUND MESSAGE ROUTER
# ============================================================================

class MessageRouter:
    """
    Decides whether an inbound message reaches the higher layers.

    Flow for each message handed over by the transport:
        1. A piggy-backed presence claim is recorded in the PresenceGate
        2. The topic must be a conversation the local user has joined, or one
           of the always-accessible campus topics (Announcements, Broadcast)
        3. The sender must hold a live presence claim for that topic's campus
        4. Accepted messages on joined topics bump the unread count

    The result is a bare bool: rejected messages carry no reason, so peers
    can't use the router to probe membership.
    """

    def __init__(self, gate: PresenceGate, store: ConversationStore) -> None:
        self.gate = gate
        self.store = store

        self._lock = Lock()
        self.accepted = 0
        self.rejected = 0

    def handle(self, message: InboundMessage) -> bool:
        if message.presence is not None:
            self.gate.accept_presence(message.sender_id, message.presence.campus_id, message.presence.exp)

        if message.conversation_id is None:
            # Presence-only announcement, nothing to deliver
            return False

        try:
            conversation_id = topic_ids.from_hex(message.conversation_id)
        except InvalidConversationId:
            return self._reject("malformed conversation id")

        joined = self.store.get_joined_conversation(conversation_id)
        if joined is None:
            if topic_ids.is_always_accessible(conversation_id):
                return self._accept_reserved(conversation_id, message.sender_id)
            return self._reject("conversation not joined")

        if not self.gate.should_accept_message(message.sender_id, joined.conversation.campus_id):
            return self._reject("no live presence for campus")

        self.store.increment_unread_count(conversation_id)
        with self._lock:
            self.accepted += 1
        logger.debug(f"➡ Accepted message for '{joined.conversation.display_name}'")
        return True

    def _accept_reserved(self, conversation_id: bytes, sender_id: str) -> bool:
        # Not joined, so there is no unread count to bump.
        if not self.gate.is_allowed(conversation_id, sender_id):
            return self._reject("no live presence for campus")
        with self._lock:
            self.accepted += 1
        logger.debug("➡ Accepted message for reserved topic")
        return True

    def handle_payload(self, data: Dict[str, Any]) -> bool:
        """Validate a decoded transport payload and route it."""
        try:
            message = InboundMessage.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Dropping malformed inbound payload: {e.error_count()} error(s)")
            return self._reject("malformed payload")
        return self.handle(message)

    def _reject(self, reason: str) -> bool:
        with self._lock:
            self.rejected += 1
        logger.debug(f"Rejected inbound message: {reason}")
        return False

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"accepted": self.accepted, "rejected": self.rejected}
