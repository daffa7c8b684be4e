# campuschat/services/conversation_store.py

from __future__ import annotations

from queue import Queue
from threading import Condition, Lock, Thread
from typing import Dict, List, Optional, Tuple
import logging
import time

from pydantic import ValidationError

from campuschat.core.clock import Clock, SystemClock
from campuschat.core.errors import CampusChatError
from campuschat.models.models import Conversation, JoinedConversation
from campuschat.services import topic_ids
from campuschat.services.persistence import (
    ConversationRepository,
    InMemoryRepository,
    Record,
    from_record,
    to_record,
)

logger = logging.getLogger(__name__)

# Queued durable operation: (op, id_hex, record)
_Op = Tuple[str, str, Optional[Record]]
_UPSERT = "upsert"
_DELETE = "delete"


# ============================================================================
# JOINED CONVERSATION STORE
# ============================================================================
class ConversationStore:
    """
    Registry of the conversations the local user has joined.

    This is the single source of truth for membership and per-conversation
    UI state (favorite, muted, unread count, last read time). One instance is
    built by the composition root and shared by reference; tests build their
    own.

    Persistence is write-behind:
        1. The in-memory map is mutated under the store lock
        2. A snapshot of the record is queued while still holding the lock,
           so the queue order matches the mutation order
        3. A single writer thread applies queued ops to the repository,
           outside the lock

    Reads never touch the repository. A failed write is logged and leaves
    memory as it is; memory stays authoritative for the rest of the process.
    Ops still queued when the process dies are lost, call flush() or close()
    at shutdown.

    Operations on a conversation that is not joined are silent no-ops and
    return False.

    Usage:
        store = ConversationStore(JsonFileRepository(Path("joined.json")))
        store.auto_join_system_conversations("mcgill")
        store.join_conversation(Conversation.course_conversation("COMP", "250", "F24", "mcgill"))
        for joined in store.get_all_joined_conversations():
            ...
    """

    def __init__(
        self,
        repository: Optional[ConversationRepository] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.repository = repository if repository is not None else InMemoryRepository()
        self.clock = clock or SystemClock()

        self._joined: Dict[bytes, JoinedConversation] = {}
        self._lock = Lock()

        self._queue: "Queue[Optional[_Op]]" = Queue()
        self._pending = 0
        self._idle = Condition()
        self.write_failures = 0

        self.load()

        self._writer = Thread(target=self._drain, name="conversation-store-writer", daemon=True)
        self._writer.start()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Load joined conversations from the repository.

        Runs once on construction. Records that fail to decode are skipped;
        if the repository itself can't be read the store starts empty.
        """
        try:
            records = self.repository.load_all()
        except CampusChatError as e:
            logger.error(f"Load error: {e}")
            records = {}

        loaded: Dict[bytes, JoinedConversation] = {}
        for id_hex, record in records.items():
            try:
                joined = from_record(id_hex, record)
            except (ValidationError, CampusChatError, TypeError, AttributeError) as e:
                logger.error(f"Skipping unreadable conversation {id_hex}: {e}")
                continue
            loaded[joined.conversation.id] = joined

        with self._lock:
            self._joined = loaded
        logger.info(f"✓ Loaded {len(loaded)} joined conversations")

    def _enqueue(self, op: str, conversation_id: bytes, record: Optional[Record] = None) -> None:
        # Caller must hold self._lock so queue order follows mutation order.
        with self._idle:
            self._pending += 1
        self._queue.put((op, topic_ids.to_hex(conversation_id), record))

    def _enqueue_upsert(self, joined: JoinedConversation) -> None:
        self._enqueue(_UPSERT, joined.conversation.id, to_record(joined))

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            op, id_hex, record = item
            try:
                if op == _UPSERT:
                    self.repository.upsert(id_hex, record)
                else:
                    self.repository.delete(id_hex)
            except Exception:
                self.write_failures += 1
                logger.exception(f"Save error: {op} {id_hex}")
            finally:
                with self._idle:
                    self._pending -= 1
                    if self._pending == 0:
                        self._idle.notify_all()

    def flush(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Block until every queued write has been applied.

        Returns:
            True if the queue drained, False if timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending:
                if deadline is None:
                    self._idle.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Flush queued writes and stop the writer thread."""
        self.flush(timeout)
        if self._writer.is_alive():
            self._queue.put(None)
            self._writer.join(timeout)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def join_conversation(self, conversation: Conversation) -> bool:
        """
        Join a conversation.

        Joining an already joined conversation changes nothing: flags and
        counters are kept.

        Returns:
            True if the conversation was newly joined
        """
        with self._lock:
            if conversation.id in self._joined:
                return False
            joined = JoinedConversation(conversation=conversation, joined_at=self.clock.now())
            self._joined[conversation.id] = joined
            self._enqueue_upsert(joined)

        logger.info(f"✓ Joined conversation: {conversation.display_name}")
        return True

    def leave_conversation(self, conversation_id: bytes) -> bool:
        """
        Leave a conversation.

        Returns:
            True if it was joined, False if there was nothing to leave
        """
        with self._lock:
            joined = self._joined.pop(conversation_id, None)
            if joined is None:
                return False
            self._enqueue(_DELETE, conversation_id)

        logger.info(f"✓ Left conversation: {joined.conversation.display_name}")
        return True

    def auto_join_system_conversations(self, campus_id: str) -> List[JoinedConversation]:
        """
        Join the campus Announcements and General conversations and pin them.

        Unlike a plain join, both end up with is_favorite=True, including when
        they were already joined and later unpinned.

        Returns:
            Copies of the two system conversations, announcements first
        """
        result = []
        with self._lock:
            for conversation in (Conversation.announcements(campus_id), Conversation.general(campus_id)):
                joined = self._joined.get(conversation.id)
                if joined is None:
                    joined = JoinedConversation(conversation=conversation, joined_at=self.clock.now())
                    self._joined[conversation.id] = joined
                joined.is_favorite = True
                self._enqueue_upsert(joined)
                result.append(joined.model_copy())

        logger.info(f"✓ Auto-joined system conversations for campus {campus_id}")
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_joined(self, conversation_id: bytes) -> bool:
        with self._lock:
            return conversation_id in self._joined

    def get_joined_conversation(self, conversation_id: bytes) -> Optional[JoinedConversation]:
        """Copy of the joined conversation, or None if not joined."""
        with self._lock:
            joined = self._joined.get(conversation_id)
            return joined.model_copy() if joined is not None else None

    def get_all_joined_conversations(self) -> List[JoinedConversation]:
        """
        All joined conversations, most recently joined first.

        Conversations joined at the same instant keep the order they were
        joined (or loaded) in.
        """
        with self._lock:
            snapshot = [joined.model_copy() for joined in self._joined.values()]
        return sorted(snapshot, key=lambda joined: joined.joined_at, reverse=True)

    def get_favorite_conversations(self) -> List[JoinedConversation]:
        """Favorites only, ordered by display name."""
        with self._lock:
            favorites = [joined.model_copy() for joined in self._joined.values() if joined.is_favorite]
        return sorted(favorites, key=lambda joined: joined.conversation.display_name)

    def get_total_unread_count(self) -> int:
        with self._lock:
            return sum(joined.unread_count for joined in self._joined.values())

    def get_unmuted_unread_count(self) -> int:
        with self._lock:
            return sum(joined.unread_count for joined in self._joined.values() if not joined.is_muted)

    def __len__(self) -> int:
        with self._lock:
            return len(self._joined)

    # ------------------------------------------------------------------
    # Per-conversation state
    # ------------------------------------------------------------------

    def toggle_favorite(self, conversation_id: bytes, value: Optional[bool] = None) -> bool:
        """Flip is_favorite, or set it to value when given."""
        with self._lock:
            joined = self._joined.get(conversation_id)
            if joined is None:
                return False
            joined.is_favorite = (not joined.is_favorite) if value is None else value
            self._enqueue_upsert(joined)
            return True

    def toggle_mute(self, conversation_id: bytes, value: Optional[bool] = None) -> bool:
        """Flip is_muted, or set it to value when given."""
        with self._lock:
            joined = self._joined.get(conversation_id)
            if joined is None:
                return False
            joined.is_muted = (not joined.is_muted) if value is None else value
            self._enqueue_upsert(joined)
            return True

    def increment_unread_count(self, conversation_id: bytes) -> bool:
        # Muted conversations still count; mute only affects notifications.
        with self._lock:
            joined = self._joined.get(conversation_id)
            if joined is None:
                return False
            joined.unread_count += 1
            self._enqueue_upsert(joined)
            return True

    def mark_as_read(self, conversation_id: bytes) -> bool:
        with self._lock:
            joined = self._joined.get(conversation_id)
            if joined is None:
                return False
            joined.unread_count = 0
            joined.last_read_at = self.clock.now()
            self._enqueue_upsert(joined)
            return True
