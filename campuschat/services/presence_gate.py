# campuschat/services/presence_gate.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Event, Lock, Thread
from typing import Dict, Optional, Union
import logging

from campuschat.core.clock import Clock, SystemClock
from campuschat.services import topic_ids

logger = logging.getLogger(__name__)

DEFAULT_PRESENCE_TTL_SECONDS = 15 * 60
DEFAULT_MAX_ENTRIES = 8192


@dataclass
class PresenceEntry:
    campus_id: str
    campus_prefix: bytes
    valid_until: float  # unix seconds
    last_access_at: float


# ============================================================================
# PRESENCE GATE
# ============================================================================

class PresenceGate:
    """
    Tracks which campus each sender currently claims to belong to.

    A presence claim is a soft admission hint, not a proof: peers advertise
    (campus_id, exp) and the gate remembers it until the earlier of the claimed
    expiry and now + TTL. Messages on campus-scoped topics are only accepted
    from senders with a live claim for that topic's campus.

    Entry states are implicit:
        absent  - never seen, or reclaimed by prune()
        live    - now < valid_until
        expired - now >= valid_until (kept until the next prune)

    Every failure (unknown sender, wrong campus, expired) is a plain False so
    callers cannot tell them apart.

    Usage:
        gate = PresenceGate()
        gate.accept_presence("peer-1", "mcgill", exp=int(time.time()) + 3600)
        gate.should_accept_message("peer-1", "mcgill")   # True
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        ttl_seconds: float = DEFAULT_PRESENCE_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self.clock = clock or SystemClock()
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries

        self._entries: Dict[str, PresenceEntry] = {}
        self._lock = Lock()

        # Counters surfaced by /metrics
        self.accepted = 0
        self.hits = 0
        self.misses = 0

        self._sweeper: Optional[Thread] = None
        self._stop_sweeper = Event()

    def _now(self) -> float:
        return self.clock.now().timestamp()

    def accept_presence(
        self,
        sender_id: str,
        campus_id: str,
        claimed_expiry: Union[int, float, datetime],
    ) -> None:
        """
        Record or overwrite the presence claim for sender_id.

        Args:
            sender_id: Identity of the advertising peer
            campus_id: Campus the peer claims membership of
            claimed_expiry: Expiry asserted by the peer, unix seconds or datetime

        Note:
            The stored expiry is capped at now + TTL. A claim that is already
            expired is still stored, so it overrides an older live claim.
        """
        if isinstance(claimed_expiry, datetime):
            claimed_expiry = claimed_expiry.timestamp()

        now = self._now()
        valid_until = min(float(claimed_expiry), now + self.ttl_seconds)

        with self._lock:
            self._entries[sender_id] = PresenceEntry(
                campus_id=campus_id,
                campus_prefix=topic_ids.campus_segment(campus_id),
                valid_until=valid_until,
                last_access_at=now,
            )
            self.accepted += 1
            if len(self._entries) > self.max_entries:
                self._trim(now)

        logger.debug("Presence accepted for campus=%s valid_for=%.0fs", campus_id, valid_until - now)

    def should_accept_message(self, sender_id: str, topic_campus_id: str) -> bool:
        """True iff sender_id has a live claim for exactly topic_campus_id."""
        now = self._now()
        with self._lock:
            entry = self._entries.get(sender_id)
            if entry is None or entry.campus_id != topic_campus_id or now >= entry.valid_until:
                self.misses += 1
                return False
            entry.last_access_at = now
            self.hits += 1
            return True

    def is_allowed(self, conversation_id: bytes, sender_id: str) -> bool:
        """
        Same check as should_accept_message, keyed by conversation ID.

        The sender's claimed campus is compared against the 16-byte campus
        prefix of the conversation ID, so callers don't need to know which
        campus a topic belongs to.
        """
        prefix = topic_ids.campus_prefix(conversation_id)
        now = self._now()
        with self._lock:
            entry = self._entries.get(sender_id)
            if prefix is None or entry is None or entry.campus_prefix != prefix or now >= entry.valid_until:
                self.misses += 1
                return False
            entry.last_access_at = now
            self.hits += 1
            return True

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def prune(self) -> int:
        """Drop expired entries and trim to max_entries. Returns entries removed."""
        now = self._now()
        with self._lock:
            before = len(self._entries)
            self._entries = {
                sender: entry for sender, entry in self._entries.items() if now < entry.valid_until
            }
            self._trim(now)
            removed = before - len(self._entries)

        if removed:
            logger.debug("Pruned %d presence entries", removed)
        return removed

    def _trim(self, now: float) -> None:
        # Caller must hold self._lock. Expired entries go before any live one.
        if len(self._entries) <= self.max_entries:
            return
        self._entries = {
            sender: entry for sender, entry in self._entries.items() if now < entry.valid_until
        }
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return
        oldest = sorted(self._entries.items(), key=lambda item: item[1].last_access_at)[:overflow]
        for sender, _ in oldest:
            del self._entries[sender]

    def start_sweeper(self, interval_seconds: float) -> None:
        """Run prune() every interval_seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()

        def _run() -> None:
            while not self._stop_sweeper.wait(interval_seconds):
                try:
                    self.prune()
                except Exception:
                    logger.exception("Presence sweep failed")

        self._sweeper = Thread(target=_run, name="presence-sweeper", daemon=True)
        self._sweeper.start()
        logger.info(f"✓ Presence sweeper running every {interval_seconds:.0f}s")

    def stop_sweeper(self) -> None:
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "accepted": self.accepted,
                "hits": self.hits,
                "misses": self.misses,
            }
