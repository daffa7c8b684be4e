# campuschat/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from campuschat.core.clock import Clock, SystemClock
from campuschat.core.config import Settings, settings as default_settings
from campuschat.core.logging import get_logger
from campuschat.services.conversation_store import ConversationStore
from campuschat.services.message_router import MessageRouter
from campuschat.services.persistence import (
    ConversationRepository,
    InMemoryRepository,
    JsonFileRepository,
    RedisRepository,
)
from campuschat.services.presence_gate import PresenceGate

logger = get_logger(__name__)


@dataclass
class AppState:
    """Everything one running client shares. Built once, passed by reference."""

    settings: Settings
    clock: Clock
    gate: PresenceGate
    store: ConversationStore
    router: MessageRouter
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def close(self) -> None:
        self.gate.stop_sweeper()
        self.store.close()
        close_repository = getattr(self.store.repository, "close", None)
        if close_repository is not None:
            close_repository()


def build_repository(settings: Settings) -> ConversationRepository:
    """Pick the durable substrate named by STORE_BACKEND."""
    backend = settings.STORE_BACKEND
    if backend == "memory":
        return InMemoryRepository()
    if backend == "redis":
        return RedisRepository.from_url(settings.redis_url, key=f"campuschat:joined:{settings.ACCOUNT_ID}")
    if backend == "json":
        return JsonFileRepository(Path(settings.STORE_DIR) / f"joined_{settings.ACCOUNT_ID}.json")
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r}")


def build_state(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    repository: Optional[ConversationRepository] = None,
) -> AppState:
    settings = settings or default_settings
    clock = clock or SystemClock()

    gate = PresenceGate(
        clock=clock,
        ttl_seconds=settings.PRESENCE_TTL_SECONDS,
        max_entries=settings.PRESENCE_MAX_ENTRIES,
    )
    store = ConversationStore(
        repository=repository if repository is not None else build_repository(settings),
        clock=clock,
    )
    router = MessageRouter(gate=gate, store=store)

    logger.info(f"✓ State ready for account {settings.ACCOUNT_ID} ({settings.STORE_BACKEND} store)")
    return AppState(settings=settings, clock=clock, gate=gate, store=store, router=router)
