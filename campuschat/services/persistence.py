# campuschat/services/persistence.py
"""
Durable substrate for joined conversations.

A repository is a flat key-value mapping from hex conversation ID to a JSON
record. ConversationStore only ever needs three things from it: load every
record on startup, upsert one record, delete one record.

Record format:
    {
        "kind": "course",
        "campus_id": "mcgill",
        "display_name": "COMP-250",
        "course": {"department": "COMP", "number": "250", "term": "F24"},
        "session": null,
        "peers": null,
        "is_favorite": false,
        "is_muted": false,
        "unread_count": 0,
        "last_read_at": null,
        "joined_at": "2024-09-01T12:00:00Z"
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Protocol

import redis

from campuschat.core.errors import PersistenceError
from campuschat.models.models import Conversation, JoinedConversation
from campuschat.services import topic_ids

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

_CONVERSATION_FIELDS = ("kind", "campus_id", "display_name", "course", "session", "peers")


def to_record(joined: JoinedConversation) -> Record:
    """Flatten a JoinedConversation into its persisted form (without the ID)."""
    data = joined.model_dump(mode="json")
    conversation = data.pop("conversation")
    conversation.pop("id")
    return {**conversation, **data}


def from_record(id_hex: str, record: Record) -> JoinedConversation:
    """
    Rebuild a JoinedConversation from its key and record.

    Raises:
        InvalidConversationId: if the key is not a valid hex ID
        pydantic.ValidationError: if the record is malformed
    """
    conversation = Conversation.model_validate(
        {"id": topic_ids.from_hex(id_hex), **{k: record.get(k) for k in _CONVERSATION_FIELDS}}
    )
    state = {k: v for k, v in record.items() if k not in _CONVERSATION_FIELDS}
    return JoinedConversation.model_validate({"conversation": conversation, **state})


class ConversationRepository(Protocol):
    def load_all(self) -> Dict[str, Record]: ...

    def upsert(self, id_hex: str, record: Record) -> None: ...

    def delete(self, id_hex: str) -> None: ...


# ============================================================================
# IN-MEMORY
# ============================================================================

class InMemoryRepository:
    """Non-durable repository. Useful for tests and ephemeral sessions."""

    def __init__(self, records: Optional[Dict[str, Record]] = None) -> None:
        self.records: Dict[str, Record] = dict(records or {})
        self._lock = Lock()

    def load_all(self) -> Dict[str, Record]:
        with self._lock:
            return {k: dict(v) for k, v in self.records.items()}

    def upsert(self, id_hex: str, record: Record) -> None:
        with self._lock:
            self.records[id_hex] = dict(record)

    def delete(self, id_hex: str) -> None:
        with self._lock:
            self.records.pop(id_hex, None)


# ============================================================================
# JSON FILE
# ============================================================================

class JsonFileRepository:
    """
    Persists all records to a single JSON file.

    The whole mapping is rewritten on every change using the tmp-file +
    rename pattern, so a crash mid-write leaves the previous file intact.
    Suitable for a single client process; the file holds one account's data.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._records: Dict[str, Record] = {}
        self._lock = Lock()

    def load_all(self) -> Dict[str, Record]:
        with self._lock:
            if not self.path.exists():
                logger.debug(f"Store file does not exist yet: {self.path}")
                self._records = {}
                return {}

            try:
                with self.path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise PersistenceError(f"Failed to read {self.path}: {e}") from e

            if not isinstance(data, dict):
                raise PersistenceError(f"Invalid store format (expected dict): {self.path}")

            self._records = {}
            for id_hex, record in data.items():
                if not isinstance(record, dict):
                    logger.error(f"Skipping non-object record {id_hex} in {self.path}")
                    continue
                self._records[id_hex] = record
            return {k: dict(v) for k, v in self._records.items()}

    def upsert(self, id_hex: str, record: Record) -> None:
        with self._lock:
            self._records[id_hex] = dict(record)
            self._write()

    def delete(self, id_hex: str) -> None:
        with self._lock:
            if self._records.pop(id_hex, None) is not None:
                self._write()

    def _write(self) -> None:
        # Caller must hold self._lock.
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(self._records, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e


# ============================================================================
# REDIS
# ============================================================================

class RedisRepository:
    """
    Persists records in a single Redis hash: field = hex ID, value = JSON.

    One hash per account, e.g. "campuschat:joined:<account_id>".
    """

    def __init__(self, client: "redis.Redis", key: str) -> None:
        self.client = client
        self.key = key

    @classmethod
    def from_url(cls, url: str, key: str) -> "RedisRepository":
        client = redis.from_url(url, decode_responses=True)
        return cls(client, key)

    def load_all(self) -> Dict[str, Record]:
        try:
            raw = self.client.hgetall(self.key)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to load '{self.key}' from Redis: {e}") from e

        records: Dict[str, Record] = {}
        for id_hex, payload in raw.items():
            try:
                record = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.error(f"Skipping corrupt record {id_hex} in '{self.key}': {e}")
                continue
            if not isinstance(record, dict):
                logger.error(f"Skipping non-object record {id_hex} in '{self.key}'")
                continue
            records[id_hex] = record
        return records

    def upsert(self, id_hex: str, record: Record) -> None:
        try:
            self.client.hset(self.key, id_hex, json.dumps(record))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to write {id_hex} to Redis: {e}") from e

    def delete(self, id_hex: str) -> None:
        try:
            self.client.hdel(self.key, id_hex)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to delete {id_hex} from Redis: {e}") from e

    def close(self) -> None:
        self.client.close()
