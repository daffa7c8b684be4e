"""Tests for conversation repositories and record encoding."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import redis

from campuschat.core.errors import PersistenceError
from campuschat.models.models import Conversation, SessionInfo
from campuschat.services.conversation_store import ConversationStore
from campuschat.services.persistence import (
    JsonFileRepository,
    RedisRepository,
    from_record,
    to_record,
)


def _session_conversation() -> Conversation:
    session = SessionInfo(date="2024-09-03", slot="10:00-11:30", building="BURNSIDE", room="1B45")
    return Conversation.course_conversation("COMP", "250", "F24", "mcgill", session)


class TestRecords:
    def test_record_is_flat_and_omits_id(self, store):
        conversation = _session_conversation()
        store.join_conversation(conversation)

        record = to_record(store.get_joined_conversation(conversation.id))

        assert "id" not in record
        assert record["kind"] == "session"
        assert record["campus_id"] == "mcgill"
        assert record["course"] == {"department": "COMP", "number": "250", "term": "F24"}
        assert record["session"]["room"] == "1B45"
        assert record["unread_count"] == 0
        assert record["last_read_at"] is None

    def test_record_round_trip(self, store):
        conversation = Conversation.direct("bob", "alice", "mcgill")
        store.join_conversation(conversation)
        store.mark_as_read(conversation.id)
        joined = store.get_joined_conversation(conversation.id)

        restored = from_record(conversation.id_hex, json.loads(json.dumps(to_record(joined))))

        assert restored.model_dump() == joined.model_dump()
        assert restored.conversation.peers == ("alice", "bob")


class TestJsonFileRepository:
    def test_state_survives_restart(self, tmp_path: Path, clock):
        path = tmp_path / "joined.json"
        conversation = _session_conversation()

        first = ConversationStore(JsonFileRepository(path), clock=clock)
        first.auto_join_system_conversations("mcgill")
        first.join_conversation(conversation)
        first.toggle_mute(conversation.id)
        first.increment_unread_count(conversation.id)
        first.increment_unread_count(conversation.id)
        first.close()

        second = ConversationStore(JsonFileRepository(path), clock=clock)
        try:
            assert len(second) == 3
            joined = second.get_joined_conversation(conversation.id)
            assert joined.conversation.model_dump() == conversation.model_dump()
            assert joined.is_muted is True
            assert joined.unread_count == 2
            assert [j.conversation.display_name for j in second.get_favorite_conversations()] == [
                "Announcements",
                "General",
            ]
        finally:
            second.close()

    def test_file_is_keyed_by_hex_id(self, tmp_path: Path):
        path = tmp_path / "nested" / "joined.json"
        repository = JsonFileRepository(path)
        repository.upsert("ab" * 32, {"kind": "general"})

        assert json.loads(path.read_text()) == {"ab" * 32: {"kind": "general"}}
        assert not path.with_suffix(".tmp").exists()

    def test_delete(self, tmp_path: Path):
        repository = JsonFileRepository(tmp_path / "joined.json")
        repository.upsert("ab" * 32, {"kind": "general"})
        repository.delete("ab" * 32)
        repository.delete("cd" * 32)

        assert repository.load_all() == {}

    def test_missing_file_loads_empty(self, tmp_path: Path):
        assert JsonFileRepository(tmp_path / "absent.json").load_all() == {}

    def test_corrupt_file_raises(self, tmp_path: Path):
        path = tmp_path / "joined.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceError):
            JsonFileRepository(path).load_all()

    def test_store_skips_unreadable_records(self, tmp_path: Path, clock):
        path = tmp_path / "joined.json"
        good = Conversation.general("mcgill")
        first = ConversationStore(JsonFileRepository(path), clock=clock)
        first.join_conversation(good)
        first.close()

        data = json.loads(path.read_text())
        data["not-hex"] = {"kind": "general"}
        data["cd" * 32] = {"kind": "bogus"}
        path.write_text(json.dumps(data))

        second = ConversationStore(JsonFileRepository(path), clock=clock)
        try:
            assert [j.conversation.id for j in second.get_all_joined_conversations()] == [good.id]
        finally:
            second.close()

    def test_non_object_records_are_skipped(self, tmp_path: Path, clock):
        path = tmp_path / "joined.json"
        good = Conversation.general("mcgill")
        first = ConversationStore(JsonFileRepository(path), clock=clock)
        first.join_conversation(good)
        first.close()

        data = json.loads(path.read_text())
        data["ab" * 32] = 1
        data["cd" * 32] = ["general"]
        path.write_text(json.dumps(data))

        assert set(JsonFileRepository(path).load_all()) == {good.id_hex}
        second = ConversationStore(JsonFileRepository(path), clock=clock)
        try:
            assert [j.conversation.id for j in second.get_all_joined_conversations()] == [good.id]
        finally:
            second.close()


class TestRedisRepository:
    def test_round_trip_through_hash(self):
        client = MagicMock()
        repository = RedisRepository(client, "campuschat:joined:local")

        repository.upsert("ab" * 32, {"kind": "general"})
        client.hset.assert_called_once_with("campuschat:joined:local", "ab" * 32, '{"kind": "general"}')

        client.hgetall.return_value = {"ab" * 32: '{"kind": "general"}', "cd" * 32: "{broken"}
        assert repository.load_all() == {"ab" * 32: {"kind": "general"}}

        repository.delete("ab" * 32)
        client.hdel.assert_called_once_with("campuschat:joined:local", "ab" * 32)

    def test_non_object_payloads_are_skipped(self, clock):
        client = MagicMock()
        client.hgetall.return_value = {"ab" * 32: "1", "cd" * 32: "null"}
        repository = RedisRepository(client, "campuschat:joined:local")

        assert repository.load_all() == {}
        store = ConversationStore(repository, clock=clock)
        try:
            assert len(store) == 0
        finally:
            store.close()

    def test_store_survives_records_that_fail_to_decode(self, clock):
        repository = MagicMock()
        repository.load_all.return_value = {"ab" * 32: 1, "cd" * 32: None}
        store = ConversationStore(repository, clock=clock)
        try:
            assert len(store) == 0
        finally:
            store.close()

    def test_redis_errors_become_persistence_errors(self):
        client = MagicMock()
        client.hset.side_effect = redis.ConnectionError("down")
        client.hgetall.side_effect = redis.ConnectionError("down")
        repository = RedisRepository(client, "campuschat:joined:local")

        with pytest.raises(PersistenceError):
            repository.upsert("ab" * 32, {})
        with pytest.raises(PersistenceError):
            repository.load_all()
