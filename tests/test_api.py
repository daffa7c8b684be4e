"""Tests for the FastAPI surface."""

import pytest
from fastapi.testclient import TestClient

from campuschat.core.config import Settings
from campuschat.core.state import build_state
from campuschat.main import create_app
from campuschat.models.models import Conversation
from campuschat.services import topic_ids
from campuschat.services.persistence import InMemoryRepository


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ACCOUNT_ID="test-account",
        CAMPUS_ID="mcgill",
        STORE_BACKEND="memory",
        PRESENCE_SWEEP_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def client(settings, clock):
    state = build_state(settings, clock=clock, repository=InMemoryRepository())
    app = create_app(settings, state=state)
    with TestClient(app) as client:
        yield client


COURSE = {"campus_id": "mcgill", "department": "comp", "number": "250", "term": "f24"}


class TestAppCreation:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "conversations" in response.json()["endpoints"]

    def test_health_reports_auto_joined_system_conversations(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["store_backend"] == "memory"
        assert body["joined_conversations"] == 2

    def test_metrics_shape(self, client):
        body = client.get("/metrics").json()

        assert set(body) == {"uptime_hours", "presence", "messages", "conversations"}
        assert body["conversations"]["joined"] == 2


class TestConversationRoutes:
    def test_startup_pins_system_conversations(self, client):
        favorites = client.get("/conversations/favorites").json()

        assert [c["conversation"]["display_name"] for c in favorites] == ["Announcements", "General"]
        assert favorites[0]["conversation"]["id"] == topic_ids.to_hex(topic_ids.announcements_id("mcgill"))

    def test_join_course_and_fetch(self, client):
        response = client.post("/conversations/course", json=COURSE)
        assert response.status_code == 200
        body = response.json()

        expected = Conversation.course_conversation("COMP", "250", "F24", "mcgill")
        assert body["conversation"]["id"] == expected.id_hex
        assert body["is_favorite"] is False
        assert body["unread_count"] == 0

        fetched = client.get(f"/conversations/{expected.id_hex}")
        assert fetched.status_code == 200
        assert fetched.json()["conversation"]["kind"] == "course"

    def test_join_course_session(self, client):
        payload = {
            **COURSE,
            "session": {"date": "2024-09-03", "slot": "10:00-11:30", "building": "BURNSIDE", "room": "1B45"},
        }
        body = client.post("/conversations/course", json=payload).json()

        assert body["conversation"]["kind"] == "session"
        assert body["conversation"]["display_name"] == "comp-250 (10:00-11:30)"

    def test_join_direct(self, client):
        body = client.post(
            "/conversations/direct", json={"campus_id": "mcgill", "peer_a": "bob", "peer_b": "alice"}
        ).json()

        assert body["conversation"]["id"] == topic_ids.to_hex(topic_ids.dm_id("alice", "bob", "mcgill"))
        assert body["conversation"]["peers"] == ["alice", "bob"]

    def test_system_join_requires_a_campus(self, settings, clock):
        settings.CAMPUS_ID = ""
        state = build_state(settings, clock=clock, repository=InMemoryRepository())
        with TestClient(create_app(settings, state=state)) as client:
            assert client.post("/conversations/system", json={}).status_code == 400
            joined = client.post("/conversations/system", json={"campus_id": "concordia"}).json()

        assert all(c["is_favorite"] for c in joined)

    def test_leave(self, client):
        id_hex = client.post("/conversations/course", json=COURSE).json()["conversation"]["id"]

        assert client.delete(f"/conversations/{id_hex}").json()["was_joined"] is True
        assert client.delete(f"/conversations/{id_hex}").json()["was_joined"] is False
        assert client.get(f"/conversations/{id_hex}").status_code == 404

    def test_toggles_and_read(self, client, clock):
        id_hex = client.post("/conversations/course", json=COURSE).json()["conversation"]["id"]

        favorite = client.post(f"/conversations/{id_hex}/favorite").json()
        assert favorite["joined"] is True
        assert favorite["conversation"]["is_favorite"] is True

        muted = client.post(f"/conversations/{id_hex}/mute", json={"value": True}).json()
        assert muted["conversation"]["is_muted"] is True

        read = client.post(f"/conversations/{id_hex}/read").json()
        assert read["conversation"]["unread_count"] == 0
        assert read["conversation"]["last_read_at"] is not None

    def test_mutations_on_unjoined_conversation_are_noops(self, client):
        id_hex = Conversation.course_conversation("MATH", "262", "W25", "mcgill").id_hex

        body = client.post(f"/conversations/{id_hex}/favorite").json()

        assert body == {"joined": False, "conversation": None}

    def test_malformed_id_is_400(self, client):
        assert client.get("/conversations/not-hex").status_code == 400
        assert client.delete("/conversations/abcd").status_code == 400


class TestInbound:
    def test_message_flow_updates_unread(self, client, clock):
        general_hex = topic_ids.to_hex(topic_ids.general_id("mcgill"))
        exp = int(clock.now().timestamp()) + 3600

        presence = client.post("/presence", json={"sender_id": "peer-1", "campus_id": "mcgill", "exp": exp})
        assert presence.status_code == 200

        accepted = client.post("/messages", json={"sender_id": "peer-1", "conversation_id": general_hex})
        assert accepted.json() == {"accepted": True}

        rejected = client.post("/messages", json={"sender_id": "stranger", "conversation_id": general_hex})
        assert rejected.json() == {"accepted": False}

        assert client.get("/conversations/unread").json() == {"total": 1, "unmuted": 1}

    def test_expired_presence_rejects(self, client, clock):
        general_hex = topic_ids.to_hex(topic_ids.general_id("mcgill"))
        exp = int(clock.now().timestamp()) - 3600

        client.post("/presence", json={"sender_id": "peer-1", "campus_id": "mcgill", "exp": exp})

        body = client.post("/messages", json={"sender_id": "peer-1", "conversation_id": general_hex}).json()
        assert body == {"accepted": False}


class TestIdRoutes:
    def test_course_id(self, client):
        body = client.get("/ids/course", params={"campus_id": "mcgill", "department": "COMP", "number": "250", "term": "F24"}).json()

        assert body["id"] == Conversation.course_conversation("COMP", "250", "F24", "mcgill").id_hex
        assert body["kind"] == "course"

    def test_system_ids(self, client):
        body = client.get("/ids/system/mcgill").json()

        assert body["general"] == topic_ids.to_hex(topic_ids.general_id("mcgill"))
        assert body["announcements"] == topic_ids.to_hex(topic_ids.announcements_id("mcgill"))
        assert len(set(body.values())) == 3
