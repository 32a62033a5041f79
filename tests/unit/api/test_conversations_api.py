"""
Unit Tests for Conversation Endpoints

Drives the shortlist/confirm flow, follow-ups, tenant and ticket changes
through the HTTP API with a mocked chat service client.
"""

import pytest
from fastapi.testclient import TestClient

from querygpt.api.main import app, app_state
from querygpt.config import ConversationSettings, Settings
from querygpt.llm.client import UNAVAILABLE_MESSAGE
from querygpt.llm.models import ChatReply
from querygpt.models.errors import ChatServiceError
from querygpt.pipeline.orchestrator import QUERY_MESSAGE, ConversationRegistry


@pytest.fixture
def registry(schema_store, mock_chat_client):
    return ConversationRegistry(Settings(), schema_store, mock_chat_client)


@pytest.fixture
def client(registry, schema_store, mock_chat_client):
    original_state = app_state.copy()
    app_state["store"] = schema_store
    app_state["client"] = mock_chat_client
    app_state["conversations"] = registry
    yield TestClient(app)
    app_state.update(original_state)


@pytest.fixture
def conversation_id(client):
    response = client.post("/api/v1/conversations", json={})
    assert response.status_code == 201
    return response.json()["conversation_id"]


class TestCreateConversation:
    def test_defaults_to_configured_tenant(self, client):
        data = client.post("/api/v1/conversations", json={}).json()

        assert data["tenant"] == "lbpl"
        assert data["has_session"] is False
        assert data["awaiting_confirmation"] is False
        assert data["messages"] == []

    def test_explicit_tenant(self, client):
        data = client.post("/api/v1/conversations", json={"tenant": "KBL"}).json()
        assert data["tenant"] == "kbl"

    def test_unknown_tenant_rejected(self, client):
        response = client.post("/api/v1/conversations", json={"tenant": "nope"})
        assert response.status_code == 400

    def test_disabled_without_chat_service(self, client):
        app_state["conversations"] = None
        response = client.post("/api/v1/conversations", json={})
        assert response.status_code == 503

    def test_get_unknown_conversation(self, client):
        assert client.get("/api/v1/conversations/missing").status_code == 404


class TestQuestionFlow:
    """Test the shortlist, confirm and follow-up sequence."""

    def test_question_returns_shortlist(self, client, conversation_id, mock_chat_client):
        mock_chat_client.send.return_value = ChatReply(reply="ck_user, not_a_table")

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/messages",
            json={"message": "How many users per role?"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["awaiting_confirmation"] is True
        assert data["shortlist"] == ["ck_user"]
        assert data["message"] is None

    def test_confirm_generates_query(
        self, client, conversation_id, mock_chat_client, make_query_reply
    ):
        mock_chat_client.send.side_effect = [
            ChatReply(reply="ck_user"),
            make_query_reply(),
        ]
        base = f"/api/v1/conversations/{conversation_id}"
        client.post(f"{base}/messages", json={"message": "How many users per role?"})

        response = client.post(f"{base}/tables/confirm", json={"tables": []})

        assert response.status_code == 200
        message = response.json()["message"]
        assert message["content"] == QUERY_MESSAGE
        assert message["query"].startswith("SELECT")
        assert message["explanation"] == "Counts users per role."
        assert message["tables"] == ["ck_user"]

        state = client.get(base).json()
        assert state["has_session"] is True
        assert state["confirmed_tables"] == ["ck_user"]
        assert [m["role"] for m in state["messages"]] == ["user", "assistant"]

    def test_followup_skips_shortlist(
        self, client, conversation_id, mock_chat_client, make_query_reply
    ):
        base = f"/api/v1/conversations/{conversation_id}"
        mock_chat_client.send.return_value = make_query_reply()
        client.post(
            f"{base}/messages",
            json={"message": "Users per role", "tables": ["ck_user"]},
        )

        response = client.post(f"{base}/messages", json={"message": "Only active ones"})

        data = response.json()
        assert data["awaiting_confirmation"] is False
        assert data["message"]["content"] == QUERY_MESSAGE
        followup_request = mock_chat_client.send.call_args.args[0]
        assert followup_request.session_id == "sess-1"
        assert followup_request.system_instruction is None

    def test_confirm_without_pending_question(self, client, conversation_id):
        response = client.post(
            f"/api/v1/conversations/{conversation_id}/tables/confirm", json={}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conversation_state_error"

    def test_blank_question_rejected(self, client, conversation_id):
        response = client.post(
            f"/api/v1/conversations/{conversation_id}/messages", json={"message": "   "}
        )
        assert response.status_code == 400

    def test_transport_failure_becomes_error_message(
        self, client, conversation_id, mock_chat_client
    ):
        mock_chat_client.send.side_effect = ChatServiceError(
            "HTTP 503", user_message=UNAVAILABLE_MESSAGE, status_code=503
        )

        response = client.post(
            f"/api/v1/conversations/{conversation_id}/messages",
            json={"message": "Users per role", "tables": ["ck_user"]},
        )

        assert response.status_code == 200
        message = response.json()["message"]
        assert message["is_error"] is True
        assert message["content"] == UNAVAILABLE_MESSAGE

    def test_search_excludes_shortlist(self, client, conversation_id, mock_chat_client):
        base = f"/api/v1/conversations/{conversation_id}"
        mock_chat_client.send.return_value = ChatReply(reply="ck_order")
        client.post(f"{base}/messages", json={"message": "orders by outlet"})

        data = client.get(f"{base}/tables/search", params={"q": "ck_o"}).json()

        assert data["tables"] == ["ck_outlet_details"]


class TestConversationSettings:
    def test_switch_tenant(self, client, conversation_id):
        response = client.put(
            f"/api/v1/conversations/{conversation_id}/tenant", json={"tenant": "kbl"}
        )
        assert response.status_code == 200
        assert response.json()["tenant"] == "kbl"

    def test_switch_to_unknown_tenant(self, client, conversation_id):
        response = client.put(
            f"/api/v1/conversations/{conversation_id}/tenant", json={"tenant": "nope"}
        )
        assert response.status_code == 400

    def test_attach_and_clear_ticket(self, client, conversation_id):
        base = f"/api/v1/conversations/{conversation_id}/ticket"
        response = client.put(
            base,
            json={
                "key": "https://example.atlassian.net/browse/cav-1868",
                "summary": "Weekly report",
            },
        )
        assert response.json()["ticket_key"] == "CAV-1868"

        response = client.put(base, json={"key": None})
        assert response.json()["ticket_key"] is None

    def test_invalid_ticket_key(self, client, conversation_id):
        response = client.put(
            f"/api/v1/conversations/{conversation_id}/ticket", json={"key": "not a ticket"}
        )
        assert response.status_code == 400

    def test_reset_clears_history(
        self, client, conversation_id, mock_chat_client, make_query_reply
    ):
        base = f"/api/v1/conversations/{conversation_id}"
        mock_chat_client.send.return_value = make_query_reply()
        client.post(f"{base}/messages", json={"message": "Users", "tables": ["ck_user"]})

        data = client.post(f"{base}/reset").json()

        assert data["messages"] == []
        assert data["has_session"] is False

    def test_delete(self, client, conversation_id):
        base = f"/api/v1/conversations/{conversation_id}"
        assert client.delete(base).status_code == 204
        assert client.get(base).status_code == 404
        assert client.delete(base).status_code == 404


class TestConversationLimits:
    """Idle and surplus conversations are closed and their sessions ended."""

    @pytest.fixture
    def clock(self):
        return {"now": 0.0}

    @pytest.fixture
    def registry(self, schema_store, mock_chat_client, clock):
        settings = Settings(
            conversations=ConversationSettings(idle_ttl_seconds=60, max_conversations=1)
        )
        return ConversationRegistry(
            settings, schema_store, mock_chat_client, clock=lambda: clock["now"]
        )

    def test_idle_conversation_is_gone(
        self, client, conversation_id, clock, mock_chat_client, make_query_reply
    ):
        base = f"/api/v1/conversations/{conversation_id}"
        mock_chat_client.send.return_value = make_query_reply(session_id="s-1")
        client.post(f"{base}/messages", json={"message": "Users", "tables": ["ck_user"]})

        clock["now"] += 120

        assert client.get(base).status_code == 404
        mock_chat_client.end_session.assert_awaited_once_with("s-1")

    def test_new_conversation_replaces_oldest(
        self, client, conversation_id, mock_chat_client, make_query_reply
    ):
        base = f"/api/v1/conversations/{conversation_id}"
        mock_chat_client.send.return_value = make_query_reply(session_id="s-1")
        client.post(f"{base}/messages", json={"message": "Users", "tables": ["ck_user"]})

        assert client.post("/api/v1/conversations", json={}).status_code == 201

        assert client.get(base).status_code == 404
        mock_chat_client.end_session.assert_awaited_once_with("s-1")
