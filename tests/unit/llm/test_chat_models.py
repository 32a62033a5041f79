"""Tests for chat service wire models."""

import pytest
from pydantic import ValidationError

from querygpt.llm.models import ChatReply, ChatRequest


class TestChatRequest:
    """Test request shapes and serialization."""

    def test_context_free_payload(self):
        request = ChatRequest(message="hello")
        assert request.to_payload() == {"message": "hello"}
        assert not request.is_cold
        assert not request.is_followup

    def test_cold_payload(self):
        request = ChatRequest(message="q", system_instruction="rules")
        assert request.to_payload() == {"message": "q", "systemInstruction": "rules"}
        assert request.is_cold

    def test_followup_payload(self):
        request = ChatRequest(message="q", session_id="s-1")
        assert request.to_payload() == {"message": "q", "sessionId": "s-1"}
        assert request.is_followup

    def test_accepts_wire_aliases(self):
        request = ChatRequest.model_validate({"message": "q", "sessionId": "s-1"})
        assert request.session_id == "s-1"

    def test_rejects_session_and_instruction_together(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="q", session_id="s-1", system_instruction="rules")

    def test_rejects_empty_message(self):
        with pytest.raises(ValidationError):
            ChatRequest(message="")


class TestChatReply:
    def test_from_wire(self):
        reply = ChatReply.model_validate({"reply": "text", "sessionId": "s-1"})
        assert reply.reply == "text"
        assert reply.session_id == "s-1"

    def test_defaults(self):
        reply = ChatReply()
        assert reply.reply == ""
        assert reply.session_id is None
