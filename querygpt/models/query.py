"""
Query Generation Models

Pydantic models for generated queries, ticket context, sessions and the
in-memory conversation history.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeneratedQuery(BaseModel):
    """
    Structured result parsed from a chat service reply.

    Either a query (with explanation and optional index suggestions) or an
    error payload holding the service's prose, never both.
    """

    query: str = Field(default="", description="Generated SQL (formatted when possible)")
    explanation: str | None = Field(None, description="What the query does")
    suggested_indexes: list[str] = Field(
        default_factory=list, description="Index suggestions on columns from the schema block"
    )
    error: str | None = Field(
        None, description="Reply text when no query could be extracted (out-of-scope, prose)"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "query": "SELECT role, COUNT(*)\nFROM ck_user\nWHERE status = ${status}\nGROUP BY role",
                "explanation": "Counts users per role filtered by status.",
                "suggested_indexes": ["CREATE INDEX idx_ck_user_status ON ck_user(status)"],
                "error": None,
            }
        }
    )

    @model_validator(mode="after")
    def check_error_excludes_query(self) -> "GeneratedQuery":
        if self.error and self.query:
            raise ValueError("GeneratedQuery cannot carry both an error and a query")
        return self

    @property
    def is_error(self) -> bool:
        return bool(self.error)


class TicketContext(BaseModel):
    """Resolved issue-tracker ticket used to enrich prompts. Never mutated."""

    key: str = Field(..., min_length=1, description="Ticket key, e.g. CAV-1868")
    summary: str = Field(default="", description="Ticket title")
    description: str = Field(default="", description="Ticket body")
    status: str | None = None
    project: str | None = None

    model_config = ConfigDict(frozen=True)


class Session(BaseModel):
    """Opaque chat service session handle owned by one SessionManager."""

    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class ChatMessage(BaseModel):
    """One entry of a conversation's in-memory history."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    query: str | None = None
    explanation: str | None = None
    suggested_indexes: list[str] = Field(default_factory=list)
    tables: list[str] = Field(default_factory=list, description="Tables confirmed for this turn")
    is_error: bool = Field(default=False, description="Transport failure shown as prose")

    model_config = ConfigDict(frozen=True)


class TurnOutcome(BaseModel):
    """Result of submitting a question to a conversation."""

    shortlist: list[str] = Field(default_factory=list)
    awaiting_confirmation: bool = False
    message: ChatMessage | None = None
