"""
API Request and Response Models

Pydantic models for the FastAPI endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from querygpt.models.query import ChatMessage
from querygpt.models.schema import TableField


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")


class ReadinessResponse(BaseModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="Readiness status: 'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(
        ..., description="Individual readiness checks (schema, chat_service)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ready",
                "version": "0.1.0",
                "timestamp": "2026-01-16T12:00:00Z",
                "checks": {"schema": True, "chat_service": True},
            }
        }
    }


class TenantsResponse(BaseModel):
    tenants: list[str]
    default_tenant: str


class TableSummary(BaseModel):
    """One table as shown in the schema explorer."""

    name: str
    description: str = ""
    fields: list[TableField] = Field(default_factory=list)


class SchemaResponse(BaseModel):
    tables: list[TableSummary]
    total: int = Field(..., description="Number of tables matching the search")
    loaded_at: datetime | None = None


class SchemaReloadResponse(BaseModel):
    tables: int = Field(..., description="Tables in the reloaded catalog")
    loaded_at: datetime | None = None


class CreateConversationRequest(BaseModel):
    tenant: str | None = Field(None, description="Tenant; defaults to DEFAULT_TENANT")


class ConversationResponse(BaseModel):
    """Current state of a conversation."""

    conversation_id: str
    tenant: str
    has_session: bool
    awaiting_confirmation: bool
    shortlist: list[str] = Field(default_factory=list)
    confirmed_tables: list[str] = Field(default_factory=list)
    ticket_key: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)


class MessageRequest(BaseModel):
    """A question for the conversation."""

    message: str = Field(..., min_length=1, description="Natural-language question")
    tables: list[str] | None = Field(
        None, description="Tables to use directly; skips the shortlist step"
    )
    auto_confirm: bool = Field(
        default=False, description="Confirm the suggested shortlist without review"
    )


class MessageResponse(BaseModel):
    """Outcome of a question or table confirmation."""

    conversation_id: str
    shortlist: list[str] = Field(default_factory=list)
    awaiting_confirmation: bool = False
    message: ChatMessage | None = None


class ConfirmTablesRequest(BaseModel):
    tables: list[str] = Field(
        default_factory=list, description="Edited shortlist; empty keeps the suggestion"
    )


class TenantRequest(BaseModel):
    tenant: str = Field(..., min_length=1)


class TicketRequest(BaseModel):
    """Ticket details looked up by the caller. A null key clears the ticket."""

    key: str | None = Field(None, description="Issue key or browse URL")
    summary: str = ""
    description: str = ""
    status: str | None = None
    project: str | None = None


class TableSearchResponse(BaseModel):
    tables: list[str]
