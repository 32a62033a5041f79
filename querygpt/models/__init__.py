"""Shared pydantic models and exceptions."""

from querygpt.models.errors import (
    ChatServiceError,
    ConversationStateError,
    QueryGPTError,
    SchemaLoadError,
    SchemaNotLoadedError,
)
from querygpt.models.query import (
    ChatMessage,
    GeneratedQuery,
    Session,
    TicketContext,
    TurnOutcome,
)
from querygpt.models.schema import (
    ColumnDescription,
    ColumnToTableMapping,
    Relationship,
    SchemaContext,
    TableField,
    TableSchema,
)

__all__ = [
    # Errors
    "QueryGPTError",
    "ChatServiceError",
    "ConversationStateError",
    "SchemaLoadError",
    "SchemaNotLoadedError",
    # Query generation
    "ChatMessage",
    "GeneratedQuery",
    "Session",
    "TicketContext",
    "TurnOutcome",
    # Schema
    "ColumnDescription",
    "ColumnToTableMapping",
    "Relationship",
    "SchemaContext",
    "TableField",
    "TableSchema",
]
