"""
Pipeline Module

Session management and the conversation orchestrator.
"""

from querygpt.pipeline.orchestrator import (
    ConversationRegistry,
    QueryConversation,
    canonicalize_tables,
)
from querygpt.pipeline.session import SessionManager

__all__ = [
    "ConversationRegistry",
    "QueryConversation",
    "SessionManager",
    "canonicalize_tables",
]
