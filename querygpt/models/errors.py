"""
Error Models

Exception hierarchy shared by every QueryGPT component.
Errors carry the component that raised them, whether the caller can retry,
and a context dict for logging and API responses.
"""

from typing import Any


class QueryGPTError(Exception):
    """
    Base exception for QueryGPT components.

    Attributes:
        component: Name of the component that raised the error
        message: Error description
        recoverable: Whether the caller can retry or continue
        context: Additional context for debugging
    """

    def __init__(
        self,
        component: str,
        message: str,
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.component = component
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{component}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "component": self.component,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ChatServiceError(QueryGPTError):
    """
    Error talking to the remote chat service.

    ``user_message`` is safe to show in the UI; ``message`` may carry
    transport detail for logs.
    """

    def __init__(
        self,
        message: str,
        user_message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.user_message = user_message
        self.status_code = status_code
        recoverable = status_code is None or status_code == 429 or status_code >= 500
        super().__init__("ChatServiceClient", message, recoverable=recoverable, context=context)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        data["user_message"] = self.user_message
        return data


class SchemaNotLoadedError(QueryGPTError):
    """Schema context requested before the first successful load."""

    def __init__(self, message: str = "Schema context has not been loaded yet"):
        super().__init__("SchemaContextStore", message, recoverable=True)


class SchemaLoadError(QueryGPTError):
    """Schema inputs could not be read or parsed."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("SchemaContextStore", message, recoverable=False, context=context)


class ConversationStateError(QueryGPTError):
    """Operation not valid in the conversation's current state."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("QueryConversation", message, recoverable=False, context=context)
