"""
Chat Service Client

HTTP client for the remote chat completion service. Maps transport failures
to ChatServiceError with a user-safe message, and implements the
best-effort session termination call.
"""

import logging
from typing import Any

import httpx

from querygpt.config import ChatServiceSettings
from querygpt.llm.models import ChatReply, ChatRequest
from querygpt.models.errors import ChatServiceError

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Too many requests. Please wait a moment and try again."
UNAVAILABLE_MESSAGE = "The query service is temporarily unavailable. Please try again later."
UNREACHABLE_MESSAGE = "Could not reach the query service. Check your connection and try again."
GENERIC_FAILURE_MESSAGE = "Failed to generate query. Please try again."

# Keys checked, in order, for the reply text
_REPLY_KEYS = ("reply", "message", "response", "text", "content")


class ChatServiceClient:
    """
    Client for the chat service ``/chat`` and ``/chat/end`` endpoints.

    Attributes:
        base_url: Service base URL without trailing slash
        timeout: Request timeout in seconds
        error_message_max_chars: Cap for service error text shown to users
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        chat_path: str = "/chat",
        end_path: str = "/chat/end",
        error_message_max_chars: int = 200,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service base URL (e.g. "https://host/api")
            timeout: Request timeout in seconds
            chat_path: Completion endpoint path
            end_path: Session-termination endpoint path
            error_message_max_chars: Cap for embedded error messages
            http_client: Optional preconfigured httpx client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.chat_url = f"{self.base_url}{chat_path}"
        self.end_url = f"{self.base_url}{end_path}"
        self.error_message_max_chars = error_message_max_chars
        self.client = http_client or httpx.AsyncClient(timeout=float(timeout))

        logger.info(
            f"Chat service client initialized: {self.base_url}",
            extra={"base_url": self.base_url, "timeout": timeout},
        )

    @classmethod
    def from_settings(
        cls,
        settings: ChatServiceSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "ChatServiceClient":
        """
        Create a client from configuration.

        Raises:
            ValueError: If CHAT_SERVICE_BASE_URL is not configured
        """
        if not settings.base_url:
            raise ValueError(
                "Chat service URL is required but not configured. Set CHAT_SERVICE_BASE_URL"
            )
        return cls(
            base_url=settings.base_url,
            timeout=settings.timeout,
            chat_path=settings.chat_path,
            end_path=settings.end_path,
            error_message_max_chars=settings.error_message_max_chars,
            http_client=http_client,
        )

    async def send(self, request: ChatRequest) -> ChatReply:
        """
        Send one turn to the chat service.

        Args:
            request: Context-free, cold or follow-up request

        Returns:
            ChatReply with the reply text and the session id, if any

        Raises:
            ChatServiceError: On network failure or non-2xx status
        """
        self._log_request(request)

        try:
            response = await self.client.post(self.chat_url, json=request.to_payload())
        except httpx.HTTPError as e:
            logger.warning(
                f"Chat service request failed: {e}",
                extra={"url": self.chat_url, "error_type": type(e).__name__},
            )
            raise ChatServiceError(
                message=f"Chat service unreachable: {e}",
                user_message=UNREACHABLE_MESSAGE,
                context={"url": self.chat_url},
            ) from e

        if not response.is_success:
            raise self._error_from_response(response)

        reply = self._parse_reply(response)
        logger.debug(
            "Chat service reply",
            extra={
                "status_code": response.status_code,
                "reply_chars": len(reply.reply),
                "has_session": reply.session_id is not None,
            },
        )
        return reply

    async def end_session(self, session_id: str) -> None:
        """
        Tell the service a session is finished.

        Best effort: the response is ignored and any failure is logged and
        swallowed, never raised.
        """
        try:
            response = await self.client.post(self.end_url, json={"sessionId": session_id})
            logger.debug(
                "Chat session ended",
                extra={"status_code": response.status_code},
            )
        except Exception as e:
            logger.debug(
                f"Ending chat session failed (ignored): {e}",
                extra={"error_type": type(e).__name__},
            )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _parse_reply(self, response: httpx.Response) -> ChatReply:
        try:
            data: Any = response.json()
        except ValueError:
            # Plain-text body
            return ChatReply(reply=response.text)

        if isinstance(data, str):
            return ChatReply(reply=data)
        if not isinstance(data, dict):
            return ChatReply(reply="")

        text = next(
            (data[key] for key in _REPLY_KEYS if isinstance(data.get(key), str)),
            "",
        )
        session_id = data.get("sessionId")
        return ChatReply(
            reply=text,
            session_id=str(session_id) if session_id else None,
        )

    def _error_from_response(self, response: httpx.Response) -> ChatServiceError:
        status_code = response.status_code
        embedded = self._embedded_error_message(response)

        if status_code == 429:
            user_message = RATE_LIMITED_MESSAGE
        elif status_code >= 500:
            user_message = UNAVAILABLE_MESSAGE
        elif embedded:
            user_message = embedded[: self.error_message_max_chars]
        else:
            user_message = GENERIC_FAILURE_MESSAGE

        logger.warning(
            f"Chat service returned {status_code}",
            extra={"status_code": status_code, "error": embedded},
        )
        return ChatServiceError(
            message=f"Chat service returned {status_code}: {embedded or response.reason_phrase}",
            user_message=user_message,
            status_code=status_code,
            context={"url": self.chat_url},
        )

    def _embedded_error_message(self, response: httpx.Response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None

    def _log_request(self, request: ChatRequest) -> None:
        """Log request shape for debugging."""
        logger.debug(
            "Chat service request",
            extra={
                "cold": request.is_cold,
                "followup": request.is_followup,
                "message_chars": len(request.message),
                "instruction_chars": len(request.system_instruction or ""),
            },
        )
