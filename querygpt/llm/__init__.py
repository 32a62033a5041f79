"""
Chat Service Module

Client and wire models for the remote chat completion service.

Usage:
    from querygpt.llm import ChatServiceClient, ChatRequest
    from querygpt.config import get_settings

    client = ChatServiceClient.from_settings(get_settings().chat_service)
    reply = await client.send(ChatRequest(message="Hello!"))
    print(reply.reply)
"""

from querygpt.llm.client import ChatServiceClient
from querygpt.llm.models import ChatReply, ChatRequest

__all__ = [
    "ChatServiceClient",
    "ChatReply",
    "ChatRequest",
]
