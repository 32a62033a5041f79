"""
Conversation Routes

In-memory query conversations: ask, confirm tables, switch tenant, attach a
ticket, reset and delete.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from querygpt.models.api import (
    ConfirmTablesRequest,
    ConversationResponse,
    CreateConversationRequest,
    MessageRequest,
    MessageResponse,
    TableSearchResponse,
    TenantRequest,
    TicketRequest,
)
from querygpt.pipeline.orchestrator import ConversationRegistry, QueryConversation
from querygpt.tickets import extract_ticket_key, ticket_context_from_issue

logger = logging.getLogger(__name__)

router = APIRouter()


def _registry() -> ConversationRegistry:
    from querygpt.api.main import get_registry

    registry = get_registry()
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service is not configured. Set CHAT_SERVICE_BASE_URL.",
        )
    return registry


async def _conversation(conversation_id: str) -> QueryConversation:
    registry = _registry()
    await registry.prune()
    conversation = registry.get(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation not found: {conversation_id}",
        )
    return conversation


def _to_response(conversation: QueryConversation) -> ConversationResponse:
    return ConversationResponse(
        conversation_id=conversation.id,
        tenant=conversation.tenant,
        has_session=conversation.has_session,
        awaiting_confirmation=conversation.awaiting_confirmation,
        shortlist=list(conversation.shortlist),
        confirmed_tables=list(conversation.confirmed_tables),
        ticket_key=conversation.ticket_context.key if conversation.ticket_context else None,
        messages=conversation.messages,
    )


@router.post(
    "/conversations",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(request: CreateConversationRequest) -> ConversationResponse:
    """Start a conversation for a tenant."""
    try:
        conversation = await _registry().create(request.tenant)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    logger.info(
        f"Conversation created: {conversation.id}",
        extra={"conversation_id": conversation.id, "tenant": conversation.tenant},
    )
    return _to_response(conversation)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str) -> ConversationResponse:
    return _to_response(await _conversation(conversation_id))


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
async def send_message(conversation_id: str, request: MessageRequest) -> MessageResponse:
    """
    Ask a question.

    Without ``tables`` or ``auto_confirm`` and with no open session, the
    response carries a shortlist awaiting confirmation. Otherwise it carries
    the assistant message.
    """
    conversation = await _conversation(conversation_id)
    try:
        if request.tables or request.auto_confirm:
            message = await conversation.ask(request.message, tables=request.tables)
            return MessageResponse(conversation_id=conversation.id, message=message)
        outcome = await conversation.submit(request.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return MessageResponse(
        conversation_id=conversation.id,
        shortlist=outcome.shortlist,
        awaiting_confirmation=outcome.awaiting_confirmation,
        message=outcome.message,
    )


@router.post(
    "/conversations/{conversation_id}/tables/confirm", response_model=MessageResponse
)
async def confirm_tables(conversation_id: str, request: ConfirmTablesRequest) -> MessageResponse:
    """Confirm the shortlist (optionally edited) and generate the query."""
    conversation = await _conversation(conversation_id)
    message = await conversation.confirm_tables(request.tables or None)
    return MessageResponse(conversation_id=conversation.id, message=message)


@router.get(
    "/conversations/{conversation_id}/tables/search", response_model=TableSearchResponse
)
async def search_tables(
    conversation_id: str,
    q: str = Query(default="", description="Substring of the table name"),
) -> TableSearchResponse:
    """Tables to add to the shortlist, excluding those already on it."""
    conversation = await _conversation(conversation_id)
    return TableSearchResponse(
        tables=conversation.search_tables(q, exclude=conversation.shortlist)
    )


@router.put("/conversations/{conversation_id}/tenant", response_model=ConversationResponse)
async def set_tenant(conversation_id: str, request: TenantRequest) -> ConversationResponse:
    """Switch tenant; ends the open session."""
    conversation = await _conversation(conversation_id)
    try:
        await conversation.set_tenant(request.tenant)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return _to_response(conversation)


@router.put("/conversations/{conversation_id}/ticket", response_model=ConversationResponse)
async def set_ticket(conversation_id: str, request: TicketRequest) -> ConversationResponse:
    """Attach ticket context for the next cold turn, or clear it with a null key."""
    conversation = await _conversation(conversation_id)
    if request.key is None:
        conversation.set_ticket_context(None)
        return _to_response(conversation)

    key = extract_ticket_key(request.key)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid ticket key or URL",
        )
    conversation.set_ticket_context(
        ticket_context_from_issue({**request.model_dump(), "key": key})
    )
    return _to_response(conversation)


@router.post("/conversations/{conversation_id}/reset", response_model=ConversationResponse)
async def reset_conversation(conversation_id: str) -> ConversationResponse:
    """End the session and clear the history."""
    conversation = await _conversation(conversation_id)
    await conversation.reset()
    return _to_response(conversation)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: str) -> None:
    if not await _registry().remove(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation not found: {conversation_id}",
        )
