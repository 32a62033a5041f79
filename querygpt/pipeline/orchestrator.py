"""
Query Conversation Orchestrator

Wires table selection, session management and reply parsing into one
conversation:

    question -> TableSelector (unless a session is open)
             -> user confirms/edits the shortlist
             -> SessionManager cold turn (instruction compiled once)
             -> ResponseParser -> assistant ChatMessage

Follow-up questions reuse the open session and skip table selection.
Transport failures never escape a turn; they become error messages in the
history.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Sequence

from querygpt.agents.prompt_compiler import PromptCompiler
from querygpt.agents.table_selector import TableSelector
from querygpt.config import Settings
from querygpt.llm.client import ChatServiceClient
from querygpt.models.errors import ChatServiceError, ConversationStateError
from querygpt.models.query import ChatMessage, GeneratedQuery, TicketContext, TurnOutcome
from querygpt.models.schema import SchemaContext
from querygpt.pipeline.session import SessionManager
from querygpt.schema.store import SchemaContextStore
from querygpt.schema.tenants import is_known_tenant

logger = logging.getLogger(__name__)

QUERY_MESSAGE = "Here's your optimized SQL query:"


def canonicalize_tables(tables: Sequence[str], schema_context: SchemaContext) -> list[str]:
    """Known tables in stored casing, unknown names dropped, order kept."""
    resolved: list[str] = []
    for name in tables:
        canonical = schema_context.canonical_table_name(name)
        if canonical and canonical not in resolved:
            resolved.append(canonical)
    return resolved


class QueryConversation:
    """
    One user's conversation with the query generator.

    Turns are serialized with an asyncio.Lock so concurrent API calls on the
    same conversation cannot interleave.

    Attributes:
        id: Conversation identifier
        tenant: Tenant the questions are asked for
        ticket_context: Ticket applied to the next cold turn
        shortlist: Tables suggested for the pending question
        confirmed_tables: Tables of the open session
        pending_question: Question awaiting table confirmation
    """

    def __init__(
        self,
        store: SchemaContextStore,
        session_manager: SessionManager,
        selector: TableSelector,
        tenant: str = "lbpl",
        conversation_id: str | None = None,
    ):
        self.id = conversation_id or str(uuid.uuid4())
        self.store = store
        self.session_manager = session_manager
        self.selector = selector
        self.tenant = tenant.strip().lower()
        self.ticket_context: TicketContext | None = None
        self.shortlist: list[str] = []
        self.confirmed_tables: list[str] = []
        self.pending_question: str | None = None
        self._messages: list[ChatMessage] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: SchemaContextStore,
        client: ChatServiceClient,
        tenant: str | None = None,
        conversation_id: str | None = None,
    ) -> "QueryConversation":
        """Build a conversation with components configured from settings."""
        selector = TableSelector(
            client,
            fallback_limit=settings.selector.max_fallback_tables,
            min_word_length=settings.selector.min_word_length,
        )
        session_manager = SessionManager(
            client, compiler=PromptCompiler.from_settings(settings.prompt)
        )
        return cls(
            store=store,
            session_manager=session_manager,
            selector=selector,
            tenant=tenant or settings.default_tenant,
            conversation_id=conversation_id,
        )

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def has_session(self) -> bool:
        return self.session_manager.has_session

    @property
    def awaiting_confirmation(self) -> bool:
        return self.pending_question is not None

    async def submit(self, question: str) -> TurnOutcome:
        """
        Submit a question.

        With an open session the question is answered as a follow-up.
        Otherwise a shortlist is returned and the question waits for
        confirm_tables().

        Raises:
            ValueError: If the question is blank
            SchemaNotLoadedError: If a shortlist is needed before the schema loads
        """
        question = self._clean_question(question)
        async with self._lock:
            self._record_user(question)

            if self.session_manager.has_session:
                message = await self._generate(question)
                return TurnOutcome(message=message)

            self.shortlist = await self._suggest(question, self.store.context)
            self.pending_question = question
            logger.info(
                f"Shortlist ready for conversation {self.id}",
                extra={"conversation_id": self.id, "shortlist": self.shortlist},
            )
            return TurnOutcome(shortlist=list(self.shortlist), awaiting_confirmation=True)

    async def confirm_tables(self, tables: Sequence[str] | None = None) -> ChatMessage:
        """
        Confirm the (edited) shortlist and generate the query.

        Starts a new session; any open session is ended first.

        Args:
            tables: Edited selection; None or empty keeps the suggested shortlist

        Raises:
            ConversationStateError: If no question is pending or no known table remains
        """
        async with self._lock:
            if self.pending_question is None:
                raise ConversationStateError(
                    "No question is awaiting table confirmation",
                    context={"conversation_id": self.id},
                )
            context = self.store.context
            chosen = canonicalize_tables(list(tables) if tables else self.shortlist, context)
            if not chosen:
                raise ConversationStateError(
                    "None of the selected tables exist in the schema",
                    context={"conversation_id": self.id, "tables": list(tables or [])},
                )

            question = self.pending_question
            self.pending_question = None
            self.shortlist = []
            self.confirmed_tables = chosen
            return await self._generate(question, chosen, context)

    async def ask(self, question: str, tables: Sequence[str] | None = None) -> ChatMessage:
        """
        Answer a question in one call.

        Explicit tables force a cold turn; an open session is continued;
        otherwise the suggested shortlist is confirmed automatically.
        """
        question = self._clean_question(question)
        async with self._lock:
            self._record_user(question)
            self.pending_question = None
            self.shortlist = []

            if tables:
                context = self.store.context
                chosen = canonicalize_tables(tables, context)
                if not chosen:
                    raise ConversationStateError(
                        "None of the selected tables exist in the schema",
                        context={"conversation_id": self.id, "tables": list(tables)},
                    )
                self.confirmed_tables = chosen
                return await self._generate(question, chosen, context)

            if self.session_manager.has_session:
                return await self._generate(question)

            context = self.store.context
            chosen = await self._suggest(question, context)
            self.confirmed_tables = chosen
            return await self._generate(question, chosen, context)

    async def set_tenant(self, tenant: str) -> None:
        """
        Switch tenant, ending the session and dropping the pending selection.

        Raises:
            ValueError: If the tenant is unknown
        """
        normalized = tenant.strip().lower()
        if not is_known_tenant(normalized):
            raise ValueError(f"Unknown tenant: {tenant}")
        async with self._lock:
            if normalized == self.tenant:
                return
            logger.info(
                f"Tenant changed to {normalized}",
                extra={"conversation_id": self.id, "previous_tenant": self.tenant},
            )
            self.tenant = normalized
            await self.session_manager.end_session()
            self._clear_selection()

    def set_ticket_context(self, ticket_context: TicketContext | None) -> None:
        """Use ``ticket_context`` for the next cold turn (None clears it)."""
        self.ticket_context = ticket_context

    async def reset(self) -> None:
        """End the session and clear selection and history."""
        async with self._lock:
            await self.session_manager.end_session()
            self._clear_selection()
            self._messages.clear()

    async def aclose(self) -> None:
        await self.session_manager.aclose()
        await self.selector.flush_background_tasks()

    def search_tables(self, term: str, exclude: Sequence[str] = ()) -> list[str]:
        """Table names containing ``term`` for the shortlist editor."""
        needle = term.strip().lower()
        if not needle:
            return []
        excluded = {name.lower() for name in exclude}
        return [
            name
            for name in self.store.context.table_names()
            if needle in name.lower() and name.lower() not in excluded
        ]

    async def _suggest(self, question: str, context: SchemaContext) -> list[str]:
        return await self.selector.suggest_tables(
            question, self.tenant, context.descriptions_map(), self.ticket_context
        )

    async def _generate(
        self,
        question: str,
        tables: list[str] | None = None,
        context: SchemaContext | None = None,
    ) -> ChatMessage:
        try:
            result = await self.session_manager.generate(
                question,
                self.tenant,
                selected_tables=tables,
                schema_context=context,
                ticket_context=self.ticket_context,
            )
        except ChatServiceError as e:
            logger.warning(
                f"Query generation failed: {e.message}",
                extra={"conversation_id": self.id, "status_code": e.status_code},
            )
            message = ChatMessage(role="assistant", content=e.user_message, is_error=True)
        else:
            message = self._assistant_message(result)

        self._messages.append(message)
        return message

    def _assistant_message(self, result: GeneratedQuery) -> ChatMessage:
        if result.is_error:
            return ChatMessage(role="assistant", content=result.error or "")
        return ChatMessage(
            role="assistant",
            content=QUERY_MESSAGE,
            query=result.query,
            explanation=result.explanation,
            suggested_indexes=result.suggested_indexes,
            tables=list(self.confirmed_tables),
        )

    def _record_user(self, question: str) -> None:
        self._messages.append(ChatMessage(role="user", content=question))

    def _clear_selection(self) -> None:
        self.shortlist = []
        self.confirmed_tables = []
        self.pending_question = None

    @staticmethod
    def _clean_question(question: str) -> str:
        question = (question or "").strip()
        if not question:
            raise ValueError("Question must not be empty")
        return question


class ConversationRegistry:
    """
    In-memory conversations keyed by id, for the HTTP API.

    Conversations idle longer than ``conversations.idle_ttl_seconds`` are
    closed on the next create or prune, and creating one beyond
    ``conversations.max_conversations`` closes the least recently used.
    Closing a conversation ends its chat session.
    """

    def __init__(
        self,
        settings: Settings,
        store: SchemaContextStore,
        client: ChatServiceClient,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.store = store
        self.client = client
        self.idle_ttl_seconds = settings.conversations.idle_ttl_seconds
        self.max_conversations = settings.conversations.max_conversations
        self._clock = clock
        self._conversations: dict[str, QueryConversation] = {}
        self._last_active: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    async def create(self, tenant: str | None = None) -> QueryConversation:
        """
        Start a conversation, closing expired and surplus ones first.

        Raises:
            ValueError: If the tenant is unknown
        """
        tenant = (tenant or self.settings.default_tenant).strip().lower()
        if not is_known_tenant(tenant):
            raise ValueError(f"Unknown tenant: {tenant}")
        await self.prune()
        while len(self._conversations) >= self.max_conversations:
            oldest = min(self._last_active, key=self._last_active.__getitem__)
            logger.info(
                "Closing least recently used conversation", extra={"conversation_id": oldest}
            )
            await self.remove(oldest)
        conversation = QueryConversation.from_settings(
            self.settings, self.store, self.client, tenant=tenant
        )
        self._conversations[conversation.id] = conversation
        self._last_active[conversation.id] = self._clock()
        return conversation

    def get(self, conversation_id: str) -> QueryConversation | None:
        """Look up a conversation and mark it active; expired ones are not returned."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None or self._is_expired(conversation_id):
            return None
        self._last_active[conversation_id] = self._clock()
        return conversation

    async def prune(self) -> int:
        """Close conversations idle past the TTL. Returns how many were closed."""
        expired = [cid for cid in self._conversations if self._is_expired(cid)]
        for conversation_id in expired:
            logger.info("Closing idle conversation", extra={"conversation_id": conversation_id})
            await self.remove(conversation_id)
        return len(expired)

    async def remove(self, conversation_id: str) -> bool:
        conversation = self._conversations.pop(conversation_id, None)
        self._last_active.pop(conversation_id, None)
        if conversation is None:
            return False
        await conversation.aclose()
        return True

    async def aclose(self) -> None:
        for conversation_id in list(self._conversations):
            await self.remove(conversation_id)

    def _is_expired(self, conversation_id: str) -> bool:
        if self.idle_ttl_seconds <= 0:
            return False
        last_active = self._last_active.get(conversation_id)
        if last_active is None:
            return False
        return self._clock() - last_active > self.idle_ttl_seconds
