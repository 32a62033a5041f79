"""
Session Manager

Owns the chat service session handle of one conversation and decides, per
turn, between a cold turn (new session, full instruction) and a follow-up
turn (existing session, bare question).

States:
    NoSession --cold turn--> SessionOpen --end_session()--> NoSession
    SessionOpen --cold turn--> (old session ended) SessionOpen
"""

import asyncio
import logging
from collections.abc import Sequence

from querygpt.agents.prompt_compiler import PromptCompiler
from querygpt.agents.response_parser import ResponseParser
from querygpt.llm.client import ChatServiceClient
from querygpt.llm.models import ChatReply, ChatRequest
from querygpt.models.query import GeneratedQuery, Session, TicketContext
from querygpt.models.schema import SchemaContext

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Runs generation turns against the chat service.

    Attributes:
        client: Chat service transport
        compiler: Builds cold-turn instructions and messages
        parser: Parses replies into GeneratedQuery results
    """

    def __init__(
        self,
        client: ChatServiceClient,
        compiler: PromptCompiler | None = None,
        parser: ResponseParser | None = None,
    ):
        self.client = client
        self.compiler = compiler or PromptCompiler()
        self.parser = parser or ResponseParser()
        self._session: Session | None = None
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def has_session(self) -> bool:
        return self._session is not None

    async def generate(
        self,
        question: str,
        tenant: str,
        selected_tables: Sequence[str] | None = None,
        schema_context: SchemaContext | None = None,
        ticket_context: TicketContext | None = None,
    ) -> GeneratedQuery:
        """
        Run one generation turn.

        A cold turn runs when tables are selected and a schema is given, or
        when no session is open. Otherwise the open session is continued.

        Raises:
            ChatServiceError: On transport failure. A failed follow-up keeps
                the session; a failed cold turn has already ended the old one.
        """
        is_cold = bool(selected_tables) and schema_context is not None
        if not is_cold and self._session is not None:
            return await self._followup_turn(question, self._session)

        return await self._cold_turn(
            question,
            tenant,
            list(selected_tables or []),
            schema_context or SchemaContext(),
            ticket_context,
        )

    async def end_session(self) -> None:
        """
        Forget the open session and tell the service in the background.

        Returns immediately; the termination call's outcome is ignored.
        """
        session = self._session
        if session is None:
            return
        self._session = None
        logger.debug("Ending chat session", extra={"session_id": session.id})
        self._launch(self.client.end_session(session.id))

    async def flush_background_tasks(self) -> None:
        """Wait for outstanding termination calls."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.end_session()
        await self.flush_background_tasks()

    async def _cold_turn(
        self,
        question: str,
        tenant: str,
        selected_tables: list[str],
        schema_context: SchemaContext,
        ticket_context: TicketContext | None,
    ) -> GeneratedQuery:
        request = ChatRequest(
            message=self.compiler.build_turn_message(question, tenant),
            system_instruction=self.compiler.build_instruction(
                selected_tables, schema_context, ticket_context
            ),
        )
        await self.end_session()

        reply = await self.client.send(request)
        self._store_session(reply)
        logger.info(
            "Cold turn completed",
            extra={"tenant": tenant, "tables": selected_tables, "has_session": self.has_session},
        )
        return self.parser.parse(reply.reply)

    async def _followup_turn(self, question: str, session: Session) -> GeneratedQuery:
        reply = await self.client.send(ChatRequest(message=question, session_id=session.id))
        self._store_session(reply)
        logger.info("Follow-up turn completed", extra={"session_id": session.id})
        return self.parser.parse(reply.reply)

    def _store_session(self, reply: ChatReply) -> None:
        if reply.session_id and (self._session is None or reply.session_id != self._session.id):
            self._session = Session(id=reply.session_id)

    def _launch(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Background session task failed (ignored): {error}")
