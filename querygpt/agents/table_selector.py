"""
Table Relevance Selector

Proposes the tables relevant to a question. Asks the chat service first
with a context-free request, and falls back to a deterministic
keyword-overlap ranking whenever the service fails or names no known table.

Usage:
    selector = TableSelector(client)
    shortlist = await selector.suggest_tables(
        "show active users by role", "lbpl", context.descriptions_map()
    )
"""

import asyncio
import json
import logging
import re
from collections.abc import Iterable, Mapping

from querygpt.llm.client import ChatServiceClient
from querygpt.llm.models import ChatRequest
from querygpt.models.errors import ChatServiceError
from querygpt.models.query import TicketContext
from querygpt.prompts import PromptLoader

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_LIMIT = 6
DEFAULT_MIN_WORD_LENGTH = 3

_SPLIT_PATTERN = re.compile(r"[,\n]")
_QUOTE_CHARS = "\"'`"


def _question_words(question: str, min_word_length: int) -> list[str]:
    words: list[str] = []
    for word in re.split(r"\W+", question.lower()):
        if len(word) >= min_word_length and word not in words:
            words.append(word)
    return words


def score_tables(
    question: str,
    table_descriptions: Mapping[str, str],
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
) -> list[tuple[str, int]]:
    """
    Score every table by keyword overlap with the question.

    A table's score is the number of distinct question words found as
    substrings of ``"{name} {description}"`` (lowercased). Pairs are
    returned in catalog order.
    """
    words = _question_words(question, min_word_length)
    scores: list[tuple[str, int]] = []
    for name, description in table_descriptions.items():
        haystack = f"{name} {description or ''}".lower()
        scores.append((name, sum(1 for word in words if word in haystack)))
    return scores


def fallback_suggest_tables(
    question: str,
    table_descriptions: Mapping[str, str],
    limit: int = DEFAULT_FALLBACK_LIMIT,
    min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
) -> list[str]:
    """
    Rank tables by keyword overlap, best first.

    Only tables with a positive score are returned, at most ``limit`` of
    them. Ties keep catalog order.
    """
    scored = [
        (name, score)
        for name, score in score_tables(question, table_descriptions, min_word_length)
        if score > 0
    ]
    scored.sort(key=lambda item: item[1], reverse=True)
    return [name for name, _ in scored[:limit]]


def filter_known_tables(reply: str, known_tables: Iterable[str]) -> list[str]:
    """
    Extract known table names from a selector reply.

    Names are matched case-insensitively and returned in their stored
    casing, de-duplicated in first-seen order. Unknown names are dropped.
    """
    canonical: dict[str, str] = {}
    for name in known_tables:
        canonical.setdefault(name.lower(), name)

    selected: list[str] = []
    for part in _SPLIT_PATTERN.split(reply or ""):
        candidate = part.strip().strip(_QUOTE_CHARS).strip()
        name = canonical.get(candidate.lower())
        if name and name not in selected:
            selected.append(name)
    return selected


class TableSelector:
    """
    Shortlists relevant tables for a question.

    Never raises for remote failures: the keyword fallback always yields a
    (possibly empty) list.
    """

    def __init__(
        self,
        client: ChatServiceClient,
        prompts: PromptLoader | None = None,
        fallback_limit: int = DEFAULT_FALLBACK_LIMIT,
        min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
    ):
        self.client = client
        self.prompts = prompts or PromptLoader()
        self.fallback_limit = fallback_limit
        self.min_word_length = min_word_length
        self._background_tasks: set[asyncio.Task] = set()

    def build_prompt(
        self,
        question: str,
        tenant: str,
        table_descriptions: Mapping[str, str],
        ticket_context: TicketContext | None = None,
    ) -> str:
        return self.prompts.render(
            "agents/table_selector.md",
            question=question,
            tenant=tenant,
            table_descriptions_json=json.dumps(dict(table_descriptions), indent=2),
            ticket=ticket_context,
        )

    async def suggest_tables(
        self,
        question: str,
        tenant: str,
        table_descriptions: Mapping[str, str],
        ticket_context: TicketContext | None = None,
    ) -> list[str]:
        """
        Shortlist tables for ``question``.

        Args:
            question: Natural-language question
            tenant: Tenant the question is asked for
            table_descriptions: ``{table: description}`` catalog
            ticket_context: Optional ticket enrichment

        Returns:
            Known table names, most relevant first
        """
        prompt = self.build_prompt(question, tenant, table_descriptions, ticket_context)

        try:
            reply = await self.client.send(ChatRequest(message=prompt))
        except ChatServiceError as e:
            logger.warning(
                f"Table selection failed, using keyword fallback: {e.message}",
                extra={"status_code": e.status_code, "tenant": tenant},
            )
            return self._fallback(question, table_descriptions)

        if reply.session_id:
            self._discard_session(reply.session_id)

        tables = filter_known_tables(reply.reply, table_descriptions.keys())
        if not tables:
            logger.warning(
                "Table selection reply named no known table, using keyword fallback",
                extra={"reply_chars": len(reply.reply), "tenant": tenant},
            )
            return self._fallback(question, table_descriptions)

        logger.info(
            f"Selected {len(tables)} tables",
            extra={"tables": tables, "tenant": tenant},
        )
        return tables

    async def flush_background_tasks(self) -> None:
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def _fallback(self, question: str, table_descriptions: Mapping[str, str]) -> list[str]:
        return fallback_suggest_tables(
            question,
            table_descriptions,
            limit=self.fallback_limit,
            min_word_length=self.min_word_length,
        )

    def _discard_session(self, session_id: str) -> None:
        # Context-free requests must not leave sessions open on the service
        task = asyncio.create_task(self.client.end_session(session_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
