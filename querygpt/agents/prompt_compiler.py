"""
Prompt Compiler

Builds the session-opening instruction (schema, joins, concept hints,
ticket context and output-format rules) and the per-turn user message.
The instruction is sent once per session and never on follow-up turns.
"""

import logging
from collections.abc import Sequence

from querygpt.config import PromptSettings
from querygpt.models.query import TicketContext
from querygpt.models.schema import SchemaContext
from querygpt.prompts import PromptLoader
from querygpt.schema.concepts import render_concept_hints

logger = logging.getLogger(__name__)

DEFAULT_ASSISTANT_NAME = "SalesCode QueryGPT"
DEFAULT_MAX_TICKET_CHARS = 4000


def _resolve_selection(selected_tables: Sequence[str], schema_context: SchemaContext) -> list[str]:
    """Canonical casing for each selected table, duplicates removed, order kept."""
    resolved: list[str] = []
    seen: set[str] = set()
    for name in selected_tables:
        name = name.strip()
        if not name:
            continue
        canonical = schema_context.canonical_table_name(name) or name
        if canonical.lower() in seen:
            continue
        seen.add(canonical.lower())
        resolved.append(canonical)
    return resolved


def format_schema_block(selected_tables: Sequence[str], schema_context: SchemaContext) -> str:
    """
    Render the selected tables with their columns.

    Column lines read ``name (type[, PRI]) — description [Example: ...]``.
    Only the selected tables appear, in selection order.
    """
    blocks: list[str] = []
    for name in _resolve_selection(selected_tables, schema_context):
        description = schema_context.describe_table(name)
        lines = [f"Table {name}: {description}" if description else f"Table {name}"]

        table = schema_context.get_table(name)
        if table is None:
            lines.append("  (columns unavailable)")
            blocks.append("\n".join(lines))
            continue

        for field in table.fields:
            type_label = f"{field.type}, PRI" if field.is_primary else field.type
            line = f"  - {field.name} ({type_label})"
            column = schema_context.describe_column(name, field.name)
            if column is not None:
                if column.description:
                    line = f"{line} — {column.description}"
                if column.example:
                    line = f"{line} [Example: {column.example}]"
            lines.append(line)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_joins_block(selected_tables: Sequence[str], schema_context: SchemaContext) -> str:
    """Relationships whose both endpoints are among the selected tables."""
    selected = {name.strip().lower() for name in selected_tables}
    lines = [
        f"- {relationship.render()}"
        for relationship in schema_context.relationships
        if relationship.from_table.lower() in selected
        and relationship.to_table.lower() in selected
    ]
    return "\n".join(lines)


def format_column_mappings_block(
    selected_tables: Sequence[str], schema_context: SchemaContext
) -> str:
    """Generic join hints pointing at one of the selected tables."""
    selected = {name.strip().lower() for name in selected_tables}
    lines: list[str] = []
    for mapping in schema_context.column_mappings:
        if mapping.to_table.lower() not in selected:
            continue
        columns = ", ".join(sorted(mapping.from_columns))
        line = f"- columns named {columns} reference {mapping.to_table}.{mapping.to_column}"
        if mapping.description:
            line = f"{line} ({mapping.description})"
        lines.append(line)
    return "\n".join(lines)


class PromptCompiler:
    """
    Compiles prompts for cold and follow-up turns.

    Attributes:
        assistant_name: Name the model uses for itself in out-of-scope replies
        max_ticket_chars: Cap on the ticket description carried into prompts
    """

    def __init__(
        self,
        prompts: PromptLoader | None = None,
        assistant_name: str = DEFAULT_ASSISTANT_NAME,
        max_ticket_chars: int = DEFAULT_MAX_TICKET_CHARS,
    ):
        self.prompts = prompts or PromptLoader()
        self.assistant_name = assistant_name
        self.max_ticket_chars = max_ticket_chars

    @classmethod
    def from_settings(
        cls, settings: PromptSettings, prompts: PromptLoader | None = None
    ) -> "PromptCompiler":
        return cls(
            prompts=prompts,
            assistant_name=settings.assistant_name,
            max_ticket_chars=settings.max_ticket_chars,
        )

    def build_instruction(
        self,
        selected_tables: Sequence[str],
        schema_context: SchemaContext,
        ticket_context: TicketContext | None = None,
    ) -> str:
        """
        Render the session-opening instruction.

        Args:
            selected_tables: Confirmed tables, in display order (may be empty)
            schema_context: Loaded schema
            ticket_context: Optional ticket enrichment

        Returns:
            Instruction text for the ``systemInstruction`` field
        """
        instruction = self.prompts.render(
            "system/query_generator.md",
            assistant_name=self.assistant_name,
            schema_block=format_schema_block(selected_tables, schema_context),
            joins_block=format_joins_block(selected_tables, schema_context),
            column_mappings_block=format_column_mappings_block(selected_tables, schema_context),
            concept_hints=render_concept_hints(),
            ticket_block=self.format_ticket_block(ticket_context),
        )
        logger.debug(
            "Instruction compiled",
            extra={
                "tables": list(selected_tables),
                "has_ticket": ticket_context is not None,
                "instruction_chars": len(instruction),
            },
        )
        return instruction

    def build_turn_message(self, question: str, tenant: str) -> str:
        """User message of a cold turn."""
        return f"User (tenant: {tenant}): {question}"

    def format_ticket_block(self, ticket_context: TicketContext | None) -> str:
        if ticket_context is None:
            return ""
        lines = [f"Key: {ticket_context.key}"]
        if ticket_context.summary:
            lines.append(f"Summary: {ticket_context.summary}")
        if ticket_context.status:
            lines.append(f"Status: {ticket_context.status}")
        if ticket_context.project:
            lines.append(f"Project: {ticket_context.project}")
        if ticket_context.description:
            description = self._truncate_context(ticket_context.description, self.max_ticket_chars)
            lines.append(f"Description:\n{description}")
        return "\n".join(lines)

    def _truncate_context(self, text: str, max_chars: int) -> str:
        if len(text) <= max_chars:
            return text
        truncated = text[:max_chars].rstrip()
        return f"{truncated}\n\n[Ticket description truncated to {max_chars} characters.]"
