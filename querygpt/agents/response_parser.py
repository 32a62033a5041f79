"""
Response Parser

Turns the chat service's labelled free-text reply into a GeneratedQuery.
Replies that do not follow the label protocol (out-of-scope answers, prose)
become an explicit error variant carrying the reply text.

Expected reply shape (labels are case-insensitive, markdown headings allowed):

    sql query: SELECT ...
    explanation: ...
    suggested indexes:
    CREATE INDEX ...
"""

import logging
import re

from querygpt.agents.result_formatter import filter_index_suggestions, format_sql
from querygpt.models.query import GeneratedQuery

logger = logging.getLogger(__name__)

EMPTY_REPLY_MESSAGE = "The query service returned an empty reply. Please rephrase and try again."

SQL_LABEL = "sql"
EXPLANATION_LABEL = "explanation"
INDEXES_LABEL = "indexes"

_LABEL_PATTERNS = {
    SQL_LABEL: re.compile(r"\bsql\s+query\s*:", re.IGNORECASE),
    EXPLANATION_LABEL: re.compile(r"\bexplanation\s*:", re.IGNORECASE),
    INDEXES_LABEL: re.compile(r"\bsuggested\s+indexes\s*:", re.IGNORECASE),
}
_HEADING_PATTERN = re.compile(
    r"^[ \t]*#+[ \t]*(?=(?:sql\s+query|explanation|suggested\s+indexes)\s*:)",
    re.IGNORECASE | re.MULTILINE,
)
_FENCE_PATTERN = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def normalize_reply(raw_reply: str) -> str:
    """
    Unify line endings, drop heading markers in front of labels and trim.

    Other `#` lines are kept, so MySQL `# comment` lines in the SQL survive.
    """
    text = raw_reply.replace("\r\n", "\n")
    return _HEADING_PATTERN.sub("", text).strip()


def split_labelled_fields(text: str) -> dict[str, str]:
    """
    Map each label found in ``text`` to its content.

    A field runs from the end of its label to the start of the next label
    of any kind, or to the end of the text. Only the first occurrence of
    each label counts.
    """
    found: list[tuple[int, int, str]] = []
    for label, pattern in _LABEL_PATTERNS.items():
        match = pattern.search(text)
        if match:
            found.append((match.start(), match.end(), label))
    found.sort()

    fields: dict[str, str] = {}
    for index, (_, content_start, label) in enumerate(found):
        content_end = found[index + 1][0] if index + 1 < len(found) else len(text)
        fields[label] = text[content_start:content_end].strip()
    return fields


def strip_code_fences(sql: str) -> str:
    match = _FENCE_PATTERN.match(sql.strip())
    if match:
        return match.group(1).strip()
    return sql


class ResponseParser:
    """Parses chat service replies into GeneratedQuery results."""

    def parse(self, raw_reply: str) -> GeneratedQuery:
        """
        Parse one reply.

        Success needs both the SQL and explanation labels and a non-empty
        SQL field. Anything else returns ``GeneratedQuery(error=<reply>)``.
        """
        raw_reply = raw_reply or ""
        fields = split_labelled_fields(normalize_reply(raw_reply))

        sql = strip_code_fences(fields.get(SQL_LABEL, ""))
        if SQL_LABEL not in fields or EXPLANATION_LABEL not in fields or not sql:
            error = raw_reply.strip() or EMPTY_REPLY_MESSAGE
            logger.info(
                "Reply did not contain a labelled query",
                extra={"reply_chars": len(raw_reply), "labels": sorted(fields)},
            )
            return GeneratedQuery(query="", error=error)

        indexes = filter_index_suggestions(fields.get(INDEXES_LABEL, "").split("\n"))
        return GeneratedQuery(
            query=format_sql(sql),
            explanation=fields[EXPLANATION_LABEL] or None,
            suggested_indexes=indexes,
        )
