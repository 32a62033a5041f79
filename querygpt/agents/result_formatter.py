"""
Result Formatter

Pretty-prints generated SQL with sqlparse and drops degenerate index
suggestions. Both helpers are pure and never raise.
"""

import logging
import re
from collections.abc import Iterable

import sqlparse

logger = logging.getLogger(__name__)

_PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]*)\}")
_EMPTY_SUGGESTIONS = {"none", "n/a", "na", "nil", "null"}
_DASHES = set("-—–")

# Only these words are uppercased. sqlparse's lexer also tags ordinary
# column names (role, source, level, status) as keywords.
CLAUSE_KEYWORDS = frozenset(
    {
        "select", "distinct", "from", "where", "group", "order", "by", "having",
        "limit", "offset", "join", "inner", "left", "right", "full", "outer",
        "cross", "on", "using", "as", "and", "or", "not", "in", "is", "null",
        "like", "between", "exists", "case", "when", "then", "else", "end",
        "union", "all", "intersect", "except", "with", "asc", "desc",
        "insert", "into", "values", "update", "set", "delete",
    }
)


def _upper_clause_keywords(sql: str) -> str:
    parts: list[str] = []
    for statement in sqlparse.parse(sql):
        for token in statement.flatten():
            words = token.value.lower().split()
            if token.is_keyword and words and all(word in CLAUSE_KEYWORDS for word in words):
                parts.append(token.value.upper())
            else:
                parts.append(token.value)
    return "".join(parts)


def format_sql(sql: str) -> str:
    """
    Reindent SQL and uppercase clause keywords.

    Identifiers keep the casing the model wrote, even where sqlparse
    considers them keywords. ``${param}`` placeholders survive formatting
    unchanged. Any formatter failure returns the input as-is.
    """
    if not sql or not sql.strip():
        return sql

    placeholders: list[str] = []

    def _protect(match: re.Match) -> str:
        placeholders.append(match.group(0))
        return f"__qgpt_param_{len(placeholders) - 1}__"

    try:
        protected = _PLACEHOLDER_PATTERN.sub(_protect, sql)
        formatted = _upper_clause_keywords(sqlparse.format(protected, reindent=True)).strip()
        for index, original in enumerate(placeholders):
            formatted = formatted.replace(f"__qgpt_param_{index}__", original)
        return formatted or sql
    except Exception as e:
        logger.debug(f"SQL formatting failed, keeping raw text: {e}")
        return sql


def _is_degenerate(line: str) -> bool:
    normalized = line.strip().rstrip(".;:!").strip().lower()
    if not normalized:
        return True
    if normalized in _EMPTY_SUGGESTIONS:
        return True
    return all(char in _DASHES for char in normalized)


def filter_index_suggestions(lines: Iterable[str]) -> list[str]:
    """Trimmed suggestion lines, without "None", "N/A", dashes or blanks."""
    return [line.strip() for line in lines if not _is_degenerate(line)]
