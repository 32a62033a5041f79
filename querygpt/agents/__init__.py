"""
Agents Module

The query-generation building blocks: table selection, prompt compilation,
reply parsing and result formatting.
"""

from querygpt.agents.prompt_compiler import (
    PromptCompiler,
    format_column_mappings_block,
    format_joins_block,
    format_schema_block,
)
from querygpt.agents.response_parser import ResponseParser
from querygpt.agents.result_formatter import filter_index_suggestions, format_sql
from querygpt.agents.table_selector import (
    TableSelector,
    fallback_suggest_tables,
    filter_known_tables,
    score_tables,
)

__all__ = [
    "PromptCompiler",
    "format_column_mappings_block",
    "format_joins_block",
    "format_schema_block",
    "ResponseParser",
    "filter_index_suggestions",
    "format_sql",
    "TableSelector",
    "fallback_suggest_tables",
    "filter_known_tables",
    "score_tables",
]
