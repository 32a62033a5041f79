"""
Schema Module

Schema loading, the schema context store, the business concept glossary and
the known tenant list.
"""

from querygpt.schema.concepts import CONCEPT_HINTS, ConceptHint, render_concept_hints
from querygpt.schema.loader import load_schema_context, parse_schema_csv
from querygpt.schema.store import SchemaContextStore
from querygpt.schema.tenants import TENANTS, is_known_tenant, search_tenants

__all__ = [
    "CONCEPT_HINTS",
    "ConceptHint",
    "render_concept_hints",
    "load_schema_context",
    "parse_schema_csv",
    "SchemaContextStore",
    "TENANTS",
    "is_known_tenant",
    "search_tenants",
]
