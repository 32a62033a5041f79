"""Tests for schema and query models."""

import pytest
from pydantic import ValidationError

from querygpt.models.errors import ConversationStateError, SchemaNotLoadedError
from querygpt.models.query import ChatMessage, GeneratedQuery, TicketContext
from querygpt.models.schema import (
    ColumnToTableMapping,
    SchemaContext,
    TableField,
    TableSchema,
)


class TestTableSchema:
    def test_fields_sorted_primary_first(self):
        table = TableSchema(
            name="t",
            fields=[
                TableField(name="b"),
                TableField(name="Z", is_primary=True),
                TableField(name="a"),
            ],
        )
        assert table.field_names() == ["Z", "a", "b"]

    def test_frozen(self):
        table = TableSchema(name="t")
        with pytest.raises(ValidationError):
            table.name = "u"


class TestSchemaContext:
    """Test ordering invariants and lookups."""

    def test_tables_sorted(self):
        context = SchemaContext(tables=[TableSchema(name="b"), TableSchema(name="A")])
        assert [table.name for table in context.tables] == ["A", "b"]

    def test_string_column_description_coerced(self):
        context = SchemaContext(column_descriptions={"t": {"c": "text"}})
        assert context.describe_column("t", "c").description == "text"
        assert context.describe_column("T", "C").description == "text"

    def test_canonical_table_name(self, schema_context):
        assert schema_context.canonical_table_name(" CK_User ") == "ck_user"
        assert schema_context.canonical_table_name("ck_sku_details") == "ck_sku_details"
        assert schema_context.canonical_table_name("missing") is None

    def test_descriptions_map_includes_every_table(self, schema_context):
        descriptions = schema_context.descriptions_map()
        assert descriptions["ck_user"] == "Application users with role and status"
        assert "ck_sku_details" in descriptions

    def test_search_by_field(self, schema_context):
        assert [table.name for table in schema_context.search("last_login")] == ["ck_user"]

    def test_empty_search_returns_all(self, schema_context):
        assert len(schema_context.search("")) == len(schema_context.tables)


class TestColumnToTableMapping:
    def test_accepts_comma_string(self):
        mapping = ColumnToTableMapping(from_columns="a, b", to_table="t", to_column="id")
        assert mapping.from_columns == frozenset({"a", "b"})

    def test_requires_columns(self):
        with pytest.raises(ValidationError):
            ColumnToTableMapping(from_columns="", to_table="t", to_column="id")


class TestGeneratedQuery:
    def test_error_and_query_exclusive(self):
        with pytest.raises(ValidationError):
            GeneratedQuery(query="SELECT 1", error="oops")

    def test_is_error(self):
        assert GeneratedQuery(error="prose").is_error
        assert not GeneratedQuery(query="SELECT 1").is_error


class TestOtherModels:
    def test_ticket_requires_key(self):
        with pytest.raises(ValidationError):
            TicketContext(key="")

    def test_chat_message_defaults(self):
        message = ChatMessage(role="user", content="hi")
        assert message.id
        assert message.timestamp.tzinfo is not None
        assert not message.is_error

    def test_error_to_dict(self):
        data = ConversationStateError("nothing pending", context={"id": "c1"}).to_dict()
        assert data["component"] == "QueryConversation"
        assert data["recoverable"] is False
        assert data["context"] == {"id": "c1"}

    def test_schema_not_loaded_default_message(self):
        assert "not been loaded" in SchemaNotLoadedError().message
