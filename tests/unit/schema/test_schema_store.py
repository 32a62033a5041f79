"""Unit tests for SchemaContextStore."""

from unittest.mock import Mock

import pytest

from querygpt.config import SchemaSettings
from querygpt.models.errors import SchemaLoadError, SchemaNotLoadedError
from querygpt.models.schema import SchemaContext, TableSchema
from querygpt.schema.store import SchemaContextStore


class TestSchemaContextStore:
    """Test the load lifecycle."""

    def test_starts_not_loaded(self):
        store = SchemaContextStore(loader=Mock())
        assert not store.is_loaded
        assert store.loaded_at is None
        with pytest.raises(SchemaNotLoadedError):
            _ = store.context

    def test_reload_swaps_context(self, schema_context):
        store = SchemaContextStore(loader=Mock(return_value=schema_context))
        assert store.reload() is schema_context
        assert store.is_loaded
        assert store.context is schema_context
        assert store.loaded_at is not None

    def test_reload_replaces_wholesale(self, schema_context):
        replacement = SchemaContext(tables=[TableSchema(name="other")])
        loader = Mock(side_effect=[schema_context, replacement])
        store = SchemaContextStore(loader=loader)

        store.reload()
        store.reload()

        assert store.context is replacement
        assert [table.name for table in store.context.tables] == ["other"]

    def test_failed_reload_keeps_previous(self, schema_context):
        loader = Mock(side_effect=[schema_context, SchemaLoadError("broken file")])
        store = SchemaContextStore(loader=loader)
        store.reload()

        with pytest.raises(SchemaLoadError):
            store.reload()
        assert store.context is schema_context

    def test_unexpected_loader_error_wrapped(self):
        store = SchemaContextStore(loader=Mock(side_effect=RuntimeError("boom")))
        with pytest.raises(SchemaLoadError, match="boom"):
            store.reload()
        assert not store.is_loaded

    def test_ensure_loaded_loads_once(self, schema_context):
        loader = Mock(return_value=schema_context)
        store = SchemaContextStore(loader=loader)
        store.ensure_loaded()
        store.ensure_loaded()
        assert loader.call_count == 1

    def test_from_context_is_loaded(self, schema_context):
        store = SchemaContextStore.from_context(schema_context)
        assert store.is_loaded
        assert store.reload() is schema_context

    def test_from_settings_reads_files(self, tmp_path):
        csv_path = tmp_path / "schema.csv"
        csv_path.write_text("h,h,h,h,h\nck_user,loginid,varchar,NO,PRI\n", encoding="utf-8")
        store = SchemaContextStore.from_settings(SchemaSettings(csv_path=csv_path))

        assert not store.is_loaded
        store.reload()
        assert store.context.get_table("CK_USER").name == "ck_user"

    def test_search(self, schema_store):
        assert [table.name for table in schema_store.search("outletname")] == [
            "ck_outlet_details"
        ]
