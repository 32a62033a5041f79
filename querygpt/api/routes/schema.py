"""
Schema Routes

Schema explorer listing and reload.
"""

import logging

from fastapi import APIRouter, Query

from querygpt.models.api import SchemaReloadResponse, SchemaResponse, TableSummary

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/schema", response_model=SchemaResponse)
async def get_schema(
    search: str = Query(default="", description="Filter by table or column name"),
) -> SchemaResponse:
    """
    List tables with their columns.

    Raises 503 while the schema is not loaded.
    """
    from querygpt.api.main import get_store

    store = get_store()
    context = store.context
    tables = [
        TableSummary(
            name=table.name,
            description=context.describe_table(table.name),
            fields=list(table.fields),
        )
        for table in context.search(search)
    ]
    return SchemaResponse(tables=tables, total=len(tables), loaded_at=store.loaded_at)


@router.post("/schema/reload", response_model=SchemaReloadResponse)
async def reload_schema() -> SchemaReloadResponse:
    """Reload the schema from the configured files; the old schema stays on failure."""
    from querygpt.api.main import get_store

    store = get_store()
    context = store.reload()
    logger.info("Schema reloaded via API", extra={"tables": len(context.tables)})
    return SchemaReloadResponse(tables=len(context.tables), loaded_at=store.loaded_at)
