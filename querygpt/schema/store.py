"""
Schema Context Store

Holds the current SchemaContext. Starts in an explicit not-loaded state,
is read-only between reloads and is replaced wholesale by reload(), never
patched in place.

Usage:
    store = SchemaContextStore.from_settings(get_settings().schema_files)
    store.reload()
    context = store.context
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from querygpt.config import SchemaSettings
from querygpt.models.errors import SchemaLoadError, SchemaNotLoadedError
from querygpt.models.schema import SchemaContext, TableSchema
from querygpt.schema.loader import load_schema_context

logger = logging.getLogger(__name__)

SchemaLoaderFn = Callable[[], SchemaContext]


class SchemaContextStore:
    """
    Injectable owner of the loaded schema.

    Attributes:
        loader: Zero-argument callable returning a fresh SchemaContext
        loaded_at: Time of the last successful load (None until loaded)
    """

    def __init__(self, loader: SchemaLoaderFn, context: SchemaContext | None = None):
        self.loader = loader
        self._context = context
        self.loaded_at: datetime | None = datetime.now(timezone.utc) if context else None

    @classmethod
    def from_settings(cls, settings: SchemaSettings) -> "SchemaContextStore":
        return cls(loader=lambda: load_schema_context(settings))

    @classmethod
    def from_context(cls, context: SchemaContext) -> "SchemaContextStore":
        """Store pre-loaded with a fixed context; reload() returns the same context."""
        return cls(loader=lambda: context, context=context)

    @property
    def is_loaded(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> SchemaContext:
        """
        Current schema context.

        Raises:
            SchemaNotLoadedError: If no load has succeeded yet
        """
        if self._context is None:
            raise SchemaNotLoadedError()
        return self._context

    def reload(self) -> SchemaContext:
        """
        Rebuild the context from the loader and swap it in.

        On failure the previous context (if any) stays current.

        Raises:
            SchemaLoadError: If the loader fails
        """
        try:
            context = self.loader()
        except SchemaLoadError:
            logger.error(
                "Schema reload failed; keeping previous context",
                extra={"was_loaded": self.is_loaded},
            )
            raise
        except Exception as e:
            logger.error(f"Schema reload failed: {e}", exc_info=True)
            raise SchemaLoadError(f"Schema reload failed: {e}") from e

        self._context = context
        self.loaded_at = datetime.now(timezone.utc)
        logger.info(
            f"Schema context ready: {len(context.tables)} tables",
            extra={"tables": len(context.tables)},
        )
        return context

    def ensure_loaded(self) -> SchemaContext:
        """Load on first use, otherwise return the current context."""
        if self._context is None:
            return self.reload()
        return self._context

    def search(self, term: str) -> list[TableSchema]:
        return self.context.search(term)
