"""
FastAPI Application

Main FastAPI application for QueryGPT with:
- Lifespan management for schema loading and chat client cleanup
- CORS middleware for the browser UI
- Global exception handlers for QueryGPT errors
- Health, schema and conversation endpoints

Usage:
    uvicorn querygpt.api.main:app --reload --port 8000
"""

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from querygpt import __version__
from querygpt.api.routes import conversations, health, schema
from querygpt.config import get_settings
from querygpt.llm.client import ChatServiceClient
from querygpt.models.errors import (
    ChatServiceError,
    ConversationStateError,
    QueryGPTError,
    SchemaLoadError,
    SchemaNotLoadedError,
)
from querygpt.pipeline.orchestrator import ConversationRegistry
from querygpt.schema.store import SchemaContextStore

logger = logging.getLogger(__name__)

# Global state for long-lived components
app_state = {
    "settings": None,
    "store": None,
    "client": None,
    "conversations": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Schema context store (loaded from the configured files)
    - Chat service client (when CHAT_SERVICE_BASE_URL is set)
    - Conversation registry
    """
    config = get_settings()
    app_state["settings"] = config
    logger.info("Starting QueryGPT API server...")

    try:
        logger.info("Loading schema context...")
        store = SchemaContextStore.from_settings(config.schema_files)
        try:
            store.reload()
        except SchemaLoadError as e:
            logger.warning(f"Schema not loaded at startup: {e.message}")
        app_state["store"] = store

        if config.chat_service.base_url:
            client = ChatServiceClient.from_settings(config.chat_service)
            app_state["client"] = client
            app_state["conversations"] = ConversationRegistry(config, store, client)
        else:
            logger.warning("CHAT_SERVICE_BASE_URL not set; conversations disabled.")
            app_state["client"] = None
            app_state["conversations"] = None

        logger.info("QueryGPT API server started successfully")
        yield  # Application runs here

    finally:
        logger.info("Shutting down QueryGPT API server...")

        if app_state["conversations"]:
            try:
                await app_state["conversations"].aclose()
                logger.info("Conversations closed")
            except Exception as e:
                logger.error(f"Error closing conversations: {e}")

        if app_state["client"]:
            try:
                await app_state["client"].aclose()
                logger.info("Chat service client closed")
            except Exception as e:
                logger.error(f"Error closing chat service client: {e}")

        logger.info("QueryGPT API server shut down complete")


# Create FastAPI app
app = FastAPI(
    title="QueryGPT API",
    description="Natural-language to SQL generation over a tenant schema",
    version=__version__,
    lifespan=lifespan,
)

cors_origins_env = os.getenv("CORS_ORIGINS", "")
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    if cors_origins_env
    else ["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, exc: QueryGPTError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": exc.message,
            "component": exc.component,
            "recoverable": exc.recoverable,
        },
    )


# Exception handlers
@app.exception_handler(SchemaNotLoadedError)
async def schema_not_loaded_handler(request: Request, exc: SchemaNotLoadedError) -> JSONResponse:
    """Schema requested before the first successful load."""
    logger.warning(f"Schema not loaded: {exc.message}")
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "schema_not_loaded", exc)


@app.exception_handler(SchemaLoadError)
async def schema_load_error_handler(request: Request, exc: SchemaLoadError) -> JSONResponse:
    logger.error(f"Schema load error: {exc.message}", extra=exc.context)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "schema_load_error", exc)


@app.exception_handler(ConversationStateError)
async def conversation_state_handler(
    request: Request, exc: ConversationStateError
) -> JSONResponse:
    """Operation not valid in the conversation's current state."""
    return _error_response(status.HTTP_409_CONFLICT, "conversation_state_error", exc)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    """Chat service failures that escaped a turn; only the safe message is returned."""
    logger.error(f"Chat service error: {exc.message}", extra={"status_code": exc.status_code})
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "chat_service_error",
            "message": exc.user_message,
            "recoverable": exc.recoverable,
        },
    )


@app.exception_handler(QueryGPTError)
async def querygpt_error_handler(request: Request, exc: QueryGPTError) -> JSONResponse:
    """Handle remaining component errors with context."""
    logger.error(
        f"QueryGPT error: {exc}",
        extra={"component": exc.component, "recoverable": exc.recoverable},
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "querygpt_error", exc)


# Include routers
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(schema.router, prefix="/api/v1", tags=["schema"])
app.include_router(conversations.router, prefix="/api/v1", tags=["conversations"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "QueryGPT API",
        "version": __version__,
        "description": "Natural-language to SQL generation",
        "docs": "/docs",
    }


def get_store() -> SchemaContextStore:
    """Get the initialized schema store."""
    if app_state["store"] is None:
        raise SchemaNotLoadedError("Schema store not initialized")
    return app_state["store"]


def get_registry() -> ConversationRegistry | None:
    return app_state["conversations"]
