"""Fork AI FastAPI application entry point."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from anthropic import AsyncAnthropic
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from forkai.chat.router import get_chat_service
from forkai.chat.router import router as chat_router
from forkai.chat.service import ChatService
from forkai.collections.router import get_collection_service
from forkai.collections.router import router as collections_router
from forkai.collections.service import CollectionService
from forkai.conversations.router import get_conversation_service
from forkai.conversations.router import router as conversations_router
from forkai.conversations.service import ConversationService
from forkai.db.connection import Database
from forkai.messages.router import get_message_service
from forkai.messages.router import router as messages_router
from forkai.messages.service import MessageService
from forkai.providers.anthropic import AnthropicProvider
from forkai.providers.openai import OpenAIProvider
from forkai.providers.registry import clear_providers, get_all_providers, register_provider

DEFAULT_CORS_ORIGINS = "http://localhost:3000"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and service wiring."""
    # Load .env from backend/ directory (secrets stay out of shell profile)
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")

    db = await Database.connect(os.environ.get("FORKAI_DB_PATH", "forkai.db"))

    collection_service = CollectionService(db)
    app.dependency_overrides[get_collection_service] = lambda: collection_service

    conversation_service = ConversationService(db)
    app.dependency_overrides[get_conversation_service] = lambda: conversation_service

    message_service = MessageService(db)
    app.dependency_overrides[get_message_service] = lambda: message_service

    # Provider setup: auto-discover from env vars
    if os.environ.get("ANTHROPIC_API_KEY"):
        register_provider(AnthropicProvider(AsyncAnthropic()))

    if os.environ.get("OPENAI_API_KEY"):
        register_provider(OpenAIProvider(api_key=os.environ["OPENAI_API_KEY"]))

    chat_service = ChatService(
        db, default_provider=os.environ.get("FORKAI_DEFAULT_PROVIDER", "anthropic")
    )
    app.dependency_overrides[get_chat_service] = lambda: chat_service

    app.state.db = db
    yield

    clear_providers()
    await db.close()


app = FastAPI(
    title="Fork AI",
    description="Branching chat conversations laid out as an editable tree",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.environ.get("FORKAI_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(collections_router)
app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(chat_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are client errors (400)."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@app.get("/api/providers")
async def providers() -> list[dict]:
    return [
        {"name": p.name, "available": True, "models": p.suggested_models}
        for p in get_all_providers()
    ]
