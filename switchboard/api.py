"""switchboard/api.py

FastAPI HTTP interface for the orchestration core.

Endpoints:
  GET  /health               liveness probe with the live connection count
  GET  /api/mcp/servers      list catalog providers
  POST /api/mcp/recommend    recommend providers for a task
  POST /api/mcp/connect      connect a session to providers
  POST /api/mcp/tools        namespaced tool catalog of a session
  POST /api/mcp/disconnect   disconnect some or all providers of a session
  POST /api/chat             run the turn loop
  GET  /chats                list stored chats
  GET  /chats/{chat_id}      one stored chat
  POST /chats                create a chat
"""

from __future__ import annotations

# Standard Library
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

# Third-Party Libraries
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from ollama import AsyncClient
from pydantic import BaseModel, ConfigDict, Field

# Local Modules
from switchboard.budget import ContextBudget
from switchboard.catalog import ProviderCatalog, default_catalog
from switchboard.chat_store import ChatStore
from switchboard.config import Settings, get_settings
from switchboard.discovery import ToolDiscovery
from switchboard.errors import ProviderConnectionError
from switchboard.model_service import ModelService, OllamaModelService
from switchboard.models import Message, Role
from switchboard.recommend import ProviderRecommender
from switchboard.registry import ConnectionRegistry
from switchboard.turn_loop import TurnLoop

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ToolCallIn(_CamelModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class MessageIn(_CamelModel):
    role: Role
    content: str | None = None
    tool_calls: list[ToolCallIn] = Field(default_factory=list, alias="toolCalls")
    tool_call_id: str | None = Field(None, alias="toolCallId")
    name: str | None = None

    def to_message(self) -> Message:
        return Message.from_dict(self.model_dump(mode="json", by_alias=True))


class ChatRequest(_CamelModel):
    session_id: str = Field(..., min_length=1, alias="sessionId")
    messages: list[MessageIn] = Field(..., min_length=1)
    use_tools: bool = Field(True, alias="useTools")
    max_turns: int | None = Field(None, ge=1, le=50, alias="maxTurns")
    chat_id: str | None = Field(None, alias="chatId")


class SessionRequest(_CamelModel):
    session_id: str = Field(..., min_length=1, alias="sessionId")


class ConnectRequest(SessionRequest):
    server_ids: list[str] = Field(..., min_length=1, alias="serverIds")


class DisconnectRequest(SessionRequest):
    server_ids: list[str] | None = Field(None, alias="serverIds")


class RecommendRequest(_CamelModel):
    query: str = Field(..., min_length=1)
    use_ai: bool = Field(True, alias="useAI")


class CreateChatRequest(_CamelModel):
    provider_id: str | None = Field(None, alias="providerId")


def error_envelope(kind: str, message: str) -> dict[str, Any]:
    return {"error": {"type": kind, "message": message}}


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    catalog: ProviderCatalog | None = None,
    registry: ConnectionRegistry | None = None,
    model: ModelService | None = None,
    recommender: ProviderRecommender | None = None,
) -> FastAPI:
    """Build the HTTP app around one registry and turn loop.

    Every collaborator can be injected; missing ones are built from
    ``settings``.
    """
    settings = settings or get_settings()
    catalog = catalog or default_catalog(settings.workspace_root)
    registry = registry or ConnectionRegistry(catalog, settings)
    if model is None:
        model = OllamaModelService(
            model=settings.ollama_model,
            host=settings.ollama_host,
            timeout=settings.model_timeout,
        )
    if recommender is None:
        recommender = ProviderRecommender(
            catalog,
            client=AsyncClient(host=settings.ollama_host),
            model=settings.ollama_model,
            timeout=settings.model_timeout,
        )
    discovery = ToolDiscovery(registry)
    turn_loop = TurnLoop(
        registry,
        model,
        ContextBudget(settings.context_budget, settings.message_ceiling),
        discovery=discovery,
        max_turns=settings.max_turns,
    )
    chats = ChatStore()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("Shutting down: closing %d provider connections", len(registry))
        await registry.close()

    app = FastAPI(
        title="switchboard",
        version="0.1.0",
        description="Multi-session tool-provider orchestration for chat agents.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.registry = registry
    app.state.chats = chats
    app.state.turn_loop = turn_loop

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(_: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content=error_envelope("InvalidRequest", details))

    @app.get("/health", tags=["meta"])
    async def health() -> dict[str, Any]:
        """Liveness probe."""
        return {"status": "ok", "activeConnections": len(registry)}

    @app.get("/api/mcp/servers", tags=["providers"])
    async def list_servers(
        category: str | None = None, query: str | None = None, limit: int = 20
    ) -> dict[str, Any]:
        servers = [spec.to_dict() for spec in catalog.list(category, query, limit)]
        return {"servers": servers, "total": len(servers)}

    @app.post("/api/mcp/recommend", tags=["providers"])
    async def recommend(body: RecommendRequest) -> dict[str, Any]:
        ids, source = await recommender.recommend(body.query, use_model=body.use_ai)
        recommendations = [catalog.get(provider_id).to_dict() for provider_id in ids]
        return {"recommendations": recommendations, "query": body.query, "source": source}

    @app.post("/api/mcp/connect", tags=["sessions"])
    async def connect(body: ConnectRequest) -> dict[str, Any]:
        """Connect a session to each listed provider.

        Each provider is reported separately; one failure does not stop the
        others.
        """
        results: list[dict[str, Any]] = []
        for provider_id in body.server_ids:
            if registry.get(body.session_id, provider_id) is not None:
                results.append({"id": provider_id, "status": "already connected"})
                continue
            try:
                await registry.connect(body.session_id, provider_id)
            except ProviderConnectionError as exc:
                logger.error("Connect failed: %s", exc)
                results.append(
                    {
                        "id": provider_id,
                        "status": "failed",
                        **error_envelope(type(exc).__name__, exc.reason),
                    }
                )
            else:
                results.append({"id": provider_id, "status": "connected"})
        return {"connectedServers": results}

    @app.post("/api/mcp/tools", tags=["sessions"])
    async def tools(body: SessionRequest) -> dict[str, Any]:
        catalog_tools = await discovery.catalog(body.session_id)
        return {"tools": [tool.to_dict() for tool in catalog_tools]}

    @app.post("/api/mcp/disconnect", tags=["sessions"])
    async def disconnect(body: DisconnectRequest) -> dict[str, Any]:
        if body.server_ids is None:
            disconnected = await registry.disconnect_all(body.session_id)
        else:
            disconnected = [
                provider_id
                for provider_id in body.server_ids
                if await registry.disconnect(body.session_id, provider_id)
            ]
        return {"disconnected": disconnected}

    @app.post("/api/chat", tags=["chat"])
    async def chat(body: ChatRequest) -> JSONResponse:
        """Run the turn loop for one request.

        Returns the final (or partial) assistant message with the full tool
        call and result trace.
        """
        messages = [message.to_message() for message in body.messages]
        outcome = await turn_loop.run(
            body.session_id,
            messages,
            use_tools=body.use_tools,
            max_turns=body.max_turns,
        )
        content: dict[str, Any] = {
            "message": outcome.message.to_dict(),
            "toolCalls": [call.to_dict() for call in outcome.tool_calls],
            "toolResults": [result.to_dict() for result in outcome.tool_results],
            "state": outcome.state.value,
            "aborted": outcome.aborted,
            "turns": outcome.turns,
        }
        if outcome.error is not None:
            content["reason"] = str(outcome.error)

        if body.chat_id is not None:
            stored = chats.get_or_create(body.chat_id)
            last_user = next(
                (m for m in reversed(messages) if m.role is Role.USER), None
            )
            if last_user is not None:
                chats.add_message(stored.id, last_user.to_dict())
            chats.add_message(stored.id, outcome.message.to_dict())
            content["chatId"] = stored.id
        return JSONResponse(content=content)

    @app.get("/chats", tags=["chats"])
    async def list_chats() -> list[dict[str, Any]]:
        return chats.list()

    @app.get("/chats/{chat_id}", tags=["chats"])
    async def get_chat(chat_id: str) -> JSONResponse:
        stored = chats.get(chat_id)
        if stored is None:
            return JSONResponse(
                status_code=404, content=error_envelope("NotFound", "Chat not found")
            )
        return JSONResponse(content=stored.to_dict())

    @app.post("/chats", tags=["chats"])
    async def create_chat(body: CreateChatRequest | None = None) -> dict[str, Any]:
        stored = chats.create(body.provider_id if body else None)
        return stored.to_dict()

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api() -> None:
    """Start the HTTP server via uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting switchboard API on %s:%d", settings.api_host, settings.api_port)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run_api()
