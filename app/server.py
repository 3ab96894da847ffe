"""
Handbook RAG - Web API Server
------------------------------
FastAPI server that wraps ChatService.

Endpoints:
  GET  /health               -> document / session / search status
  POST /chat                 -> one chat exchange (handbook + web context)
  POST /tools/search_tavily  -> direct web-search lookup

Run from the project root:
    uvicorn app.server:app --port 3001
or:
    handbook-rag serve
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from handbook_rag.config import Settings
from handbook_rag.errors import CompletionFailure, ConfigError
from handbook_rag.memory.session_store import DEFAULT_SESSION_ID
from handbook_rag.serving.pipeline import ChatService, failure_response
from handbook_rag.utils.logger import setup_logger


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    use_rag: bool = Field(True, alias="useRAG")
    session_id: Optional[str] = Field(DEFAULT_SESSION_ID, alias="sessionId")

    @field_validator("use_rag", mode="before")
    @classmethod
    def default_use_rag(cls, v):
        return True if v is None else v

    @field_validator("session_id")
    @classmethod
    def default_session(cls, v: Optional[str]) -> str:
        return v or DEFAULT_SESSION_ID


class ChatResponse(BaseModel):
    reply: str
    sources: list[str]


class SearchParameters(BaseModel):
    query: str


class SearchRequest(BaseModel):
    parameters: SearchParameters


class SearchResponse(BaseModel):
    result: Optional[str] = None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def _get_service(app: FastAPI) -> ChatService:
    service = getattr(app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service


def create_app(service: Optional[ChatService] = None) -> FastAPI:
    """
    Build the API.  When `service` is None, the lifespan hook configures
    logging and builds one from the environment; missing completion
    credentials abort startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is None:
            try:
                settings = Settings.from_env()
            except ConfigError as exc:
                logger.error(f"[Server] {exc}")
                raise
            setup_logger(log_level=settings.log_level, log_file=settings.log_file)
            app.state.service = ChatService.from_settings(settings)
            logger.info(
                f"[Server] Service ready | deployment={settings.azure_deployment} | "
                f"search={'on' if settings.search_enabled else 'off'}"
            )

        loop = asyncio.get_running_loop()
        loaded = await loop.run_in_executor(None, app.state.service.load_document)
        logger.info(f"[Server] Initial document load attempt complete | loaded={loaded}")
        yield
        logger.info("[Server] Shutting down.")

    app = FastAPI(
        title="Handbook RAG Chat API",
        description="Retrieval-augmented chat over the employee handbook and web search",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service
    # One asyncio.Lock per session id; same-session requests wait here, off the thread pool.
    session_locks: dict[str, asyncio.Lock] = {}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health():
        """Return document, session, and search status."""
        svc = _get_service(app)
        return {
            "status": "ok",
            "document_loaded": svc.loader.is_loaded,
            "chunks": len(svc.loader.chunks),
            "sessions": len(svc.store),
            "search_enabled": svc.search_enabled,
            "top_k": svc.retriever.top_k,
        }

    @app.post("/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest):
        """
        Run one chat exchange.

        The blocking service call runs in the thread-pool executor so the
        event loop stays free while the model responds.  Requests for the
        same session queue on an asyncio lock before reaching the pool, so
        a slow session never ties up worker threads other sessions need.
        """
        svc = _get_service(app)

        if not request.message.strip():
            raise HTTPException(status_code=400, detail="Message cannot be empty")

        session_lock = session_locks.setdefault(request.session_id, asyncio.Lock())
        loop = asyncio.get_running_loop()
        try:
            async with session_lock:
                result = await loop.run_in_executor(
                    None,
                    partial(
                        svc.chat,
                        request.message,
                        use_rag=request.use_rag,
                        session_id=request.session_id,
                    ),
                )
        except CompletionFailure as exc:
            status_code = 504 if exc.timed_out else 500
            return JSONResponse(status_code=status_code, content=failure_response(exc))

        return ChatResponse(**result.to_response())

    @app.post("/tools/search_tavily", response_model=SearchResponse)
    async def search_tavily(request: SearchRequest):
        """Direct web-search lookup; returns null when nothing was found."""
        svc = _get_service(app)
        query = request.parameters.query
        logger.info(f"[Server] Search tool | query={query[:80]!r}")

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, svc.web_search, query)
        return SearchResponse(result=result)

    return app


app = create_app()
