"""
Chat Serving Pipeline
----------------------
Orchestrates one chat exchange:

    user message
        |
        v
    DocumentLoader (lazy, single-flight; failures -> context-free mode)
        |
        v
    KeywordRetriever (top 3 handbook chunks)    TavilySearch (optional snippet)
        \\                                        /
         v                                      v
    PromptAssembler (system prompt + transcript + user turn)
        |
        v
    ChatCompleter (Azure OpenAI)
        |
        v
    SessionStore (user + assistant turns appended on success only)

ChatService owns all mutable state (document, chunks, sessions), so tests
can build as many independent instances as they like.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from langsmith import traceable
from loguru import logger

from handbook_rag.config import Settings
from handbook_rag.errors import CompletionFailure
from handbook_rag.generation.assembler import PromptAssembler, build_sources
from handbook_rag.generation.completion import ChatCompleter, Completion
from handbook_rag.generation.prompts import FALLBACK_REPLY
from handbook_rag.ingestion.loader import DocumentLoader
from handbook_rag.memory.session_store import (
    DEFAULT_SESSION_ID,
    InMemorySessionStore,
    SessionStore,
    Turn,
)
from handbook_rag.retrieval.retriever import KeywordRetriever
from handbook_rag.search.tavily import TavilySearch


class Completer(Protocol):
    def invoke(self, messages: list[dict[str, str]]) -> Completion: ...


class WebSearch(Protocol):
    @property
    def enabled(self) -> bool: ...

    def search(self, query: str) -> Optional[str]: ...


# ---------------------------------------------------------------------------
# Result schema
# ---------------------------------------------------------------------------

@dataclass
class ChatResult:
    """Output of one successful chat exchange.  Timings are in milliseconds."""

    session_id: str
    reply: str
    sources: list[str] = field(default_factory=list)
    use_rag: bool = True

    retrieval_ms: float = 0.0
    search_ms: float = 0.0
    generation_ms: float = 0.0

    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_ms(self) -> float:
        return self.retrieval_ms + self.search_ms + self.generation_ms

    def to_response(self) -> dict:
        """The wire shape returned to chat clients."""
        return {"reply": self.reply, "sources": self.sources}

    def to_dict(self) -> dict:
        return {
            **self.to_response(),
            "session_id": self.session_id,
            "use_rag": self.use_rag,
            "latency_ms": {
                "retrieval": round(self.retrieval_ms, 1),
                "search": round(self.search_ms, 1),
                "generation": round(self.generation_ms, 1),
                "total": round(self.total_ms, 1),
            },
            "tokens": {
                "prompt": self.prompt_tokens,
                "completion": self.completion_tokens,
                "total": self.prompt_tokens + self.completion_tokens,
            },
            "model": self.model,
        }


def failure_response(exc: CompletionFailure) -> dict:
    """Error body for a failed exchange: fallback reply and no sources."""
    return {
        "error": "Model call failed",
        "message": str(exc),
        "retryable": exc.retryable,
        "reply": FALLBACK_REPLY,
        "sources": [],
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ChatService:
    """
    Retrieval-augmented chat over the employee handbook.

    Usage:
        service = ChatService.from_settings(Settings.from_env())
        service.load_document()
        result = service.chat("How many vacation days do I get?", session_id="alice")
        print(result.reply)
    """

    def __init__(
        self,
        loader: DocumentLoader,
        completer: Completer,
        search: Optional[WebSearch] = None,
        store: Optional[SessionStore] = None,
        top_k: int = 3,
        org_name: str = "Contoso Electronics",
    ) -> None:
        self.loader = loader
        self.retriever = KeywordRetriever(loader, top_k=top_k)
        self.completer = completer
        self.search = search
        self.store = store if store is not None else InMemorySessionStore()
        self.assembler = PromptAssembler(self.store, org_name=org_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatService":
        return cls(
            loader=DocumentLoader(settings.pdf_path, chunk_size=settings.chunk_size),
            completer=ChatCompleter.from_settings(settings),
            search=TavilySearch.from_settings(settings),
            top_k=settings.top_k,
            org_name=settings.org_name,
        )

    @property
    def search_enabled(self) -> bool:
        return self.search is not None and self.search.enabled

    def load_document(self) -> bool:
        """Load the handbook if it isn't loaded yet.  Never raises."""
        if self.loader.is_loaded:
            return True
        return self.loader.try_load()

    def web_search(self, query: str) -> Optional[str]:
        if self.search is None:
            return None
        return self.search.search(query)

    @traceable(name="chat", run_type="chain")
    def chat(
        self,
        message: str,
        use_rag: bool = True,
        session_id: Optional[str] = None,
    ) -> ChatResult:
        """
        Run one exchange for `session_id`.

        Same-session calls are serialised for the whole exchange so the
        transcript sent to the model and the one recorded stay in step.

        Raises:
            CompletionFailure: the model call failed; the transcript is
                left untouched.
        """
        session_id = session_id or DEFAULT_SESSION_ID
        logger.info(
            f"[ChatService] session={session_id!r} rag={use_rag} | "
            f"message={message[:80]!r}"
        )

        retrieved: list[str] = []
        snippet: Optional[str] = None
        retrieval_ms = search_ms = 0.0

        if use_rag:
            t0 = time.perf_counter()
            self.load_document()
            retrieved = self.retriever.retrieve(message)
            retrieval_ms = (time.perf_counter() - t0) * 1000

            t1 = time.perf_counter()
            snippet = self.web_search(message)
            search_ms = (time.perf_counter() - t1) * 1000

        sources = build_sources(retrieved, snippet) if use_rag else []

        with self.store.lock(session_id):
            messages = self.assembler.assemble(
                session_id,
                message,
                use_context=use_rag,
                retrieved_chunks=retrieved,
                external_snippet=snippet,
            )

            t2 = time.perf_counter()
            try:
                completion = self.completer.invoke(messages)
            except CompletionFailure as exc:
                logger.error(f"[ChatService] session={session_id!r} | {exc}")
                raise
            generation_ms = (time.perf_counter() - t2) * 1000

            self.store.append_exchange(
                session_id,
                Turn(role="user", content=message),
                Turn(role="assistant", content=completion.content),
            )

        logger.info(
            f"[ChatService] Complete | session={session_id!r} | "
            f"sources={len(sources)} | retrieve={retrieval_ms:.0f}ms "
            f"search={search_ms:.0f}ms generate={generation_ms:.0f}ms"
        )

        return ChatResult(
            session_id=session_id,
            reply=completion.content,
            sources=sources,
            use_rag=use_rag,
            retrieval_ms=retrieval_ms,
            search_ms=search_ms,
            generation_ms=generation_ms,
            model=completion.model,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
        )
