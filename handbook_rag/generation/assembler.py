"""
Prompt Assembler
-----------------
Builds the message list handed to the chat-completion call:

    [system instruction] + [session transcript, oldest first] + [new user turn]

The system instruction depends on whether context is in use and whether
any handbook excerpt or web snippet was found.  The assembler never calls
the model and never writes to the session store.
"""
from __future__ import annotations

from typing import Optional, Sequence

from handbook_rag.generation.prompts import (
    CONTEXT_PROMPT,
    GENERAL_PROMPT,
    NO_CONTEXT_PROMPT,
    SEARCH_SOURCE_TEMPLATE,
    SOURCE_SEPARATOR,
)
from handbook_rag.memory.session_store import SessionStore


def build_sources(retrieved_chunks: Sequence[str], external_snippet: Optional[str]) -> list[str]:
    """Handbook excerpts first, then the labelled web snippet if there is one."""
    sources = list(retrieved_chunks)
    if external_snippet:
        sources.append(SEARCH_SOURCE_TEMPLATE.format(snippet=external_snippet))
    return sources


class PromptAssembler:
    def __init__(self, store: SessionStore, org_name: str = "Contoso Electronics") -> None:
        self.store = store
        self.org_name = org_name

    def system_message(self, use_context: bool, sources: Sequence[str]) -> dict[str, str]:
        if not use_context:
            content = GENERAL_PROMPT
        elif sources:
            content = CONTEXT_PROMPT.format(
                org_name=self.org_name,
                context=SOURCE_SEPARATOR.join(sources),
            )
        else:
            content = NO_CONTEXT_PROMPT.format(org_name=self.org_name)
        return {"role": "system", "content": content}

    def assemble(
        self,
        session_id: str,
        user_message: str,
        use_context: bool,
        retrieved_chunks: Sequence[str] = (),
        external_snippet: Optional[str] = None,
    ) -> list[dict[str, str]]:
        sources = build_sources(retrieved_chunks, external_snippet) if use_context else []
        history = [turn.to_message() for turn in self.store.transcript(session_id)]
        return [
            self.system_message(use_context, sources),
            *history,
            {"role": "user", "content": user_message},
        ]
