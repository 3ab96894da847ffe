"""
Keyword Retriever
------------------
Scores every handbook chunk against the user's query by counting literal,
case-insensitive occurrences of each query term, then returns the text of
the highest-scoring chunks.

Query terms are the lowercase whitespace tokens longer than two characters,
with the punctuation set .,?!;:()"' stripped.  Matching is plain substring
counting, so a term like "c++" or "(urgent)" is matched as written.

The retriever only reads the loader's immutable chunk tuple and is safe to
call from any number of threads.
"""
from __future__ import annotations

import re

from langsmith import traceable
from loguru import logger

from handbook_rag.chunking.schemas import Chunk
from handbook_rag.ingestion.loader import DocumentLoader

TOP_K = 3
MIN_TERM_LENGTH = 3

_PUNCTUATION = re.compile(r"[.,?!;:()\"']")


def extract_query_terms(query: str) -> list[str]:
    """Lowercase, split, drop short tokens, then strip punctuation."""
    terms = [
        _PUNCTUATION.sub("", token)
        for token in query.lower().split()
        if len(token) >= MIN_TERM_LENGTH
    ]
    return [t for t in terms if t]


def score_chunk(chunk: Chunk, terms: list[str]) -> int:
    """Sum of non-overlapping occurrences of every term in the chunk."""
    haystack = chunk.text.lower()
    return sum(haystack.count(term) for term in terms)


class KeywordRetriever:
    """
    Keyword-frequency retriever over the loader's chunk sequence.

    Args:
        loader: DocumentLoader that owns the chunks.
        top_k:  Maximum number of chunks returned by retrieve().
    """

    def __init__(self, loader: DocumentLoader, top_k: int = TOP_K) -> None:
        self.loader = loader
        self.top_k = top_k

    def score(self, query: str) -> list[tuple[Chunk, int]]:
        """
        Return every chunk with a non-zero score as (Chunk, score), sorted
        by score descending.  Ties keep document order.
        """
        chunks = self.loader.chunks
        if not chunks:
            logger.warning("[Retriever] No chunks available -- is the document loaded?")
            return []

        terms = extract_query_terms(query)
        if not terms:
            return []

        scored = [(chunk, score_chunk(chunk, terms)) for chunk in chunks]
        return sorted(
            (item for item in scored if item[1] > 0),
            key=lambda item: item[1],
            reverse=True,
        )

    @traceable(name="retrieve", run_type="retriever")
    def retrieve(self, query: str) -> list[str]:
        """Return the texts of the top_k most relevant chunks."""
        ranked = self.score(query)[: self.top_k]
        logger.debug(
            f"[Retriever] query={query[:60]!r} -> {len(ranked)} chunk(s) "
            f"| scores={[score for _, score in ranked]}"
        )
        return [chunk.text for chunk, _ in ranked]
