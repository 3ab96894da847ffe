"""
Word-Budget Chunker
--------------------
Splits extracted document text into chunks of at most `chunk_size`
characters without ever cutting a word in half.

Algorithm:
  - Tokenise the text on whitespace runs.
  - Greedily append words to the running chunk, joined by a single space.
  - If appending the next word would push the chunk past the budget,
    close the current chunk and start a new one with that word.
  - Flush the trailing chunk.

The budget is a soft cap: a single word longer than `chunk_size` becomes
its own oversized chunk.  Joining the chunks with single spaces gives back
the whitespace-normalised source text.
"""
from __future__ import annotations

from loguru import logger

from handbook_rag.chunking.schemas import Chunk

CHUNK_SIZE = 2000           # Characters per chunk (not bytes)


class WordBudgetChunker:
    """
    Greedy whitespace chunker.

    Usage:
        chunker = WordBudgetChunker(chunk_size=2000)
        chunks = chunker.chunk(text)
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.chunk_size = chunk_size

    def split(self, text: str) -> list[str]:
        """Return the chunk texts for `text` in document order."""
        pieces: list[str] = []
        current = ""

        for word in text.split():
            if not current:
                current = word
            elif len(current) + 1 + len(word) <= self.chunk_size:
                current = f"{current} {word}"
            else:
                pieces.append(current)
                current = word

        if current:
            pieces.append(current)
        return pieces

    def chunk(self, text: str) -> list[Chunk]:
        chunks = [Chunk(chunk_index=i, text=piece) for i, piece in enumerate(self.split(text))]
        oversized = sum(1 for c in chunks if c.char_count > self.chunk_size)
        logger.debug(
            f"[Chunker] {len(text):,} chars -> {len(chunks)} chunk(s) "
            f"| budget={self.chunk_size} | oversized={oversized}"
        )
        return chunks
