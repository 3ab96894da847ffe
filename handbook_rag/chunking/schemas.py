"""
Chunk schema - the atomic unit of retrieval.

Chunks are cut from the single source document in document order and are
never mutated after the loader produces them.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Chunk(BaseModel):
    """A word-aligned slice of the source document."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int                     # Position within the document
    text: str

    @property
    def char_count(self) -> int:
        return len(self.text)
