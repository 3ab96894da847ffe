"""
Document Loader
----------------
Reads the employee handbook PDF once, extracts its plain text with pypdf,
and cuts it into word-aligned chunks for keyword retrieval.

The load path is single-flight: a lock covers the existence check, the
parse, and the chunking, so two requests racing before the first load
completes still parse the document exactly once.  A failed load leaves the
loader empty and the next call tries again.  A file that failed to parse
is not parsed again until its modification time or size changes.
"""
from __future__ import annotations

import io
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from pypdf import PdfReader

from handbook_rag.chunking.chunker import CHUNK_SIZE, WordBudgetChunker
from handbook_rag.chunking.schemas import Chunk
from handbook_rag.errors import LoadError, ParseFailure, SourceNotFound

TextExtractor = Callable[[bytes], str]


def extract_pdf_text(data: bytes) -> str:
    """Extract the text of every page of a PDF, pages separated by newlines."""
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


class DocumentLoader:
    """
    Owns the document text and its chunk sequence for one service instance.

    Args:
        path:       Location of the source PDF.
        chunk_size: Character budget per chunk.
        extractor:  bytes -> text function (defaults to the pypdf extractor).
    """

    def __init__(
        self,
        path: Path | str,
        chunk_size: int = CHUNK_SIZE,
        extractor: Optional[TextExtractor] = None,
    ) -> None:
        self.path = Path(path)
        self.chunker = WordBudgetChunker(chunk_size=chunk_size)
        self._extract = extractor or extract_pdf_text
        self._lock = threading.Lock()
        self._text: Optional[str] = None
        self._chunks: tuple[Chunk, ...] = ()
        # (mtime_ns, size) and message of the last parse failure
        self._failed: Optional[tuple[tuple[int, int], str]] = None

    @property
    def is_loaded(self) -> bool:
        return self._text is not None

    @property
    def text(self) -> Optional[str]:
        return self._text

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks

    def load(self) -> str:
        """
        Return the document text, reading and chunking it on the first call.

        Raises:
            SourceNotFound: the PDF does not exist.
            ParseFailure:   the PDF could not be read or parsed.
        """
        if self._text is not None:
            return self._text

        with self._lock:
            if self._text is not None:
                return self._text

            if not self.path.is_file():
                raise SourceNotFound(f"Document not found at {self.path}")
            try:
                stat = self.path.stat()
            except FileNotFoundError as exc:
                raise SourceNotFound(f"Document not found at {self.path}") from exc
            signature = (stat.st_mtime_ns, stat.st_size)
            if self._failed is not None and self._failed[0] == signature:
                raise ParseFailure(self._failed[1])

            t0 = time.perf_counter()
            try:
                data = self.path.read_bytes()
                text = self._extract(data)
            except Exception as exc:
                message = f"Could not extract text from {self.path}: {exc}"
                self._failed = (signature, message)
                raise ParseFailure(message) from exc

            self._chunks = tuple(self.chunker.chunk(text))
            self._text = text

            logger.info(
                f"[Loader] Loaded {self.path.name} | {len(text):,} chars | "
                f"{len(self._chunks)} chunks | {(time.perf_counter() - t0) * 1000:.0f}ms"
            )
            return text

    def try_load(self) -> bool:
        """
        load() with failures absorbed: returns False and logs when the
        document is unavailable so callers can continue without context.
        """
        try:
            self.load()
            return True
        except LoadError as exc:
            logger.error(f"[Loader] {exc} -- continuing without document context")
            return False
