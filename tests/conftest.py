from __future__ import annotations

import pytest

from handbook_rag.errors import CompletionFailure
from handbook_rag.generation.completion import Completion
from handbook_rag.ingestion.loader import DocumentLoader
from handbook_rag.serving.pipeline import ChatService


class FakeCompleter:
    """Records every message list and replies from a script."""

    def __init__(self, replies=None, error: CompletionFailure | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[list[dict]] = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        content = self.replies.pop(0) if self.replies else f"reply {len(self.calls)}"
        return Completion(content=content, model="fake-deployment", prompt_tokens=10, completion_tokens=5)


class FakeSearch:
    def __init__(self, answer: str | None = None, enabled: bool = True) -> None:
        self.answer = answer
        self._enabled = enabled
        self.queries: list[str] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def search(self, query):
        self.queries.append(query)
        return self.answer


def text_extractor(text: str):
    """Extractor stub returning fixed text regardless of the PDF bytes."""
    return lambda data: text


HANDBOOK_TEXT = (
    "Vacation policy: employees accrue fifteen vacation days per year.\n\n"
    "Vacation requests must be approved by a manager.\n"
    "Security policy: badges must be worn at all times.\n"
    "Benefits include health insurance and a retirement plan."
)


@pytest.fixture
def handbook_pdf(tmp_path):
    path = tmp_path / "employee_handbook.pdf"
    path.write_bytes(b"%PDF-1.4 stub")
    return path


@pytest.fixture
def loader(handbook_pdf):
    return DocumentLoader(handbook_pdf, chunk_size=70, extractor=text_extractor(HANDBOOK_TEXT))


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture
def search():
    return FakeSearch()


@pytest.fixture
def service(loader, completer, search):
    return ChatService(loader=loader, completer=completer, search=search)
