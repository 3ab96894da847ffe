import pytest

from handbook_rag.chunking.chunker import WordBudgetChunker
from handbook_rag.utils.helpers import normalize_whitespace

SAMPLE = """
  Contoso   Electronics employee handbook.\n\nSection 1:\tWorkplace safety is
everyone's responsibility.  Report hazards to\nyour manager immediately.
   Section 2: Paid time off accrues monthly and rolls over once per year.
"""


@pytest.mark.parametrize("budget", [1, 5, 12, 40, 2000])
def test_chunks_reconstruct_normalized_text(budget):
    pieces = WordBudgetChunker(chunk_size=budget).split(SAMPLE)
    assert " ".join(pieces) == normalize_whitespace(SAMPLE)


@pytest.mark.parametrize("budget", [5, 12, 40])
def test_chunk_boundaries_never_split_words(budget):
    words = set(SAMPLE.split())
    for piece in WordBudgetChunker(chunk_size=budget).split(SAMPLE):
        assert all(word in words for word in piece.split(" "))


@pytest.mark.parametrize("budget", [5, 12, 40])
def test_chunks_within_budget_unless_single_long_word(budget):
    for piece in WordBudgetChunker(chunk_size=budget).split(SAMPLE):
        assert len(piece) <= budget or " " not in piece


def test_oversized_word_becomes_its_own_chunk():
    pieces = WordBudgetChunker(chunk_size=5).split("ab supercalifragilistic cd")
    assert pieces == ["ab", "supercalifragilistic", "cd"]


def test_exact_budget_fits_in_one_chunk():
    assert WordBudgetChunker(chunk_size=7).split("abc def") == ["abc def"]
    assert WordBudgetChunker(chunk_size=6).split("abc def") == ["abc", "def"]


def test_empty_and_whitespace_only_text_yields_no_chunks():
    chunker = WordBudgetChunker(chunk_size=10)
    assert chunker.split("") == []
    assert chunker.split(" \n\t  ") == []


def test_chunk_objects_are_indexed_in_document_order():
    chunks = WordBudgetChunker(chunk_size=10).chunk("one two three four five")
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert [c.text for c in chunks] == ["one two", "three four", "five"]


def test_invalid_budget_rejected():
    with pytest.raises(ValueError):
        WordBudgetChunker(chunk_size=0)
