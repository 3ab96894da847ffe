import pytest

from handbook_rag.chunking.schemas import Chunk
from handbook_rag.retrieval.retriever import KeywordRetriever, extract_query_terms, score_chunk


class StaticLoader:
    """Stands in for DocumentLoader with a fixed chunk tuple."""

    def __init__(self, texts):
        self.chunks = tuple(Chunk(chunk_index=i, text=t) for i, t in enumerate(texts))


def retriever_for(texts, top_k=3):
    return KeywordRetriever(StaticLoader(texts), top_k=top_k)


def test_orders_by_score_and_drops_zero_scores():
    result = retriever_for(["cat cat cat", "cat", "dog"]).retrieve("cat")
    assert result == ["cat cat cat", "cat"]


def test_caps_results_at_top_three():
    texts = [f"policy section {i}" for i in range(5)]
    assert len(retriever_for(texts).retrieve("policy")) == 3


def test_ties_keep_document_order():
    texts = ["leave one", "nothing", "leave two", "leave leave", "leave three"]
    assert retriever_for(texts).retrieve("leave") == ["leave leave", "leave one", "leave two"]


def test_short_tokens_only_returns_empty():
    assert retriever_for(["a an is it"]).retrieve("a an is") == []


def test_empty_chunk_sequence_returns_empty():
    assert retriever_for([]).retrieve("vacation policy") == []


def test_matching_is_case_insensitive_and_substring_based():
    result = retriever_for(["VACATION days", "vacations vacationing", "sick"]).retrieve("Vacation")
    assert result == ["vacations vacationing", "VACATION days"]


def test_scores_sum_across_terms():
    chunk = Chunk(chunk_index=0, text="Vacation requests need manager approval for vacation.")
    assert score_chunk(chunk, ["vacation", "manager"]) == 3


@pytest.mark.parametrize(
    "query, text, expected",
    [
        ("c++ jobs", "we hire c++ devs, not c developers", 1),
        ("hr|it", "hr|it desk, not hr or it", 1),
        ("ab*c", "abbbc and ab*c", 1),
    ],
)
def test_metacharacters_match_literally(query, text, expected):
    chunk = Chunk(chunk_index=0, text=text)
    assert score_chunk(chunk, extract_query_terms(query)) == expected


def test_extract_query_terms():
    assert extract_query_terms('What is the "vacation" policy?') == ["what", "the", "vacation", "policy"]


def test_length_filter_applies_before_punctuation_strip():
    assert extract_query_terms("is? hr") == ["is"]


def test_pure_punctuation_tokens_are_dropped():
    assert extract_query_terms('""" ??? policy') == ["policy"]


def test_score_returns_pairs_for_diagnostics():
    scored = retriever_for(["cat cat", "dog", "cat"]).score("cats cat")
    assert [(c.chunk_index, s) for c, s in scored] == [(0, 2), (2, 1)]
