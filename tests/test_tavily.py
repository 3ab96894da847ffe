import json

import httpx

from handbook_rag.search.tavily import TAVILY_URL, TavilySearch


def make_search(handler, api_key="tvly-key"):
    return TavilySearch(api_key=api_key, timeout=1.0, transport=httpx.MockTransport(handler))


def test_returns_answer_snippet():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"answer": "Twenty days.", "results": []})

    assert make_search(handler).search("vacation days") == "Twenty days."
    assert seen["url"] == TAVILY_URL
    assert seen["body"] == {
        "query": "vacation days",
        "api_key": "tvly-key",
        "include_answer": True,
        "search_depth": "basic",
    }


def test_missing_answer_returns_none():
    assert make_search(lambda r: httpx.Response(200, json={"results": []})).search("q") is None


def test_http_error_returns_none():
    assert make_search(lambda r: httpx.Response(500, text="boom")).search("q") is None


def test_network_error_returns_none():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert make_search(handler).search("q") is None


def test_invalid_json_returns_none():
    assert make_search(lambda r: httpx.Response(200, text="<html>")).search("q") is None


def test_disabled_without_key_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"answer": "x"})

    search = make_search(handler, api_key=None)
    assert not search.enabled
    assert search.search("q") is None
    assert calls == []


def test_non_string_answer_returns_none():
    assert make_search(lambda r: httpx.Response(200, json={"answer": 42})).search("q") is None


def test_empty_answer_returns_none():
    assert make_search(lambda r: httpx.Response(200, json={"answer": ""})).search("q") is None
