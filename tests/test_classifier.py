from __future__ import annotations

import json

import httpx
import pytest

from splitz.domain.review import TaxabilityResult
from splitz.runtime.classifier import ClassifierUnavailable, classify_taxability


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_classify_sends_names_and_parses_results() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.read())
        return httpx.Response(200, json=[{"name": "Milk", "taxable": False}, {"name": "Soap", "taxable": True}])

    results = classify_taxability(["Milk", "Soap"], "http://classifier/", client=_client(handler))

    assert seen["url"] == "http://classifier/classify-taxability"
    assert seen["body"] == {"items": [{"name": "Milk"}, {"name": "Soap"}]}
    assert results == [TaxabilityResult("Milk", False), TaxabilityResult("Soap", True)]


def test_malformed_entries_are_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[{"name": "Milk", "taxable": "no"}, "Soap", {"taxable": True}, {"name": "Eggs", "taxable": False}],
        )

    results = classify_taxability(["Milk", "Soap", "Eggs"], "http://classifier", client=_client(handler))

    assert results == [TaxabilityResult("Eggs", False)]


def test_no_names_skips_the_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("classifier should not be called")

    assert classify_taxability([], "http://classifier", client=_client(handler)) == []


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"Milk": False}),
    ],
)
def test_bad_responses_raise(response: httpx.Response) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(ClassifierUnavailable):
        classify_taxability(["Milk"], "http://classifier", client=_client(handler))


def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(ClassifierUnavailable, match="Failed to connect"):
        classify_taxability(["Milk"], "http://classifier", client=_client(handler))
