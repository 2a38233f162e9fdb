import httpx
import pytest

from app.content_core.fetchers import (
    NO_DESCRIPTION,
    NO_MISSION,
    NO_WEBSITE,
    NgoFetcher,
    TedTalksFetcher,
)
from app.errors import FetchError

TED_PAYLOAD = {
    "result": {
        "results": [
            {
                "id": 101,
                "title": "Why forests matter",
                "speaker": "Ada Green",
                "description": "Trees.",
                "duration": 720,
                "url": "https://ted.example/101",
                "thumbnail": "https://ted.example/101.jpg",
            },
            {"id": "102", "title": "Oceans"},
        ]
    }
}

NGO_PAYLOAD = {
    "organizations": [
        {
            "ein": 123456789,
            "name": "River Keepers",
            "city": "Portland",
            "state": "OR",
            "ntee_code": "C32",
            "website": "https://river.example",
            "ntee_classification": "Water Resource",
        },
        {"ein": 987654321, "name": "Quiet Fund", "city": "Austin", "state": "TX"},
    ]
}


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_ted_fetcher_sends_credentials_and_normalizes():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=TED_PAYLOAD)

    fetcher = TedTalksFetcher(_client(handler), api_key="k3y", api_host="ted.example")
    talks = fetcher.fetch()

    request = seen["request"]
    assert request.url.host == "ted.example"
    assert request.url.path == "/talks"
    assert request.url.params["from_record_date"] == "2020-01-01"
    assert request.url.params["min_duration"] == "300"
    assert request.headers["x-rapidapi-key"] == "k3y"
    assert request.headers["x-rapidapi-host"] == "ted.example"

    assert talks[0] == {
        "external_id": "101",
        "title": "Why forests matter",
        "speaker": "Ada Green",
        "description": "Trees.",
        "duration": "720",
        "url": "https://ted.example/101",
        "thumbnail": "https://ted.example/101.jpg",
        "type": "Video",
    }
    assert talks[1]["external_id"] == "102"
    assert talks[1]["speaker"] is None
    assert talks[1]["type"] == "Video"


def test_ngo_fetcher_applies_fallbacks():
    def handler(request):
        assert request.url.params["q"] == "environment"
        return httpx.Response(200, json=NGO_PAYLOAD)

    ngos = NgoFetcher(_client(handler)).fetch()

    assert ngos[0]["external_id"] == "123456789"
    assert ngos[0]["location"] == "Portland, OR"
    assert ngos[0]["description"] == "C32"
    assert ngos[0]["mission"] == "Water Resource"
    assert ngos[1]["description"] == NO_DESCRIPTION
    assert ngos[1]["website"] == NO_WEBSITE
    assert ngos[1]["mission"] == NO_MISSION
    assert all(n["type"] == "NGO" for n in ngos)


def test_fetcher_keeps_upstream_order():
    def handler(request):
        return httpx.Response(200, json=NGO_PAYLOAD)

    names = [n["name"] for n in NgoFetcher(_client(handler)).fetch()]
    assert names == ["River Keepers", "Quiet Fund"]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"message": "upstream down"}),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, json={"result": {"results": "nope"}}),
    ],
)
def test_ted_fetcher_failures_raise_fetch_error(response):
    fetcher = TedTalksFetcher(_client(lambda request: response), api_key="k", api_host="ted.example")
    with pytest.raises(FetchError):
        fetcher.fetch()


def test_transport_error_raises_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        NgoFetcher(_client(handler)).fetch()
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_ngo_fetcher_rejects_malformed_entries():
    def handler(request):
        return httpx.Response(200, json={"organizations": ["not-an-object"]})

    with pytest.raises(FetchError):
        NgoFetcher(_client(handler)).fetch()
