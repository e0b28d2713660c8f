"""
Tests for the chat and places HTTP endpoints.

The model stream, the completion call and the Places client are
replaced with fakes so no network access is needed.
"""

import json
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from tripstream.main import app
from tripstream.plan.frames import FrameDecoder
from tripstream.server import chat_api
from tripstream.server.config import ServerConfig
from tripstream.server.places import PlaceHit, get_places_client


# ============================================================================
# Test Fixtures
# ============================================================================


DOCUMENT = {
    "replyText": "Here is your day.",
    "suggestions": [],
    "planDays": [
        [
            {"title": "Balboa Park", "short_description": "Gardens", "estimated_cost": "Free"},
            {"title": "San Diego Zoo", "short_description": "Animals", "estimated_cost": "$$$"},
            {"title": "Gaslamp Quarter", "short_description": "Dinner"},
        ]
    ],
}

REQUEST_BODY = {
    "message": "One day in San Diego",
    "destination": "San Diego",
    "preferences": {"duration": {"nights": 1}},
}


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def _fake_stream(text, size=25):
    def _open(messages, schema, **kwargs):
        return [_chunk(text[i : i + size]) for i in range(0, len(text), size)]

    return _open


def _frames(body):
    decoder = FrameDecoder()
    frames = decoder.feed(body)
    decoder.flush()
    return frames


class FakePlaces:
    """Places stand-in: no search hits, a photo for every title."""

    def __init__(self, hits=None):
        self.hits = hits or []

    def text_search(self, query, center=None, radius_meters=None, max_results=4):
        return list(self.hits)[:max_results]

    def find_photo_url(self, query, center=None, radius_meters=None):
        return f"https://img.test/{query.replace(' ', '_')}"

    def resolve_photo_url(self, photo_reference, max_width=640):
        return f"https://cdn.test/{photo_reference}.jpg"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(chat_api, "get_server_config", lambda: ServerConfig())
    monkeypatch.setattr(chat_api, "get_places_client", lambda: None)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# TestChatStream
# ============================================================================


class TestChatStream:
    """Tests for POST /api/chat/stream."""

    def test_missing_destination_rejected(self, client):
        """A request without destination or coords is a 400 with an error body."""
        response = client.post("/api/chat/stream", json={"message": "Plan something"})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_invalid_body_rejected(self, client):
        """A non-JSON body is a 400."""
        response = client.post(
            "/api/chat/stream", content="not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400

    def test_event_order(self, client, monkeypatch):
        """Deltas rebuild the document, then jsonFinal, then end."""
        text = json.dumps(DOCUMENT)
        monkeypatch.setattr(chat_api, "open_json_stream", _fake_stream(text))

        response = client.post("/api/chat/stream", json=REQUEST_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        frames = _frames(response.text)
        events = [f.event_type for f in frames]
        assert events[-2:] == ["jsonFinal", "end"]
        assert set(events[:-2]) == {"jsonDelta"}
        assert "".join(f.payload for f in frames if f.event_type == "jsonDelta") == text

        final = json.loads(frames[-2].payload)
        assert [item["title"] for item in final["planDays"][0]] == [
            "Balboa Park",
            "San Diego Zoo",
            "Gaslamp Quarter",
        ]
        assert final["planDays"][0][0]["estimated_cost"] == "free"
        assert final["planDays"][0][1]["estimated_cost"] == "$25–$50"

    def test_invalid_model_json(self, client, monkeypatch):
        """Unparseable model output becomes an error event before end."""
        monkeypatch.setattr(chat_api, "open_json_stream", _fake_stream('{"replyText": "x", "planDays": ['))

        frames = _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)

        assert [f.event_type for f in frames][-2:] == ["error", "end"]
        assert frames[-2].payload == chat_api.INVALID_JSON

    def test_stream_failure(self, client, monkeypatch):
        """An exception opening the stream is reported as an error event."""

        def _boom(messages, schema, **kwargs):
            raise RuntimeError("upstream down")

        monkeypatch.setattr(chat_api, "open_json_stream", _boom)

        frames = _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)

        assert [(f.event_type, f.payload) for f in frames] == [
            ("error", "upstream down"),
            ("end", "ok"),
        ]

    def test_plan_images(self, client, monkeypatch):
        """With Places configured every item gets a planImage event."""
        monkeypatch.setattr(chat_api, "open_json_stream", _fake_stream(json.dumps(DOCUMENT)))
        monkeypatch.setattr(chat_api, "get_places_client", lambda: FakePlaces())

        frames = _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)
        images = [json.loads(f.payload) for f in frames if f.event_type == "planImage"]

        assert frames[-1].event_type == "end"
        assert sorted((img["dayIdx"], img["itemIdx"]) for img in images) == [(0, 0), (0, 1), (0, 2)]
        by_title = {img["title"]: img["image_url"] for img in images}
        assert by_title["Balboa Park"] == "https://img.test/Balboa_Park"

    def test_ping_during_model_stall(self, client, monkeypatch):
        """A stalled model stream is covered by pings before the next delta arrives."""
        text = json.dumps(DOCUMENT)
        half = len(text) // 2

        def _slow_open(messages, schema, **kwargs):
            def _chunks():
                yield _chunk(text[:half])
                time.sleep(0.5)
                yield _chunk(text[half:])

            return _chunks()

        monkeypatch.setattr(chat_api, "open_json_stream", _slow_open)
        monkeypatch.setattr(chat_api, "get_server_config", lambda: ServerConfig(ping_interval_s=0.1))

        events = [f.event_type for f in _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)]

        first, second = [i for i, event in enumerate(events) if event == "jsonDelta"]
        assert "ping" in events[first + 1 : second]
        assert events[-2:] == ["jsonFinal", "end"]

    def test_ping_during_photo_lookups(self, client, monkeypatch):
        """Slow photo lookups after jsonFinal are covered by pings too."""

        class SlowPlaces(FakePlaces):
            def find_photo_url(self, query, center=None, radius_meters=None):
                time.sleep(0.3)
                return super().find_photo_url(query, center, radius_meters)

        monkeypatch.setattr(chat_api, "open_json_stream", _fake_stream(json.dumps(DOCUMENT)))
        monkeypatch.setattr(chat_api, "get_places_client", lambda: SlowPlaces())
        monkeypatch.setattr(
            chat_api, "get_server_config", lambda: ServerConfig(ping_interval_s=0.1, image_workers=1)
        )

        events = [f.event_type for f in _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)]

        final = events.index("jsonFinal")
        first_image = events.index("planImage")
        assert "ping" in events[final + 1 : first_image]
        assert events.count("planImage") == 3
        assert events[-1] == "end"

    def test_no_ping_without_stall(self, client, monkeypatch):
        """A prompt stream carries no pings."""
        monkeypatch.setattr(chat_api, "open_json_stream", _fake_stream(json.dumps(DOCUMENT)))

        events = [f.event_type for f in _frames(client.post("/api/chat/stream", json=REQUEST_BODY).text)]

        assert "ping" not in events


# ============================================================================
# TestChat
# ============================================================================


class TestChat:
    """Tests for POST /api/chat."""

    def test_returns_document(self, client, monkeypatch):
        """The finalized document is returned directly."""
        monkeypatch.setattr(chat_api, "call_llm_json", lambda messages, schema, **kwargs: json.dumps(DOCUMENT))

        response = client.post("/api/chat", json=REQUEST_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["replyText"] == "Here is your day."
        assert len(body["planDays"][0]) == 3

    def test_generation_error(self, client, monkeypatch):
        """A failed completion is a 500 with an error body."""

        def _boom(messages, schema, **kwargs):
            raise RuntimeError("quota")

        monkeypatch.setattr(chat_api, "call_llm_json", _boom)

        response = client.post("/api/chat", json=REQUEST_BODY)

        assert response.status_code == 500
        assert "quota" in response.json()["error"]


# ============================================================================
# TestPlacesSearch
# ============================================================================


class TestPlacesSearch:
    """Tests for POST /api/places/search."""

    def test_missing_query(self, client):
        """An empty query is a 400."""
        app.dependency_overrides[get_places_client] = lambda: FakePlaces()

        response = client.post("/api/places/search", json={"query": "  "})

        assert response.status_code == 400

    def test_missing_key(self, client):
        """Without a Places client the endpoint reports a server error."""
        app.dependency_overrides[get_places_client] = lambda: None

        response = client.post("/api/places/search", json={"query": "zoo"})

        assert response.status_code == 500
        assert "PLACES_API_KEY" in response.json()["error"]

    def test_prefers_hit_with_photo(self, client):
        """The first hit with a resolvable photo is returned."""
        hits = [
            PlaceHit(place_id="p1", name="Zoo Gate", lat=1.0, lng=2.0),
            PlaceHit(place_id="p2", name="San Diego Zoo", lat=1.1, lng=2.1, photo_reference="ref2"),
        ]
        app.dependency_overrides[get_places_client] = lambda: FakePlaces(hits)

        response = client.post(
            "/api/places/search",
            json={"query": "zoo", "locationBias": {"lat": 32.7, "lng": -117.1, "radiusMeters": 900}},
        )

        place = response.json()["place"]
        assert place["id"] == "p2"
        assert place["displayName"] == {"text": "San Diego Zoo"}
        assert place["photoUrl"] == "https://cdn.test/ref2.jpg"

    def test_no_hits(self, client):
        """No results is a null place."""
        app.dependency_overrides[get_places_client] = lambda: FakePlaces()

        assert client.post("/api/places/search", json={"query": "nowhere"}).json() == {"place": None}


def test_health(client):
    """Health endpoint responds."""
    assert client.get("/health").json() == {"status": "healthy"}
