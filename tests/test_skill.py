"""End-to-end tests for the Alexa webhook."""

from __future__ import annotations

from typing import Any
from xml.etree import ElementTree

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.main import register_routes
from app.services.identity import IdentityCache
from app.services.playback import APOLOGY, PlaybackService
from app.services.plex import PlexClient
from app.skill import SkillHandler

from fake_plex import FakePlexServer, build_settings, episode


def build_app(server: FakePlexServer, **setting_overrides: Any) -> FastAPI:
    settings = build_settings(**setting_overrides)
    plex = PlexClient(settings, server.http_client())
    playback = PlaybackService(settings, plex, IdentityCache(settings, plex))
    app = FastAPI()
    register_routes(app)
    app.state.skill_handler = SkillHandler(settings, plex, playback)
    return app


def intent_request(
    name: str,
    slots: dict[str, str] | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "version": "1.0",
        "session": {"new": False, "attributes": attributes or {}},
        "request": {
            "type": "IntentRequest",
            "requestId": "req-1",
            "intent": {
                "name": name,
                "slots": {
                    slot: {"name": slot, "value": value}
                    for slot, value in (slots or {}).items()
                },
            },
        },
    }


def speech_of(payload: dict[str, Any]) -> str:
    return payload["response"]["outputSpeech"]["ssml"]


def test_healthcheck() -> None:
    """The health endpoint answers without touching Plex."""

    with TestClient(build_app(FakePlexServer())) as client:
        response = client.get("/healthz")

    assert response.json() == {"status": "ok"}


def test_start_show_intent_plays_next_episode() -> None:
    """StartShowIntent plays the next episode and ends the session."""

    server = FakePlexServer(episodes=[episode(1, 1, title="Pilot")])

    with TestClient(build_app(server)) as client:
        response = client.post(
            "/alexa", json=intent_request("StartShowIntent", {"showName": "breaking bad"})
        )

    assert response.status_code == 200
    payload = response.json()
    assert speech_of(payload) == "<speak>Enjoy the next episode of Breaking Bad: Pilot</speak>"
    assert payload["response"]["shouldEndSession"] is True
    assert payload["response"]["card"]["content"] == "Playing Breaking Bad: Pilot"
    assert len(server.play_commands) == 1


def test_resume_prompt_then_yes_resumes_at_offset() -> None:
    """Answering yes to the resume prompt plays at the saved offset."""

    server = FakePlexServer(
        episodes=[episode(1, 1, viewCount=1, viewOffset=120, title="Pilot")]
    )

    with TestClient(build_app(server)) as client:
        first = client.post(
            "/alexa", json=intent_request("StartShowIntent", {"showName": "breaking bad"})
        ).json()
        second = client.post(
            "/alexa",
            json=intent_request("AMAZON.YesIntent", attributes=first["sessionAttributes"]),
        ).json()

    assert first["response"]["shouldEndSession"] is False
    assert "promptData" in first["sessionAttributes"]
    assert "Resuming this episode from Season 1: Pilot" in speech_of(second)
    assert "promptData" not in second["sessionAttributes"]
    params = server.play_commands[0].url.params
    assert params["key"] == "/library/metadata/101"
    assert params["offset"] == "120"


def test_no_answer_plays_alternate_episode_from_start() -> None:
    """Answering no to the resume prompt plays the fallback from the start."""

    server = FakePlexServer()
    prompt = {
        "yesAction": "startEpisode",
        "yesResponse": "Resuming",
        "noAction": "startEpisode",
        "noResponse": "Alright, then enjoy this one",
        "mediaKey": "/library/metadata/102",
        "mediaOffset": 120,
        "playerName": "Living Room",
        "noMediaKey": "/library/metadata/305",
        "noMediaOffset": 0,
    }

    with TestClient(build_app(server)) as client:
        payload = client.post(
            "/alexa",
            json=intent_request("AMAZON.NoIntent", attributes={"promptData": prompt}),
        ).json()

    assert "Alright, then enjoy this one" in speech_of(payload)
    params = server.play_commands[0].url.params
    assert params["key"] == "/library/metadata/305"
    assert params["offset"] == "0"


def test_no_answer_to_show_confirmation_ends_session() -> None:
    """Answering no to a show confirmation ends the session quietly."""

    server = FakePlexServer()
    prompt = {
        "yesAction": "startEpisode",
        "yesResponse": "Enjoy",
        "noAction": "endSession",
        "noResponse": "Oh. Sorry about that.",
        "mediaKey": "/library/metadata/101",
        "mediaOffset": 0,
        "playerName": "Living Room",
    }

    with TestClient(build_app(server)) as client:
        payload = client.post(
            "/alexa",
            json=intent_request("AMAZON.NoIntent", attributes={"promptData": prompt}),
        ).json()

    assert speech_of(payload) == "<speak>Oh. Sorry about that.</speak>"
    assert payload["response"]["shouldEndSession"] is True
    assert server.play_commands == []


def test_yes_without_prompt_is_not_understood() -> None:
    """A yes with no pending question is not acted upon."""

    with TestClient(build_app(FakePlexServer())) as client:
        payload = client.post("/alexa", json=intent_request("AMAZON.YesIntent")).json()

    assert speech_of(payload) == "<speak>I'm not sure what you mean</speak>"


def test_on_deck_intent_lists_names() -> None:
    """OnDeckIntent reads out show and movie names."""

    server = FakePlexServer(
        on_deck=[
            {"type": "episode", "grandparentTitle": "Breaking Bad"},
            {"type": "movie", "title": "Arrival"},
        ]
    )

    with TestClient(build_app(server)) as client:
        payload = client.post("/alexa", json=intent_request("OnDeckIntent")).json()

    assert speech_of(payload) == "<speak>On deck you've got Breaking Bad, and Arrival.</speak>"


def test_start_show_without_name_asks_again() -> None:
    """A missing show name keeps the session open to ask again."""

    server = FakePlexServer()

    with TestClient(build_app(server)) as client:
        payload = client.post("/alexa", json=intent_request("StartShowIntent")).json()

    assert "Which show would you like to watch?" in speech_of(payload)
    assert payload["response"]["shouldEndSession"] is False
    assert server.requests == []


def test_upstream_failure_still_finishes_the_turn() -> None:
    """Plex failures still produce a spoken apology and a finished turn."""

    server = FakePlexServer(failing_paths={"/library/sections/1/all"})

    with TestClient(build_app(server)) as client:
        response = client.post(
            "/alexa", json=intent_request("StartShowIntent", {"showName": "breaking bad"})
        )

    assert response.status_code == 200
    payload = response.json()
    assert speech_of(payload) == f"<speak>{APOLOGY}</speak>"
    assert payload["response"]["shouldEndSession"] is True


def test_malformed_request_is_rejected() -> None:
    """Bodies that are not Alexa envelopes are rejected with 400."""

    with TestClient(build_app(FakePlexServer())) as client:
        response = client.post("/alexa", json={"session": {}})

    assert response.status_code == 400


def test_titles_with_ampersands_produce_valid_ssml() -> None:
    """Show titles with XML special characters are escaped in the spoken reply."""

    server = FakePlexServer(
        shows=[{"ratingKey": "9", "title": "Law & Order"}],
        episodes=[episode(1, 1, title="Prescription for Death", show="Law & Order")],
    )

    with TestClient(build_app(server)) as client:
        payload = client.post(
            "/alexa", json=intent_request("StartShowIntent", {"showName": "law and order"})
        ).json()

    root = ElementTree.fromstring(speech_of(payload))
    assert root.tag == "speak"
    assert "".join(root.itertext()) == (
        "Enjoy the next episode of Law & Order: Prescription for Death"
    )
    assert payload["response"]["card"]["content"] == "Playing Law & Order: Prescription for Death"


def test_missing_player_lists_connected_players() -> None:
    """Without a configured player the reply names the connected players."""

    server = FakePlexServer(
        clients=[
            {"name": "Bedroom", "protocolCapabilities": "timeline,playback"},
            {"name": "Remote", "protocolCapabilities": "navigation"},
            {"name": "Living Room", "protocolCapabilities": "playback"},
        ]
    )

    with TestClient(build_app(server, PLEXPLAYER_NAME=None)) as client:
        payload = client.post(
            "/alexa", json=intent_request("StartShowIntent", {"showName": "breaking bad"})
        ).json()

    assert "one of these players: Bedroom, and Living Room." in speech_of(payload)
    assert payload["response"]["shouldEndSession"] is False
    assert [request.url.path for request in server.requests] == ["/clients"]
    assert server.play_commands == []


def test_yes_answer_keeps_escaped_prompt_markup() -> None:
    """Stored prompt responses are already SSML and are not escaped twice."""

    server = FakePlexServer()
    prompt = {
        "yesAction": "startEpisode",
        "yesResponse": "Enjoy the next episode of Law &amp; Order: Pilot",
        "noAction": "endSession",
        "noResponse": "Oh. Sorry about that.",
        "mediaKey": "/library/metadata/101",
        "mediaOffset": 0,
        "playerName": "Living Room",
    }

    with TestClient(build_app(server)) as client:
        payload = client.post(
            "/alexa",
            json=intent_request("AMAZON.YesIntent", attributes={"promptData": prompt}),
        ).json()

    assert speech_of(payload) == "<speak>Enjoy the next episode of Law &amp; Order: Pilot</speak>"
    assert len(server.play_commands) == 1
