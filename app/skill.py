"""Alexa intent handling for the Plex skill."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from .config import Settings
from .listing import names_from_list
from .models import ConfirmationPrompt, StartShowOptions
from .services.playback import APOLOGY, PROMPT_SESSION_KEY, PlaybackService
from .services.plex import PlexClient
from .speech import SkillResponse

logger = logging.getLogger(__name__)


def _spoken_list(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + f", and {names[-1]}"


class Slot(BaseModel):
    name: str = ""
    value: str | None = None


class Intent(BaseModel):
    name: str
    slots: dict[str, Slot] = Field(default_factory=dict)

    def slot(self, name: str) -> str | None:
        slot = self.slots.get(name)
        if slot is None or slot.value is None:
            return None
        value = slot.value.strip()
        return value or None

    def int_slot(self, name: str) -> int | None:
        value = self.slot(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None


class SkillRequestBody(BaseModel):
    type: str
    intent: Intent | None = None


class SkillSession(BaseModel):
    attributes: dict[str, Any] = Field(default_factory=dict)


class SkillRequest(BaseModel):
    """Subset of the Alexa request envelope the skill reads."""

    session: SkillSession = Field(default_factory=SkillSession)
    request: SkillRequestBody


class SkillHandler:
    """Routes Alexa requests to the playback service."""

    def __init__(
        self, settings: Settings, plex: PlexClient, playback: PlaybackService
    ) -> None:
        self._settings = settings
        self._plex = plex
        self._playback = playback

    async def handle(self, request: SkillRequest) -> SkillResponse:
        response = SkillResponse(request.session.attributes)
        body = request.request

        if body.type == "LaunchRequest":
            response.say("Plex is ready. What would you like to watch?")
            response.should_end_session(False)
            return response
        if body.type == "SessionEndedRequest":
            return response
        if body.type != "IntentRequest" or body.intent is None:
            response.say("Sorry, I didn't understand that")
            return response

        intent = body.intent
        try:
            await self._dispatch(intent, response)
        except Exception:
            # start_show has already apologised, anything else still needs to.
            if APOLOGY not in response.speech:
                logger.exception("Intent %s failed", intent.name)
                response.say(APOLOGY)
            response.clear_session(PROMPT_SESSION_KEY)
            response.should_end_session(True)
        return response

    async def _dispatch(self, intent: Intent, response: SkillResponse) -> None:
        name = intent.name
        if name == "StartShowIntent":
            await self._start_show(intent, response)
        elif name == "StartRandomShowIntent":
            await self._start_show(intent, response, force_random=True)
        elif name == "StartHighRatedEpisodeIntent":
            await self._start_show(
                intent,
                response,
                force_random=True,
                only_top_rated=self._settings.top_rated_fraction,
            )
        elif name == "OnDeckIntent":
            await self._on_deck(response)
        elif name in {"AMAZON.YesIntent", "AMAZON.NoIntent"}:
            await self._answer_prompt(
                "yes" if name == "AMAZON.YesIntent" else "no", response
            )
        elif name in {"AMAZON.StopIntent", "AMAZON.CancelIntent"}:
            response.clear_session(PROMPT_SESSION_KEY)
            response.say("Okay.")
        else:
            response.say("Sorry, I didn't understand that")

    def _player_for(self, intent: Intent) -> str | None:
        return intent.slot("playerName") or self._settings.player_name

    async def _start_show(
        self,
        intent: Intent,
        response: SkillResponse,
        *,
        force_random: bool = False,
        only_top_rated: float | None = None,
    ) -> None:
        show_name = intent.slot("showName")
        if not show_name:
            response.say("I didn't catch the name of the show. Which show would you like to watch?")
            response.should_end_session(False)
            return
        player_name = self._player_for(intent)
        if not player_name:
            await self._ask_for_player(response)
            return

        options = StartShowOptions(
            spoken_show_name=show_name,
            player_name=player_name,
            force_random=force_random,
            only_top_rated=only_top_rated,
            episode_number=intent.int_slot("episodeNumber"),
            season_number=intent.int_slot("seasonNumber"),
        )
        response.clear_session(PROMPT_SESSION_KEY)
        await self._playback.start_show(options, response)

    async def _ask_for_player(self, response: SkillResponse) -> None:
        players = await self._plex.get_players()
        names = [str(player["name"]) for player in players if player.get("name")]
        if not names:
            response.say("I don't know which Plex player to use, and none are connected right now.")
            return
        response.say(
            "I don't know which Plex player to use. "
            f"Say the show again with one of these players: {_spoken_list(names)}."
        )
        response.should_end_session(False)

    async def _on_deck(self, response: SkillResponse) -> None:
        names = names_from_list(await self._plex.get_on_deck())
        if not names:
            response.say("There isn't anything on deck right now.")
            return
        response.say(f"On deck you've got {_spoken_list(names)}.")
        response.card("Plex", "On Deck: " + ", ".join(names))

    async def _answer_prompt(
        self, answer: Literal["yes", "no"], response: SkillResponse
    ) -> None:
        raw_prompt = response.session(PROMPT_SESSION_KEY)
        response.clear_session(PROMPT_SESSION_KEY)
        if not raw_prompt:
            response.say("I'm not sure what you mean")
            return
        try:
            prompt = ConfirmationPrompt.model_validate(raw_prompt)
        except ValidationError:
            logger.warning("Discarding malformed prompt data: %s", raw_prompt)
            response.say("I'm not sure what you mean")
            return

        response.say_ssml(prompt.yes_response if answer == "yes" else prompt.no_response)
        request = prompt.request_for(answer)
        if request is not None:
            await self._playback.play_media(request)
