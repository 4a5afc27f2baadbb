"""Episode selection and remote playback orchestration."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any
from xml.sax.saxutils import escape

from ..config import Settings
from ..episodes import first_unwatched, random_episode, resume_candidate
from ..models import (
    ConfirmationPrompt,
    Episode,
    PlaybackRequest,
    Show,
    StartShowOptions,
)
from ..resolver import Matcher, find_best_match, resolve_show
from ..speech import SkillResponse
from ..utils import encode_uri_component
from .identity import IdentityCache
from .plex import PlexClient

logger = logging.getLogger(__name__)

PROMPT_SESSION_KEY = "promptData"
APOLOGY = "I'm sorry, Plex and I don't seem to be getting along right now"
SHOW_NOT_FOUND = "Sorry, I couldn't find that show in your library"


@dataclass(slots=True)
class EpisodeChoice:
    """An episode picked for playback and the SSML line announcing it."""

    episode: Episode
    speech: str
    offset: int = 0


class PlaybackService:
    """Chooses episodes for spoken requests and starts them on Plex clients."""

    def __init__(
        self,
        settings: Settings,
        plex: PlexClient,
        identity: IdentityCache,
        *,
        matcher: Matcher = find_best_match,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._plex = plex
        self._identity = identity
        self._matcher = matcher
        self._rng = rng

    async def start_show(
        self, options: StartShowOptions, response: SkillResponse
    ) -> None:
        """Pick an episode of the requested show and play it or ask first.

        Missing show or player names raise ``ValueError`` before Plex is
        contacted. Any later failure is apologised for on ``response`` and
        re-raised.
        """

        if not options.spoken_show_name:
            raise ValueError("start_show must be provided with a spoken_show_name")
        if not options.player_name:
            raise ValueError("start_show must be provided with a player_name")

        try:
            await self._start_show(options, response)
        except Exception:
            logger.exception("Failed to start %s", options.spoken_show_name)
            response.say(APOLOGY)
            raise

    async def _start_show(
        self, options: StartShowOptions, response: SkillResponse
    ) -> None:
        shows = await self._plex.list_tv_shows()
        match = resolve_show(
            options.spoken_show_name or "",
            shows,
            matcher=self._matcher,
            score_cutoff=self._settings.match_minimum_score,
        )
        show = match.best_match
        if show is None:
            logger.warning("Show requested not found: %s", options.spoken_show_name)
            response.say(SHOW_NOT_FOUND)
            return

        episodes = await self._plex.get_all_episodes(show)
        player_name = options.player_name or ""

        choice: EpisodeChoice | None
        if options.episode_number is not None or options.season_number is not None:
            choice = self._explicit_episode(show, episodes, options, response)
            if choice is None:
                return
        elif not options.force_random:
            choice = self._next_episode(show, episodes)
        else:
            choice = None

        if choice is None:
            resumable = resume_candidate(episodes, options.only_top_rated)
            if resumable is not None:
                self._offer_resume(resumable, episodes, options, response)
                return
            fallback = random_episode(episodes, options.only_top_rated, self._rng)
            choice = EpisodeChoice(
                fallback,
                f"Enjoy this episode from Season {fallback.parent_index}: {escape(fallback.title)}",
            )

        await self._dispatch(show, choice, match.confidence, player_name, response)

    def _explicit_episode(
        self,
        show: Show,
        episodes: list[Episode],
        options: StartShowOptions,
        response: SkillResponse,
    ) -> EpisodeChoice | None:
        season_number = options.season_number
        episode_number = options.episode_number
        if season_number is None and episode_number is not None and episode_number > 100:
            # "203" means season 2, episode 3.
            season_number, episode_number = divmod(episode_number, 100)
        elif season_number is None:
            season_number = 1
        if episode_number is None:
            episode_number = 1

        season = [episode for episode in episodes if episode.parent_index == season_number]
        if not season:
            response.say(
                f"I'm sorry, there does not appear to be a season {season_number} of {show.title}"
            )
            return None

        episode = next((ep for ep in season if ep.index == episode_number), None)
        if episode is None:
            response.say(
                f"I'm sorry, there does not appear to be an episode {episode_number}, "
                f"season {season_number} of {show.title}"
            )
            return None

        return EpisodeChoice(
            episode,
            f"Alright, here is <say-as interpret-as='digits'>s{season_number}e{episode_number}</say-as> "
            f"of {escape(show.title)}: {escape(episode.title)}",
        )

    @staticmethod
    def _next_episode(show: Show, episodes: list[Episode]) -> EpisodeChoice | None:
        episode = first_unwatched(episodes)
        if episode is None:
            return None
        if episode.view_offset > 0:
            return EpisodeChoice(
                episode,
                f"Continuing the next episode of {escape(show.title)} from where you left off: "
                f"{escape(episode.title)}",
                episode.view_offset,
            )
        return EpisodeChoice(
            episode, f"Enjoy the next episode of {escape(show.title)}: {escape(episode.title)}"
        )

    def _offer_resume(
        self,
        resumable: Episode,
        episodes: list[Episode],
        options: StartShowOptions,
        response: SkillResponse,
    ) -> None:
        alternative = random_episode(episodes, options.only_top_rated, self._rng)
        prompt = ConfirmationPrompt(
            yes_action="startEpisode",
            yes_response=(
                f"Resuming this episode from Season {resumable.parent_index}: {escape(resumable.title)}"
            ),
            no_action="startEpisode",
            no_response=(
                f"Alright, then enjoy this episode from Season "
                f"{alternative.parent_index}: {escape(alternative.title)}"
            ),
            media_key=resumable.key,
            offset=resumable.view_offset,
            player_name=options.player_name or "",
            alternate_media_key=alternative.key,
            alternate_offset=0,
        )
        response.session(PROMPT_SESSION_KEY, prompt.to_session())
        response.should_end_session(False)
        response.say(
            f"It looks like you're part-way through the episode {resumable.title}. "
            "Would you like to resume that one?"
        )

    async def _dispatch(
        self,
        show: Show,
        choice: EpisodeChoice,
        confidence: float,
        player_name: str,
        response: SkillResponse,
    ) -> None:
        episode = choice.episode
        response.card("Plex", f"Playing {show.title}: {episode.title}")

        if confidence >= self._settings.confidence_confirm_threshold:
            response.say_ssml(choice.speech)
            await self.play_media(
                PlaybackRequest(
                    player_name=player_name,
                    media_key=episode.key,
                    offset=choice.offset,
                )
            )
            return

        logger.info(
            "Low confidence (%.1f) matching show %s, asking for confirmation",
            confidence,
            show.title,
        )
        prompt = ConfirmationPrompt(
            yes_action="startEpisode",
            yes_response=choice.speech,
            no_action="endSession",
            no_response="Oh. Sorry about that.",
            media_key=episode.key,
            offset=choice.offset,
            player_name=player_name,
        )
        response.session(PROMPT_SESSION_KEY, prompt.to_session())
        response.should_end_session(False)
        response.say(
            f"You would like to watch an episode of {episode.grandparent_title or show.title}. "
            "Is that correct?"
        )

    async def play_media(self, request: PlaybackRequest) -> dict[str, Any]:
        """Queue ``request.media_key`` on the server and start it on the player."""

        machine_identifier = await self._identity.get_machine_identifier()
        client_address = await self._identity.get_client_address(request.player_name)

        key_uri = encode_uri_component(request.media_key)
        # The play queue URI embeds an already encoded key, so it is encoded twice.
        library_uri = encode_uri_component(
            f"library://{machine_identifier}/item/{key_uri}"
        )
        queue = await self._plex.post_query(
            f"/playQueues?type=video&includechapters=1&uri={library_uri}"
            "&shuffle=0&continuous=1&repeat=0"
        )
        queue_id = queue.get("playQueueID")
        if queue_id is None:
            raise ValueError("Plex did not return a playQueueID")

        container_key = encode_uri_component(f"/playQueues/{queue_id}?own=1&window=200")
        command_id = self._identity.next_command_id(client_address)
        play_path = (
            f"/system/players/{client_address}/playback/playMedia"
            f"?key={key_uri}"
            f"&offset={request.offset}"
            f"&machineIdentifier={machine_identifier}"
            "&protocol=http"
            f"&containerKey={container_key}"
            f"&commandID={command_id}"
        )
        logger.info("Dispatching playMedia to %s: %s", request.player_name, play_path)
        return await self._plex.perform(play_path)
