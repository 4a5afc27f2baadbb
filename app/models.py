"""Pydantic models describing Plex library entries and playback state."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import container_children

PromptAction = Literal["startEpisode", "endSession"]


class Show(BaseModel):
    """A TV show as listed by a Plex library section."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    rating_key: str = Field(alias="ratingKey")
    title: str = ""

    @field_validator("rating_key", mode="before")
    @classmethod
    def _coerce_key(cls, value: object) -> str:
        return str(value)


class Episode(BaseModel):
    """A single episode leaf returned by ``/library/metadata/<id>/allLeaves``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str
    title: str = ""
    grandparent_title: str = Field(default="", alias="grandparentTitle")
    parent_index: int | None = Field(default=None, alias="parentIndex")
    index: int | None = None
    view_offset: int = Field(default=0, alias="viewOffset")
    view_count: int | None = Field(default=None, alias="viewCount")
    rating: float | None = None
    deleted_at: int | None = Field(default=None, alias="deletedAt")

    @field_validator("view_offset", mode="before")
    @classmethod
    def _clamp_offset(cls, value: object) -> int:
        if value is None:
            return 0
        return max(int(value), 0)  # type: ignore[call-overload]

    @property
    def watched(self) -> bool:
        return self.view_count is not None

    @property
    def available(self) -> bool:
        return not self.deleted_at

    @classmethod
    def from_container(cls, container: dict[str, Any]) -> list["Episode"]:
        """Parse every episode entry of a Plex ``MediaContainer``."""

        return [
            cls.model_validate(entry)
            for entry in container_children(container)
            if entry.get("key") is not None
        ]


class PlaybackRequest(BaseModel):
    """A fully resolved play command, ready to be dispatched to a client."""

    player_name: str
    media_key: str
    offset: int = 0


class StartShowOptions(BaseModel):
    """Inputs accepted by :meth:`PlaybackService.start_show`."""

    spoken_show_name: str | None = None
    player_name: str | None = None
    force_random: bool = False
    only_top_rated: float | None = Field(default=None, gt=0, le=1)
    episode_number: int | None = Field(default=None, ge=0)
    season_number: int | None = Field(default=None, ge=0)


class ConfirmationPrompt(BaseModel):
    """Yes/no question stored in the session until the user's next turn."""

    model_config = ConfigDict(populate_by_name=True)

    yes_action: PromptAction = Field(alias="yesAction")
    yes_response: str = Field(alias="yesResponse")
    no_action: PromptAction = Field(alias="noAction")
    no_response: str = Field(alias="noResponse")
    media_key: str = Field(alias="mediaKey")
    offset: int = Field(default=0, alias="mediaOffset")
    player_name: str = Field(alias="playerName")
    alternate_media_key: str | None = Field(default=None, alias="noMediaKey")
    alternate_offset: int | None = Field(default=None, alias="noMediaOffset")

    def to_session(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def request_for(self, answer: Literal["yes", "no"]) -> PlaybackRequest | None:
        """Return the playback the given answer triggers, if any."""

        action = self.yes_action if answer == "yes" else self.no_action
        if action != "startEpisode":
            return None
        if answer == "no" and self.alternate_media_key:
            return PlaybackRequest(
                player_name=self.player_name,
                media_key=self.alternate_media_key,
                offset=self.alternate_offset or 0,
            )
        return PlaybackRequest(
            player_name=self.player_name,
            media_key=self.media_key,
            offset=self.offset,
        )
