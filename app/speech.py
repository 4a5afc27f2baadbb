"""Spoken response builder for Alexa-style skill replies."""

from __future__ import annotations

import re
from typing import Any
from xml.sax.saxutils import escape

_SSML_WRAPPER_RE = re.compile(r"^\s*<speak>|</speak>\s*$")


class SkillResponse:
    """Accumulates speech, an optional card and session attributes for one turn."""

    def __init__(self, session_attributes: dict[str, Any] | None = None) -> None:
        self._utterances: list[str] = []
        self._card: dict[str, str] | None = None
        self._end_session = True
        self._attributes: dict[str, Any] = dict(session_attributes or {})

    def say(self, text: str) -> "SkillResponse":
        """Queue plain text, escaped for use inside SSML."""

        return self.say_ssml(escape(text))

    def say_ssml(self, markup: str) -> "SkillResponse":
        """Queue an already escaped SSML fragment."""

        cleaned = _SSML_WRAPPER_RE.sub("", markup).strip()
        if cleaned:
            self._utterances.append(cleaned)
        return self

    def card(self, title: str, content: str) -> "SkillResponse":
        self._card = {"type": "Simple", "title": title, "content": content}
        return self

    def should_end_session(self, end: bool) -> "SkillResponse":
        self._end_session = end
        return self

    def session(self, key: str, value: Any = None) -> Any:
        """Read a session attribute, or overwrite it when ``value`` is given."""

        if value is None:
            return self._attributes.get(key)
        self._attributes[key] = value
        return value

    def clear_session(self, key: str) -> None:
        self._attributes.pop(key, None)

    @property
    def speech(self) -> str:
        return " ".join(self._utterances)

    @property
    def ends_session(self) -> bool:
        return self._end_session

    @property
    def card_payload(self) -> dict[str, str] | None:
        return self._card

    def to_payload(self) -> dict[str, Any]:
        """Return the response envelope expected by the Alexa service."""

        response: dict[str, Any] = {"shouldEndSession": self._end_session}
        if self._utterances:
            response["outputSpeech"] = {
                "type": "SSML",
                "ssml": f"<speak>{self.speech}</speak>",
            }
        if self._card:
            response["card"] = dict(self._card)
        return {
            "version": "1.0",
            "sessionAttributes": dict(self._attributes),
            "response": response,
        }
