"""Runnable entry point for the PlexVoice skill server (``python -m plexvoice``)."""

from __future__ import annotations

from app import __version__

__all__ = ["__version__"]
