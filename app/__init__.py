"""PlexVoice application package.

Episode selection and remote playback for Plex, driven by an Alexa skill
webhook served from :mod:`app.main`.
"""

__version__ = "1.0.0"
