"""Playlist Digest: summarize and fact-check a YouTube playlist with Gemini."""

__version__ = "0.1.0"
