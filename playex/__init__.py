"""Playex API: request admission control for the media-discovery backend."""

__version__ = "0.1.0"
