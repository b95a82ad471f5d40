"""Segmenting, fMP4 packaging, HLS playlists, in-memory storage and caching for video streams."""

__version__ = "0.1.0"