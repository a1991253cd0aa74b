"""Pantry tracker: product inventory API and offline-first sync client."""

__version__ = "0.1.0"
