"""Deckrift save-state persistence, validation and cloud sync."""

__version__ = "0.1.0"
