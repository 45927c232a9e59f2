"""Semantic vault package."""

from .config import EditConfig, RetrievalConfig, SessionConfig

__all__ = ["EditConfig", "RetrievalConfig", "SessionConfig"]
