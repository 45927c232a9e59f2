"""Configuration models for retrieval, editing and session tracking."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RetrievalConfig(BaseModel):
    """Configures fragment retrieval defaults and scoring constants."""

    max_fragments: int = Field(default=5, ge=1)
    heading_bonus: float = Field(default=2.0, ge=0.0)
    proximity_window: int = Field(default=3, ge=1)


class EditConfig(BaseModel):
    """Configures fuzzy anchoring and windowed viewing."""

    fuzzy_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    view_search_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    view_window_size: int = Field(default=20, ge=1)
    full_file_word_warning: int = Field(default=2000, ge=1)


class SessionConfig(BaseModel):
    """Bounds for the rolling session memory."""

    file_history_limit: int = Field(default=10, ge=1)
    search_history_limit: int = Field(default=5, ge=1)
    trace_limit: int = Field(default=50, ge=1)
