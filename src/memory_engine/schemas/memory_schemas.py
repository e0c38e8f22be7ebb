"""Pydantic schemas for conversation turns, interaction-log records and matches."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MemoryType = Literal["fact", "history"]


class Turn(BaseModel):
    """A single conversation turn."""

    role: str = Field(..., description="Speaker role: user, assistant, system")
    content: str = Field(default="", description="Turn text")


class LogRecord(BaseModel):
    """One line of the interaction log."""

    timestamp: str | float | None = Field(default=None, description="When the interaction happened")
    messages: list[Turn] = Field(default_factory=list)


class Match(BaseModel):
    """A raw or ranked retrieval match.

    score is strategy-specific (cosine for lexical, 1 - distance for semantic) and
    is only comparable between matches from the same strategy.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    source: str
    type: MemoryType
    score: float = 0.0


RetrievalResult = list[Match]
