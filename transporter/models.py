"""Core domain models.

The message log is the only stored state; GameState is always derived from
it. Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from transporter.config import INITIAL_FLOOR, TOTAL_MOVES

Speaker = Literal["user", "elevator", "marvin", "guide"]
Persona = Literal["elevator", "marvin", "guide"]
Action = Literal["none", "join", "up", "down"]
ConversationMode = Literal["user-interactive", "autonomous"]

ACTIONS: tuple[str, ...] = ("none", "join", "up", "down")


class Message(BaseModel):
    """A single entry in a session's append-only message log."""

    model_config = {"frozen": True}

    persona: Speaker
    message: str
    action: Action = "none"

    @field_validator("action", mode="before")
    @classmethod
    def _normalise_action(cls, value: object) -> object:
        # LLM output is free text; anything we don't recognise is a no-op
        if value is None:
            return "none"
        if isinstance(value, str):
            value = value.strip().lower()
            return value if value in ACTIONS else "none"
        return value


class GameState(BaseModel):
    """Game progress folded from the message log. Never stored."""

    current_floor: int = Field(default=INITIAL_FLOOR, ge=1)
    moves_left: int = TOTAL_MOVES
    current_persona: Persona = "elevator"
    first_stage_complete: bool = False
    has_won: bool = False
    conversation_mode: ConversationMode = "user-interactive"
    last_speaker: Speaker | None = None
    marvin_joined: bool = False

    @property
    def is_over(self) -> bool:
        return self.has_won or self.moves_left <= 0


class ChatMessage(BaseModel):
    """One role-tagged turn sent to the chat completion endpoint."""

    role: Literal["system", "user", "assistant"]
    content: str
    name: Persona | None = None


class Session(BaseModel):
    """Session metadata stored on disk."""

    id: str
    created_at: str
