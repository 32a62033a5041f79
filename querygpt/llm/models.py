"""
Chat Service Request and Response Models

Pydantic models for the remote chat service wire format. Field names are
snake_case in Python and camelCase on the wire.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChatRequest(BaseModel):
    """
    Request body for ``POST /chat``.

    Three shapes are valid: context-free (message only), cold turn
    (message + system_instruction) and follow-up (message + session_id).
    A request never carries both a session id and a system instruction.
    """

    message: str = Field(
        ...,
        description="User message for this turn",
        min_length=1
    )
    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        description="Session to continue (follow-up turns only)"
    )
    system_instruction: Optional[str] = Field(
        None,
        alias="systemInstruction",
        description="Instruction that opens a new session (cold turns only)"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_single_shape(self) -> "ChatRequest":
        if self.session_id and self.system_instruction:
            raise ValueError("ChatRequest cannot carry both sessionId and systemInstruction")
        return self

    @property
    def is_cold(self) -> bool:
        return self.system_instruction is not None

    @property
    def is_followup(self) -> bool:
        return self.session_id is not None

    def to_payload(self) -> dict[str, Any]:
        """Wire payload with only the fields that are set."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatReply(BaseModel):
    """Successful response from ``POST /chat``."""

    reply: str = Field(
        default="",
        description="Model reply text"
    )
    session_id: Optional[str] = Field(
        None,
        alias="sessionId",
        description="Session opened or continued by this turn"
    )

    model_config = ConfigDict(populate_by_name=True)
