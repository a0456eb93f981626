"""Chat message values and request/response bodies."""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """Single role-tagged message. Immutable once created."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role
    content: str

    def to_openai(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Request body for sending a new chat message."""
    message: str = Field(..., max_length=32_000)


class ChatHistoryResponse(BaseModel):
    """Full chat history of the authenticated user."""
    message: str = "OK"
    chats: list[ChatMessage]


class StatusResponse(BaseModel):
    message: str
