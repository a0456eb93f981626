"""Chat history SQLModel definition.

Models:
- Chat: one stored message in a user's conversation
"""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class Chat(SQLModel, table=True):
    """
    Stored chat message.

    A user's conversation is the set of their rows ordered by id.
    Rows are only ever appended by the completion flow; the whole history
    can be cleared on request.
    """
    __tablename__ = "chat"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True, nullable=False)
    role: str = Field(max_length=20)  # "user", "assistant" or "system"
    content: str = Field()
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
