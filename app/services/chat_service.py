"""Chat service layer.

Handles:
- Chat history retrieval and deletion (per user)
- Sending a new user message to the model and storing the reply
"""
import logging
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session, select

from app.config import Settings, settings as app_settings
from app.models.conversation import Chat
from app.models.user import User
from app.schemas.chat import ChatMessage, Role
from app.services.completion import (
    CompletionConfig,
    CompletionError,
    CompletionRequester,
    build_openai_client,
)

logger = logging.getLogger(__name__)


def default_requester_factory(settings: Settings) -> CompletionRequester:
    """Build a CompletionRequester from application settings."""
    return CompletionRequester(
        build_openai_client(settings),
        CompletionConfig.from_settings(settings),
    )


class ChatService:
    """Service layer for chat operations."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        requester_factory: Optional[Callable[[Settings], CompletionRequester]] = None,
    ):
        self.settings = settings or app_settings
        self.requester_factory = requester_factory or default_requester_factory
        self._requester: Optional[CompletionRequester] = None

    @property
    def requester(self) -> CompletionRequester:
        """Lazily created so a missing API key only fails chat requests."""
        if self._requester is None:
            self._requester = self.requester_factory(self.settings)
        return self._requester

    def get_user(self, session: Session, user_id: int) -> Optional[User]:
        return session.get(User, user_id)

    def get_history(self, session: Session, user_id: int) -> list[ChatMessage]:
        """
        Get the user's chat history.

        Returns:
            Messages in chronological order
        """
        statement = select(Chat).where(Chat.user_id == user_id).order_by(Chat.id)
        return [
            ChatMessage(role=chat.role, content=chat.content)
            for chat in session.exec(statement).all()
        ]

    def store_messages(self, session: Session, user_id: int, messages: list[ChatMessage]) -> None:
        """Append messages to the user's history in a single commit."""
        for message in messages:
            session.add(Chat(user_id=user_id, role=message.role, content=message.content))
        session.commit()

    async def send_message(
        self,
        session: Session,
        user_id: int,
        message_text: str,
    ) -> tuple[list[ChatMessage], Optional[CompletionError]]:
        """
        Send a user message with the full history and store the reply.

        Database work runs in the threadpool so the event loop only ever
        waits on the completion request and its backoff sleeps.

        Flow:
        1. Load stored history
        2. Append the new user message to a snapshot of it
        3. Request a completion for the snapshot
        4. On success, store user message + reply together
        5. On failure, store the user message only if KEEP_UNANSWERED_MESSAGES is set

        Args:
            session: Database session
            user_id: Authenticated user ID
            message_text: New user message content

        Returns:
            Tuple of (history, error)
            - history: Updated history on success, stored history on failure
            - error: None if success, CompletionError otherwise

        Raises:
            ConfigurationError: If the completion client cannot be built
        """
        history = await run_in_threadpool(self.get_history, session, user_id)
        user_message = ChatMessage(role=Role.USER, content=message_text)
        conversation = [*history, user_message]

        result = await self.requester.request_completion(conversation)

        if not result.ok:
            logger.warning(f"Chat completion failed for user {user_id}: {result.error.message}")
            if self.settings.KEEP_UNANSWERED_MESSAGES:
                await run_in_threadpool(self.store_messages, session, user_id, [user_message])
                return conversation, result.error
            return history, result.error

        await run_in_threadpool(
            self.store_messages, session, user_id, [user_message, result.message]
        )
        logger.info(
            f"Chat message processed: user={user_id}, history_length={len(conversation) + 1}"
        )
        return [*conversation, result.message], None

    def clear_history(self, session: Session, user_id: int) -> int:
        """
        Delete every stored message of the user.

        Returns:
            Number of deleted messages
        """
        chats = session.exec(select(Chat).where(Chat.user_id == user_id)).all()
        for chat in chats:
            session.delete(chat)
        session.commit()
        logger.info(f"Cleared {len(chats)} chats for user {user_id}")
        return len(chats)
