"""Chat endpoint routes.

Provides:
- POST /api/v1/chat/new - Send message, get the updated history
- GET /api/v1/chat/all-chats - Get the user's chat history
- DELETE /api/v1/chat/delete - Delete the user's chat history
"""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from app.core.deps import get_current_user, get_db
from app.schemas.chat import ChatHistoryResponse, ChatRequest, StatusResponse
from app.services.chat_service import ChatService
from app.services.completion import ConfigurationError, RetriesExhausted

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

# Shared service; holds the lazily built OpenAI requester, never a DB session
chat_service = ChatService()


def get_chat_service() -> ChatService:
    return chat_service


def _require_user(service: ChatService, session: Session, user_id: int) -> None:
    if service.get_user(session, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not registered or token malfunctioned",
        )


@router.post("/new", response_model=ChatHistoryResponse)
async def generate_chat_completion(
    request: ChatRequest,
    current_user_id: int = Depends(get_current_user),
    session: Session = Depends(get_db),
    service: ChatService = Depends(get_chat_service),
) -> ChatHistoryResponse:
    """
    Send a message to the model and return the full updated history.

    Raises:
        HTTPException: 400 if the message is blank
        HTTPException: 401 if the user does not exist
        HTTPException: 502 if the OpenAI API failed
        HTTPException: 503 if still rate limited after all retries
    """
    if not request.message.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message cannot be empty",
        )

    await run_in_threadpool(_require_user, service, session, current_user_id)

    try:
        chats, error = await service.send_message(session, current_user_id, request.message)
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Chat service is not configured", "cause": str(e)},
        )

    if isinstance(error, RetriesExhausted):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": error.message, "cause": "rate_limited"},
        )
    if error is not None:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "An error occurred while generating chat", "cause": error.message},
        )

    return ChatHistoryResponse(chats=chats)


@router.get("/all-chats", response_model=ChatHistoryResponse)
def send_chats_to_user(
    current_user_id: int = Depends(get_current_user),
    session: Session = Depends(get_db),
    service: ChatService = Depends(get_chat_service),
) -> ChatHistoryResponse:
    """Return the authenticated user's chat history, oldest first."""
    _require_user(service, session, current_user_id)
    return ChatHistoryResponse(chats=service.get_history(session, current_user_id))


@router.delete("/delete", response_model=StatusResponse)
def delete_chats(
    current_user_id: int = Depends(get_current_user),
    session: Session = Depends(get_db),
    service: ChatService = Depends(get_chat_service),
) -> StatusResponse:
    """Delete the authenticated user's chat history."""
    _require_user(service, session, current_user_id)
    service.clear_history(session, current_user_id)
    return StatusResponse(message="OK")
