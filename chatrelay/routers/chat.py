from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from typing import List, Optional

from chatrelay.dependencies import get_relay_service
from chatrelay.models.schemas import (
    ChatRequest,
    ChatResponse,
    ChatSummary,
    DeleteChatRequest,
    DeleteChatResponse,
    HistoryMessage,
    ResetRequest,
    ResetResponse,
)
from chatrelay.services.relay_service import RelayService

router = APIRouter(tags=["Chat"])


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, service: RelayService = Depends(get_relay_service)):
    """Send a message, creating a chat when chatId is absent or unknown"""
    return await run_in_threadpool(service.chat, request.user_id, request.message, request.chat_id)


@router.get("/history", response_model=List[HistoryMessage])
async def history(
    chat_id: Optional[str] = Query(None, alias="chatId"),
    service: RelayService = Depends(get_relay_service)
):
    """Messages of a chat in creation order"""
    return await run_in_threadpool(service.history, chat_id)


@router.get("/chats", response_model=List[ChatSummary])
async def chats(
    user_id: Optional[str] = Query(None, alias="userId"),
    service: RelayService = Depends(get_relay_service)
):
    """A user's chats, most recently used first"""
    return await run_in_threadpool(service.list_chats, user_id)


@router.post("/reset", response_model=ResetResponse)
async def reset(request: ResetRequest, service: RelayService = Depends(get_relay_service)):
    """Delete all chats, messages and files of a user"""
    return await run_in_threadpool(service.reset, request.user_id)


@router.post("/deleteChat", response_model=DeleteChatResponse)
async def delete_chat(request: DeleteChatRequest, service: RelayService = Depends(get_relay_service)):
    return await run_in_threadpool(service.delete_chat, request.user_id, request.chat_id)
