from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    IMAGE_DESCRIPTION = "image-description"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Requests. Required fields are Optional here so that a missing or blank
# value is reported as a client error by the service layer.
class ChatRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    message: Optional[str] = None
    chat_id: Optional[str] = Field(None, alias="chatId")


class ResetRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")


class DeleteChatRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    chat_id: Optional[str] = Field(None, alias="chatId")


# Responses
class ChatResponse(CamelModel):
    reply: str
    chat_id: str = Field(..., alias="chatId")


class ImageUploadResponse(ChatResponse):
    file_id: str = Field(..., alias="fileId")
    description: str


class DocumentUploadResponse(ChatResponse):
    file_id: str = Field(..., alias="fileId")
    summary: Optional[str] = None


class HistoryMessage(CamelModel):
    id: int
    role: MessageRole
    type: MessageKind
    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    file_id: Optional[str] = Field(None, alias="fileId")
    created_at: datetime = Field(..., alias="createdAt")


class ChatSummary(CamelModel):
    chat_id: str = Field(..., alias="chatId")
    title: str
    last_used_at: datetime = Field(..., alias="lastUsedAt")


class ResetResponse(CamelModel):
    status: str = "reset"
    deleted_chats: int = Field(..., alias="deletedChats")


class DeleteChatResponse(CamelModel):
    status: str = "deleted"
    chat_id: str = Field(..., alias="chatId")


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Dict[str, Any]] = None
