import base64
import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from chatrelay.config import Settings
from chatrelay.errors import ClientInputError, NotFoundError, UpstreamError
from chatrelay.models.chat import Attachment, ChatMessage, ChatSession
from chatrelay.models.schemas import MessageKind, MessageRole
from chatrelay.services.chat_service import ChatService
from chatrelay.services.completion_gateway import CompletionGateway
from chatrelay.services.context_assembler import ContextAssembler
from chatrelay.services.document_processor import DocumentProcessor
from chatrelay.services.file_store import FileStore
from chatrelay.services.retriever import KeywordChunkRetriever
from chatrelay.services.titles import title_for

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_QUESTION = "Summarize this document."


def _require(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise ClientInputError(f"{name} is required")
    return value.strip()


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


def file_url(file_id: str) -> str:
    return f"/files/{file_id}"


class RelayService:
    """Handles one chat or upload request end to end.

    Every turn persists the user's message before calling the completion API.
    If that call fails the message stays in the history and the raised
    ``UpstreamError`` carries the chat id, so the client can retry in the
    same chat.
    """

    def __init__(self, db: Session, gateway: CompletionGateway, file_store: FileStore, settings: Settings):
        self.settings = settings
        self.chat_service = ChatService(db)
        self.gateway = gateway
        self.file_store = file_store
        self.document_processor = DocumentProcessor(settings.ALLOWED_DOCUMENT_TYPES)
        self.assembler = ContextAssembler(
            self.chat_service,
            KeywordChunkRetriever(
                chunk_size=settings.CHUNK_SIZE,
                min_token_length=settings.MIN_QUERY_TOKEN_LENGTH,
                top_k=settings.TOP_K_CHUNKS,
            ),
            history_window=settings.HISTORY_WINDOW,
            image_budget=settings.IMAGE_DESCRIPTION_BUDGET,
            summary_budget=settings.DOCUMENT_SUMMARY_BUDGET,
            system_prompt=settings.SYSTEM_PROMPT,
        )

    # Chat

    def chat(self, user_id: Optional[str], message: Optional[str], chat_id: Optional[str] = None) -> Dict[str, str]:
        user_id = _require(user_id, "userId")
        # Validated on the stripped text, stored as sent
        _require(message, "message")

        session = self.chat_service.resolve_session(user_id, _optional(chat_id), title_for(message))
        user_message = self.chat_service.add_message(session.id, MessageRole.USER, message)
        self.chat_service.touch(session)

        reply = self._reply(session, user_message)
        return {"reply": reply, "chat_id": session.id}

    def _reply(self, session: ChatSession, user_message: ChatMessage) -> str:
        """Complete the turn started by ``user_message`` and persist the answer"""
        messages = self.assembler.assemble(session, user_message)
        try:
            reply = self.gateway.complete(messages)
        except UpstreamError as e:
            e.details = {"chatId": session.id, "persisted": True}
            raise
        self.chat_service.add_message(session.id, MessageRole.ASSISTANT, reply)
        self.chat_service.touch(session)
        return reply

    # Uploads

    def upload_image(
        self,
        user_id: Optional[str],
        filename: Optional[str],
        content: Optional[bytes],
        content_type: Optional[str] = None,
        chat_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        user_id = _require(user_id, "userId")
        self._check_upload(filename, content, self.settings.ALLOWED_IMAGE_TYPES)
        caption = _optional(message)
        mime_type = content_type if content_type and content_type.startswith("image/") else (
            mimetypes.guess_type(filename)[0] or "image/png"
        )

        session = self.chat_service.resolve_session(user_id, _optional(chat_id), title_for(caption or filename))
        attachment = self._store_attachment(session, filename, content, mime_type)

        try:
            description = self.gateway.describe_image(base64.b64encode(content).decode("ascii"), mime_type)
        except UpstreamError as e:
            e.details = {"chatId": session.id, "persisted": False}
            raise

        user_message = self.chat_service.add_message(
            session.id,
            MessageRole.USER,
            caption or f"[image] {filename}",
            kind=MessageKind.IMAGE,
            image_ref=file_url(attachment.id),
            attachment_id=attachment.id,
        )
        self.chat_service.add_message(
            session.id,
            MessageRole.SYSTEM,
            f"Image description: {description}",
            kind=MessageKind.IMAGE_DESCRIPTION,
            image_description=description,
            attachment_id=attachment.id,
        )
        self.chat_service.touch(session, active_file_id=attachment.id)

        if caption:
            reply = self._reply(session, user_message)
        else:
            reply = description
            self.chat_service.add_message(session.id, MessageRole.ASSISTANT, reply)
        return {"reply": reply, "chat_id": session.id, "file_id": attachment.id, "description": description}

    def upload_document(
        self,
        user_id: Optional[str],
        filename: Optional[str],
        content: Optional[bytes],
        content_type: Optional[str] = None,
        chat_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        user_id = _require(user_id, "userId")
        self._check_upload(filename, content, self.settings.ALLOWED_DOCUMENT_TYPES)
        question = _optional(message)

        # Extract before creating anything so unreadable files leave no trace
        text = self.document_processor.extract_text(content, filename)

        session = self.chat_service.resolve_session(user_id, _optional(chat_id), title_for(question or filename))
        attachment = self._store_attachment(session, filename, content, content_type)
        summary = self._summarize(text, filename)

        user_message = self.chat_service.add_message(
            session.id,
            MessageRole.USER,
            question or DEFAULT_DOCUMENT_QUESTION,
            kind=MessageKind.DOCUMENT,
            document_text=text,
            document_summary=summary,
            attachment_id=attachment.id,
        )
        self.chat_service.touch(session, active_file_id=attachment.id)

        reply = self._reply(session, user_message)
        return {"reply": reply, "chat_id": session.id, "file_id": attachment.id, "summary": summary}

    def _check_upload(self, filename: Optional[str], content: Optional[bytes], allowed_types: List[str]) -> None:
        if not filename or content is None:
            raise ClientInputError("file is required")
        if not content:
            raise ClientInputError(f"File {filename} is empty")
        if len(content) > self.settings.MAX_UPLOAD_BYTES:
            raise ClientInputError(
                f"File {filename} is larger than {self.settings.MAX_UPLOAD_BYTES} bytes"
            )
        if Path(filename).suffix.lower() not in allowed_types:
            raise ClientInputError(
                f"File {filename} is not supported. Allowed types: {', '.join(allowed_types)}"
            )

    def _store_attachment(self, session: ChatSession, filename: str, content: bytes, content_type: Optional[str]) -> Attachment:
        file_id, path = self.file_store.save(filename, content)
        return self.chat_service.add_attachment(session.id, file_id, filename, content_type, path)

    def _summarize(self, text: str, filename: str) -> Optional[str]:
        """Summary of an uploaded document, or None when disabled or unavailable"""
        if not self.settings.SUMMARIZE_DOCUMENTS:
            return None
        try:
            return self.gateway.summarize(text)
        except UpstreamError as e:
            logger.warning(f"Could not summarize {filename}, falling back to fragment retrieval: {e.message}")
            return None

    # History and housekeeping

    def history(self, chat_id: Optional[str]) -> List[Dict[str, Any]]:
        chat_id = _require(chat_id, "chatId")
        return [
            {
                "id": message.id,
                "role": message.role,
                "type": message.kind,
                "content": message.content,
                "image_url": message.image_ref,
                "file_id": message.attachment_id,
                "created_at": message.created_at,
            }
            for message in self.chat_service.get_history(chat_id)
        ]

    def list_chats(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        user_id = _require(user_id, "userId")
        return [
            {"chat_id": session.id, "title": session.title, "last_used_at": session.last_used_at}
            for session in self.chat_service.get_user_sessions(user_id)
        ]

    def reset(self, user_id: Optional[str]) -> Dict[str, Any]:
        user_id = _require(user_id, "userId")
        deleted, paths = self.chat_service.delete_user_sessions(user_id)
        self.file_store.delete_many(paths)
        return {"status": "reset", "deleted_chats": deleted}

    def delete_chat(self, user_id: Optional[str], chat_id: Optional[str]) -> Dict[str, str]:
        user_id = _require(user_id, "userId")
        chat_id = _require(chat_id, "chatId")
        session = self.chat_service.get_user_session(chat_id, user_id)
        if not session:
            raise NotFoundError(f"Chat {chat_id} not found")
        paths = self.chat_service.delete_session(session)
        self.file_store.delete_many(paths)
        return {"status": "deleted", "chat_id": chat_id}

    def get_attachment(self, file_id: str) -> Attachment:
        attachment = self.chat_service.get_attachment(file_id)
        if not attachment or not self.file_store.exists(attachment.path):
            raise NotFoundError(f"File {file_id} not found")
        return attachment
