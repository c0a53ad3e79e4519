from dataclasses import dataclass
from typing import List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from chatrelay.errors import StorageError
from chatrelay.models.chat import Attachment, ChatSession, ChatMessage
from chatrelay.models.schemas import MessageKind, MessageRole
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


@dataclass
class DerivedContext:
    """Latest attachment-derived artifacts of a session"""
    image_description: Optional[ChatMessage] = None
    document: Optional[ChatMessage] = None


class ChatService:
    def __init__(self, db: Session):
        self.db = db

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get a chat session by ID"""
        try:
            return self.db.get(ChatSession, session_id)
        except SQLAlchemyError as e:
            logger.error(f"Error getting session: {str(e)}")
            raise StorageError("Could not read chat session") from e

    def get_user_session(self, session_id: str, user_id: str) -> Optional[ChatSession]:
        """Get a chat session by ID, only if it belongs to the user"""
        try:
            return self.db.query(ChatSession).filter(
                ChatSession.id == session_id,
                ChatSession.user_id == user_id
            ).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting session: {str(e)}")
            raise StorageError("Could not read chat session") from e

    def get_user_sessions(self, user_id: str) -> List[ChatSession]:
        """Get a user's chat sessions, most recently used first"""
        try:
            return self.db.query(ChatSession).filter(
                ChatSession.user_id == user_id
            ).order_by(ChatSession.last_used_at.desc(), ChatSession.created_at.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user sessions: {str(e)}")
            raise StorageError("Could not list chat sessions") from e

    def create_session(self, user_id: str, title: str) -> ChatSession:
        try:
            session = ChatSession(user_id=user_id, title=title)
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)
            logger.info(f"Created chat session {session.id} for user {user_id}")
            return session
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating session: {str(e)}")
            raise StorageError("Could not create chat session") from e

    def resolve_session(self, user_id: str, chat_id: Optional[str], title: str) -> ChatSession:
        """Return the user's session ``chat_id``, or a new one when it is absent or unknown"""
        if chat_id:
            session = self.get_user_session(chat_id, user_id)
            if session:
                return session
            logger.info(f"Unknown chat {chat_id} for user {user_id}, starting a new one")
        return self.create_session(user_id, title)

    def touch(self, session: ChatSession, active_file_id: Optional[str] = None) -> None:
        """Mark the session as used now, optionally switching its active attachment"""
        try:
            session.last_used_at = datetime.utcnow()
            if active_file_id is not None:
                session.active_file_id = active_file_id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating session: {str(e)}")
            raise StorageError("Could not update chat session") from e

    def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        kind: MessageKind = MessageKind.TEXT,
        **fields
    ) -> ChatMessage:
        """Append a message to a chat session's log"""
        try:
            message = ChatMessage(
                session_id=session_id,
                role=MessageRole(role).value,
                kind=MessageKind(kind).value,
                content=content,
                **fields
            )
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
            return message
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adding message: {str(e)}")
            raise StorageError("Could not store message") from e

    def add_attachment(self, session_id: str, file_id: str, filename: str, content_type: Optional[str], path: str) -> Attachment:
        try:
            attachment = Attachment(
                id=file_id,
                session_id=session_id,
                filename=filename,
                content_type=content_type,
                path=path
            )
            self.db.add(attachment)
            self.db.commit()
            self.db.refresh(attachment)
            return attachment
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error adding attachment: {str(e)}")
            raise StorageError("Could not store attachment") from e

    def get_attachment(self, file_id: str) -> Optional[Attachment]:
        try:
            return self.db.get(Attachment, file_id)
        except SQLAlchemyError as e:
            logger.error(f"Error getting attachment: {str(e)}")
            raise StorageError("Could not read attachment") from e

    def get_history(self, session_id: str) -> List[ChatMessage]:
        """All messages of a session in creation order"""
        try:
            return self.db.query(ChatMessage).filter(
                ChatMessage.session_id == session_id
            ).order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting session messages: {str(e)}")
            raise StorageError("Could not read chat history") from e

    def get_recent_messages(self, session_id: str, limit: int) -> List[ChatMessage]:
        """The last ``limit`` messages of a session, oldest first"""
        try:
            newest_first = self.db.query(ChatMessage).filter(
                ChatMessage.session_id == session_id
            ).order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit).all()
            return list(reversed(newest_first))
        except SQLAlchemyError as e:
            logger.error(f"Error getting recent messages: {str(e)}")
            raise StorageError("Could not read chat history") from e

    def latest_message_of_kind(self, session_id: str, kind: MessageKind) -> Optional[ChatMessage]:
        try:
            return self.db.query(ChatMessage).filter(
                ChatMessage.session_id == session_id,
                ChatMessage.kind == MessageKind(kind).value
            ).order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).first()
        except SQLAlchemyError as e:
            logger.error(f"Error getting latest {kind} message: {str(e)}")
            raise StorageError("Could not read chat history") from e

    def get_derived_context(self, session_id: str) -> DerivedContext:
        return DerivedContext(
            image_description=self.latest_message_of_kind(session_id, MessageKind.IMAGE_DESCRIPTION),
            document=self.latest_message_of_kind(session_id, MessageKind.DOCUMENT),
        )

    def delete_session(self, session: ChatSession) -> List[str]:
        """Delete a session with its messages and attachment rows.

        Returns the paths of the attachment files, which the caller removes.
        """
        try:
            session_id = session.id
            paths = [attachment.path for attachment in session.attachments]
            self.db.delete(session)
            self.db.commit()
            logger.info(f"Deleted chat session {session_id}")
            return paths
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting session: {str(e)}")
            raise StorageError("Could not delete chat session") from e

    def delete_user_sessions(self, user_id: str) -> Tuple[int, List[str]]:
        """Delete every session owned by the user.

        Returns the number of sessions removed and their attachment file paths.
        """
        try:
            sessions = self.db.query(ChatSession).filter(ChatSession.user_id == user_id).all()
            paths = []
            for session in sessions:
                paths.extend(attachment.path for attachment in session.attachments)
                self.db.delete(session)
            self.db.commit()
            logger.info(f"Deleted {len(sessions)} chat sessions of user {user_id}")
            return len(sessions), paths
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting user sessions: {str(e)}")
            raise StorageError("Could not delete chat sessions") from e
