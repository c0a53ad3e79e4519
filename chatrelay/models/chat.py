from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import time
import uuid
from chatrelay.db.database import Base


def new_chat_id() -> str:
    """Opaque, time-derived session identifier"""
    return f"chat-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String, primary_key=True, default=new_chat_id)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_used_at = Column(DateTime, default=datetime.utcnow, index=True)
    active_file_id = Column(String, nullable=True)

    messages = relationship(
        "ChatMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ChatMessage.id",
    )
    attachments = relationship("Attachment", back_populates="session", cascade="all, delete-orphan")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    # Autoincrement id doubles as the insertion-order tie breaker
    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)  # 'user', 'assistant' or 'system'
    kind = Column(String, nullable=False, default="text")
    content = Column(Text, nullable=False)
    image_ref = Column(String, nullable=True)
    document_text = Column(Text, nullable=True)
    document_summary = Column(Text, nullable=True)
    image_description = Column(Text, nullable=True)
    attachment_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    session = relationship("ChatSession", back_populates="messages")


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    session_id = Column(String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=True)
    path = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    session = relationship("ChatSession", back_populates="attachments")
