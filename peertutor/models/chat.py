# peertutor/models/chat.py
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, JSON, TIMESTAMP, func
from sqlalchemy.orm import relationship
from peertutor.database import Base


class Chat(Base):
    """Chat thread for a confirmed session; its id is the session id."""
    __tablename__ = "chats"

    id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_name = Column(String(100), default="")
    student_photo = Column(String(500))
    tutor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    tutor_name = Column(String(100), default="")
    tutor_photo = Column(String(500))
    session_details = Column(JSON, nullable=False, default=dict)

    ended = Column(Boolean, default=False, nullable=False)
    ended_at = Column(TIMESTAMP)
    ended_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))

    last_message = Column(Text)
    last_message_time = Column(TIMESTAMP)
    typing = Column(JSON, nullable=False, default=dict)  # {str(user_id): iso timestamp}
    deleted_by = Column(JSON, nullable=False, default=dict)  # {str(user_id): iso timestamp}
    created_at = Column(TIMESTAMP, server_default=func.now())

    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        order_by="ChatMessage.timestamp, ChatMessage.id",
        cascade="all, delete-orphan",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_type = Column(String(10), nullable=False)  # student | tutor
    sender_name = Column(String(100), default="")
    content = Column(Text, nullable=False)
    timestamp = Column(TIMESTAMP, nullable=False)
    read = Column(Boolean, default=False, nullable=False)

    chat = relationship("Chat", back_populates="messages")
