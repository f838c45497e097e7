# peertutor/services/chat_service.py
"""
Chat Subsystem

One chat per confirmed session (chat id == session id) with an append-only
message list. The tutor can end a chat once and for all; each participant can
hide it from their own list (students only after it has ended).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from peertutor.database import with_db_retry
from peertutor.models.chat import Chat, ChatMessage
from peertutor.models.user import User
from peertutor.services.chat_hub import hub
from peertutor.services.results import ErrorCode, fail, ok

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_message(message: ChatMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": message.sender_id,
        "sender_type": message.sender_type,
        "sender_name": message.sender_name,
        "content": message.content,
        "timestamp": _iso(message.timestamp),
        "read": message.read,
    }


def serialize_chat(chat: Chat) -> Dict[str, Any]:
    return {
        "id": chat.id,
        "participants": {
            "student_id": chat.student_id,
            "student_name": chat.student_name,
            "student_photo": chat.student_photo,
            "tutor_id": chat.tutor_id,
            "tutor_name": chat.tutor_name,
            "tutor_photo": chat.tutor_photo,
        },
        "session_details": chat.session_details or {},
        "ended": chat.ended,
        "ended_at": _iso(chat.ended_at),
        "last_message": chat.last_message,
        "last_message_time": _iso(chat.last_message_time),
        "typing": chat.typing or {},
        "deleted_by": chat.deleted_by or {},
    }


def _is_participant(chat: Chat, user_id: int) -> bool:
    return user_id in (chat.student_id, chat.tutor_id)


def _publish_messages(db: Session, chat_id: int) -> None:
    if not hub.subscriber_count(("messages", chat_id)):
        return
    try:
        hub.publish(("messages", chat_id), _message_list(db, chat_id))
    except SQLAlchemyError as exc:
        logger.warning("Could not push messages for chat %s: %s", chat_id, exc)


def _publish_chat_lists(db: Session, chat: Chat) -> None:
    for user_id in (chat.student_id, chat.tutor_id):
        _publish_chat_list(db, user_id)


def _publish_chat_list(db: Session, user_id: int) -> None:
    if not hub.subscriber_count(("chats", user_id)):
        return
    try:
        hub.publish(("chats", user_id), _chat_list(db, user_id))
    except SQLAlchemyError as exc:
        logger.warning("Could not push chat list for user %s: %s", user_id, exc)


# ======================
# LIFECYCLE
# ======================

def create_chat(db: Session, session_id: int, session_snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create the chat for a session, or return the existing one.

    Names come from the session snapshot; photos from the users' current
    profiles. Neither is refreshed afterwards.
    """
    try:
        existing = db.get(Chat, session_id)
        if existing:
            return ok(chat_id=existing.id, created=False)

        student_id = session_snapshot["student_id"]
        tutor_id = session_snapshot["tutor_id"]
        student = db.get(User, student_id)
        tutor = db.get(User, tutor_id)

        chat = Chat(
            id=session_id,
            student_id=student_id,
            student_name=session_snapshot.get("student_name") or (student.full_name if student else ""),
            student_photo=student.photo_url if student else None,
            tutor_id=tutor_id,
            tutor_name=session_snapshot.get("tutor_name") or (tutor.full_name if tutor else ""),
            tutor_photo=tutor.photo_url if tutor else None,
            session_details={
                "subject": session_snapshot.get("subject"),
                "date": session_snapshot.get("date"),
                "start_time": session_snapshot.get("start_time"),
                "end_time": session_snapshot.get("end_time"),
                "status": session_snapshot.get("status"),
            },
            ended=False,
            typing={},
            deleted_by={},
        )
        db.add(chat)
        db.commit()
    except KeyError as exc:
        return fail(f"Session snapshot is missing {exc.args[0]}")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating chat for session %s", session_id)
        return fail("Failed to create chat", ErrorCode.STORE)

    logger.info("Chat %s created", chat.id)
    _publish_chat_lists(db, chat)
    return ok(chat_id=chat.id, created=True)


def end_chat_session(db: Session, chat_id: int, user_id: int) -> Dict[str, Any]:
    """Tutor-only, one-way: there is no way to reopen an ended chat."""
    try:
        chat = db.get(Chat, chat_id)
        if not chat:
            return fail("Chat not found", ErrorCode.NOT_FOUND)
        if user_id != chat.tutor_id:
            return fail("Only tutors can end chat sessions", ErrorCode.FORBIDDEN)
        if not chat.ended:
            chat.ended = True
            chat.ended_at = _now()
            chat.ended_by = user_id
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error ending chat %s", chat_id)
        return fail("Failed to end chat", ErrorCode.STORE)

    _publish_chat_lists(db, chat)
    return ok(chat_id=chat_id, ended=True)


def delete_chat(db: Session, chat_id: int, user_id: int) -> Dict[str, Any]:
    """Hide a chat for ``user_id`` only; the other participant still sees it."""
    try:
        chat = db.get(Chat, chat_id)
        if not chat:
            return fail("Chat not found", ErrorCode.NOT_FOUND)
        if not _is_participant(chat, user_id):
            return fail("You are not a participant in this chat", ErrorCode.FORBIDDEN)
        if user_id == chat.student_id and not chat.ended:
            return fail(
                "Students cannot delete a chat until the tutor has ended it",
                ErrorCode.CONFLICT,
            )

        deleted_by = dict(chat.deleted_by or {})
        deleted_by[str(user_id)] = _now().isoformat()
        chat.deleted_by = deleted_by
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting chat %s for user %s", chat_id, user_id)
        return fail("Failed to delete chat", ErrorCode.STORE)

    _publish_chat_list(db, user_id)
    return ok(chat_id=chat_id)


# ======================
# MESSAGES
# ======================

def send_message(db: Session, chat_id: int, sender_id: int, content: str) -> Dict[str, Any]:
    content = (content or "").strip()
    if not content:
        return fail("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        return fail(f"Message must be {MAX_MESSAGE_LENGTH} characters or less")

    try:
        chat = db.get(Chat, chat_id)
        if not chat:
            return fail("Chat not found", ErrorCode.NOT_FOUND)
        if not _is_participant(chat, sender_id):
            return fail("You are not a participant in this chat", ErrorCode.FORBIDDEN)
        if chat.ended:
            return fail("This chat has been ended by the tutor", ErrorCode.CONFLICT)

        sender_type = "student" if sender_id == chat.student_id else "tutor"
        sender_name = chat.student_name if sender_type == "student" else chat.tutor_name
        sent_at = _now()

        message = ChatMessage(
            chat_id=chat.id,
            sender_id=sender_id,
            sender_type=sender_type,
            sender_name=sender_name,
            content=content,
            timestamp=sent_at,
            read=False,
        )
        db.add(message)
        chat.last_message = content
        chat.last_message_time = sent_at
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error sending message in chat %s", chat_id)
        return fail("Failed to send message", ErrorCode.STORE)

    _publish_messages(db, chat_id)
    _publish_chat_lists(db, chat)
    return ok(message_id=message.id)


def mark_messages_as_read(db: Session, chat_id: int, reader_id: int, other_user_id: int) -> Dict[str, Any]:
    """Flip ``read`` on every unread message ``other_user_id`` sent in the chat."""
    try:
        chat = db.get(Chat, chat_id)
        if not chat:
            return fail("Chat not found", ErrorCode.NOT_FOUND)
        if not _is_participant(chat, reader_id):
            return fail("You are not a participant in this chat", ErrorCode.FORBIDDEN)

        count = db.query(ChatMessage).filter(
            ChatMessage.chat_id == chat_id,
            ChatMessage.sender_id == other_user_id,
            ChatMessage.read.is_(False),
        ).update({"read": True}, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error marking messages read in chat %s", chat_id)
        return fail("Failed to mark messages as read", ErrorCode.STORE)

    if count:
        _publish_messages(db, chat_id)
    return ok(count=int(count))


def update_typing_status(db: Session, chat_id: int, user_id: int, is_typing: bool) -> Dict[str, Any]:
    try:
        chat = db.get(Chat, chat_id)
        if not chat:
            return fail("Chat not found", ErrorCode.NOT_FOUND)
        if not _is_participant(chat, user_id):
            return fail("You are not a participant in this chat", ErrorCode.FORBIDDEN)

        typing = dict(chat.typing or {})
        typing[str(user_id)] = _now().isoformat() if is_typing else None
        chat.typing = typing
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating typing status in chat %s", chat_id)
        return fail("Failed to update typing status", ErrorCode.STORE)

    _publish_chat_lists(db, chat)
    return ok()


# ======================
# QUERIES
# ======================

def get_chat(db: Session, chat_id: int) -> Optional[Chat]:
    return db.get(Chat, chat_id)


def _message_list(db: Session, chat_id: int) -> List[Dict[str, Any]]:
    messages = (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.timestamp.asc(), ChatMessage.id.asc())
        .all()
    )
    return [serialize_message(m) for m in messages]


def _chat_list(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Chats the user participates in and has not deleted, newest activity first."""
    chats = db.query(Chat).filter(
        (Chat.student_id == user_id) | (Chat.tutor_id == user_id)
    ).all()
    visible = [c for c in chats if str(user_id) not in (c.deleted_by or {})]
    visible.sort(key=lambda c: c.last_message_time or c.created_at or datetime.min, reverse=True)
    return [serialize_chat(c) for c in visible]


def get_chat_messages(db: Session, chat_id: int) -> Dict[str, Any]:
    try:
        messages = with_db_retry("chat.messages", lambda: _message_list(db, chat_id))
    except SQLAlchemyError:
        logger.exception("Error loading messages for chat %s", chat_id)
        return fail("Failed to load messages", ErrorCode.STORE)
    return ok(messages=messages)


def list_user_chats(db: Session, user_id: int) -> Dict[str, Any]:
    try:
        chats = with_db_retry("chat.list", lambda: _chat_list(db, user_id))
    except SQLAlchemyError:
        logger.exception("Error loading chats for user %s", user_id)
        return fail("Failed to load chats", ErrorCode.STORE)
    return ok(chats=chats)


def subscribe_to_messages(db_factory, chat_id: int, callback) -> Any:
    """Push the chat's message list to ``callback`` now and on every change.

    Returns the unsubscribe function.
    """
    unsubscribe = hub.subscribe(("messages", chat_id), callback)
    db = db_factory()
    try:
        callback(_message_list(db, chat_id))
    finally:
        db.close()
    return unsubscribe


def subscribe_to_user_chats(db_factory, user_id: int, callback) -> Any:
    unsubscribe = hub.subscribe(("chats", user_id), callback)
    db = db_factory()
    try:
        callback(_chat_list(db, user_id))
    finally:
        db.close()
    return unsubscribe
