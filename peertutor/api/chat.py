# peertutor/api/chat.py
"""
Session chats.

HTTP endpoints cover every chat action; ``/chats/{id}/ws`` streams the
message list live and also accepts ``{"content": ...}`` frames to send.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from peertutor import models
from peertutor.api.responses import unwrap
from peertutor.database import get_db, get_session_factory
from peertutor.schemas.chat import MessageCreate, TypingUpdate
from peertutor.services import chat_service
from peertutor.utils.security import ACCESS_TOKEN_PURPOSE, decode_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["Chats"])


def _participant_chat(db: Session, chat_id: int, user: models.User):
    chat = chat_service.get_chat(db, chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if user.id not in (chat.student_id, chat.tutor_id):
        raise HTTPException(status_code=403, detail="You are not a participant in this chat")
    return chat


# ======================
# READ
# ======================
@router.get("/")
def list_my_chats(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(chat_service.list_user_chats(db, current_user.id))["chats"]


@router.get("/{chat_id}")
def get_chat(
    chat_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return chat_service.serialize_chat(_participant_chat(db, chat_id, current_user))


@router.get("/{chat_id}/messages")
def get_messages(
    chat_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    _participant_chat(db, chat_id, current_user)
    return unwrap(chat_service.get_chat_messages(db, chat_id))["messages"]


# ======================
# WRITE
# ======================
@router.post("/{chat_id}/messages", status_code=status.HTTP_201_CREATED)
def send_message(
    chat_id: int,
    payload: MessageCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(chat_service.send_message(db, chat_id, current_user.id, payload.content))


@router.post("/{chat_id}/read")
def mark_read(
    chat_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat = _participant_chat(db, chat_id, current_user)
    other_id = chat.tutor_id if current_user.id == chat.student_id else chat.student_id
    return unwrap(chat_service.mark_messages_as_read(db, chat_id, current_user.id, other_id))


@router.post("/{chat_id}/typing")
def set_typing(
    chat_id: int,
    payload: TypingUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(chat_service.update_typing_status(db, chat_id, current_user.id, payload.is_typing))


@router.post("/{chat_id}/end")
def end_chat(
    chat_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(chat_service.end_chat_session(db, chat_id, current_user.id))


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return unwrap(chat_service.delete_chat(db, chat_id, current_user.id))


# ======================
# LIVE
# ======================
def _authorize_socket(session_factory, chat_id: int, token: str):
    payload = decode_token(token, ACCESS_TOKEN_PURPOSE)
    if payload is None:
        return None
    db = session_factory()
    try:
        chat = chat_service.get_chat(db, chat_id)
        user_id = int(payload["sub"])
        if not chat or user_id not in (chat.student_id, chat.tutor_id):
            return None
        return user_id
    except (TypeError, ValueError):
        return None
    finally:
        db.close()


def _send_from_socket(session_factory, chat_id: int, user_id: int, content: str):
    db = session_factory()
    try:
        return chat_service.send_message(db, chat_id, user_id, content)
    finally:
        db.close()


@router.websocket("/{chat_id}/ws")
async def chat_socket(
    websocket: WebSocket,
    chat_id: int,
    token: str = Query(...),
    session_factory=Depends(get_session_factory),
):
    user_id = await run_in_threadpool(_authorize_socket, session_factory, chat_id, token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    def push(messages):
        # Publishers run on worker threads
        loop.call_soon_threadsafe(outbox.put_nowait, messages)

    unsubscribe = await run_in_threadpool(
        chat_service.subscribe_to_messages, session_factory, chat_id, push
    )
    logger.info("User %s subscribed to chat %s", user_id, chat_id)

    async def forward_updates():
        while True:
            messages = await outbox.get()
            await websocket.send_json({"type": "messages", "messages": messages})

    async def receive_frames():
        while True:
            frame = await websocket.receive_json()
            result = await run_in_threadpool(
                _send_from_socket, session_factory, chat_id, user_id, str(frame.get("content", ""))
            )
            if not result["success"]:
                await websocket.send_json({"type": "error", "error": result["error"], "code": result["code"]})

    tasks = [asyncio.create_task(forward_updates()), asyncio.create_task(receive_frames())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Chat socket for chat %s closed with error: %s", chat_id, exc)
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()
        logger.info("User %s unsubscribed from chat %s", user_id, chat_id)
