"""Session chats: messages, ending, per-user deletion and live subscriptions."""

from sqlalchemy.exc import OperationalError

from conftest import make_session
from peertutor.config import settings
from peertutor.services import chat_service, session_service
from peertutor.services.chat_hub import ChatHub
from peertutor.services.results import ErrorCode


def _chat(db, tutor, student):
    session = make_session(db, status="confirmed", tutor_name=tutor.full_name, student_name=student.full_name)
    result = chat_service.create_chat(db, session.id, session_service.snapshot(session))
    assert result["created"] is True
    return result["chat_id"]


# ==========================================
# MESSAGES
# ==========================================

def test_send_and_list_messages(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)

    chat_service.send_message(db_session, chat_id, student.id, "  Hi, can we start with algebra?  ")
    chat_service.send_message(db_session, chat_id, tutor.id, "Sure")

    messages = chat_service.get_chat_messages(db_session, chat_id)["messages"]
    assert [(m["sender_type"], m["content"]) for m in messages] == [
        ("student", "Hi, can we start with algebra?"),
        ("tutor", "Sure"),
    ]
    assert messages[0]["sender_name"] == "Sam Student"
    chat = chat_service.serialize_chat(chat_service.get_chat(db_session, chat_id))
    assert chat["last_message"] == "Sure"


def test_send_rejects_empty_outsider_and_too_long(db_session, tutor, student, other_student):
    chat_id = _chat(db_session, tutor, student)

    assert chat_service.send_message(db_session, chat_id, student.id, "   ")["code"] == ErrorCode.VALIDATION
    assert chat_service.send_message(db_session, chat_id, other_student.id, "hey")["code"] == ErrorCode.FORBIDDEN
    too_long = "x" * (chat_service.MAX_MESSAGE_LENGTH + 1)
    assert chat_service.send_message(db_session, chat_id, student.id, too_long)["success"] is False
    assert chat_service.send_message(db_session, 999, student.id, "hey")["code"] == ErrorCode.NOT_FOUND


def test_mark_read_only_flips_other_users_messages(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)
    chat_service.send_message(db_session, chat_id, tutor.id, "one")
    chat_service.send_message(db_session, chat_id, tutor.id, "two")
    chat_service.send_message(db_session, chat_id, student.id, "three")

    result = chat_service.mark_messages_as_read(db_session, chat_id, student.id, tutor.id)

    assert result["count"] == 2
    by_content = {m["content"]: m["read"] for m in chat_service.get_chat_messages(db_session, chat_id)["messages"]}
    assert by_content == {"one": True, "two": True, "three": False}


def test_typing_status(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)

    chat_service.update_typing_status(db_session, chat_id, student.id, True)
    typing = chat_service.get_chat(db_session, chat_id).typing
    assert typing[str(student.id)] is not None

    chat_service.update_typing_status(db_session, chat_id, student.id, False)
    assert chat_service.get_chat(db_session, chat_id).typing[str(student.id)] is None


def test_chat_reads_report_store_failures(db_session, tutor, student, monkeypatch):
    chat_id = _chat(db_session, tutor, student)

    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "query", broken)
    monkeypatch.setattr(settings, "DB_RETRY_ATTEMPTS", 1)

    assert chat_service.get_chat_messages(db_session, chat_id)["code"] == ErrorCode.STORE
    assert chat_service.list_user_chats(db_session, student.id)["code"] == ErrorCode.STORE


# ==========================================
# END / DELETE
# ==========================================

def test_only_tutor_can_end_and_ended_chat_refuses_messages(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)

    assert chat_service.end_chat_session(db_session, chat_id, student.id)["code"] == ErrorCode.FORBIDDEN
    assert chat_service.end_chat_session(db_session, chat_id, tutor.id)["ended"] is True

    result = chat_service.send_message(db_session, chat_id, student.id, "still there?")
    assert result["code"] == ErrorCode.CONFLICT
    assert chat_service.get_chat_messages(db_session, chat_id)["messages"] == []


def test_student_delete_requires_ended_chat(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)

    early = chat_service.delete_chat(db_session, chat_id, student.id)
    chat_service.end_chat_session(db_session, chat_id, tutor.id)
    later = chat_service.delete_chat(db_session, chat_id, student.id)

    assert early["code"] == ErrorCode.CONFLICT
    assert later["success"] is True


def test_delete_hides_chat_only_for_that_user(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)
    chat_service.end_chat_session(db_session, chat_id, tutor.id)

    chat_service.delete_chat(db_session, chat_id, student.id)

    assert chat_service.list_user_chats(db_session, student.id)["chats"] == []
    assert [c["id"] for c in chat_service.list_user_chats(db_session, tutor.id)["chats"]] == [chat_id]


def test_tutor_can_delete_active_chat(db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)

    assert chat_service.delete_chat(db_session, chat_id, tutor.id)["success"] is True
    assert [c["id"] for c in chat_service.list_user_chats(db_session, student.id)["chats"]] == [chat_id]


# ==========================================
# LIVE SUBSCRIPTIONS
# ==========================================

def test_hub_unsubscribe_stops_delivery():
    hub = ChatHub()
    received = []
    unsubscribe = hub.subscribe("k", received.append)

    assert hub.publish("k", [{"n": 1}]) == 1
    unsubscribe()
    unsubscribe()

    assert hub.publish("k", [{"n": 2}]) == 0
    assert received == [[{"n": 1}]]
    assert hub.subscriber_count("k") == 0


def test_hub_isolates_failing_subscriber():
    hub = ChatHub()
    received = []

    def broken(payload):
        raise RuntimeError("gone")

    hub.subscribe("k", broken)
    hub.subscribe("k", received.append)

    assert hub.publish("k", []) == 2
    assert received == [[]]


def test_message_subscription_gets_current_list_then_updates(session_factory, db_session, tutor, student):
    chat_id = _chat(db_session, tutor, student)
    pushes = []

    unsubscribe = chat_service.subscribe_to_messages(session_factory, chat_id, pushes.append)
    chat_service.send_message(db_session, chat_id, student.id, "hello")
    unsubscribe()
    chat_service.send_message(db_session, chat_id, tutor.id, "after unsubscribe")

    assert pushes[0] == []
    assert [m["content"] for m in pushes[-1]] == ["hello"]
    assert len(pushes) == 2


def test_chat_list_subscription(session_factory, db_session, tutor, student):
    pushes = []
    unsubscribe = chat_service.subscribe_to_user_chats(session_factory, student.id, pushes.append)
    try:
        chat_id = _chat(db_session, tutor, student)
    finally:
        unsubscribe()

    assert pushes[0] == []
    assert [c["id"] for c in pushes[-1]] == [chat_id]
