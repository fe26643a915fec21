import pytest
from sqlalchemy.exc import IntegrityError

from chatdesk.db.models import ChatMessage, ChatSession


def test_message_seq_is_unique_per_session(db_scope):
    with db_scope() as session:
        session.add_all([ChatSession(session_id="a"), ChatSession(session_id="b")])
        session.flush()
        session.add(ChatMessage(session_id="a", seq=1, role="user", text="hi"))
        session.add(ChatMessage(session_id="b", seq=1, role="user", text="hi"))

    with pytest.raises(IntegrityError):
        with db_scope() as session:
            session.add(ChatMessage(session_id="a", seq=1, role="bot", text="dup"))


def test_message_requires_existing_session(db_scope):
    with pytest.raises(IntegrityError):
        with db_scope() as session:
            session.add(ChatMessage(session_id="ghost", seq=1, role="user", text="hi"))


def test_session_messages_relationship_is_ordered_by_seq(db_scope):
    with db_scope() as session:
        session.add(ChatSession(session_id="a"))
        session.flush()
        session.add(ChatMessage(session_id="a", seq=2, role="bot", text="second"))
        session.add(ChatMessage(session_id="a", seq=1, role="user", text="first"))

    with db_scope() as session:
        record = session.query(ChatSession).filter_by(session_id="a").one()
        assert [m.text for m in record.messages] == ["first", "second"]
