import pytest

from core.errors import ChatSessionNotFound, ContentNotFound, SourceNotFound, ValidationIssue
from core.services.chat_sessions import (
    add_chat_log,
    add_chat_message,
    ensure_chat_session,
    find_chat_session,
    list_chat_messages,
)
from core.services.content_records import create_content
from core.services.workspace import get_workspace

ORG = "org-chat"
USER = "user-chat"


def _content(title="Spiced Cookies"):
    return create_content(organization_id=ORG, title=title, created_by_user_id=USER)["content"]


def test_ensure_chat_session_is_idempotent(server_db):
    content = _content()
    first = ensure_chat_session(content["id"], organization_id=ORG, user_id=USER, metadata={"channel": "web"})
    second = ensure_chat_session(content["id"], organization_id=ORG, user_id="someone-else")

    assert first["created"] is True
    assert second["created"] is False
    assert first["session"]["id"] == second["session"]["id"]
    assert second["session"]["created_by_user_id"] == USER
    assert second["session"]["metadata"] == {"channel": "web"}

    found = find_chat_session(content["id"], organization_id=ORG)
    assert found["session"]["id"] == first["session"]["id"]


def test_find_chat_session_without_one(server_db):
    content = _content()
    assert find_chat_session(content["id"], organization_id=ORG)["session"] is None


def test_ensure_chat_session_requires_content_in_org(server_db):
    content = _content()
    with pytest.raises(ContentNotFound):
        ensure_chat_session(content["id"], organization_id="org-other", user_id=USER)
    with pytest.raises(ValidationIssue):
        ensure_chat_session("bad-id", organization_id=ORG, user_id=USER)


def test_ensure_chat_session_checks_linked_source(server_db):
    content = _content()
    with pytest.raises(SourceNotFound):
        ensure_chat_session(
            content["id"],
            organization_id=ORG,
            user_id=USER,
            source_content_id="3f2504e0-4f89-11d3-9a0c-0305e82c3301",
        )
    assert find_chat_session(content["id"], organization_id=ORG)["session"] is None


def test_messages_are_listed_in_order(server_db):
    content = _content()
    session_id = ensure_chat_session(content["id"], organization_id=ORG, user_id=USER)["session"]["id"]

    add_chat_message(session_id, organization_id=ORG, role="user", content="  Add cardamom  ")
    add_chat_message(
        session_id,
        organization_id=ORG,
        role="assistant",
        content="Added to the spice list",
        payload={"section_id": "ingredients"},
    )

    listing = list_chat_messages(session_id, organization_id=ORG)
    assert listing["count"] == 2
    assert [message["role"] for message in listing["messages"]] == ["user", "assistant"]
    assert listing["messages"][0]["content"] == "Add cardamom"
    assert listing["messages"][1]["payload"] == {"section_id": "ingredients"}


def test_message_validation(server_db):
    content = _content()
    session_id = ensure_chat_session(content["id"], organization_id=ORG, user_id=USER)["session"]["id"]

    with pytest.raises(ValidationIssue):
        add_chat_message(session_id, organization_id=ORG, role="robot", content="hi")
    with pytest.raises(ValidationIssue):
        add_chat_message(session_id, organization_id=ORG, role="user", content="   ")
    with pytest.raises(ChatSessionNotFound):
        add_chat_message(session_id, organization_id="org-other", role="user", content="hi")
    with pytest.raises(ValidationIssue):
        add_chat_log(session_id, organization_id=ORG, log_type="", message="x")


def test_chat_writes_refresh_workspace(server_db):
    content = _content()
    session_id = ensure_chat_session(content["id"], organization_id=ORG, user_id=USER)["session"]["id"]
    assert get_workspace(ORG, content["id"], include_chat=True)["chat_logs"] == []

    log = add_chat_log(
        session_id,
        organization_id=ORG,
        log_type="reference",
        message="resolved 2 references",
        payload={"count": 2},
    )["log"]
    assert log["type"] == "reference"

    workspace = get_workspace(ORG, content["id"], include_chat=True)
    assert [entry["message"] for entry in workspace["chat_logs"]] == ["resolved 2 references"]
