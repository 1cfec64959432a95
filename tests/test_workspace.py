import json

import pytest

from core.errors import ContentNotFound, ValidationIssue
from core.services.chat_sessions import add_chat_log, add_chat_message, ensure_chat_session
from core.services.content_records import create_content, create_source_content, update_ingest_status
from core.services.content_versions import create_version, patch_section
from core.services.organizations import add_member
from core.services.workspace import get_workspace, get_workspace_header

ORG = "org-home"
OTHER_ORG = "org-partner"
USER = "writer-7"


def _draft(organization_id=ORG, title="Holiday Cookies", source_content_id=None):
    content = create_content(
        organization_id=organization_id,
        title=title,
        created_by_user_id=USER,
        source_content_id=source_content_id,
    )["content"]
    create_version(
        content["id"],
        organization_id=organization_id,
        created_by_user_id=USER,
        sections=[
            {"id": "intro", "title": "Intro", "body": "Cookies for every table."},
            {"id": "recipe", "title": "Recipe", "body": "Butter, sugar, flour."},
        ],
    )
    return content


def test_workspace_payload_shape(server_db):
    source = create_source_content(
        organization_id=ORG,
        source_type="transcript",
        title="Baking Call",
        source_text="we talked about cookies",
        created_by_user_id=USER,
    )["source_content"]
    content = _draft(source_content_id=source["id"])

    payload = get_workspace(ORG, content["id"])
    assert payload["organization_id"] == ORG
    assert payload["content"]["id"] == content["id"]
    assert payload["source_content"]["title"] == "Baking Call"
    assert payload["current_version"]["version"] == 1
    assert [section["id"] for section in payload["current_version"]["sections"]] == ["intro", "recipe"]
    assert payload["chat_session"] is None
    assert payload["chat_messages"] is None
    assert payload["chat_logs"] is None

    summary = payload["workspace_summary"]
    assert summary["section_count"] == 2
    assert summary["word_count"] == 7
    assert summary["section_titles"] == ["Intro", "Recipe"]
    assert summary["source_title"] == "Baking Call"


def test_repeat_reads_are_byte_identical(server_db):
    content = _draft()
    first = get_workspace(ORG, content["id"])
    second = get_workspace(ORG, content["id"])
    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
    assert server_db.cache.get(ORG, content["id"], False) == first


def test_writes_invalidate_the_cached_workspace(server_db):
    content = _draft()
    before = get_workspace(ORG, content["id"])

    patch_section(content["id"], "recipe", "Add ginger", organization_id=ORG, user_id=USER)
    after = get_workspace(ORG, content["id"])
    assert after["current_version"]["version"] == before["current_version"]["version"] + 1
    assert after["workspace_summary"]["diff_stats"] is not None


def test_include_chat_variants_are_cached_separately(server_db):
    content = _draft()
    session = ensure_chat_session(content["id"], organization_id=ORG, user_id=USER)["session"]

    without_chat = get_workspace(ORG, content["id"])
    assert without_chat["chat_session"]["id"] == session["id"]
    assert without_chat["chat_messages"] is None

    add_chat_message(session["id"], organization_id=ORG, role="user", content="Make it festive")
    add_chat_log(session["id"], organization_id=ORG, log_type="patch", message="queued rewrite")

    with_chat = get_workspace(ORG, content["id"], include_chat=True)
    assert [message["content"] for message in with_chat["chat_messages"]] == ["Make it festive"]
    assert [entry["type"] for entry in with_chat["chat_logs"]] == ["patch"]

    add_chat_message(session["id"], organization_id=ORG, role="assistant", content="Done")
    refreshed = get_workspace(ORG, content["id"], include_chat=True)
    assert [message["role"] for message in refreshed["chat_messages"]] == ["user", "assistant"]


def test_include_chat_without_session_returns_empty_lists(server_db):
    content = _draft()
    payload = get_workspace(ORG, content["id"], include_chat=True)
    assert payload["chat_session"] is None
    assert payload["chat_messages"] == []
    assert payload["chat_logs"] == []


def test_content_without_versions(server_db):
    content = create_content(organization_id=ORG, title="Blank", created_by_user_id=USER)["content"]
    payload = get_workspace(ORG, content["id"])
    assert payload["current_version"] is None
    assert payload["workspace_summary"]["section_count"] == 0
    assert payload["workspace_summary"]["version"] is None


def test_cross_org_fallback_requires_membership(server_db):
    content = _draft(organization_id=OTHER_ORG, title="Partner Post")

    with pytest.raises(ContentNotFound):
        get_workspace(ORG, content["id"], user_id=USER)

    add_member(ORG, USER)
    add_member(OTHER_ORG, USER)
    payload = get_workspace(ORG, content["id"], user_id=USER)
    assert payload["organization_id"] == OTHER_ORG
    assert payload["content"]["title"] == "Partner Post"

    with pytest.raises(ContentNotFound):
        get_workspace(ORG, content["id"])


def test_active_organization_wins_over_fallback(server_db):
    content = _draft()
    add_member(OTHER_ORG, USER)
    payload = get_workspace(ORG, content["id"], user_id=USER)
    assert payload["organization_id"] == ORG


def test_missing_content_and_bad_ids(server_db):
    add_member(ORG, USER)
    with pytest.raises(ContentNotFound):
        get_workspace(ORG, "3f2504e0-4f89-11d3-9a0c-0305e82c3301", user_id=USER)
    with pytest.raises(ValidationIssue):
        get_workspace(ORG, "not-a-uuid")
    with pytest.raises(ValidationIssue):
        get_workspace("", "3f2504e0-4f89-11d3-9a0c-0305e82c3301")


def test_ingest_status_change_refreshes_linked_workspace(server_db):
    source = create_source_content(
        organization_id=ORG,
        source_type="youtube",
        external_id="yt-1",
        created_by_user_id=USER,
    )["source_content"]
    content = _draft(source_content_id=source["id"])
    assert get_workspace(ORG, content["id"])["source_content"]["ingest_status"] == "pending"

    update_ingest_status(source["id"], "ingested", organization_id=ORG, source_text="transcript text")
    assert get_workspace(ORG, content["id"])["source_content"]["ingest_status"] == "ingested"

    with pytest.raises(ValidationIssue):
        update_ingest_status(source["id"], "failed", organization_id=ORG)


def test_workspace_header(server_db):
    content = _draft()
    header = get_workspace_header(ORG, content["id"])
    assert header["content"]["slug"] == "holiday-cookies"
    assert header["version"]["version"] == 1
    assert header["workspace_summary"]["section_count"] == 2
    assert header["chat_session_id"] is None
