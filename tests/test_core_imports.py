def test_core_imports():
    import core.context  # noqa: F401
    import core.models  # noqa: F401
    import core.services.reference_resolver  # noqa: F401
    import core.services.workspace  # noqa: F401


def test_core_smoke_lifecycle(server_db):
    from core.services.chat_sessions import add_chat_message, ensure_chat_session
    from core.services.content_records import create_content
    from core.services.content_versions import create_version, patch_section, revert_to_version
    from core.services.reference_resolver import resolve_message
    from core.services.workspace import get_workspace

    org = "org-smoke"
    content = create_content(organization_id=org, title="Core Smoke", created_by_user_id="u1")["content"]
    first = create_version(
        content["id"],
        organization_id=org,
        created_by_user_id="u1",
        sections=[{"id": "only", "title": "Only", "body": "Core smoke body."}],
    )
    assert first["version"]["version"] == 1

    resolved = resolve_message("@core-smoke#only", organization_id=org)
    assert resolved["resolved"][0]["id"] == "only"

    patched = patch_section(content["id"], "only", "Say more", organization_id=org, user_id="u1")
    assert patched["version"]["version"] == 2

    session_id = ensure_chat_session(content["id"], organization_id=org, user_id="u1")["session"]["id"]
    add_chat_message(session_id, organization_id=org, role="user", content="looks good")

    workspace = get_workspace(org, content["id"], include_chat=True)
    assert workspace["current_version"]["version"] == 2
    assert len(workspace["chat_messages"]) == 1

    revert_to_version(content["id"], first["version"]["id"], organization_id=org, user_id="u1")
    assert get_workspace(org, content["id"])["current_version"]["version"] == 1
