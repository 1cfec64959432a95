import pytest
from fastapi.testclient import TestClient

import app.routes.health as health_routes
from app.main import app

ORG = "org-api"
USER = "api-user"
HEADERS = {"X-Organization-Id": ORG, "X-User-Id": USER}

SECTIONS = [
    {"id": "intro", "title": "Intro", "body": "Crisp edges, soft middle."},
    {"id": "method", "title": "Method", "body": "Cream butter.\nFold in flour."},
]


@pytest.fixture
def client(server_db):
    return TestClient(app)


def _create_content(client, title="Brown Butter Cookies"):
    response = client.post("/api/content", json={"title": title, "content_type": "recipe"}, headers=HEADERS)
    assert response.status_code == 200
    return response.json()["content"]


def _create_version(client, content_id):
    response = client.post(f"/api/content/{content_id}/versions", json={"sections": SECTIONS}, headers=HEADERS)
    assert response.status_code == 200
    return response.json()["version"]


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["service"] == "DraftDesk"
    assert body["endpoints"]["resolve_references"] == "/api/chat/resolve-references"


def test_health_reports_database_and_generation(client, monkeypatch):
    monkeypatch.setattr(
        health_routes,
        "_get_schema_revisions",
        lambda engine: ("0001_initial_content_schema", "0001_initial_content_schema"),
    )
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["database"]["ok"] is True
    assert body["generation_provider"]["status"] == "disabled"


def test_health_tools_lists_registered_tools(client):
    response = client.get("/health/tools")
    assert response.status_code == 200
    assert "workspace_get" in response.json()["tool_inventory"]["tools"]


def test_missing_organization_header_is_400(client):
    response = client.post("/api/content", json={"title": "No org"})
    assert response.status_code == 400
    body = response.json()
    assert body["error_type"] == "validation_error"
    assert body["field"] == "organization_id"


def test_content_version_and_workspace_flow(client):
    content = _create_content(client)
    version = _create_version(client, content["id"])
    assert version["version"] == 1

    fetched = client.get(f"/api/content/{content['id']}", headers=HEADERS).json()
    assert fetched["content"]["current_version_id"] == version["id"]

    workspace = client.get(f"/api/chat/workspace/{content['id']}", params={"includeChat": "true"}, headers=HEADERS)
    assert workspace.status_code == 200
    payload = workspace.json()["workspace"]
    assert payload["current_version"]["id"] == version["id"]
    assert payload["chat_messages"] == []

    header = client.get(f"/api/chat/workspace-header/{content['id']}", headers=HEADERS).json()["header"]
    assert header["version"]["version"] == 1


def test_patch_section_route(client, server_db):
    content = _create_content(client)
    _create_version(client, content["id"])

    response = client.post(
        f"/api/content/{content['id']}/sections/method",
        json={"instructions": "Add a chill step", "temperature": 0.3},
        headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["version"]["version"] == 2
    assert body["section"]["id"] == "method"
    assert server_db.generator.requests[-1].temperature == 0.3

    listing = client.get(f"/api/content/{content['id']}/versions", headers=HEADERS).json()
    assert [item["version"] for item in listing["versions"]] == [2, 1]


def test_chat_mode_writes_are_forbidden(client):
    content = _create_content(client)
    response = client.post(
        f"/api/content/{content['id']}/versions",
        json={"body_markdown": "# Nope\n", "mode": "chat"},
        headers=HEADERS,
    )
    assert response.status_code == 403
    assert response.json()["error_type"] == "forbidden"


def test_generation_failure_is_502(client, server_db):
    content = _create_content(client)
    _create_version(client, content["id"])
    server_db.generator.fail_with = "upstream timeout"

    response = client.post(
        f"/api/content/{content['id']}/sections/intro",
        json={"instructions": "Shorter"},
        headers=HEADERS,
    )
    assert response.status_code == 502
    assert response.json()["error_type"] == "generation_failed"


def test_unknown_content_is_404(client):
    response = client.get("/api/chat/workspace/3f2504e0-4f89-11d3-9a0c-0305e82c3301", headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["resource"] == "content"


def test_revert_and_get_version(client):
    content = _create_content(client)
    first = _create_version(client, content["id"])
    _create_version(client, content["id"])

    reverted = client.post(
        f"/api/content/{content['id']}/revert",
        json={"version_id": first["id"]},
        headers=HEADERS,
    )
    assert reverted.status_code == 200
    assert reverted.json()["content"]["current_version_id"] == first["id"]

    fetched = client.get(f"/api/content/version/{first['id']}", headers=HEADERS).json()
    assert fetched["version"]["version"] == 1


def test_resolve_references_route(client):
    content = _create_content(client)
    _create_version(client, content["id"])

    chat = client.post(
        "/api/chat/resolve-references",
        json={"message": "tighten @brown-butter-cookies#method"},
        headers=HEADERS,
    ).json()
    assert chat["mode"] == "chat"
    assert chat["resolved"][0]["type"] == "section"
    assert "scope" not in chat

    agent = client.post(
        "/api/chat/resolve-references",
        json={"message": "tighten @brown-butter-cookies", "mode": "agent"},
        headers=HEADERS,
    ).json()
    assert agent["scope"]["content_ids"] == [content["id"]]

    invalid = client.post(
        "/api/chat/resolve-references",
        json={"message": "@x", "content_id": "nope"},
        headers=HEADERS,
    )
    assert invalid.status_code == 400


def test_source_and_chat_routes(client):
    source = client.post(
        "/api/source-content",
        json={"source_type": "youtube", "external_id": "yt-99", "title": "Cookie Stream"},
        headers=HEADERS,
    ).json()["source_content"]
    status = client.post(
        f"/api/source-content/{source['id']}/ingest-status",
        json={"status": "ingested", "source_text": "transcript"},
        headers=HEADERS,
    ).json()
    assert status["source_content"]["ingest_status"] == "ingested"
    assert client.get(f"/api/source-content/{source['id']}", headers=HEADERS).json()["source_content"]["title"] == (
        "Cookie Stream"
    )

    content = _create_content(client)
    session = client.post("/api/chat/sessions", json={"content_id": content["id"]}, headers=HEADERS).json()
    assert session["created"] is True
    session_id = session["session"]["id"]

    posted = client.post(
        f"/api/chat/sessions/{session_id}/messages",
        json={"role": "user", "content": "Use the stream notes"},
        headers=HEADERS,
    )
    assert posted.status_code == 200
    messages = client.get(f"/api/chat/sessions/{session_id}/messages", headers=HEADERS).json()
    assert [message["content"] for message in messages["messages"]] == ["Use the stream notes"]
