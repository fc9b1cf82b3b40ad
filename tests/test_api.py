import pytest
from src.api.main import app, service
from src.core.errors import ForbiddenError, UnauthorizedError
from src.core.session import CredentialStore
from src.remote.memory import MemoryHost
from httpx import ASGITransport, AsyncClient

import pytest_asyncio

# Fixture for async client
@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

# Point the global service at an in-memory host and a temporary credential file
@pytest_asyncio.fixture
async def memory_host(tmp_path, fake_sleep):
    host = MemoryHost()
    host.create_repository("octocat", "demo", files={"README.md": b"# Demo\n", "docs/index.md": b"Hello World\n"})
    host.create_branch("octocat", "demo", "feature")

    def factory(token):
        if token != "good-token":
            raise_on_login = MemoryHost()

            async def reject():
                raise UnauthorizedError("Bad credentials")

            raise_on_login.get_authenticated_user = reject
            return raise_on_login
        return host

    service.host_factory = factory
    service.store = CredentialStore(tmp_path / "credentials.json")
    service.sleep = fake_sleep
    service.notifications.clear()
    yield host
    await service.logout()

@pytest_asyncio.fixture
async def logged_in(client, memory_host):
    response = await client.post("/api/session", json={"token": "good-token"})
    assert response.status_code == 200
    return memory_host

@pytest.mark.asyncio
async def test_health(client, memory_host):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "authenticated": False}

@pytest.mark.asyncio
async def test_login_persists_token(client, memory_host):
    response = await client.post("/api/session", json={"token": "good-token"})
    assert response.status_code == 200
    assert response.json()["login"] == "octocat"
    assert service.store.load() == "good-token"

    response = await client.get("/api/session")
    assert response.json()["login"] == "octocat"

    response = await client.delete("/api/session")
    assert response.status_code == 200
    assert service.store.load() is None
    assert (await client.get("/api/session")).status_code == 401

@pytest.mark.asyncio
async def test_bad_token_is_rejected_and_cleared(client, memory_host):
    service.store.save("stale-token")
    response = await client.post("/api/session", json={"token": "bad-token"})
    assert response.status_code == 401
    assert service.store.load() is None

    notes = (await client.get("/api/notifications")).json()
    assert notes[-1] == {"kind": "error", "message": "Authentication failed"}

@pytest.mark.asyncio
async def test_restore_uses_stored_token(memory_host):
    service.store.save("good-token")
    user = await service.restore()
    assert user.login == "octocat"
    assert service.session.token == "good-token"

@pytest.mark.asyncio
async def test_requires_login(client, memory_host):
    response = await client.get("/api/repos")
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_browse_repository(client, logged_in):
    repos = (await client.get("/api/repos")).json()
    assert [r["full_name"] for r in repos] == ["octocat/demo"]

    response = await client.post("/api/repos/select", json={"owner": "octocat", "name": "demo"})
    listing = response.json()
    assert listing["branch"] == "main"
    assert listing["branches"] == ["feature", "main"]
    assert [e["name"] for e in listing["entries"]] == ["README.md", "docs"]

    response = await client.post("/api/navigate", json={"path": "docs", "type": "dir"})
    listing = response.json()["listing"]
    assert listing["path"] == "docs"
    assert [b["path"] for b in listing["breadcrumbs"]] == ["", "docs"]

    response = await client.post("/api/branch", json={"branch": "feature"})
    assert response.json()["branch"] == "feature"
    assert response.json()["path"] == "docs"

    response = await client.post("/api/navigate", json={"path": "docs/index.md"})
    preview = response.json()["preview"]
    assert preview == {"name": "index.md", "path": "docs/index.md", "kind": "text", "content": "Hello World\n"}

    response = await client.post("/api/branch", json={"branch": "missing"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_missing_path_reports_error(client, logged_in):
    await client.post("/api/repos/select", json={"owner": "octocat", "name": "demo"})
    response = await client.get("/api/contents", params={"path": "nope"})
    assert response.status_code == 200
    assert response.json()["error"] == "Path not found in repository"
    assert response.json()["entries"] == []

@pytest.mark.asyncio
async def test_upload_commits_and_reconciles(client, logged_in, fake_sleep):
    await client.post("/api/repos/select", json={"owner": "octocat", "name": "demo"})
    await client.post("/api/navigate", json={"path": "docs", "type": "dir"})
    listings_before = logged_in.count("list_directory")

    response = await client.post(
        "/api/upload",
        data={"message": "Add guides"},
        files=[("files", ("a.md", b"A", "text/markdown")), ("files", ("b.md", b"B", "text/markdown"))],
    )
    assert response.status_code == 200
    body = response.json()
    assert body["files"] == ["docs/a.md", "docs/b.md"]
    assert logged_in.read_path("octocat", "demo", "main", "docs/b.md") == b"B"

    assert await service.reconciler.task
    assert logged_in.count("list_directory") == listings_before + 1
    assert fake_sleep.delays == [0.5]
    assert {"a.md", "b.md"} <= {e.name for e in service.browser.contents}

    status = (await client.get("/api/upload/status")).json()
    assert status == {"state": "succeeded", "progress": 0.0, "file_name": None, "error": None}

@pytest.mark.asyncio
async def test_upload_without_message(client, logged_in):
    await client.post("/api/repos/select", json={"owner": "octocat", "name": "demo"})
    logged_in.calls.clear()
    response = await client.post(
        "/api/upload",
        data={"message": "   "},
        files=[("files", ("a.md", b"A", "text/markdown"))],
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "ValidationError"
    assert logged_in.calls == []

    status = (await client.get("/api/upload/status")).json()
    assert status["state"] == "failed"

@pytest.mark.asyncio
async def test_upload_needs_repository(client, logged_in):
    response = await client.post(
        "/api/upload",
        data={"message": "msg"},
        files=[("files", ("a.md", b"A", "text/markdown"))],
    )
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_check_upload(client, logged_in, monkeypatch):
    monkeypatch.setattr(service.classifier, "size_limit", 4)
    response = await client.post(
        "/api/upload/check",
        files=[("files", ("ok.txt", b"1234", "text/plain")), ("files", ("big.bin", b"12345", "application/octet-stream"))],
    )
    body = response.json()
    assert body["ok"] is False
    assert body["files"][0]["errors"] == []
    assert body["files"][0]["display_size"] == "4 B"
    assert "big.bin" in body["files"][1]["errors"][0]

@pytest.mark.asyncio
async def test_upload_after_failed_select_targets_default_branch_root(client, logged_in, monkeypatch):
    await client.post("/api/repos/select", json={"owner": "octocat", "name": "demo"})
    await client.post("/api/branch", json={"branch": "feature"})
    await client.post("/api/navigate", json={"path": "docs", "type": "dir"})

    logged_in.create_repository("octocat", "other", files={"README.md": b"other\n"})
    list_directory = logged_in.list_directory

    async def forbidden_for_other(owner, repo, path, branch):
        if repo == "other":
            raise ForbiddenError("Must have admin rights")
        return await list_directory(owner, repo, path, branch)

    monkeypatch.setattr(logged_in, "list_directory", forbidden_for_other)
    listing = (await client.post("/api/repos/select", json={"owner": "octocat", "name": "other"})).json()
    assert listing["repository"]["name"] == "other"
    assert listing["branch"] is None
    assert listing["path"] == ""
    assert listing["error"] == "Access denied - check repository permissions"

    response = await client.post(
        "/api/upload",
        data={"message": "Add notes"},
        files=[("files", ("notes.md", b"N", "text/markdown"))],
    )
    assert response.status_code == 200
    assert response.json()["branch"] == "main"
    assert response.json()["files"] == ["notes.md"]
    assert logged_in.read_path("octocat", "other", "main", "notes.md") == b"N"
    assert not await service.reconciler.task
