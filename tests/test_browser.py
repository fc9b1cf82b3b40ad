import base64

import pytest

from src.browser.browser import RepositoryBrowser, describe_load_error, is_image_file
from src.core.errors import ForbiddenError, NotFoundError, RemoteApiError, ValidationError
from src.core.models import DirectoryEntry


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def browser(host, notifications):
    return RepositoryBrowser(host, notify=notifications.append)


@pytest.mark.asyncio
async def test_select_repository_loads_root_on_default_branch(host, repo, browser):
    host.create_branch("octocat", "demo", "feature")
    assert await browser.select_repository(repo)

    assert browser.path == ""
    assert browser.branch == "main"
    assert browser.branches == ["feature", "main"]
    assert [e.name for e in browser.contents] == ["README.md", "docs"]
    assert browser.current.repository == repo
    assert browser.current.branch == "main"


@pytest.mark.asyncio
async def test_select_branch_keeps_path(host, repo, browser):
    host.create_branch("octocat", "demo", "feature")
    await browser.select_repository(repo)
    await browser.load_contents(repo, "docs", "main")

    assert await browser.select_branch("feature")
    assert browser.branch == "feature"
    assert browser.path == "docs"


@pytest.mark.asyncio
async def test_select_unknown_branch(repo, browser):
    await browser.select_repository(repo)
    with pytest.raises(ValidationError):
        await browser.select_branch("nope")


@pytest.mark.asyncio
async def test_navigate_directory(repo, browser):
    await browser.select_repository(repo)
    docs = next(e for e in browser.contents if e.is_dir)

    assert await browser.navigate(docs) is None
    assert browser.path == "docs"
    assert [e.path for e in browser.contents] == ["docs/index.md"]


@pytest.mark.asyncio
async def test_navigate_text_and_image_files(host, browser, notifications):
    png = b"\x89PNG\r\n\x1a\n"
    repo = host.create_repository("octocat", "media", files={"notes.txt": b"caf\xc3\xa9", "logo.PNG": png})
    await browser.select_repository(repo)
    entries = {e.name: e for e in browser.contents}

    preview = await browser.navigate(entries["notes.txt"])
    assert preview.kind == "text"
    assert preview.content == "café"

    preview = await browser.navigate(entries["logo.PNG"])
    assert preview.kind == "image"
    assert preview.content == "data:image/png;base64," + base64.b64encode(png).decode()
    assert notifications[-1].message == "Viewing image: logo.PNG"


def test_is_image_file():
    assert is_image_file("a.webp")
    assert is_image_file("A.JPEG")
    assert not is_image_file("image.png.txt")
    assert not is_image_file("README")


def test_describe_load_error():
    assert describe_load_error(NotFoundError("Not Found")) == "Path not found in repository"
    assert describe_load_error(ForbiddenError("nope")) == "Access denied - check repository permissions"
    assert describe_load_error(RemoteApiError("boom", status=500)) == "Failed to load repository contents: boom"


@pytest.mark.asyncio
async def test_failed_load_clears_contents_and_notifies(repo, browser, notifications):
    await browser.select_repository(repo)
    assert browser.contents

    assert not await browser.load_contents(repo, "missing/dir", "main")
    assert browser.contents == []
    assert browser.path == ""
    assert browser.last_error == "Path not found in repository"
    assert notifications[-1].kind == "error"
    assert notifications[-1].message == "Path not found in repository"


@pytest.mark.asyncio
async def test_forbidden_listing(host, repo, browser, notifications, monkeypatch):
    async def forbidden(*args):
        raise ForbiddenError("Must have admin rights")

    monkeypatch.setattr(host, "list_directory", forbidden)
    assert not await browser.select_repository(repo)
    assert notifications[-1].message == "Access denied - check repository permissions"


@pytest.mark.asyncio
async def test_quiet_failure_keeps_snapshot(repo, browser, notifications):
    await browser.select_repository(repo)
    snapshot = list(browser.contents)
    notifications.clear()

    assert not await browser.load_contents(repo, "missing", "main", quiet=True)
    assert browser.contents == snapshot
    assert notifications == []


@pytest.mark.asyncio
async def test_load_repositories(host, repo, browser):
    assert await browser.load_repositories() == [repo]


@pytest.mark.asyncio
async def test_navigate_requires_repository(browser):
    entry = DirectoryEntry(name="a", path="a", type="dir", size=0, sha="")
    with pytest.raises(ValidationError):
        await browser.navigate(entry)


@pytest.mark.asyncio
async def test_failed_select_drops_previous_location(host, repo, browser, monkeypatch):
    host.create_branch("octocat", "demo", "dev")
    other = host.create_repository("octocat", "other", files={"a.txt": b"a"})
    await browser.select_repository(repo)
    await browser.load_contents(repo, "docs", "dev")
    assert (browser.branch, browser.path) == ("dev", "docs")

    async def forbidden(*args):
        raise ForbiddenError("Must have admin rights")

    monkeypatch.setattr(host, "list_directory", forbidden)
    assert not await browser.select_repository(other)

    assert browser.repository == other
    assert browser.current is None
    assert browser.branch is None
    assert browser.path == ""
    assert browser.branches == []
    assert browser.contents == []


@pytest.mark.asyncio
async def test_branch_listing_failure_keeps_selection(host, repo, browser, monkeypatch):
    host.create_branch("octocat", "demo", "feature")
    await browser.select_repository(repo)
    await browser.navigate(next(e for e in browser.contents if e.is_dir))
    snapshot = list(browser.contents)

    async def broken(*args):
        raise RemoteApiError("Server Error", status=500)

    monkeypatch.setattr(host, "list_branches", broken)

    assert not await browser.load_contents(repo, "", "feature", quiet=True)
    assert browser.contents == snapshot
    assert (browser.branch, browser.path) == ("main", "docs")

    assert not await browser.load_contents(repo, "", "feature")
    assert browser.contents == []
    assert (browser.branch, browser.path) == ("main", "docs")
    assert browser.branches == ["feature", "main"]
