import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from src.core.errors import RemoteApiError, remote_error
from src.core.models import DirectoryEntry, RemoteFile, Repository, User
from src.core.paths import normalize
from src.remote.host import RemoteHost

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
PER_PAGE = 100


class GitHubHost(RemoteHost):
    """RemoteHost backed by the GitHub REST API (git data + contents endpoints)."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteApiError(f"{method} {url} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.debug(f"{method} {url} -> {response.status_code}: {message}")
            raise remote_error(response.status_code, message)
        return response

    async def _paginate(self, url: str, params: Dict[str, Any]) -> List[Dict]:
        items: List[Dict] = []
        next_url: Optional[str] = url
        next_params: Optional[Dict[str, Any]] = {**params, "per_page": PER_PAGE}
        while next_url:
            response = await self._request("GET", next_url, params=next_params)
            items.extend(response.json())
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            next_params = None
        return items

    async def resolve_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        response = await self._request("GET", f"{_repo_url(owner, repo)}/git/ref/heads/{quote(branch)}")
        return response.json()["object"]["sha"]

    async def get_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        response = await self._request("GET", f"{_repo_url(owner, repo)}/git/commits/{commit_sha}")
        return response.json()["tree"]["sha"]

    async def create_blob(self, owner: str, repo: str, encoded_content: str) -> str:
        response = await self._request(
            "POST",
            f"{_repo_url(owner, repo)}/git/blobs",
            json={"content": encoded_content, "encoding": "base64"},
        )
        return response.json()["sha"]

    async def create_tree(self, owner: str, repo: str, base_tree: str, entries: List[Dict]) -> str:
        response = await self._request(
            "POST",
            f"{_repo_url(owner, repo)}/git/trees",
            json={"base_tree": base_tree, "tree": entries},
        )
        return response.json()["sha"]

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: List[str]) -> str:
        response = await self._request(
            "POST",
            f"{_repo_url(owner, repo)}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return response.json()["sha"]

    async def update_ref(self, owner: str, repo: str, branch: str, commit_sha: str, force: bool = True) -> None:
        await self._request(
            "PATCH",
            f"{_repo_url(owner, repo)}/git/refs/heads/{quote(branch)}",
            json={"sha": commit_sha, "force": force},
        )

    async def list_directory(self, owner: str, repo: str, path: str, branch: str) -> List[DirectoryEntry]:
        data = await self._get_content(owner, repo, path, branch)
        items = data if isinstance(data, list) else [data]
        return [
            DirectoryEntry(
                name=item["name"],
                path=item["path"],
                type="dir" if item["type"] == "dir" else "file",
                size=item.get("size", 0),
                sha=item["sha"],
            )
            for item in items
        ]

    async def get_file(self, owner: str, repo: str, path: str, branch: str) -> RemoteFile:
        data = await self._get_content(owner, repo, path, branch)
        if isinstance(data, list) or data.get("type") != "file":
            raise RemoteApiError(f"{normalize(path)} is not a file", status=400)

        if data.get("encoding") == "base64":
            content = base64.b64decode(data.get("content", ""))
        else:
            # Files over 1 MB come back without inline content
            response = await self._request(
                "GET", f"{_repo_url(owner, repo)}/git/blobs/{data['sha']}"
            )
            content = base64.b64decode(response.json()["content"])
        return RemoteFile(name=data["name"], path=data["path"], sha=data["sha"], content=content)

    async def list_branches(self, owner: str, repo: str) -> List[str]:
        branches = await self._paginate(f"{_repo_url(owner, repo)}/branches", {})
        return [b["name"] for b in branches]

    async def list_repositories(self) -> List[Repository]:
        repos = await self._paginate("/user/repos", {"sort": "updated"})
        return [
            Repository(
                owner=r["owner"]["login"],
                name=r["name"],
                default_branch=r.get("default_branch") or "main",
                private=r.get("private", False),
            )
            for r in repos
        ]

    async def get_authenticated_user(self) -> User:
        response = await self._request("GET", "/user")
        data = response.json()
        return User(login=data["login"], name=data.get("name"))

    async def _get_content(self, owner: str, repo: str, path: str, branch: str) -> Any:
        path = normalize(path)
        url = f"{_repo_url(owner, repo)}/contents"
        if path:
            url += f"/{quote(path)}"
        response = await self._request(
            "GET",
            url,
            params={"ref": branch},
            # Empty validator defeats the cached listing right after a push
            headers={"If-None-Match": ""},
        )
        return response.json()


def _repo_url(owner: str, repo: str) -> str:
    return f"/repos/{quote(owner)}/{quote(repo)}"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return f"HTTP {response.status_code}"
