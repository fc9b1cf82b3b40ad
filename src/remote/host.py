from abc import ABC, abstractmethod
from typing import Dict, List

from src.core.models import DirectoryEntry, RemoteFile, Repository, User


class RemoteHost(ABC):
    """Operations the upload core needs from a repository host.

    Every method is a single request/response. Failures are raised as
    `src.core.errors.RemoteApiError` subclasses carrying the HTTP status.
    """

    @abstractmethod
    async def resolve_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        """Commit hash the branch points at; NotFoundError if the branch is absent."""

    @abstractmethod
    async def get_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        """Root tree hash of a commit."""

    @abstractmethod
    async def create_blob(self, owner: str, repo: str, encoded_content: str) -> str:
        """Store base64 content as a blob and return its hash."""

    @abstractmethod
    async def create_tree(self, owner: str, repo: str, base_tree: str, entries: List[Dict]) -> str:
        """Create a tree from `base_tree` plus path entries ({path, mode, type, sha})."""

    @abstractmethod
    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: List[str]) -> str:
        pass

    @abstractmethod
    async def update_ref(self, owner: str, repo: str, branch: str, commit_sha: str, force: bool = True) -> None:
        pass

    @abstractmethod
    async def list_directory(self, owner: str, repo: str, path: str, branch: str) -> List[DirectoryEntry]:
        """Entries of a directory; a file path lists as that single file."""

    @abstractmethod
    async def list_branches(self, owner: str, repo: str) -> List[str]:
        pass

    @abstractmethod
    async def get_file(self, owner: str, repo: str, path: str, branch: str) -> RemoteFile:
        pass

    @abstractmethod
    async def list_repositories(self) -> List[Repository]:
        """All repositories of the authenticated user, most recently updated first."""

    @abstractmethod
    async def get_authenticated_user(self) -> User:
        pass

    async def aclose(self) -> None:
        pass
