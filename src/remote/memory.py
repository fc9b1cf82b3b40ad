import base64
import binascii
import itertools
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from src.core.errors import NotFoundError, RemoteApiError
from src.core.models import (
    DIRECTORY_MODE,
    REGULAR_FILE_MODE,
    DirectoryEntry,
    RemoteFile,
    Repository,
    User,
)
from src.core.paths import join, split
from src.git_objects.models import BlobObject, CommitObject, TreeEntry, TreeObject
from src.git_objects.store import ObjectStore
from src.remote.host import RemoteHost

_clock = itertools.count(1)


@dataclass
class MemoryRepository:
    repository: Repository
    refs: Dict[str, str] = field(default_factory=dict)
    updated: int = field(default_factory=lambda: next(_clock))


class MemoryHost(RemoteHost):
    """A repository host living entirely in process.

    Objects are real git objects with real SHA-1 ids, so trees built here
    behave like the hosted ones: `create_tree` layers path entries over a
    base tree and non-forced ref updates must fast-forward. Every call is
    appended to `calls` as `(operation, args)`.
    """

    def __init__(self, user: Optional[User] = None):
        self.user = user or User(login="octocat", name="The Octocat")
        self.store = ObjectStore()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._repos: Dict[Tuple[str, str], MemoryRepository] = {}

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def _record(self, operation: str, *args: Any):
        self.calls.append((operation, args))

    # -- seeding --------------------------------------------------------

    def create_repository(
        self,
        owner: str,
        name: str,
        files: Optional[Dict[str, bytes]] = None,
        default_branch: str = "main",
        private: bool = False,
    ) -> Repository:
        repository = Repository(owner=owner, name=name, default_branch=default_branch, private=private)
        repo = MemoryRepository(repository=repository)
        self._repos[(owner, name)] = repo

        tree = TreeObject()
        for path, data in (files or {}).items():
            blob_oid = self.store.write(BlobObject(data))
            tree = self._insert(tree, split(path), REGULAR_FILE_MODE, blob_oid)
        tree_oid = self.store.write(tree)
        repo.refs[default_branch] = self._write_commit("Initial commit", tree_oid, [])
        return repository

    def create_branch(self, owner: str, name: str, branch: str, from_branch: Optional[str] = None):
        repo = self._repo(owner, name)
        source = from_branch or repo.repository.default_branch
        repo.refs[branch] = self._tip(repo, source)

    def read_path(self, owner: str, name: str, branch: str, path: str) -> bytes:
        """Content of a file on a branch, for inspecting results."""
        repo = self._repo(owner, name)
        entry = self._lookup(self._root_tree(self._tip(repo, branch)), path)
        if entry is None or entry.is_tree:
            raise NotFoundError(f"{path} not found on {branch}")
        return self.store.read_as(entry.oid, BlobObject).data

    def commit_parents(self, commit_sha: str) -> List[str]:
        return self.store.read_as(commit_sha, CommitObject).parent_oids

    # -- RemoteHost -----------------------------------------------------

    async def resolve_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        self._record("resolve_branch_tip", owner, repo, branch)
        return self._tip(self._repo(owner, repo), branch)

    async def get_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        self._record("get_commit_tree", owner, repo, commit_sha)
        self._repo(owner, repo)
        return self._root_tree(commit_sha)

    async def create_blob(self, owner: str, repo: str, encoded_content: str) -> str:
        self._record("create_blob", owner, repo, len(encoded_content))
        self._repo(owner, repo)
        try:
            data = base64.b64decode(encoded_content, validate=True)
        except binascii.Error as e:
            raise RemoteApiError(f"Invalid base64 content: {e}", status=422) from e
        return self.store.write(BlobObject(data))

    async def create_tree(self, owner: str, repo: str, base_tree: str, entries: List[Dict]) -> str:
        self._record("create_tree", owner, repo, base_tree, entries)
        self._repo(owner, repo)
        tree = self._read_tree(base_tree) if base_tree else TreeObject()
        for entry in entries:
            parts = split(entry["path"])
            if not parts:
                raise RemoteApiError("tree.path cannot be empty", status=422)
            if entry["sha"] not in self.store:
                raise RemoteApiError(f"tree.sha {entry['sha']} is not a valid blob", status=422)
            tree = self._insert(tree, parts, entry.get("mode", REGULAR_FILE_MODE), entry["sha"])
        return self.store.write(tree)

    async def create_commit(self, owner: str, repo: str, message: str, tree: str, parents: List[str]) -> str:
        self._record("create_commit", owner, repo, message, tree, list(parents))
        self._repo(owner, repo)
        self._read_tree(tree)
        for parent in parents:
            self._read_commit(parent)
        return self._write_commit(message, tree, parents)

    async def update_ref(self, owner: str, repo: str, branch: str, commit_sha: str, force: bool = True) -> None:
        self._record("update_ref", owner, repo, branch, commit_sha, force)
        memory_repo = self._repo(owner, repo)
        current = memory_repo.refs.get(branch)
        if current is None:
            raise RemoteApiError("Reference does not exist", status=422)
        self._read_commit(commit_sha)
        if not force and not self._is_ancestor(current, commit_sha):
            raise RemoteApiError("Update is not a fast forward", status=422)
        memory_repo.refs[branch] = commit_sha
        memory_repo.updated = next(_clock)

    async def list_directory(self, owner: str, repo: str, path: str, branch: str) -> List[DirectoryEntry]:
        self._record("list_directory", owner, repo, path, branch)
        root = self._root_tree(self._tip(self._repo(owner, repo), branch))
        parts = split(path)
        if not parts:
            return self._entries(root, "")

        entry = self._lookup(root, path)
        if entry is None:
            raise NotFoundError("Not Found")
        if entry.is_tree:
            return self._entries(entry.oid, join(*parts))
        return [self._to_directory_entry(entry, join(*parts))]

    async def get_file(self, owner: str, repo: str, path: str, branch: str) -> RemoteFile:
        self._record("get_file", owner, repo, path, branch)
        root = self._root_tree(self._tip(self._repo(owner, repo), branch))
        entry = self._lookup(root, path)
        if entry is None:
            raise NotFoundError("Not Found")
        if entry.is_tree:
            raise RemoteApiError(f"{path} is not a file", status=400)
        blob = self.store.read_as(entry.oid, BlobObject)
        return RemoteFile(name=entry.name, path=join(path), sha=entry.oid, content=blob.data)

    async def list_branches(self, owner: str, repo: str) -> List[str]:
        self._record("list_branches", owner, repo)
        return sorted(self._repo(owner, repo).refs)

    async def list_repositories(self) -> List[Repository]:
        self._record("list_repositories")
        repos = sorted(self._repos.values(), key=lambda r: r.updated, reverse=True)
        return [r.repository for r in repos]

    async def get_authenticated_user(self) -> User:
        self._record("get_authenticated_user")
        return self.user

    # -- internals ------------------------------------------------------

    def _repo(self, owner: str, name: str) -> MemoryRepository:
        repo = self._repos.get((owner, name))
        if repo is None:
            raise NotFoundError(f"Repository {owner}/{name} not found")
        return repo

    def _tip(self, repo: MemoryRepository, branch: str) -> str:
        sha = repo.refs.get(branch)
        if sha is None:
            raise NotFoundError(f"Branch {branch} not found in {repo.repository.full_name}")
        return sha

    def _read_commit(self, oid: str) -> CommitObject:
        try:
            return self.store.read_as(oid, CommitObject)
        except (KeyError, ValueError) as e:
            raise RemoteApiError(f"Commit {oid} not found", status=422) from e

    def _read_tree(self, oid: str) -> TreeObject:
        try:
            return self.store.read_as(oid, TreeObject)
        except (KeyError, ValueError) as e:
            raise RemoteApiError(f"Tree {oid} not found", status=422) from e

    def _root_tree(self, commit_sha: str) -> str:
        try:
            return self.store.read_as(commit_sha, CommitObject).tree_oid
        except (KeyError, ValueError) as e:
            raise NotFoundError(f"No commit found for SHA: {commit_sha}") from e

    def _write_commit(self, message: str, tree_oid: str, parents: List[str]) -> str:
        signature = f"{self.user.login} <{self.user.login}@users.noreply.local> {int(time.time())} +0000"
        commit = CommitObject(
            tree_oid=tree_oid,
            parent_oids=list(parents),
            author=signature,
            committer=signature,
            message=message,
        )
        return self.store.write(commit)

    def _insert(self, tree: TreeObject, parts: List[str], mode: str, oid: str) -> TreeObject:
        """Copy of `tree` with a blob placed at the nested path `parts`."""
        name = parts[0]
        if len(parts) == 1:
            return tree.with_entry(TreeEntry(mode=mode, name=name, oid=oid))

        existing = tree.get(name)
        if existing is None:
            subtree = TreeObject()
        elif existing.is_tree:
            subtree = self._read_tree(existing.oid)
        else:
            raise RemoteApiError(f"{name} is a file, not a directory", status=422)

        subtree_oid = self.store.write(self._insert(subtree, parts[1:], mode, oid))
        return tree.with_entry(TreeEntry(mode=DIRECTORY_MODE, name=name, oid=subtree_oid))

    def _lookup(self, tree_oid: str, path: str) -> Optional[TreeEntry]:
        entry = None
        current = tree_oid
        for part in split(path):
            if entry is not None and not entry.is_tree:
                return None
            entry = self._read_tree(current).get(part)
            if entry is None:
                return None
            current = entry.oid
        return entry

    def _entries(self, tree_oid: str, path: str) -> List[DirectoryEntry]:
        tree = self._read_tree(tree_oid)
        return [
            self._to_directory_entry(e, join(path, e.name))
            for e in sorted(tree.entries, key=TreeEntry.sort_key)
        ]

    def _to_directory_entry(self, entry: TreeEntry, path: str) -> DirectoryEntry:
        if entry.is_tree:
            return DirectoryEntry(name=entry.name, path=path, type="dir", size=0, sha=entry.oid)
        size = len(self.store.read_as(entry.oid, BlobObject).data)
        return DirectoryEntry(name=entry.name, path=path, type="file", size=size, sha=entry.oid)

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        queue = deque([descendant])
        seen = set()
        while queue:
            oid = queue.popleft()
            if oid == ancestor:
                return True
            if oid in seen:
                continue
            seen.add(oid)
            queue.extend(self._read_commit(oid).parent_oids)
        return False
