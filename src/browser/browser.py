import base64
import logging
import mimetypes
from typing import Callable, List, Optional

from src.core.errors import RemoteApiError, ValidationError
from src.core.models import (
    DirectoryEntry,
    FilePreview,
    Notification,
    Repository,
    RepositoryRef,
)
from src.core.paths import normalize
from src.remote.host import RemoteHost

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")

Notifier = Callable[[Notification], None]


def is_image_file(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def describe_load_error(error: Exception) -> str:
    """User-facing message for a failed directory listing."""
    status = getattr(error, "status", None)
    if status == 404:
        return "Path not found in repository"
    if status == 403:
        return "Access denied - check repository permissions"
    return f"Failed to load repository contents: {error}"


class RepositoryBrowser:
    """Current repository / branch / path selection and its directory listing.

    Only reads from the host. `contents` is the latest listing snapshot and is
    emptied before each load, so a failed load never leaves old entries mixed
    with the new location.
    """

    def __init__(self, host: RemoteHost, notify: Optional[Notifier] = None):
        self.host = host
        self._notify = notify or (lambda notification: None)
        self.repositories: List[Repository] = []
        self.repository: Optional[Repository] = None
        self.branches: List[str] = []
        self.branch: Optional[str] = None
        self.path = ""
        self.contents: List[DirectoryEntry] = []
        self.preview: Optional[FilePreview] = None
        self.last_error: Optional[str] = None

    @property
    def current(self) -> Optional[RepositoryRef]:
        if self.repository is None or self.branch is None:
            return None
        return RepositoryRef(repository=self.repository, branch=self.branch)

    def notify(self, kind: str, message: str):
        self._notify(Notification(kind=kind, message=message))

    async def load_repositories(self) -> List[Repository]:
        try:
            self.repositories = await self.host.list_repositories()
        except RemoteApiError as e:
            logger.error(f"Error loading repositories: {e}")
            self.notify("error", "Failed to load repositories")
            raise
        return self.repositories

    async def select_repository(self, repository: Repository) -> bool:
        self.repository = repository
        self.branches = []
        self.branch = None
        self.path = ""
        self.contents = []
        self.preview = None
        return await self.load_contents(repository, "", repository.default_branch)

    async def select_branch(self, branch: str) -> bool:
        if self.repository is None:
            raise ValidationError("Select a repository first")
        if self.branches and branch not in self.branches:
            raise ValidationError(f"Unknown branch {branch} for {self.repository.full_name}")
        return await self.load_contents(self.repository, self.path, branch)

    async def navigate(self, entry: DirectoryEntry) -> Optional[FilePreview]:
        """Open a directory, or fetch a file and build its preview."""
        if self.repository is None:
            raise ValidationError("Select a repository first")
        if entry.is_dir:
            await self.load_contents(self.repository, entry.path, self.branch)
            return None

        try:
            remote_file = await self.host.get_file(
                self.repository.owner, self.repository.name, entry.path, self.branch
            )
        except RemoteApiError as e:
            logger.error(f"Error loading file content: {e}")
            self.notify("error", "Failed to load file content")
            raise

        if is_image_file(remote_file.name):
            mime = mimetypes.guess_type(remote_file.name)[0] or "image/png"
            encoded = base64.b64encode(remote_file.content).decode("ascii")
            self.preview = FilePreview(
                name=remote_file.name, path=remote_file.path, kind="image",
                content=f"data:{mime};base64,{encoded}",
            )
            self.notify("info", f"Viewing image: {entry.name}")
        else:
            self.preview = FilePreview(
                name=remote_file.name, path=remote_file.path, kind="text",
                content=remote_file.content.decode("utf-8", errors="replace"),
            )
            self.notify("info", f"Viewing file: {entry.name}")
        return self.preview

    async def load_contents(
        self,
        repository: Repository,
        path: Optional[str] = "",
        branch: Optional[str] = None,
        quiet: bool = False,
    ) -> bool:
        """List `path` on `branch` (default branch if omitted). True on success.

        A quiet load is a background refresh: failures are not notified and
        the current snapshot stays in place until a new one arrives.
        """
        target_branch = branch or repository.default_branch
        normalized = normalize(path)
        if not quiet:
            self.contents = []
        logger.info(f"Loading contents for path: /{normalized} on branch: {target_branch}")

        try:
            contents = await self.host.list_directory(
                repository.owner, repository.name, normalized, target_branch
            )
            branches = await self.host.list_branches(repository.owner, repository.name)
        except RemoteApiError as e:
            self.last_error = describe_load_error(e)
            logger.error(f"Error loading repository contents: {e}")
            if not quiet:
                self.notify("error", self.last_error)
            return False

        # Listing, location and branch move together or not at all
        self.contents = contents
        self.path = normalized
        self.branches = branches
        self.branch = target_branch
        self.last_error = None
        return True
