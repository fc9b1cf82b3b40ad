import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional

REGULAR_FILE_MODE = "100644"
DIRECTORY_MODE = "040000"


@dataclass(frozen=True)
class Repository:
    owner: str
    name: str
    default_branch: str = "main"
    private: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class RepositoryRef:
    repository: Repository
    branch: str


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    path: str
    type: str  # 'file' or 'dir'
    size: int
    sha: str

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


@dataclass(frozen=True)
class RemoteFile:
    name: str
    path: str
    sha: str
    content: bytes


@dataclass(frozen=True)
class User:
    login: str
    name: Optional[str] = None


@dataclass
class UploadCandidate:
    """A file picked for upload, not yet read."""

    name: str
    size: int
    opener: Callable[[], BinaryIO] = field(repr=False)

    def open(self) -> BinaryIO:
        return self.opener()

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> "UploadCandidate":
        return cls(name=name, size=len(data), opener=lambda: io.BytesIO(data))

    @classmethod
    def from_path(cls, path: Path, name: Optional[str] = None) -> "UploadCandidate":
        path = Path(path)
        return cls(
            name=name or path.name,
            size=path.stat().st_size,
            opener=lambda: path.open("rb"),
        )


@dataclass
class BlobRequest:
    path: str
    content: str
    mode: str = REGULAR_FILE_MODE
    sha: Optional[str] = None

    def tree_entry(self) -> dict:
        return {"path": self.path, "mode": self.mode, "type": "blob", "sha": self.sha}


@dataclass
class CommitAttempt:
    message: str
    base_commit: Optional[str] = None
    base_tree: Optional[str] = None
    blobs: List[BlobRequest] = field(default_factory=list)
    tree: Optional[str] = None
    commit: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    commit_sha: str
    tree_sha: str
    parent_sha: str
    branch: str
    path: str
    blobs: List[BlobRequest]

    @property
    def paths(self) -> List[str]:
        return [b.path for b in self.blobs]


@dataclass(frozen=True)
class FilePreview:
    name: str
    path: str
    kind: str  # 'text' or 'image'
    content: str


@dataclass(frozen=True)
class Notification:
    kind: str  # 'success', 'error' or 'info'
    message: str
