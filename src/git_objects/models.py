from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional
import binascii
import hashlib

from src.core.models import DIRECTORY_MODE

@dataclass
class GitObject(ABC):
    oid: Optional[str] = field(default=None, init=False)

    @property
    @abstractmethod
    def type(self) -> bytes:
        pass

    @abstractmethod
    def serialize(self) -> bytes:
        pass

    @classmethod
    @abstractmethod
    def deserialize(cls, data: bytes) -> "GitObject":
        pass

    def store_bytes(self) -> bytes:
        """Header plus body, the form that is hashed and stored."""
        data = self.serialize()
        return f"{self.type.decode()} {len(data)}".encode() + b"\x00" + data

    def compute_oid(self) -> str:
        """Computes and sets the SHA-1 hash of the object."""
        self.oid = hashlib.sha1(self.store_bytes()).hexdigest()
        return self.oid

@dataclass
class BlobObject(GitObject):
    data: bytes

    @property
    def type(self) -> bytes:
        return b"blob"

    def serialize(self) -> bytes:
        return self.data

    @classmethod
    def deserialize(cls, data: bytes) -> "BlobObject":
        return cls(data=data)

@dataclass
class TreeEntry:
    mode: str
    name: str
    oid: str

    @property
    def is_tree(self) -> bool:
        return self.mode.lstrip("0") == DIRECTORY_MODE.lstrip("0")

    def sort_key(self) -> str:
        # Git orders a directory as though its name ended with "/"
        return self.name + "/" if self.is_tree else self.name

@dataclass
class TreeObject(GitObject):
    entries: List[TreeEntry] = field(default_factory=list)

    @property
    def type(self) -> bytes:
        return b"tree"

    def get(self, name: str) -> Optional[TreeEntry]:
        return next((e for e in self.entries if e.name == name), None)

    def with_entry(self, entry: TreeEntry) -> "TreeObject":
        """Copy of this tree with `entry` added or replacing a same-named one."""
        kept = [e for e in self.entries if e.name != entry.name]
        return TreeObject(entries=kept + [entry])

    def serialize(self) -> bytes:
        output = b""
        for entry in sorted(self.entries, key=TreeEntry.sort_key):
            # Stored modes drop the leading zero ("40000" for trees)
            mode = entry.mode.lstrip("0").encode()
            output += mode + b" " + entry.name.encode() + b"\x00" + binascii.unhexlify(entry.oid)
        return output

    @classmethod
    def deserialize(cls, data: bytes) -> "TreeObject":
        entries = []
        i = 0
        while i < len(data):
            space_idx = data.find(b" ", i)
            if space_idx == -1:
                break
            mode = data[i:space_idx].decode()

            null_idx = data.find(b"\x00", space_idx)
            if null_idx == -1:
                break
            name = data[space_idx+1:null_idx].decode()

            # 20 raw bytes of SHA-1
            oid = binascii.hexlify(data[null_idx+1:null_idx+21]).decode()

            entries.append(TreeEntry(mode=mode, name=name, oid=oid))
            i = null_idx + 21

        return cls(entries=entries)

@dataclass
class CommitObject(GitObject):
    tree_oid: str
    parent_oids: List[str]
    author: str
    committer: str
    message: str

    @property
    def type(self) -> bytes:
        return b"commit"

    def serialize(self) -> bytes:
        lines = [f"tree {self.tree_oid}".encode()]
        for p in self.parent_oids:
            lines.append(f"parent {p}".encode())
        lines.append(f"author {self.author}".encode())
        lines.append(f"committer {self.committer}".encode())
        lines.append(b"")
        lines.append(self.message.encode())

        return b"\n".join(lines)

    @classmethod
    def deserialize(cls, data: bytes) -> "CommitObject":
        lines = data.decode().split("\n")

        tree_oid = ""
        parent_oids = []
        author = ""
        committer = ""

        i = 0
        while i < len(lines):
            line = lines[i]
            if not line:
                # Blank line ends the headers
                i += 1
                break

            if line.startswith("tree "):
                tree_oid = line[5:]
            elif line.startswith("parent "):
                parent_oids.append(line[7:])
            elif line.startswith("author "):
                author = line[7:]
            elif line.startswith("committer "):
                committer = line[10:]
            i += 1

        return cls(
            tree_oid=tree_oid,
            parent_oids=parent_oids,
            author=author,
            committer=committer,
            message="\n".join(lines[i:])
        )
