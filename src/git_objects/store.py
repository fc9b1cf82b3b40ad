import zlib
from typing import Dict, List, Type, TypeVar

from .models import GitObject, BlobObject, TreeObject, CommitObject

T = TypeVar("T", bound=GitObject)

_TYPES: Dict[bytes, Type[GitObject]] = {
    b"blob": BlobObject,
    b"tree": TreeObject,
    b"commit": CommitObject,
}


class ObjectStore:
    """Content-addressed store holding zlib-compressed loose objects in memory."""

    def __init__(self):
        self._objects: Dict[str, bytes] = {}

    def __contains__(self, oid: str) -> bool:
        return oid in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def write(self, obj: GitObject) -> str:
        oid = obj.compute_oid()
        if oid not in self._objects:
            self._objects[oid] = zlib.compress(obj.store_bytes())
        return oid

    def read(self, oid: str) -> GitObject:
        """Read an object by its SHA-1 hash."""
        if len(oid) != 40:
            raise ValueError(f"Invalid Object ID: {oid}")
        if oid not in self._objects:
            raise KeyError(oid)

        raw_data = zlib.decompress(self._objects[oid])

        # format: "type size\0content"
        null_idx = raw_data.find(b"\x00")
        if null_idx == -1:
            raise ValueError("Invalid object format (no null byte)")

        type_str, _size = raw_data[:null_idx].split(b" ")
        cls = _TYPES.get(type_str)
        if cls is None:
            raise ValueError(f"Unknown object type: {type_str}")

        obj = cls.deserialize(raw_data[null_idx+1:])
        obj.oid = oid
        return obj

    def read_as(self, oid: str, cls: Type[T]) -> T:
        obj = self.read(oid)
        if not isinstance(obj, cls):
            raise ValueError(f"Object {oid} is a {obj.type.decode()}, not a {cls.__name__}")
        return obj

    def enumerate_objects(self) -> List[str]:
        return sorted(self._objects)
