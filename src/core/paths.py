import re
from typing import List, Optional, Tuple

_SEPARATOR_RUN = re.compile(r"/+")
_EDGE_SEPARATORS = re.compile(r"^/+|/+$")


def normalize(path: Optional[str]) -> str:
    """Canonical repository-relative path; the root is the empty string."""
    if not path or path == "/":
        return ""
    return _SEPARATOR_RUN.sub("/", _EDGE_SEPARATORS.sub("", path))


def join(*segments: Optional[str]) -> str:
    """Join path segments, skipping empty ones and bare separators."""
    kept = [s for s in segments if s and s != "/"]
    if not kept:
        return ""
    return normalize(_SEPARATOR_RUN.sub("/", "/".join(kept)))


def split(path: Optional[str]) -> List[str]:
    normalized = normalize(path)
    return normalized.split("/") if normalized else []


def breadcrumbs(path: Optional[str]) -> List[Tuple[str, str]]:
    """(label, path) pairs from the root down to `path`."""
    crumbs = [("Root", "")]
    parts = split(path)
    for i, part in enumerate(parts):
        crumbs.append((part, "/".join(parts[: i + 1])))
    return crumbs
