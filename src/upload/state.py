from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CommitState(str, Enum):
    IDLE = "idle"
    FETCHING_REF = "fetching_ref"
    FETCHING_BASE_TREE = "fetching_base_tree"
    ENCODING_BLOBS = "encoding_blobs"
    CREATING_TREE = "creating_tree"
    CREATING_COMMIT = "creating_commit"
    UPDATING_REF = "updating_ref"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (CommitState.SUCCEEDED, CommitState.FAILED)

    @property
    def in_flight(self) -> bool:
        return not self.terminal and self is not CommitState.IDLE


@dataclass(frozen=True)
class CommitTransition:
    """What subscribers receive on every state or progress change."""

    state: CommitState
    progress: float
    file_name: Optional[str] = None
    error: Optional[Exception] = None


class UploadProgress:
    """Percentage in [0, 100] that only moves forward until reset."""

    def __init__(self):
        self.value = 0.0

    def advance(self, percent: float) -> float:
        self.value = max(self.value, min(100.0, percent))
        return self.value

    def reset(self):
        self.value = 0.0
