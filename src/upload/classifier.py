import logging
import re
from typing import Iterable, List, Optional

from src.core.config import DEFAULT_SIZE_LIMIT
from src.core.errors import ValidationError
from src.core.models import UploadCandidate

logger = logging.getLogger(__name__)

INVALID_NAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')


def format_size(size: int) -> str:
    """Human readable size, e.g. '1.50 MB'."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


class FileClassifier:
    """Decides whether a candidate can be committed as an ordinary blob.

    `size_limit` is the host's object-creation ceiling. Anything above it
    is rejected outright; this tool does not speak the large-file storage
    protocol. `max_file_size` optionally sets a stricter ceiling of our own.
    """

    def __init__(self, size_limit: int = DEFAULT_SIZE_LIMIT, max_file_size: Optional[int] = None):
        self.size_limit = size_limit
        self.max_file_size = max_file_size

    def exceeds_limit(self, candidate: UploadCandidate) -> bool:
        return candidate.size > self.size_limit

    def validate(self, candidate: UploadCandidate) -> List[str]:
        errors = []

        if self.max_file_size is not None and candidate.size > self.max_file_size:
            errors.append(
                f'File "{candidate.name}" is too large ({candidate.size} bytes, {format_size(candidate.size)}). '
                f"Maximum size is {format_size(self.max_file_size)}."
            )

        if self.exceeds_limit(candidate):
            errors.append(
                f'File "{candidate.name}" ({candidate.size} bytes, {format_size(candidate.size)}) exceeds '
                f"the {format_size(self.size_limit)} object limit of the host. "
                "Commit it with a large-file storage tool instead."
            )

        if INVALID_NAME_CHARS.search(candidate.name):
            errors.append(f'File "{candidate.name}" contains invalid characters.')

        return errors

    def check(self, candidates: Iterable[UploadCandidate]):
        """Raise one ValidationError listing every violation in the batch."""
        errors = []
        for candidate in candidates:
            errors.extend(self.validate(candidate))
        if errors:
            logger.info(f"Rejected upload batch: {len(errors)} violation(s)")
            raise ValidationError(" ".join(errors))
