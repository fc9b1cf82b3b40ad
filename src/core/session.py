import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.core.models import User

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "github_token"


class CredentialStore:
    """Keeps the bearer token in a small JSON file between runs."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable credential file {self.path}: {e}")
            return None
        token = data.get(CREDENTIAL_KEY) if isinstance(data, dict) else None
        return token or None

    def save(self, token: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({CREDENTIAL_KEY: token}))
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.debug(f"Could not restrict permissions on {self.path}")

    def clear(self):
        if self.path.exists():
            self.path.unlink()


@dataclass
class Session:
    token: str
    user: Optional[User] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None
