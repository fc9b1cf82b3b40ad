import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, field_validator

MIB = 1024 * 1024

# Host object-creation ceiling. Base64 inflates content by about a third,
# so this applies to the encoded request, not the nominal file size.
DEFAULT_SIZE_LIMIT = 100 * MIB
DEFAULT_CREDENTIAL_FILE = Path.home() / ".config" / "repo-uploader" / "credentials.json"


class UploaderSettings(BaseModel):
    size_limit: int = DEFAULT_SIZE_LIMIT
    max_file_size: Optional[int] = None
    first_delay_ms: int = 500
    second_delay_ms: int = 1000
    verify_branch_tip: bool = False
    api_url: str = "https://api.github.com"
    request_timeout: float = 30.0
    credential_file: Path = DEFAULT_CREDENTIAL_FILE
    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @field_validator("size_limit", "first_delay_ms", "second_delay_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("max_file_size")
    @classmethod
    def _positive_or_unset(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("must be positive when set")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls) -> "UploaderSettings":
        """Settings from UPLOADER_* variables, falling back to the defaults."""
        values = {}
        env_map = {
            "size_limit": "UPLOADER_SIZE_LIMIT",
            "max_file_size": "UPLOADER_MAX_FILE_SIZE",
            "first_delay_ms": "UPLOADER_FIRST_DELAY_MS",
            "second_delay_ms": "UPLOADER_SECOND_DELAY_MS",
            "verify_branch_tip": "UPLOADER_VERIFY_BRANCH_TIP",
            "api_url": "UPLOADER_API_URL",
            "request_timeout": "UPLOADER_REQUEST_TIMEOUT",
            "credential_file": "UPLOADER_CREDENTIAL_FILE",
            "log_level": "UPLOADER_LOG_LEVEL",
        }
        for field, var in env_map.items():
            raw = os.getenv(var)
            if raw:
                values[field] = raw

        # Same variable the API has always read for CORS
        origins = os.getenv("ALLOWED_ORIGINS")
        if origins:
            values["allowed_origins"] = [o.strip() for o in origins.split(",")]

        return cls(**values)
