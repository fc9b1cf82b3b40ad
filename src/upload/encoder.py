import asyncio
import base64
import logging
import threading
from typing import Callable

from src.core.errors import ReadTimeoutError, TransportError
from src.core.models import UploadCandidate

logger = logging.getLogger(__name__)

MIN_READ_TIMEOUT_MS = 30_000
CHUNK_SIZE = 1024 * 1024


class ReadAborted(Exception):
    pass


def read_timeout(byte_length: int) -> float:
    """Seconds allowed for reading a file: 30s floor, else ~1ms per KB."""
    return max(MIN_READ_TIMEOUT_MS, byte_length / 1024) / 1000


class ContentEncoder:
    """Reads a candidate off the event loop and base64-encodes it for the host."""

    def __init__(self, timeout_for: Callable[[int], float] = read_timeout, chunk_size: int = CHUNK_SIZE):
        self.timeout_for = timeout_for
        self.chunk_size = chunk_size

    async def encode(self, candidate: UploadCandidate) -> str:
        abort = threading.Event()
        timeout = self.timeout_for(candidate.size)
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(self._read, candidate, abort), timeout
            )
        except asyncio.TimeoutError:
            abort.set()
            logger.warning(f"Read of {candidate.name} aborted after {timeout:.1f}s")
            raise ReadTimeoutError(candidate.name, timeout) from None
        except OSError as e:
            raise TransportError(f'Failed to read "{candidate.name}": {e}', file_name=candidate.name) from e

        return base64.b64encode(data).decode("ascii")

    def _read(self, candidate: UploadCandidate, abort: threading.Event) -> bytes:
        chunks = []
        with candidate.open() as stream:
            while True:
                if abort.is_set():
                    raise ReadAborted(candidate.name)
                chunk = stream.read(self.chunk_size)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)
