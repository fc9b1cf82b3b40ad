import pytest

from src.remote.memory import MemoryHost


@pytest.fixture
def host():
    return MemoryHost()


@pytest.fixture
def repo(host):
    """octocat/demo with a README at the root and one file under docs/."""
    return host.create_repository(
        "octocat",
        "demo",
        files={"README.md": b"# Demo\n", "docs/index.md": b"Hello World\n"},
    )


class FakeSleep:
    """Stands in for asyncio.sleep and records every requested delay."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()
