import pytest
from fakes import FakeConnector


@pytest.fixture
def connector():
    """A fake ``websockets.connect`` that records the sockets it opens."""
    return FakeConnector()
