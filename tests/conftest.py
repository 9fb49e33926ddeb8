import os
import sys
import pytest

# ensure workspace root is on sys.path so our application packages can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import store.client as client


@pytest.fixture(autouse=True)
def clear_fallback(monkeypatch):
    """Wipe the in-memory redis fallback before and after each test and keep
    the redis helpers on the in-memory store so tests never touch the network.
    """
    client._fallback_lists.clear()
    monkeypatch.setattr(client, "_redis_client", None)

    async def no_redis():
        return None

    monkeypatch.setattr(client, "get_redis", no_redis)

    yield

    client._fallback_lists.clear()
