import json

import pytest

from auth import SecretGate
from connection import Connection
from relay import RelayServer
from settings import RelaySettings

SECRET = "hI0g2Yf9Rs8Dm5"


class FakeWebSocket:
    """Records every frame the relay sends to a client."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(text))

    def events(self, channel: str = None):
        return [
            (frame["event"], frame["args"])
            for frame in self.sent
            if channel is None or frame["channel"] == channel
        ]


@pytest.fixture
def settings():
    return RelaySettings(service_key=SECRET)


@pytest.fixture
def gate():
    return SecretGate(SECRET)


@pytest.fixture
def relay(settings):
    return RelayServer(settings)


@pytest.fixture
def make_connection():
    def _make(fail: bool = False) -> Connection:
        return Connection(FakeWebSocket(fail=fail))

    return _make


@pytest.fixture
def secret():
    return SECRET
