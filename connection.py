import asyncio
import json
import uuid
from typing import Any, Set

from logging_config import get_logger

logger = get_logger(__name__)


def encode_envelope(channel: str, event: str, args) -> str:
    return json.dumps({"channel": channel, "event": event, "args": list(args)})


class Connection:
    """One live client socket.

    The same Connection can hold room memberships in several channels; the
    relay server is responsible for tearing those down on disconnect.
    """

    def __init__(self, websocket, connection_id: str = None):
        self.id = connection_id or str(uuid.uuid4())
        self.websocket = websocket
        self.channels: Set[str] = set()
        self.closed = False
        self._send_lock = asyncio.Lock()

    async def send(self, channel: str, event: str, *args: Any) -> bool:
        """Emit an event to this client. Returns False if it was dropped."""
        if self.closed:
            logger.debug(f"Dropping '{event}' on {channel} for closed connection {self.id}")
            return False
        payload = encode_envelope(channel, event, args)
        async with self._send_lock:
            # Disconnect may have been processed while waiting on the lock
            if self.closed:
                return False
            await self.websocket.send_text(payload)
        return True

    def close(self):
        self.closed = True

    def __repr__(self):
        return f"<Connection {self.id}>"
