import asyncio
from typing import Any, Dict, FrozenSet, List, Set, Union

from connection import Connection
from logging_config import get_logger

logger = get_logger(__name__)

RoomKey = Union[str, int]


def normalize_room(room: RoomKey) -> str:
    """Room keys arrive as strings or JSON numbers; both name the same room."""
    if isinstance(room, bool):
        raise ValueError("Room key cannot be a boolean")
    if isinstance(room, float) and room.is_integer():
        room = int(room)
    return str(room)


class RoomRegistry:
    """Room membership for a single channel.

    Rooms are created on first join and removed as soon as they are empty, so
    broadcasting to an unknown room simply reaches nobody. None of the
    mutating methods await, which keeps every membership change atomic with
    respect to other handlers on the event loop.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._rooms: Dict[str, Set[Connection]] = {}

    def join(self, room: RoomKey, connection: Connection) -> bool:
        key = normalize_room(room)
        members = self._rooms.setdefault(key, set())
        if connection in members:
            logger.debug(f"{connection} already in room {key} on {self.namespace}")
            return False
        members.add(connection)
        logger.debug(f"{connection} joined room {key} on {self.namespace} ({len(members)} members)")
        return True

    def leave(self, room: RoomKey, connection: Connection) -> bool:
        key = normalize_room(room)
        members = self._rooms.get(key)
        if not members or connection not in members:
            return False
        members.discard(connection)
        if not members:
            del self._rooms[key]
        logger.debug(f"{connection} left room {key} on {self.namespace}")
        return True

    def leave_all(self, connection: Connection) -> List[str]:
        left = [key for key, members in self._rooms.items() if connection in members]
        for key in left:
            self.leave(key, connection)
        if left:
            logger.debug(f"{connection} removed from {len(left)} room(s) on {self.namespace}")
        return left

    def members(self, room: RoomKey) -> FrozenSet[Connection]:
        return frozenset(self._rooms.get(normalize_room(room), ()))

    def rooms_for(self, connection: Connection) -> List[str]:
        return [key for key, members in self._rooms.items() if connection in members]

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def member_count(self) -> int:
        return sum(len(members) for members in self._rooms.values())

    def __contains__(self, room: RoomKey) -> bool:
        return normalize_room(room) in self._rooms

    async def broadcast(self, room: RoomKey, event: str, *args: Any) -> int:
        """Send ``event`` to everyone in ``room`` right now, sender included.

        The member set is copied before the first await; connections joining
        afterwards are not part of this fan-out. Returns the number of members
        the event was sent to.
        """
        key = normalize_room(room)
        recipients = list(self._rooms.get(key, ()))
        if not recipients:
            logger.debug(f"No members in room {key} on {self.namespace} for '{event}'")
            return 0

        logger.debug(f"Broadcasting '{event}' to {len(recipients)} member(s) of room {key} on {self.namespace}")
        results = await asyncio.gather(
            *(conn.send(self.namespace, event, *args) for conn in recipients),
            return_exceptions=True,
        )
        for conn, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(f"Error sending '{event}' to {conn} in room {key}: {result}")
        return len(recipients)
