import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set

from pydantic import ValidationError

import constants
from auth import SecretGate
from connection import Connection
from exceptions import UnknownEventError
from logging_config import get_logger
from registry import RoomRegistry, RoomKey
from schemas.events import CheckSecretArgs, JoinArgs, UpdateArgs

logger = get_logger(__name__)

Handler = Callable[[Connection, Sequence[Any]], Awaitable[None]]


@dataclass(frozen=True)
class UpdateEvent:
    name: str
    forwards_payload: bool = False


class BaseChannel:
    """A namespace multiplexed over every client socket.

    Subclasses fill ``self.handlers`` with event name -> coroutine taking
    ``(connection, args)``.
    """

    def __init__(self, namespace: str, gate: SecretGate):
        self.namespace = namespace
        self.gate = gate
        self.listeners: Set[Connection] = set()
        self.handlers: Dict[str, Handler] = {}

    @property
    def events(self) -> List[str]:
        return list(self.handlers)

    def attach(self, connection: Connection) -> bool:
        if connection in self.listeners:
            return False
        self.listeners.add(connection)
        connection.channels.add(self.namespace)
        logger.info(f"{connection} connected to {self.namespace} namespace")
        return True

    def detach(self, connection: Connection):
        if connection in self.listeners:
            logger.info(f"{connection} disconnected from {self.namespace} namespace")
        self.listeners.discard(connection)
        connection.channels.discard(self.namespace)

    async def dispatch(self, connection: Connection, event: str, args: Sequence[Any]) -> bool:
        """Run the handler for ``event``. Returns False when it was dropped."""
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"Ignoring unknown event '{event}' on {self.namespace} from {connection}")
            return False
        self.attach(connection)
        try:
            await handler(connection, args)
        except ValidationError as e:
            logger.warning(f"Dropping malformed '{event}' on {self.namespace} from {connection}: {e.error_count()} error(s)")
            return False
        return True

    def stats(self) -> Dict[str, int]:
        return {"listeners": len(self.listeners), "rooms": 0, "memberships": 0}


class Channel(BaseChannel):
    """Room-scoped change notifications for one kind of key (thread id, user id)."""

    def __init__(
        self,
        namespace: str,
        gate: SecretGate,
        join_event: str,
        update_events: Iterable[UpdateEvent],
        room_label: str = "room",
    ):
        super().__init__(namespace, gate)
        self.join_event = join_event
        self.update_events: Dict[str, UpdateEvent] = {u.name: u for u in update_events}
        self.room_label = room_label
        self.registry = RoomRegistry(namespace)

        self.handlers[join_event] = self.handle_join
        for update in self.update_events.values():
            self.handlers[update.name] = partial(self.handle_update, update)

    def detach(self, connection: Connection):
        self.registry.leave_all(connection)
        super().detach(connection)

    async def handle_join(self, connection: Connection, args: Sequence[Any]):
        request = JoinArgs.from_args(args)
        if not self.gate.is_authorized(request.secret):
            logger.info(f"Unauthorized join for {self.room_label} {request.room} on {self.namespace}")
            return
        logger.info(f"Joining {self.room_label} {request.room} on {self.namespace}")
        self.registry.join(request.room, connection)

    async def handle_update(self, update: UpdateEvent, connection: Optional[Connection], args: Sequence[Any]):
        request = UpdateArgs.from_args(args, with_payload=update.forwards_payload)
        await self._fan_out(update, request)

    async def publish(self, event: str, room: RoomKey, secret: Any, payload: Any = None) -> int:
        """Trigger an update event without a client socket (backend publish)."""
        update = self.update_events.get(event)
        if update is None:
            raise UnknownEventError(self.namespace, event)
        request = UpdateArgs(room=room, secret=secret, payload=payload)
        return await self._fan_out(update, request)

    async def _fan_out(self, update: UpdateEvent, request: UpdateArgs) -> int:
        if not self.gate.is_authorized(request.secret):
            logger.info(f"Unauthorized '{update.name}' for {self.room_label} {request.room} on {self.namespace}")
            return 0
        logger.info(f"Triggering '{update.name}' for {self.room_label} {request.room} on {self.namespace}")
        if update.forwards_payload:
            return await self.registry.broadcast(request.room, update.name, request.payload)
        return await self.registry.broadcast(request.room, update.name)

    def stats(self) -> Dict[str, int]:
        return {
            "listeners": len(self.listeners),
            "rooms": self.registry.room_count,
            "memberships": self.registry.member_count(),
        }


class StatusChannel(BaseChannel):
    """Lets an operator confirm the relay and the backend share the same key."""

    def __init__(self, gate: SecretGate, namespace: str = constants.STATUS_NAMESPACE):
        super().__init__(namespace, gate)
        self.handlers[constants.CHECK_SECRET_EVENT] = self.handle_check_secret

    async def handle_check_secret(self, connection: Connection, args: Sequence[Any]):
        request = CheckSecretArgs.from_args(args)
        if self.gate.is_authorized(request.secret):
            status = constants.STATUS_CONFIGURED
        else:
            status = constants.STATUS_MISCONFIGURED
        listeners = list(self.listeners)
        logger.info(f"Reporting secret check to {len(listeners)} status listener(s)")
        results = await asyncio.gather(
            *(conn.send(self.namespace, constants.CHECK_SECRET_EVENT, status) for conn in listeners),
            return_exceptions=True,
        )
        for conn, result in zip(listeners, results):
            if isinstance(result, Exception):
                logger.warning(f"Error sending status to {conn}: {result}")


# namespace, room label, join event, update events
PRIVATE_MESSAGE_CHANNELS = [
    (constants.THREAD_NAMESPACE, "thread", "thread", [UpdateEvent("new private message")]),
    (constants.INBOX_NAMESPACE, "user", "user", [UpdateEvent("update pm inbox")]),
    (constants.NOTIFICATIONS_NAMESPACE, "user", "user", [UpdateEvent("update pm unread thread count")]),
    (
        constants.BROWSER_NOTIFICATION_NAMESPACE,
        "user",
        "user",
        [UpdateEvent("notify browser new message", forwards_payload=True)],
    ),
]


def build_default_channels(gate: SecretGate) -> Dict[str, BaseChannel]:
    channels: Dict[str, BaseChannel] = {}
    for namespace, room_label, join_event, update_events in PRIVATE_MESSAGE_CHANNELS:
        channels[namespace] = Channel(namespace, gate, join_event, update_events, room_label=room_label)
    status = StatusChannel(gate)
    channels[status.namespace] = status
    return channels
