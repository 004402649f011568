from typing import Any, Dict, Optional, Sequence, Set

import constants
from auth import SecretGate
from channels import BaseChannel, Channel, build_default_channels
from connection import Connection
from exceptions import UnknownChannelError
from logging_config import get_logger
from registry import RoomKey
from settings import RelaySettings

logger = get_logger(__name__)


class RelayServer:
    """Routes client events to channels and owns every connection's lifecycle.

    A disconnect is handled here rather than per channel: the connection is
    marked closed first, so no in-flight fan-out can reach it, and then
    removed from every room of every channel.
    """

    def __init__(self, settings: RelaySettings, channels: Optional[Dict[str, BaseChannel]] = None):
        self.settings = settings
        self.gate = SecretGate(settings.service_key)
        self.channels: Dict[str, BaseChannel] = channels if channels is not None else build_default_channels(self.gate)
        self.connections: Set[Connection] = set()
        logger.info(f"Relay initialized with channels: {', '.join(self.channels)}")

    def get_channel(self, namespace: str) -> BaseChannel:
        channel = self.channels.get(namespace)
        if channel is None:
            raise UnknownChannelError(namespace)
        return channel

    def connect(self, connection: Connection):
        self.connections.add(connection)
        logger.info(f"{connection} connected ({len(self.connections)} open)")

    def attach(self, connection: Connection, namespace: str) -> bool:
        channel = self.channels.get(namespace)
        if channel is None:
            logger.warning(f"{connection} tried to connect to unknown namespace {namespace}")
            return False
        channel.attach(connection)
        return True

    def detach(self, connection: Connection, namespace: str):
        channel = self.channels.get(namespace)
        if channel is None:
            return
        channel.detach(connection)

    async def dispatch(self, connection: Connection, namespace: str, event: str, args: Sequence[Any]) -> bool:
        if connection.closed:
            logger.debug(f"Ignoring '{event}' from closed {connection}")
            return False
        channel = self.channels.get(namespace)
        if channel is None:
            logger.warning(f"Ignoring '{event}' for unknown namespace {namespace} from {connection}")
            return False
        if event == constants.CONNECT_EVENT:
            channel.attach(connection)
            await connection.send(namespace, constants.CONNECT_EVENT)
            return True
        if event == constants.DISCONNECT_EVENT:
            self.detach(connection, namespace)
            return True
        return await channel.dispatch(connection, event, args)

    def disconnect(self, connection: Connection):
        connection.close()
        for channel in self.channels.values():
            channel.detach(connection)
        self.connections.discard(connection)
        logger.info(f"{connection} disconnected ({len(self.connections)} open)")

    async def publish(self, namespace: str, event: str, room: RoomKey, secret: Any, payload: Any = None) -> int:
        channel = self.get_channel(namespace)
        if not isinstance(channel, Channel):
            raise UnknownChannelError(namespace)
        return await channel.publish(event, room, secret, payload)

    def stats(self) -> Dict[str, Dict[str, int]]:
        return {namespace: channel.stats() for namespace, channel in self.channels.items()}
