from pydantic import BaseModel, Field, StrictInt, StrictStr
from typing import Any, Dict, List, Optional, Sequence, Union

RoomKeyField = Union[StrictStr, StrictInt]


class Envelope(BaseModel):
    channel: str
    event: str
    args: List[Any] = Field(default_factory=list)


class JoinArgs(BaseModel):
    room: RoomKeyField
    secret: Any = None

    @classmethod
    def from_args(cls, args: Sequence[Any]) -> "JoinArgs":
        # (room, secret)
        return cls(room=_arg(args, 0), secret=_arg(args, 1))


class UpdateArgs(BaseModel):
    room: RoomKeyField
    secret: Any = None
    payload: Any = None

    @classmethod
    def from_args(cls, args: Sequence[Any], with_payload: bool = False) -> "UpdateArgs":
        # (room, secret) or (room, payload, secret)
        if with_payload:
            return cls(room=_arg(args, 0), payload=_arg(args, 1), secret=_arg(args, 2))
        return cls(room=_arg(args, 0), secret=_arg(args, 1))


class CheckSecretArgs(BaseModel):
    secret: Any = None

    @classmethod
    def from_args(cls, args: Sequence[Any]) -> "CheckSecretArgs":
        return cls(secret=_arg(args, 0))


def _arg(args: Sequence[Any], index: int) -> Any:
    return args[index] if len(args) > index else None


class PublishRequest(BaseModel):
    channel: str
    event: str
    room: RoomKeyField
    secret: Optional[str] = None
    payload: Optional[Any] = None


class PublishResponse(BaseModel):
    accepted: bool
    channel: str
    event: str


class HealthResponse(BaseModel):
    status: str
    scheme: str
    connections: int


class ChannelStats(BaseModel):
    namespace: str
    listeners: int
    rooms: int
    memberships: int


class StatsResponse(BaseModel):
    connections: int
    channels: Dict[str, ChannelStats]
