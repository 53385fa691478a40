from __future__ import annotations

import typing
import typing_extensions

from .channels import Channel
from .servers import UnavailableServer
from .users import Activity, User, UserStatus


class Envelope(typing.TypedDict):
    op: int
    d: typing.Any
    s: typing_extensions.NotRequired[typing.Optional[int]]
    t: typing_extensions.NotRequired[typing.Optional[str]]


class Hello(typing.TypedDict):
    heartbeat_interval: int


class IdentifyProperties(typing.TypedDict):
    os: str
    browser: str
    device: str


class PresenceUpdate(typing.TypedDict):
    since: typing.Optional[int]
    activities: list[Activity]
    status: UserStatus
    afk: bool


class Identify(typing.TypedDict):
    token: str
    properties: IdentifyProperties
    compress: bool
    large_threshold: int
    shard: list[int]
    intents: int
    presence: typing_extensions.NotRequired[PresenceUpdate]


class Resume(typing.TypedDict):
    token: str
    session_id: str
    seq: typing.Optional[int]


class RequestMembers(typing.TypedDict):
    guild_id: str
    query: str
    limit: int
    nonce: typing_extensions.NotRequired[str]


class Ready(typing.TypedDict):
    v: int
    user: User
    guilds: list[UnavailableServer]
    session_id: str
    resume_gateway_url: typing_extensions.NotRequired[str]
    private_channels: typing_extensions.NotRequired[list[Channel]]
    shard: typing_extensions.NotRequired[list[int]]


class SessionStartLimit(typing.TypedDict):
    total: int
    remaining: int
    reset_after: int
    max_concurrency: int


class GatewayBot(typing.TypedDict):
    url: str
    shards: int
    session_start_limit: SessionStartLimit


__all__ = (
    'Envelope',
    'Hello',
    'IdentifyProperties',
    'PresenceUpdate',
    'Identify',
    'Resume',
    'RequestMembers',
    'Ready',
    'SessionStartLimit',
    'GatewayBot',
)
