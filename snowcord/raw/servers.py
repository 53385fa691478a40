from __future__ import annotations

import typing
import typing_extensions

from .channels import Channel
from .emojis import CustomEmoji
from .users import User, PartialUser, Presence


class Role(typing.TypedDict):
    id: str
    name: str
    color: typing_extensions.NotRequired[int]
    hoist: typing_extensions.NotRequired[bool]
    position: typing_extensions.NotRequired[int]
    permissions: typing_extensions.NotRequired[str]
    managed: typing_extensions.NotRequired[bool]
    mentionable: typing_extensions.NotRequired[bool]


class DataRole(typing.TypedDict):
    name: typing_extensions.NotRequired[str]
    permissions: typing_extensions.NotRequired[str]
    color: typing_extensions.NotRequired[int]
    hoist: typing_extensions.NotRequired[bool]
    mentionable: typing_extensions.NotRequired[bool]


class Member(typing.TypedDict):
    user: User
    nick: typing_extensions.NotRequired[typing.Optional[str]]
    roles: typing_extensions.NotRequired[list[str]]
    joined_at: typing_extensions.NotRequired[str]


class InlineMember(typing.TypedDict):
    nick: typing_extensions.NotRequired[typing.Optional[str]]
    roles: typing_extensions.NotRequired[list[str]]


class Server(typing.TypedDict):
    id: str
    name: str
    owner_id: str
    region: typing_extensions.NotRequired[typing.Optional[str]]
    icon: typing_extensions.NotRequired[typing.Optional[str]]
    large: typing_extensions.NotRequired[bool]
    member_count: typing_extensions.NotRequired[int]
    unavailable: typing_extensions.NotRequired[bool]
    roles: typing_extensions.NotRequired[list[Role]]
    emojis: typing_extensions.NotRequired[list[CustomEmoji]]
    channels: typing_extensions.NotRequired[list[Channel]]
    members: typing_extensions.NotRequired[list[Member]]
    presences: typing_extensions.NotRequired[list[Presence]]


class UnavailableServer(typing.TypedDict):
    id: str
    unavailable: typing_extensions.NotRequired[bool]


class DataEditServer(typing.TypedDict):
    name: typing_extensions.NotRequired[str]
    region: typing_extensions.NotRequired[typing.Optional[str]]


class DataEditMember(typing.TypedDict):
    nick: typing_extensions.NotRequired[typing.Optional[str]]
    roles: typing_extensions.NotRequired[list[str]]


class ServerMember(Member):
    guild_id: str


class ServerMemberRemove(typing.TypedDict):
    guild_id: str
    user: PartialUser


class ServerMembersChunk(typing.TypedDict):
    guild_id: str
    members: list[Member]
    chunk_index: typing_extensions.NotRequired[int]
    chunk_count: typing_extensions.NotRequired[int]
    presences: typing_extensions.NotRequired[list[Presence]]
    nonce: typing_extensions.NotRequired[str]


class ServerRoleEvent(typing.TypedDict):
    guild_id: str
    role: Role


class ServerRoleDelete(typing.TypedDict):
    guild_id: str
    role_id: str


class ServerEmojisUpdate(typing.TypedDict):
    guild_id: str
    emojis: list[CustomEmoji]


__all__ = (
    'Role',
    'DataRole',
    'Member',
    'InlineMember',
    'Server',
    'UnavailableServer',
    'DataEditServer',
    'DataEditMember',
    'ServerMember',
    'ServerMemberRemove',
    'ServerMembersChunk',
    'ServerRoleEvent',
    'ServerRoleDelete',
    'ServerEmojisUpdate',
)
