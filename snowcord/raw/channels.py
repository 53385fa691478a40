from __future__ import annotations

import typing
import typing_extensions

from .users import User


class PermissionOverwrite(typing.TypedDict):
    id: str
    type: typing.Literal[0, 1]
    allow: str
    deny: str


ChannelType = typing.Literal[0, 1, 2, 3, 4]


class Channel(typing.TypedDict):
    id: str
    type: ChannelType
    guild_id: typing_extensions.NotRequired[str]
    name: typing_extensions.NotRequired[typing.Optional[str]]
    position: typing_extensions.NotRequired[int]
    parent_id: typing_extensions.NotRequired[typing.Optional[str]]
    permission_overwrites: typing_extensions.NotRequired[list[PermissionOverwrite]]
    topic: typing_extensions.NotRequired[typing.Optional[str]]
    nsfw: typing_extensions.NotRequired[bool]
    rate_limit_per_user: typing_extensions.NotRequired[int]
    last_message_id: typing_extensions.NotRequired[typing.Optional[str]]
    bitrate: typing_extensions.NotRequired[int]
    user_limit: typing_extensions.NotRequired[int]
    recipients: typing_extensions.NotRequired[list[User]]
    owner_id: typing_extensions.NotRequired[str]
    icon: typing_extensions.NotRequired[typing.Optional[str]]


class DataEditChannel(typing.TypedDict):
    name: typing_extensions.NotRequired[str]
    topic: typing_extensions.NotRequired[typing.Optional[str]]
    nsfw: typing_extensions.NotRequired[bool]
    position: typing_extensions.NotRequired[int]
    parent_id: typing_extensions.NotRequired[typing.Optional[str]]
    rate_limit_per_user: typing_extensions.NotRequired[int]
    permission_overwrites: typing_extensions.NotRequired[list[PermissionOverwrite]]


__all__ = (
    'PermissionOverwrite',
    'ChannelType',
    'Channel',
    'DataEditChannel',
)
