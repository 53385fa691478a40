from __future__ import annotations

import typing
import typing_extensions


class User(typing.TypedDict):
    id: str
    username: str
    discriminator: typing_extensions.NotRequired[str]
    avatar: typing_extensions.NotRequired[typing.Optional[str]]
    bot: typing_extensions.NotRequired[bool]


class PartialUser(typing.TypedDict):
    id: str
    username: typing_extensions.NotRequired[str]
    discriminator: typing_extensions.NotRequired[str]
    avatar: typing_extensions.NotRequired[typing.Optional[str]]
    bot: typing_extensions.NotRequired[bool]


class Activity(typing.TypedDict):
    name: str
    type: int
    url: typing_extensions.NotRequired[typing.Optional[str]]


UserStatus = typing.Literal['online', 'idle', 'dnd', 'invisible', 'offline']


class Presence(typing.TypedDict):
    user: PartialUser
    guild_id: typing_extensions.NotRequired[str]
    status: typing_extensions.NotRequired[UserStatus]
    activities: typing_extensions.NotRequired[list[Activity]]
    game: typing_extensions.NotRequired[typing.Optional[Activity]]


__all__ = (
    'User',
    'PartialUser',
    'Activity',
    'UserStatus',
    'Presence',
)
