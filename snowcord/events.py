"""
The MIT License (MIT)

Copyright (c) 2024-present MCausc78

Permission is hereby granted, free of charge, to any person obtaining a
copy of this software and associated documentation files (the "Software"),
to deal in the Software without restriction, including without limitation
the rights to use, copy, modify, merge, publish, distribute, sublicense,
and/or sell copies of the Software, and to permit persons to whom the
Software is furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in
all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS
OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING
FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER
DEALINGS IN THE SOFTWARE.
"""

from __future__ import annotations

import typing

from attrs import define, field

if typing.TYPE_CHECKING:
    from datetime import datetime

    import aiohttp

    from .channel import Channel, ServerChannel, TextableChannel
    from .emoji import CustomEmoji, PartialEmoji
    from .enums import ShardState
    from .message import Message, PartialMessage, Reaction
    from .server import Role, Server
    from .shard import Shard
    from .user import OwnUser, PartialUser, User


@define(slots=True)
class BaseEvent:
    """Base class for all events."""

    event_name: typing.ClassVar[str] = 'event'

    def scope_ids(self) -> tuple[int, ...]:
        """Tuple[:class:`int`, ...]: The IDs of entities this event is about.

        Scoped subscriptions only receive events whose scope IDs contain their scope.
        """
        return ()


@define(slots=True)
class ShardEvent(BaseEvent):
    """Base class for events arrived over WebSocket."""

    shard: Shard = field(repr=True, kw_only=True)
    """:class:`.Shard`: The shard the event arrived on."""


@define(slots=True)
class ShardStateChangeEvent(ShardEvent):
    """Dispatched when a shard moves to another lifecycle phase."""

    event_name: typing.ClassVar[typing.Literal['shard_state_change']] = 'shard_state_change'

    old: ShardState = field(repr=True, kw_only=True)
    """:class:`.ShardState`: The previous phase."""

    new: ShardState = field(repr=True, kw_only=True)
    """:class:`.ShardState`: The new phase."""

    error: typing.Optional[BaseException] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`BaseException`]: The error that caused the transition. Set when shard fails fatally."""


@define(slots=True)
class BeforeConnectEvent(ShardEvent):
    """Dispatched before connecting to the gateway."""

    event_name: typing.ClassVar[typing.Literal['before_connect']] = 'before_connect'


@define(slots=True)
class AfterConnectEvent(ShardEvent):
    """Dispatched after connecting to the gateway."""

    event_name: typing.ClassVar[typing.Literal['after_connect']] = 'after_connect'

    socket: aiohttp.ClientWebSocketResponse = field(repr=True, kw_only=True)
    """:class:`aiohttp.ClientWebSocketResponse`: The connected WebSocket."""


@define(slots=True)
class ReadyEvent(ShardEvent):
    """Dispatched when initial state is available.

    .. warning::
        This event may be dispatched multiple times due to periodic reconnects.
    """

    event_name: typing.ClassVar[typing.Literal['ready']] = 'ready'

    me: OwnUser = field(repr=True, kw_only=True)
    """:class:`.OwnUser`: The connected user."""

    session_id: str = field(repr=True, kw_only=True)
    """:class:`str`: The session ID."""

    unavailable_server_ids: list[int] = field(repr=False, kw_only=True)
    """List[:class:`int`]: The IDs of servers that are going to be sent in ``GUILD_CREATE`` later."""


@define(slots=True)
class ResumedEvent(ShardEvent):
    """Dispatched when shard resumed session after reconnecting."""

    event_name: typing.ClassVar[typing.Literal['resumed']] = 'resumed'


@define(slots=True)
class ServerJoinEvent(ShardEvent):
    """Dispatched when the connected user joins a server, or a server is sent after ``READY`` for first time."""

    event_name: typing.ClassVar[typing.Literal['server_join']] = 'server_join'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The joined server."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id,)


@define(slots=True)
class ServerBecomesAvailableEvent(ShardEvent):
    """Dispatched when a server that was unavailable becomes available."""

    event_name: typing.ClassVar[typing.Literal['server_becomes_available']] = 'server_becomes_available'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id,)


@define(slots=True)
class ServerBecomesUnavailableEvent(ShardEvent):
    """Dispatched when a server becomes unavailable due to outage. The server is removed from cache."""

    event_name: typing.ClassVar[typing.Literal['server_becomes_unavailable']] = 'server_becomes_unavailable'

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID."""

    server: typing.Optional[Server] = field(repr=False, kw_only=True)
    """Optional[:class:`.Server`]: The server as it was cached."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server_id,)


@define(slots=True)
class ServerUpdateEvent(ShardEvent):
    """Dispatched when server details are changed."""

    event_name: typing.ClassVar[typing.Literal['server_update']] = 'server_update'

    old: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server as it was before update."""

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The updated server."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id,)


@define(slots=True)
class ServerLeaveEvent(ShardEvent):
    """Dispatched when the connected user left, was kicked or banned from a server."""

    event_name: typing.ClassVar[typing.Literal['server_leave']] = 'server_leave'

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID."""

    server: typing.Optional[Server] = field(repr=False, kw_only=True)
    """Optional[:class:`.Server`]: The server as it was cached."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server_id,)


@define(slots=True)
class MemberJoinEvent(ShardEvent):
    """Dispatched when a user joins a server."""

    event_name: typing.ClassVar[typing.Literal['member_join']] = 'member_join'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server."""

    user: User = field(repr=True, kw_only=True)
    """:class:`.User`: The joined user."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id, self.user.id)


@define(slots=True)
class MemberUpdateEvent(ShardEvent):
    """Dispatched when member's nickname or roles change."""

    event_name: typing.ClassVar[typing.Literal['member_update']] = 'member_update'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server."""

    user: User = field(repr=True, kw_only=True)
    """:class:`.User`: The updated member's user."""

    old_nick: typing.Optional[str] = field(repr=True, kw_only=True)
    """Optional[:class:`str`]: The nickname before update."""

    old_role_ids: set[int] = field(repr=False, kw_only=True)
    """Set[:class:`int`]: The role IDs before update."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id, self.user.id)


@define(slots=True)
class MemberRemoveEvent(ShardEvent):
    """Dispatched when a user leaves, is kicked or banned from a server.

    This is always dispatched, even if server or user are not cached.
    """

    event_name: typing.ClassVar[typing.Literal['member_remove']] = 'member_remove'

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID."""

    user: typing.Union[User, PartialUser] = field(repr=True, kw_only=True)
    """Union[:class:`.User`, :class:`.PartialUser`]: The removed user. Partial if user was not cached."""

    @property
    def server(self) -> typing.Optional[Server]:
        return self.shard.state.cache.get_server(self.server_id)

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server_id, self.user.id)


@define(slots=True)
class MembersChunkEvent(ShardEvent):
    """Dispatched when the gateway sent a chunk of server members, as requested by :meth:`Shard.request_members`."""

    event_name: typing.ClassVar[typing.Literal['members_chunk']] = 'members_chunk'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server."""

    users: list[User] = field(repr=False, kw_only=True)
    """List[:class:`.User`]: The users in this chunk."""

    chunk_index: int = field(repr=True, default=0, kw_only=True)
    chunk_count: int = field(repr=True, default=1, kw_only=True)

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id,)


@define(slots=True)
class RoleCreateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['role_create']] = 'role_create'

    role: Role = field(repr=True, kw_only=True)
    """:class:`.Role`: The created role."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.role.server_id, self.role.id)


@define(slots=True)
class RoleUpdateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['role_update']] = 'role_update'

    old: Role = field(repr=True, kw_only=True)
    """:class:`.Role`: The role as it was before update."""

    role: Role = field(repr=True, kw_only=True)
    """:class:`.Role`: The updated role."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.role.server_id, self.role.id)


@define(slots=True)
class RoleDeleteEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['role_delete']] = 'role_delete'

    role: Role = field(repr=True, kw_only=True)
    """:class:`.Role`: The deleted role."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.role.server_id, self.role.id)


@define(slots=True)
class EmojisUpdateEvent(ShardEvent):
    """Dispatched when server emojis were created, updated or deleted."""

    event_name: typing.ClassVar[typing.Literal['emojis_update']] = 'emojis_update'

    server: Server = field(repr=True, kw_only=True)
    """:class:`.Server`: The server."""

    old: list[CustomEmoji] = field(repr=False, kw_only=True)
    """List[:class:`.CustomEmoji`]: The emojis before update."""

    emojis: list[CustomEmoji] = field(repr=False, kw_only=True)
    """List[:class:`.CustomEmoji`]: The emojis after update."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.server.id,)


def _channel_scopes(channel: Channel, /) -> tuple[int, ...]:
    server_id = getattr(channel, 'server_id', None)
    parent_id = getattr(channel, 'parent_id', None)
    return tuple(i for i in (channel.id, server_id, parent_id) if i is not None)


@define(slots=True)
class ChannelCreateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['channel_create']] = 'channel_create'

    channel: Channel = field(repr=True, kw_only=True)
    """:class:`.Channel`: The created channel."""

    def scope_ids(self) -> tuple[int, ...]:
        return _channel_scopes(self.channel)


@define(slots=True)
class ChannelUpdateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['channel_update']] = 'channel_update'

    old: Channel = field(repr=True, kw_only=True)
    """:class:`.Channel`: The channel as it was before update."""

    channel: Channel = field(repr=True, kw_only=True)
    """:class:`.Channel`: The updated channel."""

    def scope_ids(self) -> tuple[int, ...]:
        scopes = _channel_scopes(self.channel)
        old_parent_id = getattr(self.old, 'parent_id', None)
        if old_parent_id is not None and old_parent_id not in scopes:
            scopes += (old_parent_id,)
        return scopes


@define(slots=True)
class ChannelDeleteEvent(ShardEvent):
    """Dispatched when a channel is deleted.

    Scoped listeners of the channel, its server and its category all receive this event,
    but a listener receives it only once.
    """

    event_name: typing.ClassVar[typing.Literal['channel_delete']] = 'channel_delete'

    channel: Channel = field(repr=True, kw_only=True)
    """:class:`.Channel`: The deleted channel."""

    def scope_ids(self) -> tuple[int, ...]:
        return _channel_scopes(self.channel)


@define(slots=True)
class MessageCreateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['message_create']] = 'message_create'

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The received message."""

    @property
    def channel(self) -> typing.Optional[TextableChannel]:
        return self.message.channel  # type: ignore

    def scope_ids(self) -> tuple[int, ...]:
        message = self.message
        scopes = (message.id, message.channel_id, message.author.id)
        if message.server_id is not None:
            scopes += (message.server_id,)
        return scopes


@define(slots=True)
class MessageUpdateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['message_update']] = 'message_update'

    old: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The message as it was before update."""

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The updated message."""

    data: PartialMessage = field(repr=False, kw_only=True)
    """:class:`.PartialMessage`: The changed data."""

    def scope_ids(self) -> tuple[int, ...]:
        message = self.message
        scopes = (message.id, message.channel_id)
        if message.server_id is not None:
            scopes += (message.server_id,)
        return scopes


@define(slots=True)
class MessageDeleteEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['message_delete']] = 'message_delete'

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The deleted message, as it was cached."""

    def scope_ids(self) -> tuple[int, ...]:
        message = self.message
        scopes = (message.id, message.channel_id)
        if message.server_id is not None:
            scopes += (message.server_id,)
        return scopes


@define(slots=True)
class MessageDeleteBulkEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['message_delete_bulk']] = 'message_delete_bulk'

    channel_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The channel's ID."""

    messages: list[Message] = field(repr=False, kw_only=True)
    """List[:class:`.Message`]: The deleted messages that were cached."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.channel_id,)


@define(slots=True)
class ReactionAddEvent(ShardEvent):
    """Dispatched when someone reacts to a cached message."""

    event_name: typing.ClassVar[typing.Literal['reaction_add']] = 'reaction_add'

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The message."""

    user_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The ID of user who reacted."""

    emoji: PartialEmoji = field(repr=True, kw_only=True)
    """:class:`.PartialEmoji`: The emoji reacted with."""

    reaction: Reaction = field(repr=False, kw_only=True)
    """:class:`.Reaction`: The reaction after update."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.message.id, self.message.channel_id, self.user_id)


@define(slots=True)
class ReactionRemoveEvent(ShardEvent):
    """Dispatched when someone removes reaction from a cached message."""

    event_name: typing.ClassVar[typing.Literal['reaction_remove']] = 'reaction_remove'

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The message."""

    user_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The ID of user who removed reaction."""

    emoji: PartialEmoji = field(repr=True, kw_only=True)
    """:class:`.PartialEmoji`: The emoji."""

    reaction: Reaction = field(repr=False, kw_only=True)
    """:class:`.Reaction`: The reaction after update. Its count may be zero."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.message.id, self.message.channel_id, self.user_id)


@define(slots=True)
class ReactionRemoveAllEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['reaction_remove_all']] = 'reaction_remove_all'

    message: Message = field(repr=True, kw_only=True)
    """:class:`.Message`: The message."""

    reactions: list[Reaction] = field(repr=False, kw_only=True)
    """List[:class:`.Reaction`]: The removed reactions."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.message.id, self.message.channel_id)


@define(slots=True)
class PresenceUpdateEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['presence_update']] = 'presence_update'

    old: User = field(repr=True, kw_only=True)
    """:class:`.User`: The user as it was before update."""

    user: User = field(repr=True, kw_only=True)
    """:class:`.User`: The updated user."""

    server_id: typing.Optional[int] = field(repr=True, kw_only=True)
    """Optional[:class:`int`]: The server's ID the presence was received for."""

    def scope_ids(self) -> tuple[int, ...]:
        if self.server_id is None:
            return (self.user.id,)
        return (self.user.id, self.server_id)


@define(slots=True)
class UserUpdateEvent(ShardEvent):
    """Dispatched when the connected user is updated."""

    event_name: typing.ClassVar[typing.Literal['user_update']] = 'user_update'

    old: OwnUser = field(repr=True, kw_only=True)
    """:class:`.OwnUser`: The user as it was before update."""

    user: OwnUser = field(repr=True, kw_only=True)
    """:class:`.OwnUser`: The updated user."""

    def scope_ids(self) -> tuple[int, ...]:
        return (self.user.id,)


@define(slots=True)
class TypingStartEvent(ShardEvent):
    event_name: typing.ClassVar[typing.Literal['typing_start']] = 'typing_start'

    channel: TextableChannel = field(repr=True, kw_only=True)
    """:class:`.TextableChannel`: The channel the user started typing in."""

    user: User = field(repr=True, kw_only=True)
    """:class:`.User`: The user who started typing."""

    started_at: datetime = field(repr=True, kw_only=True)
    """:class:`~datetime.datetime`: When the user started typing."""

    def scope_ids(self) -> tuple[int, ...]:
        return _channel_scopes(self.channel) + (self.user.id,)


__all__ = (
    'BaseEvent',
    'ShardEvent',
    'ShardStateChangeEvent',
    'BeforeConnectEvent',
    'AfterConnectEvent',
    'ReadyEvent',
    'ResumedEvent',
    'ServerJoinEvent',
    'ServerBecomesAvailableEvent',
    'ServerBecomesUnavailableEvent',
    'ServerUpdateEvent',
    'ServerLeaveEvent',
    'MemberJoinEvent',
    'MemberUpdateEvent',
    'MemberRemoveEvent',
    'MembersChunkEvent',
    'RoleCreateEvent',
    'RoleUpdateEvent',
    'RoleDeleteEvent',
    'EmojisUpdateEvent',
    'ChannelCreateEvent',
    'ChannelUpdateEvent',
    'ChannelDeleteEvent',
    'MessageCreateEvent',
    'MessageUpdateEvent',
    'MessageDeleteEvent',
    'MessageDeleteBulkEvent',
    'ReactionAddEvent',
    'ReactionRemoveEvent',
    'ReactionRemoveAllEvent',
    'PresenceUpdateEvent',
    'UserUpdateEvent',
    'TypingStartEvent',
)
