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

from .base import Base
from .core import UNDEFINED, UndefinedOr, SnowflakeOr, resolve_id
from .enums import ChannelType, OverwriteType
from .errors import NoData
from .flags import Permissions
from .permissions import PermissionOverwrite, calculate_permissions

if typing.TYPE_CHECKING:
    from collections.abc import Mapping

    from .message import Embed, Message, MessageHistory
    from .server import Server
    from .state import State
    from .user import User


class Textable:
    """A mixin for channels that messages can be sent to."""

    __slots__ = ()

    id: int
    state: State

    def get_message(self, message_id: int, /) -> typing.Optional[Message]:
        """Retrieves a channel message from cache.

        Parameters
        ----------
        message_id: :class:`int`
            The message ID.

        Returns
        -------
        Optional[:class:`.Message`]
            The message or ``None`` if not found.
        """
        message = self.state.cache.messages.get(message_id)
        if message is None or message.channel_id != self.id:
            return None
        return message

    @property
    def messages(self) -> list[Message]:
        """List[:class:`.Message`]: The cached messages of this channel, oldest first."""
        return self.state.cache.messages.messages_of(self.id)

    async def send(
        self,
        content: typing.Optional[str] = None,
        *,
        embed: typing.Optional[Embed] = None,
        tts: bool = False,
        nonce: typing.Optional[str] = None,
    ) -> Message:
        """|coro|

        Sends a message to the channel.

        You must have :attr:`~Permissions.send_messages` to do this.

        Parameters
        ----------
        content: Optional[:class:`str`]
            The message content.
        embed: Optional[:class:`.Embed`]
            The embed to send with message.
        tts: :class:`bool`
            Whether the message should be read aloud.
        nonce: Optional[:class:`str`]
            The message nonce, echoed back in ``MESSAGE_CREATE``.

        Raises
        ------
        :class:`Forbidden`
            You do not have permissions to send messages.
        :class:`HTTPException`
            Sending the message failed.

        Returns
        -------
        :class:`.Message`
            The message that was sent.
        """
        return await self.state.http.send_message(self.id, content, embed=embed, tts=tts, nonce=nonce)

    async def fetch_message(self, message: SnowflakeOr[Message], /) -> Message:
        """|coro|

        Retrieves a message from the channel.

        You must have :attr:`~Permissions.read_message_history` to do this.

        Parameters
        ----------
        message: SnowflakeOr[:class:`.Message`]
            The message to retrieve.

        Raises
        ------
        :class:`NotFound`
            The message was not found.

        Returns
        -------
        :class:`.Message`
            The retrieved message.
        """
        return await self.state.http.fetch_message(self.id, resolve_id(message))

    async def history(
        self,
        *,
        limit: int = 50,
        before: typing.Optional[SnowflakeOr[Message]] = None,
        after: typing.Optional[SnowflakeOr[Message]] = None,
    ) -> MessageHistory:
        """|coro|

        Retrieves a page of the channel's message history.

        The messages are stored into the message cache, and the returned view drops
        messages once they are deleted or evicted. Call :meth:`.MessageHistory.close`
        when done with it.

        Parameters
        ----------
        limit: :class:`int`
            The maximum number of messages to get. Must be between 1 and 100.
        before: Optional[SnowflakeOr[:class:`.Message`]]
            The message before which messages should be fetched.
        after: Optional[SnowflakeOr[:class:`.Message`]]
            The message after which messages should be fetched.

        Returns
        -------
        :class:`.MessageHistory`
            The history view.
        """
        from .message import MessageHistory

        messages = await self.state.http.fetch_messages(
            self.id,
            limit=limit,
            before=None if before is None else resolve_id(before),
            after=None if after is None else resolve_id(after),
        )
        history = MessageHistory(self.state, self.id, messages)
        self.state.cache.messages.add_observer(history)
        return history

    async def trigger_typing(self) -> None:
        """|coro|

        Triggers the typing indicator in the channel.
        """
        return await self.state.http.trigger_typing(self.id)


@define(slots=True, eq=False)
class BaseChannel(Base):
    """Represents a channel on the platform."""

    channel_type: typing.ClassVar[ChannelType]

    @property
    def type(self) -> ChannelType:
        """:class:`.ChannelType`: The channel's type."""
        return self.channel_type

    def as_text_channel(self) -> typing.Optional[ServerTextChannel]:
        """Optional[:class:`.ServerTextChannel`]: This channel as text channel, or ``None`` if it is not."""
        return self if isinstance(self, ServerTextChannel) else None

    def as_voice_channel(self) -> typing.Optional[ServerVoiceChannel]:
        return self if isinstance(self, ServerVoiceChannel) else None

    def as_category(self) -> typing.Optional[ChannelCategory]:
        return self if isinstance(self, ChannelCategory) else None

    def as_private_channel(self) -> typing.Optional[PrivateChannel]:
        return self if isinstance(self, PrivateChannel) else None

    def as_group_channel(self) -> typing.Optional[GroupChannel]:
        return self if isinstance(self, GroupChannel) else None

    def as_server_channel(self) -> typing.Optional[ServerChannel]:
        """Optional[:class:`.ServerChannel`]: This channel as server channel, or ``None`` if it is private or group."""
        return self if isinstance(self, ServerChannel) else None

    def as_textable(self) -> typing.Optional[TextableChannel]:
        """Optional[Union[:class:`.ServerTextChannel`, :class:`.PrivateChannel`, :class:`.GroupChannel`]]: This
        channel, if messages can be sent to it.
        """
        return self if isinstance(self, Textable) else None  # type: ignore

    async def delete(self) -> None:
        """|coro|

        Deletes a server channel, or closes a private or group channel.

        Raises
        ------
        :class:`Forbidden`
            You do not have permissions to delete the channel.
        :class:`HTTPException`
            Deleting the channel failed.
        """
        return await self.state.http.delete_channel(self.id)


@define(slots=True, eq=False)
class ServerChannel(BaseChannel):
    """Represents a channel that belongs to a :class:`.Server`."""

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID the channel belongs to."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The channel's name."""

    position: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The channel's sorting position."""

    parent_id: typing.Optional[int] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`int`]: The category's ID the channel is in."""

    overwrites: dict[tuple[OverwriteType, int], PermissionOverwrite] = field(repr=False, factory=dict, kw_only=True)
    """Dict[Tuple[:class:`.OverwriteType`, :class:`int`], :class:`.PermissionOverwrite`]: The permission overwrite table."""

    def __str__(self) -> str:
        return self.name

    @property
    def mention(self) -> str:
        """:class:`str`: The channel mention."""
        return f'<#{self.id}>'

    @property
    def server(self) -> typing.Optional[Server]:
        """Optional[:class:`.Server`]: The server the channel belongs to."""
        return self.state.cache.get_server(self.server_id)

    @property
    def category(self) -> typing.Optional[ChannelCategory]:
        """Optional[:class:`.ChannelCategory`]: The category the channel is in."""
        if self.parent_id is None:
            return None
        channel = self.state.cache.get_channel(self.parent_id)
        return channel if isinstance(channel, ChannelCategory) else None

    def overwrite_for(self, subject_type: OverwriteType, subject_id: int, /) -> PermissionOverwrite:
        """:class:`.PermissionOverwrite`: Returns the overwrite for given role or member. Returns an empty overwrite if none."""
        return self.overwrites.get((subject_type, subject_id)) or PermissionOverwrite()

    def permissions_for(self, user: SnowflakeOr[User], /) -> Permissions:
        """Calculates permissions a member has in this channel.

        Overwrites are applied in order: ``@everyone`` overwrite, role overwrites
        ascending by role position (so the highest role wins), and the member's own
        overwrite last. Server owner and administrators have all permissions.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The member to calculate permissions for.

        Raises
        ------
        :class:`NoData`
            The server is not cached.

        Returns
        -------
        :class:`.Permissions`
            The calculated permissions.
        """
        user_id = resolve_id(user)
        server = self.server
        if server is None:
            raise NoData(self.server_id, 'server')

        if user_id == server.owner_id:
            return Permissions.all()

        base = 0
        default = server.default_role
        if default is not None:
            base |= default.raw_permissions
        roles = server.roles_of(user_id)
        for role in roles:
            base |= role.raw_permissions

        overwrites = []
        everyone = self.overwrites.get((OverwriteType.role, server.id))
        if everyone is not None:
            overwrites.append(everyone)
        for role in roles:
            overwrite = self.overwrites.get((OverwriteType.role, role.id))
            if overwrite is not None:
                overwrites.append(overwrite)
        own = self.overwrites.get((OverwriteType.member, user_id))
        if own is not None:
            overwrites.append(own)

        return calculate_permissions(base, overwrites=overwrites)

    async def edit(
        self,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        position: UndefinedOr[int] = UNDEFINED,
        parent: UndefinedOr[typing.Optional[SnowflakeOr[ChannelCategory]]] = UNDEFINED,
        topic: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        nsfw: UndefinedOr[bool] = UNDEFINED,
        slowmode: UndefinedOr[int] = UNDEFINED,
        bitrate: UndefinedOr[int] = UNDEFINED,
        user_limit: UndefinedOr[int] = UNDEFINED,
    ) -> ServerChannel:
        """|coro|

        Edits the channel.

        You must have :attr:`~Permissions.manage_channels` to do this.

        Parameters
        ----------
        name: UndefinedOr[:class:`str`]
            The new channel name.
        position: UndefinedOr[:class:`int`]
            The new channel position.
        parent: UndefinedOr[Optional[SnowflakeOr[:class:`.ChannelCategory`]]]
            The new category. ``None`` moves the channel out of its category.
        topic: UndefinedOr[Optional[:class:`str`]]
            The new topic. Only applicable to text channels.
        nsfw: UndefinedOr[:class:`bool`]
            Whether the channel is NSFW. Only applicable to text channels.
        slowmode: UndefinedOr[:class:`int`]
            The slowmode delay in seconds. Only applicable to text channels.
        bitrate: UndefinedOr[:class:`int`]
            The new bitrate. Only applicable to voice channels.
        user_limit: UndefinedOr[:class:`int`]
            The new user limit. Only applicable to voice channels.

        Returns
        -------
        :class:`.ServerChannel`
            The updated channel.
        """
        channel = await self.state.http.edit_channel(
            self.id,
            name=name,
            position=position,
            parent=parent if parent is UNDEFINED or parent is None else resolve_id(parent),
            topic=topic,
            nsfw=nsfw,
            slowmode=slowmode,
            bitrate=bitrate,
            user_limit=user_limit,
        )
        return channel  # type: ignore


@define(slots=True, eq=False)
class ServerTextChannel(ServerChannel, Textable):
    """Represents a text channel in a server."""

    channel_type: typing.ClassVar[ChannelType] = ChannelType.text

    topic: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`str`]: The channel's topic."""

    nsfw: bool = field(repr=False, default=False, kw_only=True)
    """:class:`bool`: Whether the channel is marked as NSFW."""

    slowmode: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The number of seconds a member must wait between sending messages."""

    last_message_id: typing.Optional[int] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`int`]: The last message ID sent in the channel."""


@define(slots=True, eq=False)
class ServerVoiceChannel(ServerChannel):
    """Represents a voice channel in a server."""

    channel_type: typing.ClassVar[ChannelType] = ChannelType.voice

    bitrate: int = field(repr=False, default=64000, kw_only=True)
    """:class:`int`: The channel's bitrate in bits per second."""

    user_limit: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The maximum number of users that can be connected. ``0`` means no limit."""


@define(slots=True, eq=False)
class ChannelCategory(ServerChannel):
    """Represents a category that groups server channels."""

    channel_type: typing.ClassVar[ChannelType] = ChannelType.category

    child_ids: list[int] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`int`]: The IDs of channels in this category, ordered by position. This is maintained by the cache."""

    __local_fields__: typing.ClassVar[tuple[str, ...]] = ('child_ids',)

    @property
    def children(self) -> list[ServerChannel]:
        """List[:class:`.ServerChannel`]: The channels in this category."""
        server = self.server
        if server is None:
            return []
        return [server.channels[channel_id] for channel_id in self.child_ids if channel_id in server.channels]

    def _add_child(self, channel_id: int, channels: Mapping[int, ServerChannel], /) -> None:
        if channel_id not in self.child_ids:
            self.child_ids.append(channel_id)

        def key(child_id: int) -> tuple[int, int]:
            child = channels.get(child_id)
            return (0 if child is None else child.position, child_id)

        self.child_ids.sort(key=key)

    def _remove_child(self, channel_id: int, /) -> bool:
        try:
            self.child_ids.remove(channel_id)
        except ValueError:
            return False
        return True


@define(slots=True, eq=False)
class PrivateChannel(BaseChannel, Textable):
    """Represents a direct message channel with another user."""

    channel_type: typing.ClassVar[ChannelType] = ChannelType.private

    recipient_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The recipient's ID."""

    last_message_id: typing.Optional[int] = field(repr=False, default=None, kw_only=True)

    @property
    def recipient(self) -> typing.Optional[User]:
        """Optional[:class:`.User`]: The recipient."""
        return self.state.cache.get_user(self.recipient_id)


@define(slots=True, eq=False)
class GroupChannel(BaseChannel, Textable):
    """Represents a group channel between multiple users."""

    channel_type: typing.ClassVar[ChannelType] = ChannelType.group

    name: typing.Optional[str] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`str`]: The group's name."""

    owner_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The user's ID who owns this group."""

    recipient_ids: list[int] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`int`]: The IDs of recipients, excluding the current user."""

    icon_id: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    last_message_id: typing.Optional[int] = field(repr=False, default=None, kw_only=True)

    @property
    def recipients(self) -> list[User]:
        """List[:class:`.User`]: The cached recipients."""
        cache = self.state.cache
        return [user for user in map(cache.get_user, self.recipient_ids) if user is not None]


TextableChannel = typing.Union[ServerTextChannel, PrivateChannel, GroupChannel]

Channel = typing.Union[
    ServerTextChannel,
    ServerVoiceChannel,
    ChannelCategory,
    PrivateChannel,
    GroupChannel,
]

__all__ = (
    'Textable',
    'BaseChannel',
    'ServerChannel',
    'ServerTextChannel',
    'ServerVoiceChannel',
    'ChannelCategory',
    'PrivateChannel',
    'GroupChannel',
    'TextableChannel',
    'Channel',
)
