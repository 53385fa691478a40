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

from datetime import datetime
import typing

from attrs import define, field

from .base import Base
from .core import UNDEFINED, UndefinedOr, SnowflakeOr, resolve_id
from .emoji import PartialEmoji, ResolvableEmoji, resolve_emoji

if typing.TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from . import raw
    from .channel import Channel
    from .server import Server
    from .state import State
    from .user import User


@define(slots=True)
class Attachment:
    """Represents a file attached to a message."""

    id: int = field(repr=True, kw_only=True)
    """:class:`int`: The attachment's ID."""

    filename: str = field(repr=True, kw_only=True)
    """:class:`str`: The attachment's filename."""

    size: int = field(repr=True, kw_only=True)
    """:class:`int`: The attachment's size in bytes."""

    url: str = field(repr=False, kw_only=True)
    proxy_url: str = field(repr=False, kw_only=True)
    width: typing.Optional[int] = field(repr=False, default=None, kw_only=True)
    height: typing.Optional[int] = field(repr=False, default=None, kw_only=True)


@define(slots=True)
class EmbedField:
    name: str = field(repr=True, kw_only=True)
    value: str = field(repr=True, kw_only=True)
    inline: bool = field(repr=True, default=False, kw_only=True)


@define(slots=True)
class Embed:
    """Represents a rich embed attached to a message."""

    title: typing.Optional[str] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`str`]: The embed's title."""

    description: typing.Optional[str] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`str`]: The embed's description."""

    url: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    color: typing.Optional[int] = field(repr=False, default=None, kw_only=True)
    timestamp: typing.Optional[datetime] = field(repr=False, default=None, kw_only=True)
    footer: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    image_url: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    thumbnail_url: typing.Optional[str] = field(repr=False, default=None, kw_only=True)

    fields: list[EmbedField] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`.EmbedField`]: The embed's fields."""

    def add_field(self, name: str, value: str, *, inline: bool = False) -> None:
        self.fields.append(EmbedField(name=name, value=value, inline=inline))

    def build(self) -> raw.Embed:
        payload: raw.Embed = {}
        if self.title is not None:
            payload['title'] = self.title
        if self.description is not None:
            payload['description'] = self.description
        if self.url is not None:
            payload['url'] = self.url
        if self.color is not None:
            payload['color'] = self.color
        if self.timestamp is not None:
            payload['timestamp'] = self.timestamp.isoformat()
        if self.footer is not None:
            payload['footer'] = {'text': self.footer}
        if self.image_url is not None:
            payload['image'] = {'url': self.image_url}
        if self.thumbnail_url is not None:
            payload['thumbnail'] = {'url': self.thumbnail_url}
        if self.fields:
            payload['fields'] = [{'name': f.name, 'value': f.value, 'inline': f.inline} for f in self.fields]
        return payload


@define(slots=True)
class UserAuthor:
    """Represents a message author that is a regular user. The user itself lives in cache."""

    state: State = field(repr=False, eq=False, kw_only=True)

    id: int = field(repr=True, kw_only=True)
    """:class:`int`: The author's user ID."""

    @property
    def user(self) -> typing.Optional[User]:
        """Optional[:class:`.User`]: The author, if cached."""
        return self.state.cache.get_user(self.id)


@define(slots=True)
class WebhookAuthor:
    """Represents a message author that is a webhook. Webhooks are not cached, so this is a snapshot."""

    id: int = field(repr=True, kw_only=True)
    """:class:`int`: The webhook's ID."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The name the webhook posted with."""

    avatar_id: typing.Optional[str] = field(repr=False, default=None, kw_only=True)


Author = typing.Union[UserAuthor, WebhookAuthor]


@define(slots=True)
class Reaction:
    """Represents a reaction on a message."""

    emoji: PartialEmoji = field(repr=True, kw_only=True)
    """:class:`.PartialEmoji`: The emoji reacted with."""

    count: int = field(repr=True, kw_only=True)
    """:class:`int`: The number of users reacted with this emoji."""

    me: bool = field(repr=True, default=False, kw_only=True)
    """:class:`bool`: Whether the current user reacted with this emoji."""

    user_ids: set[int] = field(repr=False, factory=set, kw_only=True)
    """Set[:class:`int`]: The IDs of users seen reacting with this emoji. May be a subset if the message was fetched."""


@define(slots=True, eq=False)
class BaseMessage(Base):
    """Represents a message on the platform."""

    channel_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The channel's ID the message was sent in."""

    @property
    def channel(self) -> typing.Optional[Channel]:
        """Optional[:class:`.Channel`]: The channel the message was sent in."""
        return self.state.cache.get_channel(self.channel_id)

    async def edit(
        self,
        *,
        content: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        embed: UndefinedOr[typing.Optional[Embed]] = UNDEFINED,
    ) -> Message:
        """|coro|

        Edits the message that you've previously sent.

        Parameters
        ----------
        content: UndefinedOr[Optional[:class:`str`]]
            The new content to replace the message with.
        embed: UndefinedOr[Optional[:class:`.Embed`]]
            The new embed to replace the original with. ``None`` removes embeds.

        Raises
        ------
        :class:`Forbidden`
            You tried to edit message of another user.
        :class:`HTTPException`
            Editing the message failed.

        Returns
        -------
        :class:`.Message`
            The newly edited message.
        """
        return await self.state.http.edit_message(self.channel_id, self.id, content=content, embed=embed)

    async def delete(self) -> None:
        """|coro|

        Deletes the message.

        You must have :attr:`~Permissions.manage_messages` to do this if message is not yours.
        """
        return await self.state.http.delete_message(self.channel_id, self.id)

    async def pin(self) -> None:
        """|coro|

        Pins the message.

        You must have :attr:`~Permissions.manage_messages` to do this.
        """
        return await self.state.http.pin_message(self.channel_id, self.id)

    async def unpin(self) -> None:
        """|coro|

        Unpins the message.

        You must have :attr:`~Permissions.manage_messages` to do this.
        """
        return await self.state.http.unpin_message(self.channel_id, self.id)

    async def add_reaction(self, emoji: ResolvableEmoji, /) -> None:
        """|coro|

        React to the message.

        You must have :attr:`~Permissions.add_reactions` to do this.

        Parameters
        ----------
        emoji: :class:`.ResolvableEmoji`
            The emoji to react with.
        """
        return await self.state.http.add_reaction(self.channel_id, self.id, resolve_emoji(emoji))

    async def remove_reaction(self, emoji: ResolvableEmoji, /, user: typing.Optional[SnowflakeOr[User]] = None) -> None:
        """|coro|

        Removes a reaction from the message.

        Removing reactions of other users requires :attr:`~Permissions.manage_messages`.

        Parameters
        ----------
        emoji: :class:`.ResolvableEmoji`
            The emoji to remove.
        user: Optional[SnowflakeOr[:class:`.User`]]
            The user to remove reaction of. Defaults to the current user.
        """
        return await self.state.http.remove_reaction(
            self.channel_id,
            self.id,
            resolve_emoji(emoji),
            None if user is None else resolve_id(user),
        )

    async def clear_reactions(self) -> None:
        """|coro|

        Removes all the reactions from the message.

        You must have :attr:`~Permissions.manage_messages` to do this.
        """
        return await self.state.http.clear_reactions(self.channel_id, self.id)


@define(slots=True, eq=False)
class PartialMessage(BaseMessage):
    """Represents partial message on the platform, as seen in ``MESSAGE_UPDATE``."""

    content: UndefinedOr[str] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[:class:`str`]: The new message's content."""

    edited_at: UndefinedOr[typing.Optional[datetime]] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[Optional[:class:`~datetime.datetime`]]: When the message was edited."""

    embeds: UndefinedOr[list[Embed]] = field(repr=False, default=UNDEFINED, kw_only=True)
    attachments: UndefinedOr[list[Attachment]] = field(repr=False, default=UNDEFINED, kw_only=True)
    pinned: UndefinedOr[bool] = field(repr=False, default=UNDEFINED, kw_only=True)
    mention_ids: UndefinedOr[list[int]] = field(repr=False, default=UNDEFINED, kw_only=True)


@define(slots=True, eq=False)
class Message(BaseMessage):
    """Represents a message in channel on the platform."""

    server_id: typing.Optional[int] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`int`]: The server's ID the message was sent in. ``None`` for private and group channels."""

    author: Author = field(repr=True, kw_only=True)
    """Union[:class:`.UserAuthor`, :class:`.WebhookAuthor`]: The message author."""

    content: str = field(repr=True, default='', kw_only=True)
    """:class:`str`: The message's content."""

    embeds: list[Embed] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`.Embed`]: The attached embeds."""

    attachments: list[Attachment] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`.Attachment`]: The attached files."""

    reactions: list[Reaction] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`.Reaction`]: The reactions on the message."""

    pinned: bool = field(repr=False, default=False, kw_only=True)
    """:class:`bool`: Whether the message is pinned."""

    edited_at: typing.Optional[datetime] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`~datetime.datetime`]: When the message was last edited."""

    tts: bool = field(repr=False, default=False, kw_only=True)
    mention_ids: list[int] = field(repr=False, factory=list, kw_only=True)
    nonce: typing.Optional[str] = field(repr=False, default=None, kw_only=True)

    cached_forever: bool = field(repr=False, default=False, kw_only=True)
    """:class:`bool`: Whether the message is exempt from message cache eviction.

    Use :meth:`set_cached_forever` to change this.
    """

    __local_fields__: typing.ClassVar[tuple[str, ...]] = ('cached_forever', 'reactions')

    def __str__(self) -> str:
        return self.content

    @property
    def author_id(self) -> int:
        """:class:`int`: The author's ID. For webhook messages, this is the webhook's ID."""
        return self.author.id

    @property
    def server(self) -> typing.Optional[Server]:
        if self.server_id is None:
            return None
        return self.state.cache.get_server(self.server_id)

    def is_webhook(self) -> bool:
        """:class:`bool`: Whether the message was posted by a webhook."""
        return isinstance(self.author, WebhookAuthor)

    def get_reaction(self, emoji: PartialEmoji, /) -> typing.Optional[Reaction]:
        for reaction in self.reactions:
            if reaction.emoji == emoji:
                return reaction
        return None

    def set_cached_forever(self, value: bool, /) -> None:
        """Sets whether this message should be exempt from message cache eviction.

        Setting to ``True`` also stores the message in cache if it is not already there.
        An explicit delete still removes the message.

        Parameters
        ----------
        value: :class:`bool`
            The new value.
        """
        self.cached_forever = value
        if value:
            self.state.cache.messages.store(self)

    def locally_update(self, data: PartialMessage | Message, /) -> None:
        """Locally updates message with provided data.

        .. warning::
            This is called by library internally to keep cache up to date.

        Parameters
        ----------
        data: Union[:class:`.PartialMessage`, :class:`.Message`]
            The data to update message with.
        """
        if isinstance(data, Message):
            return Base.locally_update(self, data)

        if data.id != self.id:
            raise ValueError(f'Cannot update {self.id} with snapshot of {data.id}')
        if data.content is not UNDEFINED:
            self.content = data.content
        if data.edited_at is not UNDEFINED:
            self.edited_at = data.edited_at
        if data.embeds is not UNDEFINED:
            self.embeds = data.embeds
        if data.attachments is not UNDEFINED:
            self.attachments = data.attachments
        if data.pinned is not UNDEFINED:
            self.pinned = data.pinned
        if data.mention_ids is not UNDEFINED:
            self.mention_ids = data.mention_ids

    def _add_reaction(self, emoji: PartialEmoji, user_id: int, /, *, me: bool) -> typing.Optional[Reaction]:
        reaction = self.get_reaction(emoji)
        if reaction is None:
            reaction = Reaction(emoji=emoji, count=1, me=me, user_ids={user_id})
            self.reactions.append(reaction)
            return reaction

        if user_id in reaction.user_ids:
            # Duplicate delivery
            return None

        reaction.user_ids.add(user_id)
        reaction.count += 1
        if me:
            reaction.me = True
        return reaction

    def _remove_reaction(self, emoji: PartialEmoji, user_id: int, /, *, me: bool) -> typing.Optional[Reaction]:
        reaction = self.get_reaction(emoji)
        if reaction is None:
            return None

        if user_id in reaction.user_ids:
            reaction.user_ids.discard(user_id)
        elif len(reaction.user_ids) >= reaction.count:
            # Every reactor is known and this user is not one of them
            return None

        reaction.count -= 1
        if me:
            reaction.me = False
        if reaction.count <= 0:
            self.reactions.remove(reaction)
        return reaction

    def _clear_reactions(self) -> list[Reaction]:
        reactions = self.reactions
        self.reactions = []
        return reactions


class MessageHistory:
    """A view of messages fetched from one channel.

    The view is notified by the message cache whenever a message is removed from it,
    either by deletion or eviction, and drops that message as well.

    Attributes
    ----------
    channel_id: :class:`int`
        The channel's ID the messages belong to.
    """

    __slots__ = (
        'state',
        'channel_id',
        '_messages',
        '_closed',
    )

    def __init__(self, state: State, channel_id: int, messages: Iterable[Message], /) -> None:
        self.state: State = state
        self.channel_id: int = channel_id
        self._messages: dict[int, Message] = {m.id: m for m in sorted(messages, key=lambda m: m.id)}
        self._closed: bool = False

    def __repr__(self) -> str:
        return f'<MessageHistory channel_id={self.channel_id} messages={len(self._messages)}>'

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message: object, /) -> bool:
        if isinstance(message, int):
            return message in self._messages
        return isinstance(message, Message) and message.id in self._messages

    @property
    def messages(self) -> list[Message]:
        """List[:class:`.Message`]: The messages in this view, oldest first."""
        return list(self._messages.values())

    @property
    def newest(self) -> typing.Optional[Message]:
        return next(reversed(self._messages.values()), None)

    @property
    def oldest(self) -> typing.Optional[Message]:
        return next(iter(self._messages.values()), None)

    def is_closed(self) -> bool:
        return self._closed

    def _on_message_removed(self, message: Message, /) -> None:
        if message.channel_id == self.channel_id:
            self._messages.pop(message.id, None)

    def close(self) -> None:
        """Stops observing the message cache. The view keeps messages it has left."""
        if self._closed:
            return
        self._closed = True
        self.state.cache.messages.remove_observer(self)

    def __enter__(self) -> MessageHistory:
        return self

    def __exit__(self, *_: typing.Any) -> None:
        self.close()


__all__ = (
    'Attachment',
    'EmbedField',
    'Embed',
    'UserAuthor',
    'WebhookAuthor',
    'Author',
    'Reaction',
    'BaseMessage',
    'PartialMessage',
    'Message',
    'MessageHistory',
)
