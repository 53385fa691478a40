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
from .core import UNDEFINED, UndefinedOr
from .enums import ActivityType, UserStatus

if typing.TYPE_CHECKING:
    from . import raw
    from .channel import PrivateChannel
    from .message import Embed, Message


@define(slots=True)
class Activity:
    """Represents an activity a user is currently doing."""

    type: ActivityType = field(repr=True, kw_only=True)
    """:class:`.ActivityType`: The type of the activity."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The activity name."""

    url: typing.Optional[str] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`str`]: The stream URL. Only applicable to :attr:`ActivityType.streaming` activities."""

    def build(self) -> raw.Activity:
        payload: raw.Activity = {
            'type': int(self.type),
            'name': self.name,
        }
        if self.url is not None:
            payload['url'] = self.url
        return payload


@define(slots=True, eq=False)
class BaseUser(Base):
    """Represents a user on the platform.

    A user is shared across all servers it is member of. Per-server data such
    as nicknames and roles are stored on :class:`.Server`.
    """

    @property
    def mention(self) -> str:
        """:class:`str`: The user mention."""
        return f'<@{self.id}>'

    @property
    def dm_channel(self) -> typing.Optional[PrivateChannel]:
        """Optional[:class:`.PrivateChannel`]: The cached private channel with this user."""
        from .channel import PrivateChannel

        for channel in self.state.cache.get_private_channels_mapping().values():
            if isinstance(channel, PrivateChannel) and channel.recipient_id == self.id:
                return channel
        return None

    async def open_dm(self) -> PrivateChannel:
        """|coro|

        Retrieves a private channel (or creates if it doesn't exist) with this user.

        Raises
        ------
        :class:`Forbidden`
            You cannot open DM with this user.
        :class:`HTTPException`
            Opening the DM failed.

        Returns
        -------
        :class:`.PrivateChannel`
            The private channel.
        """
        channel = self.dm_channel
        if channel is not None:
            return channel
        return await self.state.http.open_dm(self.id)

    async def send(
        self,
        content: typing.Optional[str] = None,
        *,
        embed: typing.Optional[Embed] = None,
        tts: bool = False,
        nonce: typing.Optional[str] = None,
    ) -> Message:
        """|coro|

        Sends a message to this user, opening a DM channel first if required.

        Parameters
        ----------
        content: Optional[:class:`str`]
            The message content.
        embed: Optional[:class:`.Embed`]
            The embed to send with message.
        tts: :class:`bool`
            Whether the message should be read aloud.
        nonce: Optional[:class:`str`]
            The message nonce.

        Returns
        -------
        :class:`.Message`
            The message that was sent.
        """
        channel = await self.open_dm()
        return await channel.send(content, embed=embed, tts=tts, nonce=nonce)


@define(slots=True, eq=False)
class PartialUser(BaseUser):
    """Represents a partial user on the platform, as seen in ``PRESENCE_UPDATE`` and ``USER_UPDATE``."""

    name: UndefinedOr[str] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[:class:`str`]: The new user's name."""

    discriminator: UndefinedOr[str] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[:class:`str`]: The new user's discriminator."""

    avatar_id: UndefinedOr[typing.Optional[str]] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[Optional[:class:`str`]]: The new user's avatar hash."""

    bot: UndefinedOr[bool] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[:class:`bool`]: Whether the user is a bot."""

    status: UndefinedOr[UserStatus] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[:class:`.UserStatus`]: The new user's status."""

    activity: UndefinedOr[typing.Optional[Activity]] = field(repr=True, default=UNDEFINED, kw_only=True)
    """UndefinedOr[Optional[:class:`.Activity`]]: The new user's activity."""


@define(slots=True, eq=False)
class User(BaseUser):
    """Represents a user on the platform."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The username of the user."""

    discriminator: str = field(repr=True, kw_only=True)
    """:class:`str`: The discriminator of the user."""

    bot: bool = field(repr=True, default=False, kw_only=True)
    """:class:`bool`: Whether the user is a bot."""

    avatar_id: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`str`]: The user's avatar hash."""

    status: UserStatus = field(repr=True, default=UserStatus.offline, kw_only=True)
    """:class:`.UserStatus`: The user's presence."""

    activity: typing.Optional[Activity] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`.Activity`]: The user's current activity."""

    # Presence is only updated by presence events
    __local_fields__: typing.ClassVar[tuple[str, ...]] = ('status', 'activity')

    def __str__(self) -> str:
        return self.tag

    @property
    def tag(self) -> str:
        """:class:`str`: The tag of the user.

        Assuming that :attr:`User.name` is ``'kotlin.Unit'`` and :attr:`User.discriminator` is ``'3510'``,
        example output would be ``'kotlin.Unit#3510'``.
        """
        return f'{self.name}#{self.discriminator}'

    def locally_update(self, data: PartialUser | User, /) -> None:
        """Locally updates user with provided data.

        .. warning::
            This is called by library internally to keep cache up to date.
        """
        if isinstance(data, User):
            return Base.locally_update(self, data)

        if data.id != self.id:
            raise ValueError(f'Cannot update {self.id} with snapshot of {data.id}')
        if data.name is not UNDEFINED:
            self.name = data.name
        if data.discriminator is not UNDEFINED:
            self.discriminator = data.discriminator
        if data.avatar_id is not UNDEFINED:
            self.avatar_id = data.avatar_id
        if data.bot is not UNDEFINED:
            self.bot = data.bot
        if data.status is not UNDEFINED:
            self.status = data.status
        if data.activity is not UNDEFINED:
            self.activity = data.activity


@define(slots=True, eq=False)
class OwnUser(User):
    """Represents the current logged in user."""

    async def edit(self, *, username: UndefinedOr[str] = UNDEFINED) -> OwnUser:
        """|coro|

        Edits the current user.

        Parameters
        ----------
        username: UndefinedOr[:class:`str`]
            The new username.

        Raises
        ------
        :class:`HTTPException`
            Editing the user failed.

        Returns
        -------
        :class:`.OwnUser`
            The updated user.
        """
        return await self.state.http.edit_my_user(username=username)


__all__ = (
    'Activity',
    'BaseUser',
    'PartialUser',
    'User',
    'OwnUser',
)
