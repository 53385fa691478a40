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
from .errors import ShardError
from .flags import Permissions

if typing.TYPE_CHECKING:
    from .channel import ServerChannel
    from .emoji import CustomEmoji
    from .user import User


@define(slots=True, eq=False)
class Role(Base):
    """Represents a role in a :class:`.Server`.

    The role with same ID as its server is the ``@everyone`` role.
    """

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID the role belongs to."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The role's name."""

    color: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The role's color as RGB integer."""

    position: int = field(repr=True, default=0, kw_only=True)
    """:class:`int`: The role's position. Roles with higher position take precedence in channel overwrites."""

    raw_permissions: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The role's permissions raw value."""

    hoist: bool = field(repr=False, default=False, kw_only=True)
    """:class:`bool`: Whether the role is displayed separately in member list."""

    mentionable: bool = field(repr=False, default=False, kw_only=True)
    managed: bool = field(repr=False, default=False, kw_only=True)

    member_ids: set[int] = field(repr=False, factory=set, kw_only=True)
    """Set[:class:`int`]: The IDs of users holding this role. This is maintained by the cache."""

    __local_fields__: typing.ClassVar[tuple[str, ...]] = ('member_ids',)

    def __str__(self) -> str:
        return self.name

    @property
    def mention(self) -> str:
        """:class:`str`: The role mention."""
        if self.is_default():
            return '@everyone'
        return f'<@&{self.id}>'

    @property
    def permissions(self) -> Permissions:
        """:class:`.Permissions`: The role's permissions."""
        return Permissions(self.raw_permissions)

    @property
    def server(self) -> typing.Optional[Server]:
        """Optional[:class:`.Server`]: The server the role belongs to."""
        return self.state.cache.get_server(self.server_id)

    def is_default(self) -> bool:
        """:class:`bool`: Whether this is the ``@everyone`` role."""
        return self.id == self.server_id

    async def edit(
        self,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        permissions: UndefinedOr[Permissions] = UNDEFINED,
        color: UndefinedOr[int] = UNDEFINED,
        hoist: UndefinedOr[bool] = UNDEFINED,
        mentionable: UndefinedOr[bool] = UNDEFINED,
    ) -> Role:
        """|coro|

        Edits the role.

        You must have :attr:`~Permissions.manage_roles` to do this.

        Parameters
        ----------
        name: UndefinedOr[:class:`str`]
            The new role name.
        permissions: UndefinedOr[:class:`.Permissions`]
            The new role permissions.
        color: UndefinedOr[:class:`int`]
            The new role color.
        hoist: UndefinedOr[:class:`bool`]
            Whether the role should be displayed separately.
        mentionable: UndefinedOr[:class:`bool`]
            Whether the role can be mentioned by anyone.

        Raises
        ------
        :class:`Forbidden`
            You do not have permissions to edit the role.
        :class:`HTTPException`
            Editing the role failed.

        Returns
        -------
        :class:`.Role`
            The updated role.
        """
        return await self.state.http.edit_role(
            self.server_id,
            self.id,
            name=name,
            permissions=permissions,
            color=color,
            hoist=hoist,
            mentionable=mentionable,
        )

    async def delete(self) -> None:
        """|coro|

        Deletes the role.

        You must have :attr:`~Permissions.manage_roles` to do this.
        """
        return await self.state.http.delete_role(self.server_id, self.id)

    async def add_to(self, user: SnowflakeOr[User], /) -> None:
        """|coro|

        Gives the role to a member.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The member to give role to.
        """
        return await self.state.http.add_role_to_member(self.server_id, resolve_id(user), self.id)

    async def remove_from(self, user: SnowflakeOr[User], /) -> None:
        """|coro|

        Removes the role from a member.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The member to remove role from.
        """
        return await self.state.http.remove_role_from_member(self.server_id, resolve_id(user), self.id)


@define(slots=True, eq=False)
class Server(Base):
    """Represents a server on the platform.

    The server owns its channels, roles, custom emojis and the per-member overlay
    (nicknames and role assignments). Users themselves are shared across servers
    and live in the cache.
    """

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The server's name."""

    region: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`str`]: The voice region of the server."""

    owner_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The user's ID who owns this server."""

    large: bool = field(repr=False, default=False, kw_only=True)
    """:class:`bool`: Whether the server is considered large, and members must be requested explicitly."""

    member_count: int = field(repr=False, default=0, kw_only=True)
    """:class:`int`: The total member count, as reported by the gateway."""

    icon_id: typing.Optional[str] = field(repr=False, default=None, kw_only=True)
    """Optional[:class:`str`]: The server's icon hash."""

    channels: dict[int, ServerChannel] = field(repr=False, factory=dict, kw_only=True)
    """Dict[:class:`int`, :class:`.ServerChannel`]: The channels in this server."""

    roles: dict[int, Role] = field(repr=False, factory=dict, kw_only=True)
    """Dict[:class:`int`, :class:`.Role`]: The roles in this server."""

    emojis: dict[int, CustomEmoji] = field(repr=False, factory=dict, kw_only=True)
    """Dict[:class:`int`, :class:`.CustomEmoji`]: The custom emojis in this server."""

    member_ids: set[int] = field(repr=False, factory=set, kw_only=True)
    """Set[:class:`int`]: The IDs of cached members."""

    nicknames: dict[int, str] = field(repr=False, factory=dict, kw_only=True)
    """Dict[:class:`int`, :class:`str`]: The nickname overlay, keyed by user ID."""

    member_roles: dict[int, set[int]] = field(repr=False, factory=dict, kw_only=True)
    """Dict[:class:`int`, Set[:class:`int`]]: The role assignment overlay, keyed by user ID.

    The ``@everyone`` role is implicit and never stored here.
    """

    __local_fields__: typing.ClassVar[tuple[str, ...]] = (
        'channels',
        'roles',
        'emojis',
        'member_ids',
        'nicknames',
        'member_roles',
    )

    def __str__(self) -> str:
        return self.name

    def get_channel(self, channel_id: int, /) -> typing.Optional[ServerChannel]:
        return self.channels.get(channel_id)

    def get_role(self, role_id: int, /) -> typing.Optional[Role]:
        return self.roles.get(role_id)

    def get_emoji(self, emoji_id: int, /) -> typing.Optional[CustomEmoji]:
        return self.emojis.get(emoji_id)

    def get_member(self, user_id: int, /) -> typing.Optional[User]:
        """Retrieves a member from cache.

        Parameters
        ----------
        user_id: :class:`int`
            The user's ID.

        Returns
        -------
        Optional[:class:`.User`]
            The user, if they are a cached member of this server.
        """
        if user_id not in self.member_ids:
            return None
        return self.state.cache.get_user(user_id)

    @property
    def members(self) -> list[User]:
        """List[:class:`.User`]: The cached members of this server."""
        cache = self.state.cache
        return [user for user in map(cache.get_user, list(self.member_ids)) if user is not None]

    @property
    def owner(self) -> typing.Optional[User]:
        """Optional[:class:`.User`]: The server owner, if cached."""
        return self.get_member(self.owner_id)

    @property
    def default_role(self) -> typing.Optional[Role]:
        """Optional[:class:`.Role`]: The ``@everyone`` role."""
        return self.roles.get(self.id)

    def roles_of(self, user_id: int, /) -> list[Role]:
        """List[:class:`.Role`]: The roles the member holds, sorted by position (lowest first).

        The ``@everyone`` role is not included.
        """
        roles = [self.roles[role_id] for role_id in self.member_roles.get(user_id, ()) if role_id in self.roles]
        roles.sort(key=lambda role: (role.position, role.id))
        return roles

    def nickname_of(self, user_id: int, /) -> typing.Optional[str]:
        return self.nicknames.get(user_id)

    def display_name_of(self, user_id: int, /) -> typing.Optional[str]:
        """Optional[:class:`str`]: The name the member is displayed with, nickname first."""
        nick = self.nicknames.get(user_id)
        if nick is not None:
            return nick
        user = self.get_member(user_id)
        return None if user is None else user.name

    def needs_chunking(self) -> bool:
        """:class:`bool`: Whether the server is large and not every member is cached yet."""
        return self.large and self.member_count > len(self.member_ids)

    def permissions_of(self, user_id: int, /) -> Permissions:
        """Calculates server-wide permissions of a member, without applying any channel overwrites.

        Parameters
        ----------
        user_id: :class:`int`
            The member's ID.

        Returns
        -------
        :class:`.Permissions`
            The calculated permissions.
        """
        if user_id == self.owner_id:
            return Permissions.all()

        value = 0
        default = self.default_role
        if default is not None:
            value |= default.raw_permissions
        for role in self.roles_of(user_id):
            value |= role.raw_permissions

        if value & Permissions.administrator.value:
            return Permissions.all()
        return Permissions(value)

    def _set_member(
        self,
        user_id: int,
        /,
        *,
        nick: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        role_ids: UndefinedOr[typing.Iterable[int]] = UNDEFINED,
    ) -> None:
        self.member_ids.add(user_id)
        if nick is not UNDEFINED:
            if nick is None:
                self.nicknames.pop(user_id, None)
            else:
                self.nicknames[user_id] = nick
        if role_ids is not UNDEFINED:
            new = {role_id for role_id in role_ids if role_id != self.id}
            old = self.member_roles.get(user_id, set())
            for role_id in old - new:
                role = self.roles.get(role_id)
                if role is not None:
                    role.member_ids.discard(user_id)
            for role_id in new:
                role = self.roles.get(role_id)
                if role is not None:
                    role.member_ids.add(user_id)
            self.member_roles[user_id] = new

    def _remove_member(self, user_id: int, /) -> bool:
        present = user_id in self.member_ids
        self.member_ids.discard(user_id)
        self.nicknames.pop(user_id, None)
        self.member_roles.pop(user_id, None)
        for role in self.roles.values():
            role.member_ids.discard(user_id)
        return present

    async def leave(self) -> None:
        """|coro|

        Leaves the server.

        Raises
        ------
        :class:`HTTPException`
            Leaving the server failed.
        """
        return await self.state.http.leave_server(self.id)

    async def edit(
        self,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        region: UndefinedOr[typing.Optional[str]] = UNDEFINED,
    ) -> Server:
        """|coro|

        Edits the server.

        You must have :attr:`~Permissions.manage_server` to do this.

        Parameters
        ----------
        name: UndefinedOr[:class:`str`]
            The new server name.
        region: UndefinedOr[Optional[:class:`str`]]
            The new voice region.

        Returns
        -------
        :class:`.Server`
            The updated server.
        """
        return await self.state.http.edit_server(self.id, name=name, region=region)

    async def fetch_member(self, user: SnowflakeOr[User], /) -> User:
        """|coro|

        Retrieves a member from the API, storing it into cache.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The user to retrieve.

        Raises
        ------
        :class:`NotFound`
            The user is not member of this server.

        Returns
        -------
        :class:`.User`
            The retrieved user.
        """
        return await self.state.http.fetch_member(self.id, resolve_id(user))

    async def kick(self, user: SnowflakeOr[User], /) -> None:
        """|coro|

        Kicks a member from the server.

        You must have :attr:`~Permissions.kick_members` to do this.
        """
        return await self.state.http.kick_member(self.id, resolve_id(user))

    async def ban(self, user: SnowflakeOr[User], /, *, delete_message_days: int = 0) -> None:
        """|coro|

        Bans a user from the server.

        You must have :attr:`~Permissions.ban_members` to do this.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The user to ban.
        delete_message_days: :class:`int`
            The number of days worth of messages to delete. Must be between 0 and 7.
        """
        return await self.state.http.ban_member(self.id, resolve_id(user), delete_message_days=delete_message_days)

    async def edit_nickname(self, user: SnowflakeOr[User], nick: typing.Optional[str], /) -> None:
        """|coro|

        Changes the nickname of a member. Passing ``None`` removes it.

        Parameters
        ----------
        user: SnowflakeOr[:class:`.User`]
            The member to change nickname of. Can be the current user.
        nick: Optional[:class:`str`]
            The new nickname.
        """
        user_id = resolve_id(user)
        me = self.state.me
        if me is not None and me.id == user_id:
            return await self.state.http.edit_my_nickname(self.id, nick)
        return await self.state.http.edit_member(self.id, user_id, nick=nick)

    async def create_role(
        self,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        permissions: UndefinedOr[Permissions] = UNDEFINED,
        color: UndefinedOr[int] = UNDEFINED,
        hoist: UndefinedOr[bool] = UNDEFINED,
        mentionable: UndefinedOr[bool] = UNDEFINED,
    ) -> Role:
        """|coro|

        Creates a new role in the server.

        You must have :attr:`~Permissions.manage_roles` to do this.

        Returns
        -------
        :class:`.Role`
            The role created.
        """
        return await self.state.http.create_role(
            self.id,
            name=name,
            permissions=permissions,
            color=color,
            hoist=hoist,
            mentionable=mentionable,
        )

    async def request_members(self) -> None:
        """|coro|

        Requests the gateway to send every member of this server in chunks.

        Raises
        ------
        :class:`ShardError`
            The shard responsible for this server is not running.
        """
        shard = self.state.get_shard(self.id)
        if shard is None:
            raise ShardError(f'No shard is running for server {self.id}')
        await shard.request_members(self.id)


__all__ = (
    'Role',
    'Server',
)
