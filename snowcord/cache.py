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

from abc import ABC, abstractmethod
from collections import OrderedDict
import logging
from threading import RLock
import time
import typing

from .channel import ChannelCategory, ServerChannel
from .core import UNDEFINED, UndefinedOr

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from .channel import Channel
    from .emoji import CustomEmoji
    from .message import Message
    from .server import Role, Server
    from .user import User

_L = logging.getLogger(__name__)


class MessageObserver(typing.Protocol):
    def _on_message_removed(self, message: Message, /) -> None: ...


class MessageCache:
    """A bounded store of messages, shared by all channels.

    Messages are evicted by :meth:`sweep` once they exceed either the capacity
    bound (oldest first) or the age bound. Messages with :attr:`.Message.cached_forever`
    set are never evicted, but are still removed by an explicit :meth:`remove`.

    Parameters of this class accept negative value to represent infinite count.

    Parameters
    ----------
    capacity: :class:`int`
        How many non-forever messages can the cache hold after a sweep. Defaults to ``1000``.
    max_age: :class:`float`
        How many seconds a non-forever message can stay in cache. Defaults to ``43200`` (12 hours).
    clock: Callable[[], :class:`float`]
        The monotonic clock used to timestamp insertions.
    """

    __slots__ = (
        'capacity',
        'max_age',
        '_clock',
        '_lock',
        '_messages',
        '_by_channel',
        '_announced',
        '_observers',
    )

    def __init__(
        self,
        capacity: int = 1000,
        max_age: float = 43200.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity: int = capacity
        self.max_age: float = max_age
        self._clock: Callable[[], float] = clock
        self._lock: RLock = RLock()
        self._messages: OrderedDict[int, tuple[Message, float]] = OrderedDict()
        self._by_channel: dict[int, dict[int, Message]] = {}
        self._announced: set[int] = set()
        self._observers: list[MessageObserver] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object, /) -> bool:
        return message_id in self._messages

    def get(self, message_id: int, /) -> typing.Optional[Message]:
        entry = self._messages.get(message_id)
        return None if entry is None else entry[0]

    def store(self, message: Message, /) -> Message:
        """Stores a message.

        If a message with same ID is already cached, it is kept along with its
        original insertion time and returned instead.

        Returns
        -------
        :class:`.Message`
            The cached message.
        """
        with self._lock:
            entry = self._messages.get(message.id)
            if entry is not None:
                return entry[0]
            self._messages[message.id] = (message, self._clock())
            self._by_channel.setdefault(message.channel_id, {})[message.id] = message
            return message

    def _pop(self, message_id: int, /) -> typing.Optional[Message]:
        entry = self._messages.pop(message_id, None)
        if entry is None:
            return None
        message = entry[0]
        self._announced.discard(message_id)
        channel_messages = self._by_channel.get(message.channel_id)
        if channel_messages is not None:
            channel_messages.pop(message_id, None)
            if not channel_messages:
                del self._by_channel[message.channel_id]
        return message

    def _notify(self, removed: Iterable[Message], /) -> None:
        observers = list(self._observers)
        for message in removed:
            for observer in observers:
                observer._on_message_removed(message)

    def remove(self, message_id: int, /) -> typing.Optional[Message]:
        """Removes a message, regardless of :attr:`.Message.cached_forever`.

        Returns
        -------
        Optional[:class:`.Message`]
            The removed message, if it was cached.
        """
        with self._lock:
            message = self._pop(message_id)
        if message is not None:
            self._notify((message,))
        return message

    def remove_channel(self, channel_id: int, /) -> list[Message]:
        """Removes every message of a channel."""
        with self._lock:
            ids = list(self._by_channel.get(channel_id, ()))
            removed = [m for m in map(self._pop, ids) if m is not None]
        self._notify(removed)
        return removed

    def messages_of(self, channel_id: int, /) -> list[Message]:
        """List[:class:`.Message`]: The cached messages of a channel, oldest first."""
        with self._lock:
            messages = list(self._by_channel.get(channel_id, {}).values())
        messages.sort(key=lambda m: m.id)
        return messages

    def mark_announced(self, message_id: int, /) -> bool:
        """Marks a cached message as announced by a create event.

        Returns
        -------
        :class:`bool`
            ``True`` if this is the first time the message is marked.
        """
        with self._lock:
            if message_id in self._announced:
                return False
            self._announced.add(message_id)
            return True

    def sweep(self, now: typing.Optional[float] = None, /) -> list[Message]:
        """Evicts messages exceeding the age or capacity bound.

        Parameters
        ----------
        now: Optional[:class:`float`]
            The current clock value. Defaults to calling the clock.

        Returns
        -------
        List[:class:`.Message`]
            The evicted messages.
        """
        if now is None:
            now = self._clock()

        removed = []
        with self._lock:
            if self.max_age >= 0:
                for message_id, (message, inserted_at) in list(self._messages.items()):
                    if not message.cached_forever and now - inserted_at >= self.max_age:
                        removed.append(self._pop(message_id))

            if self.capacity >= 0:
                excess = sum(1 for message, _ in self._messages.values() if not message.cached_forever) - self.capacity
                if excess > 0:
                    # Insertion order is oldest first
                    for message_id, (message, _) in list(self._messages.items()):
                        if excess <= 0:
                            break
                        if message.cached_forever:
                            continue
                        removed.append(self._pop(message_id))
                        excess -= 1

        if removed:
            _L.debug('Evicted %i messages, %i left', len(removed), len(self._messages))
            self._notify(removed)  # type: ignore
        return removed  # type: ignore

    def add_observer(self, observer: MessageObserver, /) -> None:
        """Registers an object to be notified when a message is removed from the cache."""
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: MessageObserver, /) -> None:
        with self._lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

    def clear(self) -> None:
        with self._lock:
            removed = [entry[0] for entry in self._messages.values()]
            self._messages.clear()
            self._by_channel.clear()
            self._announced.clear()
        self._notify(removed)


class Cache(ABC):
    """An ABC that represents cache.

    .. note::
        This class might not be what you're looking for.
        Head over to :class:`.MapCache` for implementation.
    """

    __slots__ = ()

    messages: MessageCache

    ###########
    # Servers #
    ###########

    @abstractmethod
    def get_server(self, server_id: int, /) -> typing.Optional[Server]:
        """Optional[:class:`.Server`]: Retrieves a server using ID.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.
        """
        ...

    @abstractmethod
    def get_servers_mapping(self) -> Mapping[int, Server]:
        """Mapping[:class:`int`, :class:`.Server`]: Retrieves a snapshot of all available servers."""
        ...

    @abstractmethod
    def store_server(self, server: Server, /) -> None:
        """Stores a server along with the channels, roles and emojis it owns.

        Parameters
        ----------
        server: :class:`.Server`
            The server to store.
        """
        ...

    @abstractmethod
    def remove_server(self, server_id: int, /) -> typing.Optional[Server]:
        """Removes a server along with everything it owns.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.

        Returns
        -------
        Optional[:class:`.Server`]
            The removed server, if it was cached.
        """
        ...

    @abstractmethod
    def add_unavailable(self, server_id: int, /) -> None: ...

    @abstractmethod
    def remove_unavailable(self, server_id: int, /) -> bool:
        """:class:`bool`: Removes the server's ID from unavailable set. Returns whether it was there."""
        ...

    @abstractmethod
    def is_unavailable(self, server_id: int, /) -> bool: ...

    @abstractmethod
    def unavailable_server_ids(self) -> set[int]:
        """Set[:class:`int`]: Retrieves a snapshot of IDs of servers that are unavailable."""
        ...

    ############
    # Channels #
    ############

    @abstractmethod
    def get_channel(self, channel_id: int, /) -> typing.Optional[Channel]:
        """Optional[:class:`.Channel`]: Retrieves a channel using ID.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.
        """
        ...

    @abstractmethod
    def get_channels_mapping(self) -> Mapping[int, Channel]: ...

    @abstractmethod
    def get_private_channels_mapping(self) -> Mapping[int, Channel]:
        """Mapping[:class:`int`, Union[:class:`.PrivateChannel`, :class:`.GroupChannel`]]: Retrieves a snapshot of all private channels."""
        ...

    @abstractmethod
    def store_channel(self, channel: Channel, /) -> bool:
        """Stores a channel.

        Server channels are also inserted into their server and category.

        Parameters
        ----------
        channel: :class:`.Channel`
            The channel to store.

        Returns
        -------
        :class:`bool`
            Whether the channel was stored. Server channels of uncached servers are not stored.
        """
        ...

    @abstractmethod
    def remove_channel(self, channel_id: int, /) -> typing.Optional[Channel]:
        """Removes a channel and its messages.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.

        Returns
        -------
        Optional[:class:`.Channel`]
            The removed channel, if it was cached.
        """
        ...

    #########
    # Users #
    #########

    @abstractmethod
    def get_user(self, user_id: int, /) -> typing.Optional[User]: ...

    @abstractmethod
    def get_users_mapping(self) -> Mapping[int, User]: ...

    @abstractmethod
    def store_user(self, user: User, /) -> User:
        """Stores a user, or updates the cached one in place.

        Returns
        -------
        :class:`.User`
            The cached user.
        """
        ...

    @abstractmethod
    def remove_user(self, user_id: int, /) -> typing.Optional[User]: ...

    #########
    # Roles #
    #########

    @abstractmethod
    def get_role(self, role_id: int, /) -> typing.Optional[Role]: ...

    @abstractmethod
    def store_role(self, role: Role, /) -> typing.Optional[Role]:
        """Stores a role into its server, or updates the cached one in place.

        Returns
        -------
        Optional[:class:`.Role`]
            The cached role, or ``None`` if server is not cached.
        """
        ...

    @abstractmethod
    def remove_role(self, server_id: int, role_id: int, /) -> typing.Optional[Role]: ...

    ##########
    # Emojis #
    ##########

    @abstractmethod
    def get_emoji(self, emoji_id: int, /) -> typing.Optional[CustomEmoji]: ...

    @abstractmethod
    def set_server_emojis(self, server_id: int, emojis: Iterable[CustomEmoji], /) -> bool:
        """Replaces every custom emoji of a server.

        Returns
        -------
        :class:`bool`
            Whether the server was cached.
        """
        ...

    ###########
    # Members #
    ###########

    @abstractmethod
    def store_member(
        self,
        server_id: int,
        user: User,
        /,
        *,
        nick: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        role_ids: UndefinedOr[Iterable[int]] = UNDEFINED,
    ) -> typing.Optional[User]:
        """Stores a member of a server, storing the user as well.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.
        user: :class:`.User`
            The user.
        nick: UndefinedOr[Optional[:class:`str`]]
            The member's nickname.
        role_ids: UndefinedOr[Iterable[:class:`int`]]
            The member's roles.

        Returns
        -------
        Optional[:class:`.User`]
            The cached user, or ``None`` if server is not cached.
        """
        ...

    @abstractmethod
    def remove_member(self, server_id: int, user_id: int, /) -> bool:
        """Removes a member from the server, its nickname and every role index.

        Returns
        -------
        :class:`bool`
            Whether the member was cached.
        """
        ...

    ########
    # Misc #
    ########

    def get_message(self, message_id: int, /) -> typing.Optional[Message]:
        return self.messages.get(message_id)

    @abstractmethod
    def clear(self) -> None:
        """Removes everything from the cache."""
        ...


class MapCache(Cache):
    """Implementation of :class:`.Cache` ABC based on :class:`dict`'s.

    Every collection has its own lock. Composite operations take locks in
    one fixed order: servers, unavailable, channels, roles, emojis, members, users.

    Parameters
    ----------
    message_cache_capacity: :class:`int`
        How many non-forever messages can have cache. Negative means unbounded. Defaults to ``1000``.
    message_cache_max_age: :class:`float`
        How many seconds non-forever messages are kept. Negative means forever. Defaults to ``43200``.
    clock: Callable[[], :class:`float`]
        The monotonic clock used by message cache.
    """

    __slots__ = (
        'messages',
        '_servers',
        '_servers_lock',
        '_unavailable',
        '_unavailable_lock',
        '_channels',
        '_private_channels',
        '_channels_lock',
        '_roles',
        '_roles_lock',
        '_emojis',
        '_emojis_lock',
        '_members_lock',
        '_users',
        '_users_lock',
    )

    def __init__(
        self,
        *,
        message_cache_capacity: int = 1000,
        message_cache_max_age: float = 43200.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.messages: MessageCache = MessageCache(message_cache_capacity, message_cache_max_age, clock=clock)
        self._servers: dict[int, Server] = {}
        self._servers_lock: RLock = RLock()
        self._unavailable: set[int] = set()
        self._unavailable_lock: RLock = RLock()
        self._channels: dict[int, Channel] = {}
        self._private_channels: dict[int, Channel] = {}
        self._channels_lock: RLock = RLock()
        self._roles: dict[int, Role] = {}
        self._roles_lock: RLock = RLock()
        self._emojis: dict[int, CustomEmoji] = {}
        self._emojis_lock: RLock = RLock()
        # Guards member overlays of servers and member indexes of roles
        self._members_lock: RLock = RLock()
        self._users: dict[int, User] = {}
        self._users_lock: RLock = RLock()

    ###########
    # Servers #
    ###########

    def get_server(self, server_id: int, /) -> typing.Optional[Server]:
        return self._servers.get(server_id)

    def get_servers_mapping(self) -> Mapping[int, Server]:
        with self._servers_lock:
            return dict(self._servers)

    def store_server(self, server: Server, /) -> None:
        with self._servers_lock, self._unavailable_lock, self._channels_lock, self._roles_lock, self._emojis_lock:
            for channel in server.channels.values():
                self._channels[channel.id] = channel
            for channel in server.channels.values():
                if isinstance(channel, ChannelCategory):
                    channel.child_ids.clear()
            for channel in server.channels.values():
                if channel.parent_id is not None:
                    category = server.channels.get(channel.parent_id)
                    if isinstance(category, ChannelCategory):
                        category._add_child(channel.id, server.channels)
            for role in server.roles.values():
                self._roles[role.id] = role
            for emoji in server.emojis.values():
                self._emojis[emoji.id] = emoji
            self._unavailable.discard(server.id)
            self._servers[server.id] = server

    def remove_server(self, server_id: int, /) -> typing.Optional[Server]:
        with self._servers_lock, self._channels_lock, self._roles_lock, self._emojis_lock:
            server = self._servers.pop(server_id, None)
            if server is None:
                return None
            for channel_id in server.channels:
                self._channels.pop(channel_id, None)
            for role_id in server.roles:
                self._roles.pop(role_id, None)
            for emoji_id in server.emojis:
                self._emojis.pop(emoji_id, None)

        for channel_id in server.channels:
            self.messages.remove_channel(channel_id)
        return server

    def add_unavailable(self, server_id: int, /) -> None:
        with self._unavailable_lock:
            self._unavailable.add(server_id)

    def remove_unavailable(self, server_id: int, /) -> bool:
        with self._unavailable_lock:
            try:
                self._unavailable.remove(server_id)
            except KeyError:
                return False
            return True

    def is_unavailable(self, server_id: int, /) -> bool:
        return server_id in self._unavailable

    def unavailable_server_ids(self) -> set[int]:
        with self._unavailable_lock:
            return set(self._unavailable)

    ############
    # Channels #
    ############

    def get_channel(self, channel_id: int, /) -> typing.Optional[Channel]:
        return self._channels.get(channel_id)

    def get_channels_mapping(self) -> Mapping[int, Channel]:
        with self._channels_lock:
            return dict(self._channels)

    def get_private_channels_mapping(self) -> Mapping[int, Channel]:
        with self._channels_lock:
            return dict(self._private_channels)

    def store_channel(self, channel: Channel, /) -> bool:
        if not isinstance(channel, ServerChannel):
            with self._channels_lock:
                self._channels[channel.id] = channel
                self._private_channels[channel.id] = channel
            return True

        with self._servers_lock, self._channels_lock:
            server = self._servers.get(channel.server_id)
            if server is None:
                return False

            self._channels[channel.id] = channel
            server.channels[channel.id] = channel

            for other in server.channels.values():
                if isinstance(other, ChannelCategory) and other.id != channel.parent_id:
                    other._remove_child(channel.id)

            if channel.parent_id is not None:
                category = server.channels.get(channel.parent_id)
                if isinstance(category, ChannelCategory):
                    category._add_child(channel.id, server.channels)

            if isinstance(channel, ChannelCategory):
                for child in server.channels.values():
                    if child.parent_id == channel.id:
                        channel._add_child(child.id, server.channels)
            return True

    def remove_channel(self, channel_id: int, /) -> typing.Optional[Channel]:
        with self._servers_lock, self._channels_lock:
            channel = self._channels.pop(channel_id, None)
            if channel is None:
                return None
            self._private_channels.pop(channel_id, None)

            if isinstance(channel, ServerChannel):
                server = self._servers.get(channel.server_id)
                if server is not None:
                    server.channels.pop(channel_id, None)
                    if channel.parent_id is not None:
                        category = server.channels.get(channel.parent_id)
                        if isinstance(category, ChannelCategory):
                            category._remove_child(channel_id)
                    if isinstance(channel, ChannelCategory):
                        for child_id in channel.child_ids:
                            child = server.channels.get(child_id)
                            if child is not None:
                                child.parent_id = None
                        channel.child_ids.clear()

        self.messages.remove_channel(channel_id)
        return channel

    #########
    # Users #
    #########

    def get_user(self, user_id: int, /) -> typing.Optional[User]:
        return self._users.get(user_id)

    def get_users_mapping(self) -> Mapping[int, User]:
        with self._users_lock:
            return dict(self._users)

    def store_user(self, user: User, /) -> User:
        with self._users_lock:
            cached = self._users.get(user.id)
            if cached is None:
                self._users[user.id] = user
                return user
            if cached is not user:
                cached.locally_update(user)
            return cached

    def remove_user(self, user_id: int, /) -> typing.Optional[User]:
        with self._users_lock:
            return self._users.pop(user_id, None)

    #########
    # Roles #
    #########

    def get_role(self, role_id: int, /) -> typing.Optional[Role]:
        return self._roles.get(role_id)

    def store_role(self, role: Role, /) -> typing.Optional[Role]:
        with self._servers_lock, self._roles_lock, self._members_lock:
            server = self._servers.get(role.server_id)
            if server is None:
                return None

            cached = server.roles.get(role.id)
            if cached is not None:
                if cached is not role:
                    cached.locally_update(role)
                return cached

            role.member_ids = {
                user_id for user_id, role_ids in server.member_roles.items() if role.id in role_ids
            }
            server.roles[role.id] = role
            self._roles[role.id] = role
            return role

    def remove_role(self, server_id: int, role_id: int, /) -> typing.Optional[Role]:
        with self._servers_lock, self._roles_lock, self._members_lock:
            server = self._servers.get(server_id)
            if server is None:
                return None
            role = server.roles.pop(role_id, None)
            if role is None:
                return None
            self._roles.pop(role_id, None)
            for role_ids in server.member_roles.values():
                role_ids.discard(role_id)
            return role

    ##########
    # Emojis #
    ##########

    def get_emoji(self, emoji_id: int, /) -> typing.Optional[CustomEmoji]:
        return self._emojis.get(emoji_id)

    def set_server_emojis(self, server_id: int, emojis: Iterable[CustomEmoji], /) -> bool:
        with self._servers_lock, self._emojis_lock:
            server = self._servers.get(server_id)
            if server is None:
                return False
            for emoji_id in server.emojis:
                self._emojis.pop(emoji_id, None)
            server.emojis = {emoji.id: emoji for emoji in emojis}
            self._emojis.update(server.emojis)
            return True

    ###########
    # Members #
    ###########

    def store_member(
        self,
        server_id: int,
        user: User,
        /,
        *,
        nick: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        role_ids: UndefinedOr[Iterable[int]] = UNDEFINED,
    ) -> typing.Optional[User]:
        with self._servers_lock, self._roles_lock, self._members_lock:
            server = self._servers.get(server_id)
            if server is None:
                return None
            cached = self.store_user(user)
            server._set_member(cached.id, nick=nick, role_ids=role_ids)
            return cached

    def remove_member(self, server_id: int, user_id: int, /) -> bool:
        with self._servers_lock, self._roles_lock, self._members_lock:
            server = self._servers.get(server_id)
            if server is None:
                return False
            return server._remove_member(user_id)

    ########
    # Misc #
    ########

    def clear(self) -> None:
        with (
            self._servers_lock,
            self._unavailable_lock,
            self._channels_lock,
            self._roles_lock,
            self._emojis_lock,
            self._members_lock,
            self._users_lock,
        ):
            self._servers.clear()
            self._unavailable.clear()
            self._channels.clear()
            self._private_channels.clear()
            self._roles.clear()
            self._emojis.clear()
            self._users.clear()
        self.messages.clear()


__all__ = (
    'MessageObserver',
    'MessageCache',
    'Cache',
    'MapCache',
)
