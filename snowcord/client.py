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

import asyncio
import logging
import typing

import aiohttp

from . import utils
from .cache import MapCache
from .core import UNDEFINED, UndefinedOr
from .dispatcher import Dispatcher
from .enums import ShardState
from .errors import ShardClosedError, ShardError
from .events import ShardEvent
from .flags import Intents
from .handlers import PacketHandlers
from .http import HTTPClient
from .shard import Shard
from .state import State

if typing.TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from typing_extensions import Self

    from .cache import Cache
    from .channel import Channel
    from .emoji import CustomEmoji
    from .events import (
        BaseEvent,
        ShardStateChangeEvent,
        BeforeConnectEvent,
        AfterConnectEvent,
        ReadyEvent,
        ResumedEvent,
        ServerJoinEvent,
        ServerBecomesAvailableEvent,
        ServerBecomesUnavailableEvent,
        ServerUpdateEvent,
        ServerLeaveEvent,
        MemberJoinEvent,
        MemberUpdateEvent,
        MemberRemoveEvent,
        MembersChunkEvent,
        RoleCreateEvent,
        RoleUpdateEvent,
        RoleDeleteEvent,
        EmojisUpdateEvent,
        ChannelCreateEvent,
        ChannelUpdateEvent,
        ChannelDeleteEvent,
        MessageCreateEvent,
        MessageUpdateEvent,
        MessageDeleteEvent,
        MessageDeleteBulkEvent,
        ReactionAddEvent,
        ReactionRemoveEvent,
        ReactionRemoveAllEvent,
        PresenceUpdateEvent,
        UserUpdateEvent,
        TypingStartEvent,
    )
    from .message import Message
    from .server import Role, Server
    from .user import OwnUser, User

_L = logging.getLogger(__name__)


def _session_factory(_) -> aiohttp.ClientSession:
    return aiohttp.ClientSession()


class Client(Dispatcher):
    """A client that connects to the gateway and keeps the cache up to date.

    Parameters
    ----------
    token: :class:`str`
        The bot token. Can be passed later to :meth:`login` or :meth:`run`.
    bot: :class:`bool`
        Whether the token belongs to bot account. Defaults to ``True``.
    shard_count: :class:`int`
        The total count of shards. Defaults to ``1``.
    shard_ids: Optional[List[:class:`int`]]
        The IDs of shards to run in this process. Defaults to every shard.
    intents: Optional[:class:`Intents`]
        The gateway intents. Defaults to :meth:`Intents.default`.
    proxy: Optional[:class:`str`]
        The proxy URL used for both HTTP requests and gateway connections.
    proxy_auth: Optional[:class:`aiohttp.BasicAuth`]
        The proxy authentication.
    wait_for_servers: :class:`bool`
        Whether :meth:`login` should wait until every unavailable server becomes available. Defaults to ``True``.
    server_ready_timeout: :class:`float`
        How many seconds to wait for servers at most. Defaults to ``60``.
    message_cache_capacity: :class:`int`
        How many messages the cache keeps after each sweep. Negative means unbounded. Defaults to ``1000``.
    message_cache_max_age: :class:`float`
        How many seconds a message can be cached. Negative means forever. Defaults to ``43200`` (12 hours).
    message_cache_sweep_interval: :class:`float`
        How often the message cache is swept, in seconds. Defaults to ``60``.
    max_resume_attempts: :class:`int`
        How many resumes are attempted before identifying again. Defaults to ``5``.
    max_connect_retries: :class:`int`
        How many times connecting can fail in a row before giving up. Defaults to ``150``.
    large_threshold: :class:`int`
        The member count after which the gateway stops sending offline members. Defaults to ``250``.
    http_base: Optional[:class:`str`]
        The base URL of API.
    gateway_url: Optional[:class:`str`]
        The gateway URL.
    cache: Optional[:class:`Cache`]
        The cache to use. Defaults to :class:`MapCache`.
    """

    __slots__ = (
        '_ready_futures',
        '_shard_tasks',
        '_state',
        '_sweeper',
        '_token',
        'bot',
        'closed',
        'extra',
        'message_cache_sweep_interval',
        'server_ready_timeout',
        'wait_for_servers',
    )

    def __init__(
        self,
        *,
        token: str = '',
        bot: bool = True,
        shard_count: int = 1,
        shard_ids: typing.Optional[list[int]] = None,
        intents: typing.Optional[Intents] = None,
        proxy: typing.Optional[str] = None,
        proxy_auth: typing.Optional[aiohttp.BasicAuth] = None,
        wait_for_servers: bool = True,
        server_ready_timeout: float = 60.0,
        message_cache_capacity: int = 1000,
        message_cache_max_age: float = 43200.0,
        message_cache_sweep_interval: float = 60.0,
        max_resume_attempts: int = 5,
        max_connect_retries: int = 150,
        large_threshold: int = 250,
        http_base: typing.Optional[str] = None,
        gateway_url: typing.Optional[str] = None,
        cache: typing.Optional[Cache] = None,
    ) -> None:
        super().__init__()

        if shard_count < 1:
            raise ValueError('shard_count must be positive')
        if shard_ids is None:
            shard_ids = list(range(shard_count))

        self.closed: bool = True
        self.extra = {}
        self.message_cache_sweep_interval: float = message_cache_sweep_interval
        self.server_ready_timeout: float = server_ready_timeout
        self.wait_for_servers: bool = wait_for_servers
        self._ready_futures: dict[int, asyncio.Future[None]] = {}
        self._shard_tasks: list[asyncio.Task[None]] = []
        self._sweeper: typing.Optional[asyncio.Task[None]] = None
        self._token: str = token
        self.bot: bool = bot

        state = State(shard_count=shard_count)
        state.setup(
            cache=cache
            or MapCache(
                message_cache_capacity=message_cache_capacity,
                message_cache_max_age=message_cache_max_age,
            ),
            http=HTTPClient(
                token,
                base=http_base,
                bot=bot,
                proxy=proxy,
                proxy_auth=proxy_auth,
                session=_session_factory,
                state=state,
            ),
        )
        self._state: State = state

        handler = PacketHandlers(self)
        state.setup(
            shards=[
                Shard(
                    token,
                    shard_id=shard_id,
                    shard_count=shard_count,
                    intents=intents,
                    base=gateway_url,
                    bot=bot,
                    handler=handler,
                    large_threshold=large_threshold,
                    max_connect_retries=max_connect_retries,
                    max_resume_attempts=max_resume_attempts,
                    proxy=proxy,
                    proxy_auth=proxy_auth,
                    session=_session_factory,
                    state=state,
                )
                for shard_id in shard_ids
            ]
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: typing.Optional[type[BaseException]],
        exc_value: typing.Optional[BaseException],
        traceback: typing.Optional[TracebackType],
        /,
    ) -> None:
        if not self.closed:
            await self.close()

    @property
    def me(self) -> typing.Optional[OwnUser]:
        """Optional[:class:`OwnUser`]: The currently logged in user."""
        return self._state.me

    @property
    def http(self) -> HTTPClient:
        """:class:`HTTPClient`: The HTTP client."""
        return self._state.http

    @property
    def shards(self) -> list[Shard]:
        """List[:class:`Shard`]: The shards run by this client."""
        return list(self._state.shards.values())

    @property
    def shard_count(self) -> int:
        """:class:`int`: The total count of shards."""
        return self._state.shard_count

    @property
    def state(self) -> State:
        """:class:`State`: The controlling state."""
        return self._state

    @property
    def cache(self) -> Cache:
        """:class:`Cache`: The cache."""
        return self._state.cache

    @property
    def servers(self) -> Mapping[int, Server]:
        """Mapping[:class:`int`, :class:`Server`]: Retrieves all available servers from cache."""
        return self._state.cache.get_servers_mapping()

    @property
    def channels(self) -> Mapping[int, Channel]:
        """Mapping[:class:`int`, :class:`Channel`]: Retrieves all channels from cache."""
        return self._state.cache.get_channels_mapping()

    @property
    def users(self) -> Mapping[int, User]:
        """Mapping[:class:`int`, :class:`User`]: Retrieves all users from cache."""
        return self._state.cache.get_users_mapping()

    @property
    def unavailable_server_ids(self) -> set[int]:
        """Set[:class:`int`]: The IDs of servers that are not available yet."""
        return self._state.cache.unavailable_server_ids()

    @property
    def latency(self) -> float:
        """:class:`float`: The average heartbeat latency over all shards, in seconds."""
        shards = self.shards
        if not shards:
            return float('nan')
        return sum(shard.latency for shard in shards) / len(shards)

    def shard_for(self, server_id: int, /) -> int:
        """Calculates ID of shard that receives events of a server.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.

        Returns
        -------
        :class:`int`
            The shard ID.
        """
        return self._state.shard_for(server_id)

    def get_server(self, server_id: int, /) -> typing.Optional[Server]:
        """Retrieves a server from cache.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.

        Returns
        -------
        Optional[:class:`Server`]
            The server or ``None`` if not found.
        """
        return self._state.cache.get_server(server_id)

    def get_channel(self, channel_id: int, /) -> typing.Optional[Channel]:
        """Retrieves a channel from cache.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.

        Returns
        -------
        Optional[:class:`Channel`]
            The channel or ``None`` if not found.
        """
        return self._state.cache.get_channel(channel_id)

    def get_user(self, user_id: int, /) -> typing.Optional[User]:
        """Retrieves a user from cache.

        Parameters
        ----------
        user_id: :class:`int`
            The user's ID.

        Returns
        -------
        Optional[:class:`User`]
            The user or ``None`` if not found.
        """
        return self._state.cache.get_user(user_id)

    def get_message(self, message_id: int, /) -> typing.Optional[Message]:
        """Optional[:class:`Message`]: Retrieves a message from cache."""
        return self._state.cache.get_message(message_id)

    def get_role(self, role_id: int, /) -> typing.Optional[Role]:
        """Optional[:class:`Role`]: Retrieves a role from cache."""
        return self._state.cache.get_role(role_id)

    def get_emoji(self, emoji_id: int, /) -> typing.Optional[CustomEmoji]:
        """Optional[:class:`CustomEmoji`]: Retrieves a custom emoji from cache."""
        return self._state.cache.get_emoji(emoji_id)

    async def fetch_user(self, user_id: int, /) -> User:
        """|coro|

        Retrieves a user from API. This is shortcut to :meth:`HTTPClient.fetch_user`.

        Parameters
        ----------
        user_id: :class:`int`
            The user's ID.

        Returns
        -------
        :class:`User`
            The retrieved user.
        """
        return await self.http.fetch_user(user_id)

    async def fetch_server(self, server_id: int, /) -> Server:
        """|coro|

        Retrieves a server from API. This is shortcut to :meth:`HTTPClient.fetch_server`.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.

        Returns
        -------
        :class:`Server`
            The retrieved server.
        """
        return await self.http.fetch_server(server_id)

    async def fetch_channel(self, channel_id: int, /) -> Channel:
        """|coro|

        Retrieves a channel from API. This is shortcut to :meth:`HTTPClient.fetch_channel`.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.

        Returns
        -------
        :class:`Channel`
            The retrieved channel.
        """
        return await self.http.fetch_channel(channel_id)

    def _with_credentials(self, token: str, bot: UndefinedOr[bool], /) -> None:
        if token:
            if bot is not UNDEFINED:
                self.bot = bot
            self._token = token

            self.http.with_credentials(token, bot=self.bot)
            for shard in self.shards:
                shard.with_credentials(token, bot=self.bot)
        elif not self._token:
            raise TypeError('No token was provided')

    def _shard_state_changed(self, shard: Shard, new: ShardState, error: typing.Optional[BaseException], /) -> None:
        future = self._ready_futures.get(shard.shard_id)
        if future is None or future.done():
            return
        if new is ShardState.connected:
            future.set_result(None)
        elif new is ShardState.disconnected:
            future.set_exception(error or ShardClosedError(f'Shard {shard.shard_id} was closed before becoming ready'))

    async def _run_shard(self, shard: Shard, /) -> None:
        try:
            await shard.connect()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            future = self._ready_futures.get(shard.shard_id)
            if future is not None and not future.done():
                future.set_exception(exc)
            else:
                _L.error('Shard %i stopped due to an error', shard.shard_id, exc_info=exc)
            raise

    async def _wait_for_servers(self) -> None:
        cache = self._state.cache
        if not cache.unavailable_server_ids():
            return

        _L.debug('Waiting for %i servers to become available', len(cache.unavailable_server_ids()))
        try:
            await self.wait_for(
                ShardEvent,
                check=lambda _, /: not cache.unavailable_server_ids(),
                timeout=self.server_ready_timeout,
            )
        except asyncio.TimeoutError:
            _L.warning(
                'Servers %s did not become available in %.1f seconds',
                ', '.join(map(str, cache.unavailable_server_ids())),
                self.server_ready_timeout,
            )

    async def _sweep_messages(self) -> None:
        messages = self._state.cache.messages
        while True:
            await asyncio.sleep(self.message_cache_sweep_interval)
            messages.sweep()

    async def login(self, token: str = '', *, bot: UndefinedOr[bool] = UNDEFINED) -> Self:
        """|coro|

        Connects every shard, and waits until they are ready.

        If :attr:`wait_for_servers` is ``True``, this also waits until every server sent in ``READY``
        becomes available, or :attr:`server_ready_timeout` passes.

        Cancelling this closes every connection.

        Parameters
        ----------
        token: :class:`str`
            The token to log in with. Defaults to token passed in constructor.
        bot: UndefinedOr[:class:`bool`]
            Whether the token belongs to bot account.

        Raises
        ------
        TypeError
            No token was provided.
        :class:`AuthenticationError`
            The token is invalid.
        :class:`ShardFatalError`
            The gateway refused the connection.
        :class:`ConnectError`
            Connecting to gateway failed too many times.

        Returns
        -------
        :class:`Client`
            The client.
        """
        self._with_credentials(token, bot)

        if not self.closed:
            raise ShardError('Client is already logged in')

        loop = asyncio.get_running_loop()
        self.closed = False

        shards = self.shards
        self._ready_futures = {shard.shard_id: loop.create_future() for shard in shards}
        self._shard_tasks = [
            asyncio.create_task(self._run_shard(shard), name=f'snowcord-shard-{shard.shard_id}') for shard in shards
        ]

        try:
            await asyncio.gather(*self._ready_futures.values())
            if self.wait_for_servers:
                await self._wait_for_servers()
        except BaseException:
            await self.close()
            raise

        if self.message_cache_sweep_interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_messages(), name='snowcord-message-sweeper')
        return self

    async def start(self, token: str = '', *, bot: UndefinedOr[bool] = UNDEFINED) -> None:
        """|coro|

        Logs in, and runs until every shard stops.
        """
        await self.login(token, bot=bot)
        try:
            await asyncio.gather(*self._shard_tasks)
        finally:
            if not self.closed:
                await self.close()

    async def close(self, *, http: bool = True, cleanup_websocket: bool = True) -> None:
        """|coro|

        Closes all HTTP sessions, and websocket connections.
        """

        self.closed = True

        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

        for shard in self.shards:
            try:
                await shard.close()
            except ShardClosedError:
                pass

        tasks = self._shard_tasks
        self._shard_tasks = []
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for future in self._ready_futures.values():
            if not future.done():
                future.cancel()
        self._ready_futures = {}

        if cleanup_websocket:
            for shard in self.shards:
                await shard.cleanup()

        if http:
            await self.http.cleanup()

    def run(
        self,
        token: str = '',
        *,
        bot: UndefinedOr[bool] = UNDEFINED,
        log_handler: UndefinedOr[typing.Optional[logging.Handler]] = UNDEFINED,
        log_formatter: UndefinedOr[logging.Formatter] = UNDEFINED,
        log_level: UndefinedOr[int] = UNDEFINED,
        root_logger: bool = False,
        asyncio_debug: bool = False,
    ) -> None:
        """A blocking call that abstracts away the event loop
        initialisation from you.

        If you want more control over the event loop then this
        function should not be used. Use :meth:`.start` coroutine.

        This function also sets up the logging library to make it easier
        for beginners to know what is going on with the library. For more
        advanced users, this can be disabled by passing ``None`` to
        the ``log_handler`` parameter.

        .. warning::

            This function must be the last function to call due to the fact that it
            is blocking. That means that registration of events or anything being
            called after this function call will not execute until it returns.

        Parameters
        -----------
        log_handler: Optional[:class:`logging.Handler`]
            The log handler to use for the library's logger. If this is ``None``
            then the library will not set up anything logging related. Logging
            will still work if ``None`` is passed, though it is your responsibility
            to set it up.

            The default log handler if not provided is :class:`logging.StreamHandler`.
        log_formatter: :class:`logging.Formatter`
            The formatter to use with the given log handler. If not provided then it
            defaults to a color based logging formatter (if available).
        log_level: :class:`int`
            The default log level for the library's logger. This is only applied if the
            ``log_handler`` parameter is not ``None``. Defaults to ``logging.INFO``.
        root_logger: :class:`bool`
            Whether to set up the root logger rather than the library logger.
            By default, only the library logger (``'snowcord'``) is set up. If this
            is set to ``True`` then the root logger is set up as well.

            Defaults to ``False``.
        asyncio_debug: :class:`bool`
            Whether to run with asyncio debug mode enabled or not.

            Defaults to ``False``.
        """

        self._with_credentials(token, bot)

        if log_handler is not None:
            utils.setup_logging(
                handler=log_handler,
                formatter=log_formatter,
                level=log_level,
                root=root_logger,
            )

        try:
            asyncio.run(self.start(), debug=asyncio_debug)
        except KeyboardInterrupt:
            # `asyncio.run` cancels the remaining tasks, and `start` closes the client
            return

    if typing.TYPE_CHECKING:

        def on_event(self, arg: BaseEvent, /) -> utils.MaybeAwaitable[None]: ...

        def on_shard_state_change(self, arg: ShardStateChangeEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_before_connect(self, arg: BeforeConnectEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_after_connect(self, arg: AfterConnectEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_ready(self, arg: ReadyEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_resumed(self, arg: ResumedEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_server_join(self, arg: ServerJoinEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_server_becomes_available(self, arg: ServerBecomesAvailableEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_server_becomes_unavailable(
            self, arg: ServerBecomesUnavailableEvent, /
        ) -> utils.MaybeAwaitable[None]: ...
        def on_server_update(self, arg: ServerUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_server_leave(self, arg: ServerLeaveEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_member_join(self, arg: MemberJoinEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_member_update(self, arg: MemberUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_member_remove(self, arg: MemberRemoveEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_members_chunk(self, arg: MembersChunkEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_role_create(self, arg: RoleCreateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_role_update(self, arg: RoleUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_role_delete(self, arg: RoleDeleteEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_emojis_update(self, arg: EmojisUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_channel_create(self, arg: ChannelCreateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_channel_update(self, arg: ChannelUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_channel_delete(self, arg: ChannelDeleteEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_message_create(self, arg: MessageCreateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_message_update(self, arg: MessageUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_message_delete(self, arg: MessageDeleteEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_message_delete_bulk(self, arg: MessageDeleteBulkEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_reaction_add(self, arg: ReactionAddEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_reaction_remove(self, arg: ReactionRemoveEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_reaction_remove_all(self, arg: ReactionRemoveAllEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_presence_update(self, arg: PresenceUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_user_update(self, arg: UserUpdateEvent, /) -> utils.MaybeAwaitable[None]: ...
        def on_typing_start(self, arg: TypingStartEvent, /) -> utils.MaybeAwaitable[None]: ...


__all__ = ('Client',)
