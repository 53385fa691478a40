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
import aiohttp
import asyncio
from inspect import isawaitable
import logging
import random
import time
import typing

from . import utils
from .core import __version__ as version
from .enums import ShardState, UserStatus
from .errors import (
    SnowcordError,
    ShardClosedError,
    AuthenticationError,
    ShardFatalError,
    ConnectError,
    InvalidData,
)
from .flags import Intents
from .packets import (
    OpCode,
    Packet,
    PacketDecoder,
    encode,
    heartbeat_payload,
    identify_payload,
    presence_payload,
    request_members_payload,
    resume_payload,
)

if typing.TYPE_CHECKING:
    from collections.abc import Callable

    from .state import State
    from .user import Activity

_L = logging.getLogger(__name__)


# Authentication failed, invalid shard, sharding required, invalid API version,
# invalid intents, disallowed intents
FATAL_CLOSE_CODES: typing.Final[frozenset[int]] = frozenset((4004, 4010, 4011, 4012, 4013, 4014))

# The session cannot be resumed, a fresh identify is required
SESSION_INVALIDATING_CLOSE_CODES: typing.Final[frozenset[int]] = frozenset((1000, 4007, 4009))


class EventHandler(ABC):
    """A handler for shard events."""

    __slots__ = ()

    @abstractmethod
    def handle_raw(self, shard: Shard, packet: Packet, /) -> utils.MaybeAwaitable[None]:
        """Handles dispatched event.

        Parameters
        ----------
        shard: :class:`Shard`
            The shard that received the event.
        packet: :class:`.Packet`
            The received dispatch packet.
        """
        ...

    def before_connect(self, shard: Shard, /) -> utils.MaybeAwaitable[None]:
        """Called before connecting to the gateway."""
        ...

    def after_connect(self, shard: Shard, socket: aiohttp.ClientWebSocketResponse, /) -> utils.MaybeAwaitable[None]:
        """Called when successfully connected to the gateway.

        Parameters
        ----------
        socket: :class:`aiohttp.ClientWebSocketResponse`
            The connected WebSocket.
        """
        ...

    def state_changed(
        self, shard: Shard, old: ShardState, new: ShardState, error: typing.Optional[BaseException], /
    ) -> utils.MaybeAwaitable[None]:
        """Called when shard moves to another lifecycle phase.

        Parameters
        ----------
        old: :class:`.ShardState`
            The previous phase.
        new: :class:`.ShardState`
            The new phase.
        error: Optional[:class:`BaseException`]
            The error that caused the transition, if any.
        """
        ...


class HeartbeatTracker:
    """Keeps track of heartbeats sent and acknowledged.

    A heartbeat is considered timed out when the previous one was not acknowledged
    by the time the next one is due, or when nothing was acknowledged for two intervals.

    Attributes
    ----------
    interval: Optional[:class:`float`]
        The heartbeat interval in seconds, or ``None`` if not started.
    latency: :class:`float`
        The time in seconds between the last heartbeat and its acknowledgement.
    """

    __slots__ = (
        'interval',
        'latency',
        '_awaiting_ack',
        '_clock',
        '_last_ack_at',
        '_last_sent_at',
    )

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval: typing.Optional[float] = None
        self.latency: float = float('inf')
        self._awaiting_ack: bool = False
        self._clock: Callable[[], float] = clock
        self._last_ack_at: float = 0.0
        self._last_sent_at: float = 0.0

    def start(self, interval: float, /, now: typing.Optional[float] = None) -> None:
        if now is None:
            now = self._clock()
        self.interval = interval
        self._awaiting_ack = False
        self._last_ack_at = now
        self._last_sent_at = now

    def stop(self) -> None:
        self.interval = None
        self._awaiting_ack = False

    def beat(self, now: typing.Optional[float] = None) -> None:
        if now is None:
            now = self._clock()
        self._awaiting_ack = True
        self._last_sent_at = now

    def ack(self, now: typing.Optional[float] = None) -> None:
        if now is None:
            now = self._clock()
        if self._awaiting_ack:
            self.latency = now - self._last_sent_at
        self._awaiting_ack = False
        self._last_ack_at = now

    def is_awaiting_ack(self) -> bool:
        return self._awaiting_ack

    def timed_out(self, now: typing.Optional[float] = None) -> bool:
        """:class:`bool`: Whether the connection should be considered dead."""
        if self.interval is None:
            return False
        if now is None:
            now = self._clock()
        if self._awaiting_ack and now - self._last_sent_at >= self.interval:
            return True
        return now - self._last_ack_at >= 2 * self.interval


DEFAULT_SHARD_USER_AGENT = f'DiscordBot (snowcord, {version})'


class Shard:
    """Implements the gateway WebSocket client for one shard.

    Attributes
    ----------
    base: :class:`str`
        The base WebSocket URL.
    bot: :class:`bool`
        Whether the token belongs to bot account. Defaults to ``True``.
    compress: :class:`bool`
        Whether to request zlib-stream transport compression.
    handler: Optional[:class:`.EventHandler`]
        The handler that receives events. Defaults to ``None`` if not provided.
    intents: :class:`.Intents`
        The intents sent when identifying.
    large_threshold: :class:`int`
        The member count after which server is considered large and members are not sent on join.
    max_connect_retries: :class:`int`
        How many times to retry connecting before giving up with :class:`ConnectError`.
    max_resume_attempts: :class:`int`
        How many resumes in row to try before falling back to fresh identify.
    resume_url: Optional[:class:`str`]
        The URL to use when resuming, received in ``READY``.
    sequence: Optional[:class:`int`]
        The sequence number of last dispatch packet.
    session_id: Optional[:class:`str`]
        The session ID, received in ``READY``.
    shard_count: :class:`int`
        The total number of shards.
    shard_id: :class:`int`
        The shard's index.
    state: :class:`State`
        The state.
    status: :class:`.ShardState`
        The current lifecycle phase.
    token: :class:`str`
        The shard token. May be empty if not started.
    user_agent: :class:`str`
        The HTTP user agent used when connecting to WebSocket.
    """

    __slots__ = (
        '_backoff',
        '_clock',
        '_closing',
        '_decoder',
        '_heartbeat',
        '_heartbeat_task',
        '_random',
        '_reconnect_lock',
        '_resume_attempts',
        '_session',
        '_socket',
        'base',
        'bot',
        'compress',
        'handler',
        'intents',
        'large_threshold',
        'max_connect_retries',
        'max_resume_attempts',
        'proxy',
        'proxy_auth',
        'resume_url',
        'sequence',
        'session_id',
        'shard_count',
        'shard_id',
        'state',
        'status',
        'token',
        'user_agent',
    )

    def __init__(
        self,
        token: str,
        *,
        shard_id: int = 0,
        shard_count: int = 1,
        intents: typing.Optional[Intents] = None,
        base: typing.Optional[str] = None,
        bot: bool = True,
        compress: bool = False,
        handler: typing.Optional[EventHandler] = None,
        large_threshold: int = 250,
        max_connect_retries: int = 150,
        max_resume_attempts: int = 5,
        proxy: typing.Optional[str] = None,
        proxy_auth: typing.Optional[aiohttp.BasicAuth] = None,
        session: typing.Union[utils.MaybeAwaitableFunc[[Shard], aiohttp.ClientSession], aiohttp.ClientSession],
        state: State,
        clock: Callable[[], float] = time.monotonic,
        rng: typing.Optional[random.Random] = None,
        user_agent: typing.Optional[str] = None,
    ) -> None:
        if not 0 <= shard_id < shard_count:
            raise ValueError(f'Shard ID {shard_id} is out of range for {shard_count} shards')

        self._clock: Callable[[], float] = clock
        self._random: random.Random = rng or random.Random()
        self._backoff: utils.ExponentialBackoff = utils.ExponentialBackoff(1.0, cap=60.0, rng=self._random)
        self._closing: asyncio.Event = asyncio.Event()
        self._decoder: PacketDecoder = PacketDecoder(compress=compress)
        self._heartbeat: HeartbeatTracker = HeartbeatTracker(clock=clock)
        self._heartbeat_task: typing.Optional[asyncio.Task[None]] = None
        self._reconnect_lock: asyncio.Lock = asyncio.Lock()
        self._resume_attempts: int = 0
        self._session = session
        self._socket: typing.Optional[aiohttp.ClientWebSocketResponse] = None
        self.base: str = base or 'wss://gateway.discord.gg'
        self.bot: bool = bot
        self.compress: bool = compress
        self.handler: typing.Optional[EventHandler] = handler
        self.intents: Intents = Intents.default() if intents is None else intents
        self.large_threshold: int = large_threshold
        self.max_connect_retries: int = max_connect_retries
        self.max_resume_attempts: int = max_resume_attempts
        self.proxy: typing.Optional[str] = proxy
        self.proxy_auth: typing.Optional[aiohttp.BasicAuth] = proxy_auth
        self.resume_url: typing.Optional[str] = None
        self.sequence: typing.Optional[int] = None
        self.session_id: typing.Optional[str] = None
        self.shard_count: int = shard_count
        self.shard_id: int = shard_id
        self.state: State = state
        self.status: ShardState = ShardState.disconnected
        self.token: str = token
        self.user_agent: str = user_agent or DEFAULT_SHARD_USER_AGENT

    def __repr__(self) -> str:
        return f'<Shard shard_id={self.shard_id} shard_count={self.shard_count} status={self.status!r}>'

    def is_closed(self) -> bool:
        return self._closing.is_set() and not self._socket

    @property
    def latency(self) -> float:
        """:class:`float`: The time in seconds between the last heartbeat and its acknowledgement."""
        return self._heartbeat.latency

    @property
    def socket(self) -> aiohttp.ClientWebSocketResponse:
        """:class:`aiohttp.ClientWebSocketResponse`: The current WebSocket connection."""
        if self._socket is None:
            raise TypeError('No websocket')
        return self._socket

    def with_credentials(self, token: str, *, bot: bool = True) -> None:
        """Modifies shard credentials.

        Parameters
        ----------
        token: :class:`str`
            The authentication token.
        bot: :class:`bool`
            Whether the token belongs to bot account or not.
        """
        self.token = token
        self.bot = bot

    async def cleanup(self) -> None:
        """|coro|

        Closes the aiohttp session.
        """
        if not callable(self._session):
            await self._session.close()

    async def close(self) -> None:
        """|coro|

        Closes the connection to the gateway. Pending reconnect delays are cancelled.

        Raises
        ------
        :class:`ShardClosedError`
            The shard was already closed.
        """
        if self._closing.is_set():
            raise ShardClosedError('Already closed')
        self._closing.set()
        socket = self._socket
        if socket is not None and not socket.closed:
            await socket.close(code=1000)

    async def reconnect(self) -> bool:
        """|coro|

        Drops the current connection so the shard reconnects and resumes.

        Concurrent calls are deduplicated: while a reconnect is in flight, further calls do nothing.

        Returns
        -------
        :class:`bool`
            Whether this call initiated a reconnect.
        """
        async with self._reconnect_lock:
            socket = self._socket
            if (
                socket is None
                or self._closing.is_set()
                or self.status in (ShardState.reconnecting, ShardState.disconnected)
            ):
                _L.debug('Shard %i: reconnect is already in progress', self.shard_id)
                return False
            await self._set_status(ShardState.reconnecting)

        if not socket.closed:
            await socket.close(code=4000)
        return True

    async def _set_status(self, status: ShardState, /, error: typing.Optional[BaseException] = None) -> None:
        old = self.status
        if old is status and error is None:
            return
        self.status = status
        _L.info('Shard %i changed state: %s -> %s', self.shard_id, old.name, status.name)
        if self.handler:
            r = self.handler.state_changed(self, old, status, error)
            if isawaitable(r):
                await r

    def _drop_session(self) -> None:
        self.session_id = None
        self.sequence = None
        self.resume_url = None
        self._resume_attempts = 0

    def can_resume(self) -> bool:
        """:class:`bool`: Whether the next connection will attempt resuming the session."""
        return self.session_id is not None

    async def send(self, op: OpCode, data: typing.Any, /) -> None:
        """|coro|

        Sends a packet to the gateway.
        """
        if op in (OpCode.identify, OpCode.resume):
            _L.debug('Shard %i sending %s', self.shard_id, op.name)
        else:
            _L.debug('Shard %i sending %s: %s', self.shard_id, op.name, data)
        await self.socket.send_str(encode(op, data))

    async def send_heartbeat(self) -> None:
        """|coro|

        Sends a heartbeat with the last sequence number.
        """
        self._heartbeat.beat(self._clock())
        await self.send(OpCode.heartbeat, heartbeat_payload(self.sequence))

    async def identify(self) -> None:
        """|coro|

        Identifies the currently connected WebSocket. This is called after receiving ``Hello``.
        """
        await self._set_status(ShardState.identifying)
        payload = identify_payload(
            self.token,
            self.shard_id,
            self.shard_count,
            self.intents,
            large_threshold=self.large_threshold,
        )
        await self.send(OpCode.identify, payload)

    async def resume(self) -> None:
        """|coro|

        Resumes the session on the currently connected WebSocket.
        """
        if self.session_id is None:
            raise SnowcordError('There is no session to resume')
        self._resume_attempts += 1
        await self._set_status(ShardState.resuming)
        await self.send(OpCode.resume, resume_payload(self.token, self.session_id, self.sequence))

    async def request_members(self, server_id: int, /, *, query: str = '', limit: int = 0) -> None:
        """|coro|

        Requests members of a server. The members are sent in ``GUILD_MEMBERS_CHUNK`` events.

        Parameters
        ----------
        server_id: :class:`int`
            The server's ID.
        query: :class:`str`
            The username prefix to filter by. Empty string requests every member.
        limit: :class:`int`
            The maximum number of members to send. ``0`` means no limit.
        """
        await self.send(OpCode.request_members, request_members_payload(server_id, query=query, limit=limit))

    async def change_presence(
        self,
        *,
        status: UserStatus = UserStatus.online,
        activity: typing.Optional[Activity] = None,
        afk: bool = False,
    ) -> None:
        """|coro|

        Changes the current user's presence.

        Parameters
        ----------
        status: :class:`.UserStatus`
            The new status.
        activity: Optional[:class:`.Activity`]
            The new activity.
        afk: :class:`bool`
            Whether the user is AFK.
        """
        payload = presence_payload(
            status.value,
            activity=None if activity is None else activity.build(),
            afk=afk,
        )
        await self.send(OpCode.presence, payload)

    def get_headers(self) -> dict[str, str]:
        """Dict[:class:`str`, :class:`str`]: The headers to use when connecting to WebSocket."""
        return {'User-Agent': self.user_agent}

    def get_params(self) -> dict[str, str]:
        """Dict[:class:`str`, :class:`str`]: The query string parameters to use when connecting to WebSocket."""
        params = {'v': '10', 'encoding': 'json'}
        if self.compress:
            params['compress'] = 'zlib-stream'
        return params

    async def ws_connect(
        self, session: aiohttp.ClientSession, url: str, /, *, headers: dict[str, str], params: dict[str, str]
    ) -> aiohttp.ClientWebSocketResponse:
        """|coro|

        Start a WebSocket connection.

        Parameters
        ----------
        session: :class:`aiohttp.ClientSession`
            The session to use when connecting.
        url: :class:`str`
            The URL to connect to.
        headers: Dict[:class:`str`, :class:`str`]
            The HTTP headers.
        params: Dict[:class:`str`, :class:`str`]
            The HTTP query string parameters.

        Returns
        -------
        :class:`aiohttp.ClientWebSocketResponse`
            The WebSocket connection.
        """
        return await session.ws_connect(
            url,
            headers=headers,
            params=params,
            proxy=self.proxy,
            proxy_auth=self.proxy_auth,
            max_msg_size=0,
        )

    async def _sleep(self, delay: float, /) -> bool:
        """Sleeps unless the shard gets closed. Returns ``False`` if it was closed."""
        if delay <= 0:
            return not self._closing.is_set()
        try:
            await asyncio.wait_for(self._closing.wait(), delay)
        except asyncio.TimeoutError:
            return True
        return False

    async def _socket_connect(self) -> typing.Optional[aiohttp.ClientWebSocketResponse]:
        session = self._session
        if callable(session):
            session = await utils.maybe_coroutine(session, self)
            # detect recursion
            if callable(session):
                raise TypeError(f'Expected aiohttp.ClientSession, not {type(session)!r}')
            # Do not call factory on future requests
            self._session = session

        if self.resume_url is not None and self.can_resume():
            url = self.resume_url
        else:
            url = self.base

        errors: list[Exception] = []
        headers = self.get_headers()
        params = self.get_params()

        _L.debug('Shard %i connecting to %s', self.shard_id, url)

        i = 0
        while i < self.max_connect_retries:
            try:
                return await self.ws_connect(session, url, headers=headers, params=params)
            except aiohttp.WSServerHandshakeError as exc:
                _L.debug('Server replied with %i', exc.status)
                if exc.status not in (502, 525):
                    raise
                errors.append(exc)
            except (OSError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if i == 0:
                    _L.warning('Shard %i failed to connect: %s', self.shard_id, exc)
                errors.append(exc)
            i += 1
            if not await self._sleep(self._backoff.delay()):
                return None
        raise ConnectError(self.max_connect_retries, errors)

    async def connect(self) -> None:
        """|coro|

        Starts the WebSocket lifecycle. Returns once the shard was closed.

        Raises
        ------
        :class:`AuthenticationError`
            The gateway rejected the token.
        :class:`InvalidData`
            The gateway sent ``READY`` without a session.
        :class:`ShardFatalError`
            The gateway closed the connection with a code that is not retried.
        :class:`ConnectError`
            Connecting failed too many times in a row.
        """
        if self._socket:
            raise SnowcordError('The connection is already open.')

        try:
            await self._run()
        except BaseException as exc:
            self._heartbeat.stop()
            await self._set_status(ShardState.disconnected, exc if isinstance(exc, Exception) else None)
            raise
        else:
            await self._set_status(ShardState.disconnected)

    async def _run(self) -> None:
        while not self._closing.is_set():
            if self.status is not ShardState.reconnecting:
                await self._set_status(ShardState.connecting)

            if self.handler:
                r = self.handler.before_connect(self)
                if isawaitable(r):
                    await r

            socket = await self._socket_connect()
            if socket is None:
                return

            if self.handler:
                r = self.handler.after_connect(self, socket)
                if isawaitable(r):
                    await r

            self._socket = socket
            self._decoder.reset()
            await self._set_status(ShardState.awaiting_hello)

            try:
                code = await self._poll(socket)
            finally:
                self._stop_heartbeat()
                self._socket = None
                if not socket.closed:
                    try:
                        await socket.close()
                    except Exception as exc:
                        _L.warning('failed to close websocket', exc_info=exc)

            if self._closing.is_set():
                return

            if self.status is ShardState.reconnecting:
                # We closed the connection ourselves
                code = None

            if code in FATAL_CLOSE_CODES:
                raise ShardFatalError(code, self.shard_id)  # type: ignore

            if code in SESSION_INVALIDATING_CLOSE_CODES:
                _L.info('Shard %i session was invalidated by close code %s', self.shard_id, code)
                self._drop_session()
            elif self.can_resume() and self._resume_attempts >= self.max_resume_attempts:
                _L.warning(
                    'Shard %i failed to resume %i times, identifying instead', self.shard_id, self._resume_attempts
                )
                self._drop_session()
            else:
                _L.warning('Shard %i connection closed with %s, reconnecting', self.shard_id, code)

            await self._set_status(ShardState.reconnecting)
            delay = self._backoff.delay()
            _L.debug('Shard %i reconnecting in %.2f seconds', self.shard_id, delay)
            if not await self._sleep(delay):
                return

    async def _poll(self, socket: aiohttp.ClientWebSocketResponse, /) -> typing.Optional[int]:
        while True:
            message = await socket.receive()

            if message.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSED,
                aiohttp.WSMsgType.CLOSING,
            ):
                code = socket.close_code
                if code is None and message.type is aiohttp.WSMsgType.CLOSE:
                    code = message.data
                _L.debug('Shard %i WebSocket closed with %s (closing: %s)', self.shard_id, code, self._closing.is_set())
                return code

            if message.type is aiohttp.WSMsgType.ERROR:
                _L.warning('Shard %i received WebSocket error: %s', self.shard_id, message.data)
                return None

            if message.type not in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                _L.debug('Shard %i received unknown message type: %s', self.shard_id, message.type)
                continue

            try:
                packet = self._decoder.decode(message.data)
            except InvalidData as exc:
                _L.warning('Shard %i dropped malformed frame: %s', self.shard_id, exc.reason)
                continue

            if packet is not None:
                await self.received(packet)

    def _start_heartbeat(self, interval: float, /) -> None:
        self._stop_heartbeat()
        self._heartbeat.start(interval, self._clock())
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(interval), name=f'snowcord-heartbeat-{self.shard_id}'
        )

    def _stop_heartbeat(self) -> None:
        self._heartbeat.stop()
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _heartbeat_loop(self, interval: float, /) -> None:
        # The first heartbeat is jittered so shards do not beat at the same time
        await asyncio.sleep(interval * self._random.random())
        while await self.heartbeat_tick():
            await asyncio.sleep(interval)

    async def heartbeat_tick(self) -> bool:
        """|coro|

        Sends a heartbeat, unless the previous one was not acknowledged in time,
        in which case the connection is considered dead and a reconnect is initiated.
        A reconnect is initiated as well when sending the heartbeat fails.

        Returns
        -------
        :class:`bool`
            Whether the heartbeat was sent.
        """
        if self._heartbeat.timed_out(self._clock()):
            _L.warning('Shard %i missed heartbeat acknowledgement, reconnecting', self.shard_id)
            await self.reconnect()
            return False
        try:
            await self.send_heartbeat()
        except (OSError, aiohttp.ClientError, TypeError) as exc:
            _L.warning('Shard %i failed to send heartbeat: %r, reconnecting', self.shard_id, exc)
            await self.reconnect()
            return False
        return True

    async def received(self, packet: Packet, /) -> None:
        """|coro|

        Processes a decoded packet.

        Parameters
        ----------
        packet: :class:`.Packet`
            The packet.
        """
        op = packet.op

        if op is OpCode.dispatch:
            await self._handle_dispatch(packet)
        elif op is OpCode.hello:
            interval = packet.data['heartbeat_interval'] / 1000.0
            _L.debug('Shard %i received hello, heartbeat interval is %.3f seconds', self.shard_id, interval)
            self._start_heartbeat(interval)
            if self.can_resume():
                await self.resume()
            else:
                await self.identify()
        elif op is OpCode.heartbeat_ack:
            self._heartbeat.ack(self._clock())
        elif op is OpCode.heartbeat:
            await self.send_heartbeat()
        elif op is OpCode.reconnect:
            _L.info('Shard %i was asked to reconnect', self.shard_id)
            await self.reconnect()
        elif op is OpCode.invalid_session:
            await self._handle_invalid_session(packet.data)
        else:
            _L.debug('Shard %i ignoring packet with opcode %s', self.shard_id, op)

    async def _handle_invalid_session(self, resumable: bool, /) -> None:
        if resumable and self.can_resume():
            _L.info('Shard %i session was invalidated, but is resumable', self.shard_id)
            await self.resume()
            return

        if not resumable and self.status is ShardState.identifying:
            raise AuthenticationError(resumable)

        _L.info('Shard %i session was invalidated, identifying', self.shard_id)
        self._drop_session()
        if not await self._sleep(self._random.uniform(1.0, 5.0)):
            return
        await self.identify()

    async def _handle_dispatch(self, packet: Packet, /) -> None:
        event_name = packet.event_name
        if event_name == 'READY':
            data = packet.data
            if not isinstance(data, dict) or not isinstance(data.get('session_id'), str):
                raise InvalidData(f'READY without session ID: {data!r}')
            self.session_id = data['session_id']
            self.resume_url = data.get('resume_gateway_url')
            self._resume_attempts = 0
            await self._set_status(ShardState.ready)
        else:
            _L.debug('Shard %i received %s', self.shard_id, event_name)

        if self.handler:
            r = self.handler.handle_raw(self, packet)
            if isawaitable(r):
                await r

        if packet.sequence is not None:
            self.sequence = packet.sequence

        if event_name in ('READY', 'RESUMED'):
            self._resume_attempts = 0
            self._backoff.reset()
            await self._set_status(ShardState.connected)


__all__ = (
    'FATAL_CLOSE_CODES',
    'SESSION_INVALIDATING_CLOSE_CODES',
    'EventHandler',
    'HeartbeatTracker',
    'DEFAULT_SHARD_USER_AGENT',
    'Shard',
)
