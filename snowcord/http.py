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
import asyncio
from inspect import isawaitable
import logging
import typing

import aiohttp
from multidict import CIMultiDict

from . import routes, utils
from .core import (
    UNDEFINED,
    UndefinedOr,
    __version__ as version,
)
from .errors import (
    HTTPException,
    BadRequest,
    Unauthorized,
    Forbidden,
    NotFound,
    Conflict,
    Ratelimited,
    InternalServerError,
    BadGateway,
)

if typing.TYPE_CHECKING:
    from collections.abc import Callable

    from . import raw
    from .channel import Channel, PrivateChannel
    from .flags import Permissions
    from .message import Embed, Message
    from .server import Role, Server
    from .state import State
    from .user import OwnUser, User


DEFAULT_HTTP_USER_AGENT = f'DiscordBot (snowcord, {version})'


_L = logging.getLogger(__name__)
_STATUS_TO_ERRORS = {
    400: BadRequest,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    429: Ratelimited,
    500: InternalServerError,
    502: BadGateway,
}


class RateLimit(ABC):
    __slots__ = ()

    bucket: str
    remaining: int

    @abstractmethod
    async def block(self) -> None:
        """If necessary, this method must calculate delay and sleep."""
        ...

    @abstractmethod
    def is_expired(self) -> bool:
        """:class:`bool`: Whether the ratelimit is expired."""
        ...

    @abstractmethod
    def on_response(self, route: routes.CompiledRoute, response: aiohttp.ClientResponse, /) -> None:
        """Called when any response for a route in this bucket is received.

        This is called only if bucket was already present and ratelimiter wants
        to resync data.
        """
        ...

    @abstractmethod
    def on_ratelimited(self, retry_after: float, /) -> None:
        """Called when a request in this bucket received a ``429`` response.

        Parameters
        ----------
        retry_after: :class:`float`
            The number of seconds the bucket must stay paused.
        """
        ...


class RateLimitBlocker(ABC):
    __slots__ = ()

    async def increment(self) -> None:
        """Increments pending requests counter."""
        pass

    async def decrement(self) -> None:
        """Decrements pending requests counter."""
        pass


class RateLimiter(ABC):
    __slots__ = ()

    @abstractmethod
    def fetch_ratelimit_for(self, route: routes.CompiledRoute, path: str, /) -> typing.Optional[RateLimit]:
        """Optional[:class:`.RateLimit`]: Must return ratelimit information, if available."""
        ...

    @abstractmethod
    def fetch_blocker_for(self, route: routes.CompiledRoute, path: str, /) -> RateLimitBlocker:
        """:class:`.RateLimitBlocker`: Returns request blocker."""
        ...

    @abstractmethod
    async def wait_global(self) -> None:
        """Sleeps until the global ratelimit is over, if it is active."""
        ...

    @abstractmethod
    def on_global_ratelimit(self, retry_after: float, /) -> None:
        """Called when the API reported that the global ratelimit was hit.

        Parameters
        ----------
        retry_after: :class:`float`
            The number of seconds every request must wait.
        """
        ...

    @abstractmethod
    async def on_response(self, route: routes.CompiledRoute, path: str, response: aiohttp.ClientResponse, /) -> None:
        """Called when any response from the API is received.

        .. note::
            This is always called, even when request fails for other reasons like failed validation,
            invalid token, something not found, etc.
        """
        ...

    @abstractmethod
    def on_bucket_update(
        self, response: aiohttp.ClientResponse, route: routes.CompiledRoute, old_bucket: str, new_bucket: str, /
    ) -> None:
        """Called when route updates their bucket key.

        Parameters
        ----------
        response: :class:`aiohttp.ClientResponse`
            The response.
        route: :class:`~routes.CompiledRoute`
            The route.
        old_bucket: :class:`str`
            The old bucket key.
        new_bucket: :class:`str`
            The new bucket key.
        """
        ...


def _monotonic() -> float:
    return asyncio.get_running_loop().time()


class DefaultRateLimit(RateLimit):
    __slots__ = (
        '_rate_limiter',
        'bucket',
        'limit',
        'remaining',
        '_reset_at',
        '_lock',
    )

    def __init__(
        self, rate_limiter: RateLimiter, bucket: str, /, *, limit: int, remaining: int, reset_after: float
    ) -> None:
        self._rate_limiter: RateLimiter = rate_limiter
        self.bucket: str = bucket
        self.limit: int = limit
        self.remaining: int = remaining
        self._reset_at: float = _monotonic() + reset_after
        self._lock: asyncio.Lock = asyncio.Lock()

    @utils.copy_doc(RateLimit.block)
    async def block(self) -> None:
        async with self._lock:
            if self.remaining <= 0:
                delay = self._reset_at - _monotonic()
                if delay > 0:
                    _L.info('Bucket %s is ratelimited locally for %.4f; sleeping', self.bucket, delay)
                    await asyncio.sleep(delay)
                else:
                    _L.debug('Bucket %s expired.', self.bucket)
                self.remaining = self.limit
            self.remaining -= 1

    @utils.copy_doc(RateLimit.is_expired)
    def is_expired(self) -> bool:
        return self._reset_at <= _monotonic() and not self._lock.locked()

    @utils.copy_doc(RateLimit.on_response)
    def on_response(self, route: routes.CompiledRoute, response: aiohttp.ClientResponse, /) -> None:
        headers = response.headers
        self.limit = int(headers.get('x-ratelimit-limit', self.limit))
        self.remaining = int(headers['x-ratelimit-remaining'])
        self._reset_at = _monotonic() + float(headers['x-ratelimit-reset-after'])

    @utils.copy_doc(RateLimit.on_ratelimited)
    def on_ratelimited(self, retry_after: float, /) -> None:
        self.remaining = 0
        self._reset_at = _monotonic() + retry_after


class DefaultRateLimitBlocker(RateLimitBlocker):
    __slots__ = ('_lock',)

    def __init__(self) -> None:
        self._lock: asyncio.Lock = asyncio.Lock()

    @utils.copy_doc(RateLimitBlocker.increment)
    async def increment(self) -> None:
        await self._lock.acquire()

    @utils.copy_doc(RateLimitBlocker.decrement)
    async def decrement(self) -> None:
        self._lock.release()


class DefaultRateLimiter(RateLimiter):
    """The rate limiter used by default.

    Routes are grouped into buckets using ``X-RateLimit-Bucket`` header, so routes the API
    declares as sharing a bucket share the remaining-calls counter. Until the bucket of a
    route is known, requests to it are sent one at a time.
    """

    __slots__ = (
        '_global_reset_at',
        '_no_expired_ratelimit_remove',
        '_pending_requests',
        '_ratelimits',
        '_routes_to_bucket',
    )

    def __init__(
        self,
        *,
        no_expired_ratelimit_remove: bool = False,
    ) -> None:
        self._global_reset_at: float = 0.0
        self._no_expired_ratelimit_remove: bool = no_expired_ratelimit_remove
        self._pending_requests: dict[str, RateLimitBlocker] = {}
        self._ratelimits: dict[str, RateLimit] = {}
        self._routes_to_bucket: dict[str, str] = {}

    def get_ratelimit_key_for(self, route: routes.CompiledRoute, /) -> str:
        """Gets ratelimit key for this compiled route.

        By default this just calls :meth:`routes.CompiledRoute.build_ratelimit_key`.

        Parameters
        ----------
        route: :class:`~routes.CompiledRoute`
            The route to fetch ratelimit key for.

        Returns
        -------
        :class:`str`
            The ratelimit key.
        """
        return route.build_ratelimit_key()

    @utils.copy_doc(RateLimiter.fetch_ratelimit_for)
    def fetch_ratelimit_for(self, route: routes.CompiledRoute, path: str, /) -> typing.Optional[RateLimit]:
        if not self._no_expired_ratelimit_remove:
            self.try_remove_expired_ratelimits()

        key = self.get_ratelimit_key_for(route)
        try:
            bucket = self._routes_to_bucket[key]
        except KeyError:
            return None
        else:
            return self._ratelimits.get(bucket)

    @utils.copy_doc(RateLimiter.fetch_blocker_for)
    def fetch_blocker_for(self, route: routes.CompiledRoute, path: str, /) -> RateLimitBlocker:
        key = self.get_ratelimit_key_for(route)
        try:
            return self._pending_requests[key]
        except KeyError:
            blocker = DefaultRateLimitBlocker()
            self._pending_requests[key] = blocker
            return blocker

    @utils.copy_doc(RateLimiter.wait_global)
    async def wait_global(self) -> None:
        delay = self._global_reset_at - _monotonic()
        if delay > 0:
            _L.info('Global ratelimit is active for %.4f; sleeping', delay)
            await asyncio.sleep(delay)

    @utils.copy_doc(RateLimiter.on_global_ratelimit)
    def on_global_ratelimit(self, retry_after: float, /) -> None:
        self._global_reset_at = max(self._global_reset_at, _monotonic() + retry_after)

    @utils.copy_doc(RateLimiter.on_response)
    async def on_response(self, route: routes.CompiledRoute, path: str, response: aiohttp.ClientResponse, /) -> None:
        headers = response.headers

        try:
            bucket = headers['x-ratelimit-bucket']
        except KeyError:
            # Thanks Cloudflare
            return

        key = self.get_ratelimit_key_for(route)
        old_bucket = self._routes_to_bucket.get(key)
        if old_bucket is not None and old_bucket != bucket:
            _L.warning('%s changed ratelimit bucket key: %s -> %s.', response.url, old_bucket, bucket)
            self.on_bucket_update(response, route, old_bucket, bucket)

        try:
            ratelimit = self._ratelimits[bucket]
        except KeyError:
            _L.debug('%s %s found initial bucket key: %s.', route.route.method, path, bucket)

            remaining = int(headers['x-ratelimit-remaining'])
            ratelimit = DefaultRateLimit(
                self,
                bucket,
                limit=int(headers.get('x-ratelimit-limit', remaining + 1)),
                remaining=remaining,
                reset_after=float(headers['x-ratelimit-reset-after']),
            )
            self._ratelimits[bucket] = ratelimit
        else:
            ratelimit.on_response(route, response)
        self._routes_to_bucket[key] = bucket

    @utils.copy_doc(RateLimiter.on_bucket_update)
    def on_bucket_update(
        self, response: aiohttp.ClientResponse, route: routes.CompiledRoute, old_bucket: str, new_bucket: str, /
    ) -> None:
        self._routes_to_bucket[self.get_ratelimit_key_for(route)] = new_bucket

    def try_remove_expired_ratelimits(self) -> None:
        """Tries to remove expired ratelimits."""
        if not len(self._ratelimits) or not len(self._routes_to_bucket):
            return

        ratelimits = self._ratelimits
        buckets = [s.bucket for s in ratelimits.values() if s.is_expired()]

        if not buckets:
            return

        for bucket in buckets:
            ratelimits.pop(bucket, None)

        keys = [k for k, v in self._routes_to_bucket.items() if v not in ratelimits]
        for key in keys:
            del self._routes_to_bucket[key]


class HTTPClient:
    """Represents an HTTP client sending HTTP requests to the API.

    Results of requests returning entities are written back into the cache, and
    the cached objects are returned, so every holder of an entity observes same updates.

    Attributes
    ----------
    bot: :class:`bool`
        Whether the token belongs to bot account.
    proxy: Optional[:class:`str`]
        The HTTP proxy used for requests.
    proxy_auth: Optional[:class:`aiohttp.BasicAuth`]
        The proxy authentication.
    rate_limiter: Optional[:class:`RateLimiter`]
        The rate limiter in use.
    state: :class:`State`
        The state.
    token: :class:`str`
        The token in use. May be empty if not started.
    user_agent: :class:`str`
        The HTTP user agent used when making requests.
    """

    __slots__ = (
        '_base',
        '_session',
        'bot',
        'proxy',
        'proxy_auth',
        'rate_limiter',
        'state',
        'token',
        'user_agent',
    )

    connection_reset_delay: typing.ClassVar[float] = 1.5

    def __init__(
        self,
        token: typing.Optional[str] = None,
        *,
        base: typing.Optional[str] = None,
        bot: bool = True,
        proxy: typing.Optional[str] = None,
        proxy_auth: typing.Optional[aiohttp.BasicAuth] = None,
        rate_limiter: UndefinedOr[
            typing.Optional[typing.Union[Callable[[HTTPClient], typing.Optional[RateLimiter]], RateLimiter]]
        ] = UNDEFINED,
        state: State,
        session: typing.Union[utils.MaybeAwaitableFunc[[HTTPClient], aiohttp.ClientSession], aiohttp.ClientSession],
        user_agent: typing.Optional[str] = None,
    ) -> None:
        if base is None:
            base = 'https://discord.com/api/v10'
        self._base: str = base.rstrip('/')
        self.bot: bool = bot
        self._session: typing.Union[
            utils.MaybeAwaitableFunc[[HTTPClient], aiohttp.ClientSession], aiohttp.ClientSession
        ] = session
        self.proxy: typing.Optional[str] = proxy
        self.proxy_auth: typing.Optional[aiohttp.BasicAuth] = proxy_auth

        if rate_limiter is UNDEFINED:
            self.rate_limiter: typing.Optional[RateLimiter] = DefaultRateLimiter()
        elif callable(rate_limiter):
            self.rate_limiter = rate_limiter(self)
        else:
            self.rate_limiter = rate_limiter

        self.state: State = state
        self.token: str = token or ''
        self.user_agent: str = user_agent or DEFAULT_HTTP_USER_AGENT

    @property
    def base(self) -> str:
        """:class:`str`: The base URL used for API requests."""
        return self._base

    def url_for(self, route: routes.CompiledRoute, /) -> str:
        """Returns a URL for route.

        Parameters
        ----------
        route: :class:`~routes.CompiledRoute`
            The route.

        Returns
        -------
        :class:`str`
            The URL for the route.
        """
        return self._base + route.build()

    def with_credentials(self, token: str, *, bot: bool = True) -> None:
        """Modifies HTTP client credentials.

        Parameters
        ----------
        token: :class:`str`
            The authentication token.
        bot: :class:`bool`
            Whether the token belongs to bot account or not. Defaults to ``True``.
        """
        self.token = token
        self.bot = bot

    def add_headers(
        self,
        headers: CIMultiDict[typing.Any],
        route: routes.CompiledRoute,
        /,
        *,
        accept_json: bool = True,
        json_body: bool = False,
        token: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        user_agent: UndefinedOr[typing.Optional[str]] = UNDEFINED,
    ) -> utils.MaybeAwaitable[None]:
        if accept_json:
            headers['Accept'] = 'application/json'

        if json_body:
            headers['Content-Type'] = 'application/json'

        if token is UNDEFINED:
            token = self.token

        if token:
            headers['Authorization'] = f'Bot {token}' if self.bot else token

        if user_agent is UNDEFINED:
            user_agent = self.user_agent

        if user_agent is not None:
            headers['User-Agent'] = user_agent

    async def send_request(
        self,
        session: aiohttp.ClientSession,
        /,
        *,
        method: str,
        url: str,
        headers: CIMultiDict[typing.Any],
        **kwargs,
    ) -> aiohttp.ClientResponse:
        return await session.request(
            method,
            url,
            headers=headers,
            proxy=self.proxy,
            proxy_auth=self.proxy_auth,
            **kwargs,
        )

    async def raw_request(
        self,
        route: routes.CompiledRoute,
        *,
        accept_json: bool = True,
        json: UndefinedOr[typing.Any] = UNDEFINED,
        token: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        user_agent: UndefinedOr[str] = UNDEFINED,
        **kwargs,
    ) -> aiohttp.ClientResponse:
        """|coro|

        Perform a HTTP request, with ratelimiting and errors handling.

        A ``429`` response is retried exactly once, after waiting ``retry_after``
        milliseconds from the body. Other error statuses are never retried.

        Parameters
        ----------
        route: :class:`~routes.CompiledRoute`
            The route.
        accept_json: :class:`bool`
            Whether to explicitly receive JSON or not. Defaults to ``True``.
        json: UndefinedOr[typing.Any]
            The JSON payload to pass in.
        token: UndefinedOr[Optional[:class:`str`]]
            The token to use when requesting the route.
        user_agent: UndefinedOr[:class:`str`]
            The user agent to use for HTTP request. Defaults to :attr:`.user_agent`.

        Raises
        ------
        :class:`HTTPException`
            Something went wrong during request.

        Returns
        -------
        :class:`aiohttp.ClientResponse`
            The aiohttp response.
        """
        headers: CIMultiDict[str]

        try:
            headers = CIMultiDict(kwargs.pop('headers'))
        except KeyError:
            headers = CIMultiDict()

        ratelimited = False
        connection_reset = False

        tmp = self.add_headers(
            headers,
            route,
            accept_json=accept_json,
            json_body=json is not UNDEFINED,
            token=token,
            user_agent=user_agent,
        )
        if isawaitable(tmp):
            await tmp

        method = route.route.method
        path = route.build()
        url = self._base + path

        if json is not UNDEFINED:
            kwargs['data'] = utils.to_json(json)

        rate_limiter = self.rate_limiter

        while True:
            blocker: typing.Optional[RateLimitBlocker] = None
            if rate_limiter:
                await rate_limiter.wait_global()

                rate_limit = rate_limiter.fetch_ratelimit_for(route, path)
                if not rate_limit:
                    blocker = rate_limiter.fetch_blocker_for(route, path)
                    await blocker.increment()

                    rate_limit = rate_limiter.fetch_ratelimit_for(route, path)

                if rate_limit:
                    await rate_limit.block()

            _L.debug('Sending request to %s %s with %s', method, path, kwargs.get('data'))

            session = self._session
            if callable(session):
                session = await utils.maybe_coroutine(session, self)
                # detect recursion
                if callable(session):
                    raise TypeError(f'Expected aiohttp.ClientSession, not {type(session)!r}')
                # Do not call factory on future requests
                self._session = session

            try:
                response = await self.send_request(
                    session,
                    method=method,
                    url=url,
                    headers=headers,
                    **kwargs,
                )
            except OSError as exc:
                if blocker:
                    await blocker.decrement()
                if exc.errno in (54, 10054) and not connection_reset:  # Connection reset by peer
                    connection_reset = True
                    _L.debug('%s %s: connection reset by peer, retrying once', method, path)
                    await asyncio.sleep(self.connection_reset_delay)
                    continue
                raise
            except BaseException:
                if blocker:
                    await blocker.decrement()
                raise

            try:
                if rate_limiter:
                    await rate_limiter.on_response(route, path, response)
            finally:
                if blocker:
                    await blocker.decrement()

            if response.status >= 400:
                _L.debug('%s %s has returned %s', method, path, response.status)

                data = await utils._json_or_text(response)

                if response.status == 429 and not ratelimited:
                    ratelimited = True
                    retry_after = self._retry_after_of(response, data)
                    is_global = response.headers.get('x-ratelimit-global', '').lower() == 'true' or (
                        isinstance(data, dict) and bool(data.get('global'))
                    )
                    if rate_limiter:
                        if is_global:
                            rate_limiter.on_global_ratelimit(retry_after)
                        else:
                            bucket_limit = rate_limiter.fetch_ratelimit_for(route, path)
                            if bucket_limit:
                                bucket_limit.on_ratelimited(retry_after)
                    _L.info(
                        'Ratelimited on %s %s%s, retrying in %.3f seconds',
                        method,
                        path,
                        ' (global)' if is_global else '',
                        retry_after,
                    )
                    response.close()
                    await asyncio.sleep(retry_after)
                    continue

                raise _STATUS_TO_ERRORS.get(response.status, HTTPException)(response, data)
            return response

    @staticmethod
    def _retry_after_of(response: aiohttp.ClientResponse, data: typing.Any, /) -> float:
        if isinstance(data, dict) and data.get('retry_after') is not None:
            # Milliseconds
            return float(data['retry_after']) / 1000.0
        header = response.headers.get('retry-after')
        if header is not None:
            return float(header)
        return 1.0

    async def request(
        self,
        route: routes.CompiledRoute,
        *,
        accept_json: bool = True,
        json: UndefinedOr[typing.Any] = UNDEFINED,
        log: bool = True,
        token: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        user_agent: UndefinedOr[str] = UNDEFINED,
        **kwargs,
    ) -> typing.Any:
        """|coro|

        Perform a HTTP request, with ratelimiting and errors handling.

        Parameters
        ----------
        route: :class:`~routes.CompiledRoute`
            The route.
        accept_json: :class:`bool`
            Whether to explicitly receive JSON or not. Defaults to ``True``.
        json: UndefinedOr[typing.Any]
            The JSON payload to pass in.
        log: :class:`bool`
            Whether to log successful response or not. Defaults to ``True``.
        token: UndefinedOr[Optional[:class:`str`]]
            The token to use when requesting the route.
        user_agent: UndefinedOr[:class:`str`]
            The user agent to use for HTTP request. Defaults to :attr:`.user_agent`.

        Raises
        ------
        :class:`HTTPException`
            Something went wrong during request.

        Returns
        -------
        typing.Any
            The parsed JSON response.
        """
        response = await self.raw_request(
            route,
            accept_json=accept_json,
            json=json,
            token=token,
            user_agent=user_agent,
            **kwargs,
        )
        result = await utils._json_or_text(response)

        method = response.request_info.method
        url = response.request_info.url
        if log:
            _L.debug('%s %s has received %s %s', method, url, response.status, result)
        else:
            _L.debug('%s %s has received %s [too large response]', method, url, response.status)

        response.close()
        return result

    async def cleanup(self) -> None:
        """|coro|

        Closes the aiohttp session.
        """
        if not callable(self._session):
            await self._session.close()

    # Cache write-back

    def _store_user(self, payload: raw.User, /) -> User:
        user = self.state.parser.parse_user(payload)
        return self.state.cache.store_user(user)

    def _store_channel(self, payload: raw.Channel, /) -> Channel:
        cache = self.state.cache
        channel = self.state.parser.parse_channel(payload)
        cached = cache.get_channel(channel.id)
        if cached is not None and type(cached) is type(channel):
            cached.locally_update(channel)
            cache.store_channel(cached)
            return cached
        cache.store_channel(channel)
        return channel

    def _store_message(self, payload: raw.Message, /) -> Message:
        state = self.state
        cache = state.cache

        if 'webhook_id' not in payload:
            author = self._store_user(payload['author'])
            server_id = payload.get('guild_id')
            member = payload.get('member')
            if server_id is not None and member is not None:
                cache.store_member(
                    int(server_id),
                    author,
                    nick=member.get('nick'),
                    role_ids=[int(r) for r in member.get('roles', ())],
                )

        message = state.parser.parse_message(payload)
        cached = cache.messages.get(message.id)
        if cached is not None:
            cached.locally_update(message)
            return cached
        return cache.messages.store(message)

    def _store_role(self, server_id: int, payload: raw.Role, /) -> Role:
        role = self.state.parser.parse_role(payload, server_id)
        return self.state.cache.store_role(role) or role

    # Gateway

    async def get_gateway_bot(self) -> raw.GatewayBot:
        """|coro|

        Retrieves the gateway URL and recommended shard count.

        Returns
        -------
        Dict[:class:`str`, Any]
            The gateway information.
        """
        return await self.request(routes.GATEWAY_BOT.compile())

    # Users

    async def fetch_user(self, user_id: int, /) -> User:
        """|coro|

        Retrieves a user from the API, storing it into cache.

        Parameters
        ----------
        user_id: :class:`int`
            The user's ID.

        Raises
        ------
        :class:`NotFound`
            The user was not found.

        Returns
        -------
        :class:`.User`
            The retrieved user.
        """
        resp: raw.User = await self.request(routes.USERS_FETCH.compile(user_id=user_id))
        return self._store_user(resp)

    async def edit_my_user(self, *, username: UndefinedOr[str] = UNDEFINED) -> OwnUser:
        """|coro|

        Edits the current user.

        Returns
        -------
        :class:`.OwnUser`
            The updated user.
        """
        payload: dict[str, typing.Any] = {}
        if username is not UNDEFINED:
            payload['username'] = username
        resp: raw.User = await self.request(routes.USERS_EDIT_SELF.compile(), json=payload)
        user = self.state.parser.parse_own_user(resp)
        return self.state._set_me(user)

    async def open_dm(self, user_id: int, /) -> PrivateChannel:
        """|coro|

        Retrieves a DM (or create if it doesn't exist) with another user.

        Returns
        -------
        :class:`.PrivateChannel`
            The private channel.
        """
        resp: raw.Channel = await self.request(routes.USERS_CREATE_DM.compile(), json={'recipient_id': str(user_id)})
        return self._store_channel(resp)  # type: ignore

    async def leave_server(self, server_id: int, /) -> None:
        """|coro|

        Leaves a server.
        """
        await self.request(routes.USERS_LEAVE_SERVER.compile(server_id=server_id))

    # Channels

    async def fetch_channel(self, channel_id: int, /) -> Channel:
        """|coro|

        Retrieves a channel from the API. The cached channel is updated if present.

        Raises
        ------
        :class:`NotFound`
            The channel was not found.

        Returns
        -------
        :class:`.Channel`
            The retrieved channel.
        """
        resp: raw.Channel = await self.request(routes.CHANNELS_FETCH.compile(channel_id=channel_id))
        return self._store_channel(resp)

    async def edit_channel(
        self,
        channel_id: int,
        /,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        position: UndefinedOr[int] = UNDEFINED,
        parent: UndefinedOr[typing.Optional[int]] = UNDEFINED,
        topic: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        nsfw: UndefinedOr[bool] = UNDEFINED,
        slowmode: UndefinedOr[int] = UNDEFINED,
        bitrate: UndefinedOr[int] = UNDEFINED,
        user_limit: UndefinedOr[int] = UNDEFINED,
    ) -> Channel:
        """|coro|

        Edits a channel.

        Returns
        -------
        :class:`.Channel`
            The updated channel.
        """
        payload: dict[str, typing.Any] = {}
        if name is not UNDEFINED:
            payload['name'] = name
        if position is not UNDEFINED:
            payload['position'] = position
        if parent is not UNDEFINED:
            payload['parent_id'] = None if parent is None else str(parent)
        if topic is not UNDEFINED:
            payload['topic'] = topic
        if nsfw is not UNDEFINED:
            payload['nsfw'] = nsfw
        if slowmode is not UNDEFINED:
            payload['rate_limit_per_user'] = slowmode
        if bitrate is not UNDEFINED:
            payload['bitrate'] = bitrate
        if user_limit is not UNDEFINED:
            payload['user_limit'] = user_limit
        resp: raw.Channel = await self.request(routes.CHANNELS_EDIT.compile(channel_id=channel_id), json=payload)
        return self._store_channel(resp)

    async def delete_channel(self, channel_id: int, /) -> None:
        """|coro|

        Deletes a server channel, or closes a private channel.

        The cache is updated when the gateway confirms deletion.
        """
        await self.request(routes.CHANNELS_DELETE.compile(channel_id=channel_id))

    async def trigger_typing(self, channel_id: int, /) -> None:
        await self.request(routes.CHANNELS_TYPING.compile(channel_id=channel_id))

    # Messages

    async def fetch_messages(
        self,
        channel_id: int,
        /,
        *,
        limit: int = 50,
        before: typing.Optional[int] = None,
        after: typing.Optional[int] = None,
    ) -> list[Message]:
        """|coro|

        Retrieves messages from a channel, storing them into cache.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.
        limit: :class:`int`
            The maximum number of messages to get. Must be between 1 and 100.
        before: Optional[:class:`int`]
            The message ID before which messages should be fetched.
        after: Optional[:class:`int`]
            The message ID after which messages should be fetched.

        Returns
        -------
        List[:class:`.Message`]
            The messages retrieved, newest first.
        """
        params: dict[str, typing.Any] = {'limit': limit}
        if before is not None:
            params['before'] = str(before)
        if after is not None:
            params['after'] = str(after)
        resp: list[raw.Message] = await self.request(
            routes.MESSAGES_FETCH_MANY.compile(channel_id=channel_id), log=False, params=params
        )
        return [self._store_message(payload) for payload in resp]

    async def fetch_message(self, channel_id: int, message_id: int, /) -> Message:
        """|coro|

        Retrieves a message, storing it into cache.

        Returns
        -------
        :class:`.Message`
            The retrieved message.
        """
        resp: raw.Message = await self.request(
            routes.MESSAGES_FETCH.compile(channel_id=channel_id, message_id=message_id)
        )
        return self._store_message(resp)

    async def send_message(
        self,
        channel_id: int,
        content: typing.Optional[str] = None,
        *,
        embed: typing.Optional[Embed] = None,
        tts: bool = False,
        nonce: typing.Optional[str] = None,
    ) -> Message:
        """|coro|

        Sends a message to the given channel.

        The message is stored into cache right away. A later ``MESSAGE_CREATE``
        for it updates the cached message and still dispatches the event.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.
        content: Optional[:class:`str`]
            The message content.
        embed: Optional[:class:`.Embed`]
            The embed to send.
        tts: :class:`bool`
            Whether the message should be read aloud.
        nonce: Optional[:class:`str`]
            The message nonce.

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
        payload: raw.DataMessageSend = {}
        if content is not None:
            payload['content'] = content
        if embed is not None:
            payload['embeds'] = [embed.build()]
        if tts:
            payload['tts'] = True
        if nonce is not None:
            payload['nonce'] = nonce
        resp: raw.Message = await self.request(routes.MESSAGES_SEND.compile(channel_id=channel_id), json=payload)
        return self._store_message(resp)

    async def edit_message(
        self,
        channel_id: int,
        message_id: int,
        /,
        *,
        content: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        embed: UndefinedOr[typing.Optional[Embed]] = UNDEFINED,
    ) -> Message:
        """|coro|

        Edits a message.

        Returns
        -------
        :class:`.Message`
            The newly edited message.
        """
        payload: raw.DataMessageEdit = {}
        if content is not UNDEFINED:
            payload['content'] = content
        if embed is not UNDEFINED:
            payload['embeds'] = [] if embed is None else [embed.build()]
        resp: raw.Message = await self.request(
            routes.MESSAGES_EDIT.compile(channel_id=channel_id, message_id=message_id), json=payload
        )
        return self._store_message(resp)

    async def delete_message(self, channel_id: int, message_id: int, /) -> None:
        await self.request(routes.MESSAGES_DELETE.compile(channel_id=channel_id, message_id=message_id))

    async def pin_message(self, channel_id: int, message_id: int, /) -> None:
        await self.request(routes.MESSAGES_PIN.compile(channel_id=channel_id, message_id=message_id))

    async def unpin_message(self, channel_id: int, message_id: int, /) -> None:
        await self.request(routes.MESSAGES_UNPIN.compile(channel_id=channel_id, message_id=message_id))

    # Reactions

    async def add_reaction(self, channel_id: int, message_id: int, emoji: str, /) -> None:
        """|coro|

        React to a given message.

        Parameters
        ----------
        channel_id: :class:`int`
            The channel's ID.
        message_id: :class:`int`
            The message's ID.
        emoji: :class:`str`
            The emoji key, as returned by :func:`resolve_emoji`.
        """
        await self.request(routes.REACTIONS_ADD.compile(channel_id=channel_id, message_id=message_id, emoji=emoji))

    async def remove_reaction(
        self, channel_id: int, message_id: int, emoji: str, user_id: typing.Optional[int] = None, /
    ) -> None:
        """|coro|

        Removes a reaction from a message. If ``user_id`` is ``None``, removes own reaction.
        """
        if user_id is None:
            route = routes.REACTIONS_REMOVE_OWN.compile(channel_id=channel_id, message_id=message_id, emoji=emoji)
        else:
            route = routes.REACTIONS_REMOVE_USER.compile(
                channel_id=channel_id, message_id=message_id, emoji=emoji, user_id=user_id
            )
        await self.request(route)

    async def clear_reactions(self, channel_id: int, message_id: int, /) -> None:
        await self.request(routes.REACTIONS_CLEAR.compile(channel_id=channel_id, message_id=message_id))

    # Servers

    async def fetch_server(self, server_id: int, /) -> Server:
        """|coro|

        Retrieves a server from the API.

        If server is cached, it is updated in place and returned. Otherwise, the returned
        server has roles and emojis, but no channels or members.

        Returns
        -------
        :class:`.Server`
            The retrieved server.
        """
        resp: raw.Server = await self.request(routes.SERVERS_FETCH.compile(server_id=server_id))
        return self._store_server(resp)

    async def edit_server(
        self,
        server_id: int,
        /,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        region: UndefinedOr[typing.Optional[str]] = UNDEFINED,
    ) -> Server:
        """|coro|

        Edits a server.

        Returns
        -------
        :class:`.Server`
            The updated server.
        """
        payload: dict[str, typing.Any] = {}
        if name is not UNDEFINED:
            payload['name'] = name
        if region is not UNDEFINED:
            payload['region'] = region
        resp: raw.Server = await self.request(routes.SERVERS_EDIT.compile(server_id=server_id), json=payload)
        return self._store_server(resp)

    def _store_server(self, payload: raw.Server, /) -> Server:
        cache = self.state.cache
        server = self.state.parser.parse_server(payload)
        cached = cache.get_server(server.id)
        if cached is None:
            return server
        cached.locally_update(server)
        for role in server.roles.values():
            cache.store_role(role)
        return cached

    # Members

    async def fetch_member(self, server_id: int, user_id: int, /) -> User:
        """|coro|

        Retrieves a member, storing it into cache.

        Returns
        -------
        :class:`.User`
            The member's user.
        """
        resp: raw.Member = await self.request(routes.MEMBERS_FETCH.compile(server_id=server_id, user_id=user_id))
        user, role_ids, nick = self.state.parser.parse_member(resp)
        cache = self.state.cache
        return cache.store_member(server_id, user, nick=nick, role_ids=role_ids) or cache.store_user(user)

    async def edit_member(
        self,
        server_id: int,
        user_id: int,
        /,
        *,
        nick: UndefinedOr[typing.Optional[str]] = UNDEFINED,
        roles: UndefinedOr[list[int]] = UNDEFINED,
    ) -> None:
        """|coro|

        Edits a member.
        """
        payload: dict[str, typing.Any] = {}
        if nick is not UNDEFINED:
            payload['nick'] = nick
        if roles is not UNDEFINED:
            payload['roles'] = [str(role_id) for role_id in roles]
        await self.request(routes.MEMBERS_EDIT.compile(server_id=server_id, user_id=user_id), json=payload)

    async def edit_my_nickname(self, server_id: int, nick: typing.Optional[str], /) -> None:
        await self.request(routes.MEMBERS_EDIT_SELF_NICK.compile(server_id=server_id), json={'nick': nick})

    async def kick_member(self, server_id: int, user_id: int, /) -> None:
        await self.request(routes.MEMBERS_KICK.compile(server_id=server_id, user_id=user_id))

    async def ban_member(self, server_id: int, user_id: int, /, *, delete_message_days: int = 0) -> None:
        await self.request(
            routes.BANS_CREATE.compile(server_id=server_id, user_id=user_id),
            json={'delete_message_days': delete_message_days},
        )

    # Roles

    async def create_role(
        self,
        server_id: int,
        /,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        permissions: UndefinedOr[Permissions] = UNDEFINED,
        color: UndefinedOr[int] = UNDEFINED,
        hoist: UndefinedOr[bool] = UNDEFINED,
        mentionable: UndefinedOr[bool] = UNDEFINED,
    ) -> Role:
        """|coro|

        Creates a new role in a server.

        Returns
        -------
        :class:`.Role`
            The role created.
        """
        payload = self._role_payload(name, permissions, color, hoist, mentionable)
        resp: raw.Role = await self.request(routes.ROLES_CREATE.compile(server_id=server_id), json=payload)
        return self._store_role(server_id, resp)

    async def edit_role(
        self,
        server_id: int,
        role_id: int,
        /,
        *,
        name: UndefinedOr[str] = UNDEFINED,
        permissions: UndefinedOr[Permissions] = UNDEFINED,
        color: UndefinedOr[int] = UNDEFINED,
        hoist: UndefinedOr[bool] = UNDEFINED,
        mentionable: UndefinedOr[bool] = UNDEFINED,
    ) -> Role:
        """|coro|

        Edits a role.

        Returns
        -------
        :class:`.Role`
            The updated role.
        """
        payload = self._role_payload(name, permissions, color, hoist, mentionable)
        resp: raw.Role = await self.request(
            routes.ROLES_EDIT.compile(server_id=server_id, role_id=role_id), json=payload
        )
        return self._store_role(server_id, resp)

    @staticmethod
    def _role_payload(
        name: UndefinedOr[str],
        permissions: UndefinedOr[Permissions],
        color: UndefinedOr[int],
        hoist: UndefinedOr[bool],
        mentionable: UndefinedOr[bool],
        /,
    ) -> dict[str, typing.Any]:
        payload: dict[str, typing.Any] = {}
        if name is not UNDEFINED:
            payload['name'] = name
        if permissions is not UNDEFINED:
            payload['permissions'] = str(permissions.value)
        if color is not UNDEFINED:
            payload['color'] = color
        if hoist is not UNDEFINED:
            payload['hoist'] = hoist
        if mentionable is not UNDEFINED:
            payload['mentionable'] = mentionable
        return payload

    async def delete_role(self, server_id: int, role_id: int, /) -> None:
        await self.request(routes.ROLES_DELETE.compile(server_id=server_id, role_id=role_id))

    async def add_role_to_member(self, server_id: int, user_id: int, role_id: int, /) -> None:
        await self.request(routes.MEMBER_ROLES_ADD.compile(server_id=server_id, user_id=user_id, role_id=role_id))

    async def remove_role_from_member(self, server_id: int, user_id: int, role_id: int, /) -> None:
        await self.request(routes.MEMBER_ROLES_REMOVE.compile(server_id=server_id, user_id=user_id, role_id=role_id))


__all__ = (
    'DEFAULT_HTTP_USER_AGENT',
    'RateLimit',
    'RateLimitBlocker',
    'RateLimiter',
    'DefaultRateLimit',
    'DefaultRateLimitBlocker',
    'DefaultRateLimiter',
    'HTTPClient',
)
