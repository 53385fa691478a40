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

from .cache import MapCache
from .parser import Parser

if typing.TYPE_CHECKING:
    from .cache import Cache
    from .http import HTTPClient
    from .shard import Shard
    from .user import OwnUser


class State:
    """Represents a manager for all snowcord objects.

    The state is shared by every shard and the HTTP client of a client, and is
    injected into every entity.

    Attributes
    ----------
    parser: :class:`Parser`
        The parser.
    shard_count: :class:`int`
        The total count of shards, used to route servers to shards.
    """

    __slots__ = (
        '_cache',
        '_http',
        'parser',
        '_shards',
        '_me',
        'shard_count',
    )

    def __init__(
        self,
        *,
        cache: typing.Optional[Cache] = None,
        http: typing.Optional[HTTPClient] = None,
        parser: typing.Optional[Parser] = None,
        shard_count: int = 1,
    ) -> None:
        self._cache: Cache = cache or MapCache()
        self._http = http
        self.parser: Parser = parser if parser else Parser(state=self)
        self._shards: dict[int, Shard] = {}
        self._me: typing.Optional[OwnUser] = None
        self.shard_count: int = shard_count

    def setup(
        self,
        *,
        cache: typing.Optional[Cache] = None,
        http: typing.Optional[HTTPClient] = None,
        parser: typing.Optional[Parser] = None,
        shards: typing.Optional[typing.Iterable[Shard]] = None,
    ) -> State:
        if cache:
            self._cache = cache
        if http:
            self._http = http
        if parser:
            self.parser = parser
        if shards is not None:
            self._shards = {shard.shard_id: shard for shard in shards}
        return self

    @property
    def cache(self) -> Cache:
        return self._cache

    @property
    def http(self) -> HTTPClient:
        assert self._http, 'State has no HTTP client attached'
        return self._http

    @property
    def shards(self) -> dict[int, Shard]:
        """Dict[:class:`int`, :class:`Shard`]: The shards attached, keyed by their IDs."""
        return self._shards

    @property
    def me(self) -> typing.Optional[OwnUser]:
        """Optional[:class:`OwnUser`]: The currently logged in user."""
        return self._me

    def _set_me(self, user: OwnUser, /) -> OwnUser:
        if self._me is None:
            self._me = user
        elif self._me is not user:
            self._me.locally_update(user)
        self._cache.store_user(self._me)
        return self._me

    def shard_for(self, server_id: int, /) -> int:
        """:class:`int`: Calculates ID of shard that receives events of a server."""
        return (server_id >> 22) % self.shard_count

    def get_shard(self, server_id: typing.Optional[int] = None, /) -> typing.Optional[Shard]:
        """Optional[:class:`Shard`]: Retrieves the shard responsible for a server, or the first shard."""
        if server_id is None:
            return next(iter(self._shards.values()), None)
        return self._shards.get(self.shard_for(server_id))


__all__ = ('State',)
