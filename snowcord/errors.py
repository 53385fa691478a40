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

if typing.TYPE_CHECKING:
    from aiohttp import ClientResponse as Response


class SnowcordError(Exception):
    """Base exception class for snowcord.

    Ideally speaking, this could be caught to handle any exceptions raised from this library.
    """

    __slots__ = ()


class HTTPException(SnowcordError):
    """Exception that's raised when an HTTP request operation fails.

    Attributes
    ------------
    response: :class:`aiohttp.ClientResponse`
        The response of the failed HTTP request.
    data: Union[Dict[:class:`str`, Any], :class:`str`]
        The data of the error. Could be an empty string.
    status: :class:`int`
        The status code of the HTTP request.
    code: :class:`int`
        The platform specific error code. ``0`` if not provided.
    message: :class:`str`
        The error message returned by the API. Could be an empty string.
    retry_after: Optional[:class:`float`]
        The duration in seconds to wait until ratelimit expires.
        Only applicable to 429 responses.
    errors: Optional[Dict[:class:`str`, Any]]
        The per-field validation errors. Only applicable to 400 responses.
    """

    __slots__ = (
        'response',
        'data',
        'status',
        'code',
        'message',
        'retry_after',
        'errors',
    )

    def __init__(
        self,
        response: Response,
        data: dict[str, typing.Any] | str,
        /,
    ) -> None:
        self.response: Response = response
        self.data: dict[str, typing.Any] | str = data
        self.status: int = response.status

        if isinstance(data, dict):
            self.code: int = data.get('code', 0)
            self.message: str = data.get('message', '')
            retry_after = data.get('retry_after')
            # Body retry_after is expressed in milliseconds
            self.retry_after: float | None = None if retry_after is None else retry_after / 1000.0
            self.errors: dict[str, typing.Any] | None = data.get('errors')
        else:
            self.code = 0
            self.message = data
            self.retry_after = None
            self.errors = None

        fmt = '{0.status} {0.reason} (error code: {1})'
        if self.message:
            fmt += ': {2}'

        super().__init__(fmt.format(response, self.code, self.message))


class BadRequest(HTTPException):
    __slots__ = ()


class Unauthorized(HTTPException):
    __slots__ = ()


class Forbidden(HTTPException):
    __slots__ = ()


class NotFound(HTTPException):
    __slots__ = ()


class Conflict(HTTPException):
    __slots__ = ()


class Ratelimited(HTTPException):
    __slots__ = ()


class InternalServerError(HTTPException):
    __slots__ = ()


class BadGateway(HTTPException):
    __slots__ = ()


class ShardError(SnowcordError):
    __slots__ = ()


class ShardClosedError(ShardError):
    __slots__ = ()


class AuthenticationError(ShardError):
    """Exception that's raised when the gateway refused the handshake."""

    __slots__ = ('payload',)

    def __init__(self, payload: typing.Any, /) -> None:
        self.payload: typing.Any = payload
        super().__init__('Failed to authenticate shard', payload)


class ShardFatalError(ShardError):
    """Exception that's raised when the gateway closed the connection with a code that must not be retried.

    Attributes
    ----------
    code: :class:`int`
        The websocket close code.
    shard_id: :class:`int`
        The shard that was closed.
    """

    __slots__ = ('code', 'shard_id')

    def __init__(self, code: int, shard_id: int, /) -> None:
        self.code: int = code
        self.shard_id: int = shard_id
        super().__init__(f'Shard {shard_id} closed with fatal code {code}')


class ConnectError(ShardError):
    __slots__ = ('errors',)

    def __init__(self, tries: int, errors: list[Exception], /) -> None:
        self.errors = errors
        super().__init__(f'Giving up, after {tries} tries, last 3 errors:', errors[-3:])


class InvalidData(SnowcordError):
    """Exception that's raised when the library encounters unknown
    or invalid data from the gateway or API.
    """

    __slots__ = ('reason',)

    def __init__(self, reason: str, /) -> None:
        self.reason: str = reason
        super().__init__(reason)


class NoData(SnowcordError):
    __slots__ = ('what', 'type')

    def __init__(self, what: typing.Any, type: str) -> None:
        self.what = what
        self.type = type
        super().__init__(f'Unable to find {type} {what} in cache')


__all__ = (
    'SnowcordError',
    'HTTPException',
    'BadRequest',
    'Unauthorized',
    'Forbidden',
    'NotFound',
    'Conflict',
    'Ratelimited',
    'InternalServerError',
    'BadGateway',
    'ShardError',
    'ShardClosedError',
    'AuthenticationError',
    'ShardFatalError',
    'ConnectError',
    'InvalidData',
    'NoData',
)
