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

from datetime import datetime, timedelta, timezone
from enum import Enum
import typing


class _Sentinel(Enum):
    """The library sentinels."""

    undefined = 'UNDEFINED'

    def __bool__(self) -> typing.Literal[False]:
        return False

    def __repr__(self) -> typing.Literal['UNDEFINED']:
        return self.value

    def __eq__(self, other: object, /) -> bool:
        return self is other

    def __hash__(self) -> int:
        return hash(self.value)


Undefined: typing.TypeAlias = typing.Literal[_Sentinel.undefined]
UNDEFINED: Undefined = _Sentinel.undefined


T = typing.TypeVar('T')
UndefinedOr = Undefined | T

SNOWFLAKE_EPOCH: typing.Final[int] = 1420070400000
"""The platform epoch, in milliseconds since Unix epoch. Every snowflake timestamp is relative to it."""


def snowflake_timestamp(val: int, /) -> float:
    """:class:`float`: Returns the Unix timestamp (in seconds) embedded in a snowflake."""
    return ((val >> 22) + SNOWFLAKE_EPOCH) / 1000


def snowflake_time(val: int, /) -> datetime:
    """:class:`~datetime.datetime`: Returns the creation time of a snowflake, in UTC."""
    return datetime.fromtimestamp(snowflake_timestamp(val), timezone.utc)


def time_snowflake(dt: datetime, /, *, high: bool = False) -> int:
    """Returns a numeric snowflake pretending to be created at the given date.

    Useful for pagination, where the remote API expects a snowflake as the boundary.

    Parameters
    ----------
    dt: :class:`~datetime.datetime`
        The datetime. Naive datetimes are assumed to be in UTC.
    high: :class:`bool`
        Whether to set the lower 22 bits (worker, process and increment) to high or low.

    Returns
    -------
    :class:`int`
        The snowflake.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    ms = (dt - datetime(1970, 1, 1, tzinfo=timezone.utc)) // timedelta(milliseconds=1) - SNOWFLAKE_EPOCH
    return (ms << 22) + (2**22 - 1 if high else 0)


def parse_snowflake(val: typing.Any, /) -> int:
    """:class:`int`: Converts a wire snowflake (decimal string) into integer."""
    return int(val)


def parse_optional_snowflake(val: typing.Any, /) -> int | None:
    if val is None:
        return None
    return int(val)


class HasID(typing.Protocol):
    id: int


U = typing.TypeVar('U', bound='HasID')
SnowflakeOr = int | U


def resolve_id(resolvable: SnowflakeOr[U], /) -> int:
    if isinstance(resolvable, int):
        return resolvable
    return resolvable.id


__version__: str = '0.3.0'

__all__ = (
    'Undefined',
    'UNDEFINED',
    'T',
    'UndefinedOr',
    'SNOWFLAKE_EPOCH',
    'snowflake_timestamp',
    'snowflake_time',
    'time_snowflake',
    'parse_snowflake',
    'parse_optional_snowflake',
    'HasID',
    'SnowflakeOr',
    'resolve_id',
    '__version__',
)
