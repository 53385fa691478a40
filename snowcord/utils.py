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

# Thanks Danny:
# - setup_logging, copy_doc
# - https://github.com/Rapptz/discord.py/blob/041abf8b487038c2935da668405ba8b0686ff2f8/discord/utils.py#L641-L653

from __future__ import annotations

import datetime
import inspect
import json
import logging
import os
import random
import sys
import typing

import aiohttp

try:
    import orjson  # type: ignore
except ModuleNotFoundError:
    HAS_ORJSON = False
else:
    HAS_ORJSON = True

if typing.TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    P = typing.ParamSpec('P')
    T = typing.TypeVar('T')

    MaybeAwaitable = T | Awaitable[T]
    MaybeAwaitableFunc = Callable[P, MaybeAwaitable[T]]


from .core import UNDEFINED, UndefinedOr

_L = logging.getLogger(__name__)


if HAS_ORJSON:

    def to_json(obj: typing.Any) -> str:
        return orjson.dumps(obj).decode('utf-8')  # type: ignore

    from_json = orjson.loads  # type: ignore

else:

    def to_json(obj: typing.Any) -> str:
        return json.dumps(obj, separators=(',', ':'), ensure_ascii=True)

    from_json = json.loads


async def maybe_coroutine(f: MaybeAwaitableFunc[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    value = f(*args, **kwargs)
    if inspect.isawaitable(value):
        return await value
    else:
        return value


def copy_doc(original: Callable[..., typing.Any]) -> Callable[[T], T]:
    """A decorator that copies documentation.

    Parameters
    ----------
    original: Callable[..., typing.Any]
        The function to copy documentation from.

    Returns
    -------
    Callable[[T], T]
        The decorated function with copied documentation.
    """

    def decorator(overridden: T) -> T:
        overridden.__doc__ = original.__doc__
        overridden.__signature__ = inspect.signature(original)  # type: ignore
        return overridden

    return decorator


async def _json_or_text(response: aiohttp.ClientResponse) -> typing.Any:
    text = await response.text(encoding='utf-8')
    try:
        if response.headers['content-type'].startswith('application/json'):
            return from_json(text)
    except KeyError:
        # Some proxies strip the content type
        pass

    return text


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(value: typing.Optional[str], /) -> typing.Optional[datetime.datetime]:
    if value is None:
        return None
    # Python 3.10 does not accept the trailing 'Z' or 6+ digit fractions with offsets
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.datetime.fromisoformat(value)


class ExponentialBackoff:
    """Exponential backoff with full jitter.

    Every call to :meth:`delay` doubles the upper bound until ``cap`` is reached.
    The returned delay is a random value between zero and the current bound.

    Attributes
    ----------
    base: :class:`float`
        The first upper bound, in seconds.
    cap: :class:`float`
        The maximum upper bound, in seconds.
    """

    __slots__ = ('base', 'cap', '_exp', '_random')

    def __init__(self, base: float = 1.0, *, cap: float = 60.0, rng: typing.Optional[random.Random] = None) -> None:
        self.base: float = base
        self.cap: float = cap
        self._exp: int = 0
        self._random: random.Random = rng or random.Random()

    @property
    def attempts(self) -> int:
        """:class:`int`: How many delays were handed out since last reset."""
        return self._exp

    def upper_bound(self) -> float:
        return min(self.cap, self.base * (2**self._exp))

    def delay(self) -> float:
        """:class:`float`: Computes the next delay and advances the backoff."""
        bound = self.upper_bound()
        self._exp += 1
        return self._random.uniform(0, bound)

    def reset(self) -> None:
        self._exp = 0


def is_docker() -> bool:
    path = '/proc/self/cgroup'
    return os.path.exists('/.dockerenv') or (os.path.isfile(path) and any('docker' in line for line in open(path)))


def stream_supports_color(stream: typing.Any, /) -> bool:
    is_a_tty = hasattr(stream, 'isatty') and stream.isatty()

    if 'PYCHARM_HOSTED' in os.environ or os.environ.get('TERM_PROGRAM') == 'vscode':
        return is_a_tty

    if sys.platform != 'win32':
        # Docker does not consistently have a tty attached to it
        return is_a_tty or is_docker()

    # ANSICON checks for things like ConEmu
    # WT_SESSION checks if this is Windows Terminal
    return is_a_tty and ('ANSICON' in os.environ or 'WT_SESSION' in os.environ)


class _ColorFormatter(logging.Formatter):
    # \x1b[XXXm, where XXX is a semicolon separated list of SGR commands.
    # 30-37 foreground, 40-47 background, 1 bold, 0 reset.

    LEVEL_COLORS = [
        (logging.DEBUG, '\x1b[40;1m'),
        (logging.INFO, '\x1b[34;1m'),
        (logging.WARNING, '\x1b[33;1m'),
        (logging.ERROR, '\x1b[31m'),
        (logging.CRITICAL, '\x1b[41m'),
    ]

    FORMATS = {
        level: logging.Formatter(
            f'\x1b[30;1m%(asctime)s\x1b[0m {color}%(levelname)-8s\x1b[0m \x1b[35m%(name)s\x1b[0m %(message)s',
            '%Y-%m-%d %H:%M:%S',
        )
        for level, color in LEVEL_COLORS
    }

    def format(self, record):
        formatter = self.FORMATS.get(record.levelno)
        if formatter is None:
            formatter = self.FORMATS[logging.DEBUG]

        if record.exc_info:
            text = formatter.formatException(record.exc_info)
            record.exc_text = f'\x1b[31m{text}\x1b[0m'

        output = formatter.format(record)

        record.exc_text = None
        return output


def new_formatter(handler: logging.Handler) -> logging.Formatter:
    """Creates a logging formatter for the handler, with colors when the stream supports them."""
    if isinstance(handler, logging.StreamHandler) and stream_supports_color(handler.stream):
        formatter = _ColorFormatter()
    else:
        dt_fmt = '%Y-%m-%d %H:%M:%S'
        formatter = logging.Formatter('[{asctime}] [{levelname:<8}] {name}: {message}', dt_fmt, style='{')
    return formatter


def setup_logging(
    *,
    handler: UndefinedOr[logging.Handler] = UNDEFINED,
    formatter: UndefinedOr[logging.Formatter] = UNDEFINED,
    level: UndefinedOr[int] = UNDEFINED,
    root: bool = True,
) -> None:
    """A helper function to setup logging.

    This is superficially similar to :func:`logging.basicConfig` but
    uses different defaults and a color formatter if the stream can
    display color.

    Parameters
    -----------
    handler: :class:`logging.Handler`
        The log handler to use. Defaults to :class:`logging.StreamHandler`.
    formatter: :class:`logging.Formatter`
        The formatter to use with the given log handler.
    level: :class:`int`
        The log level. Defaults to ``logging.INFO``.
    root: :class:`bool`
        Whether to set up the root logger rather than the library logger.
    """

    if level is UNDEFINED:
        level = logging.INFO

    if handler is UNDEFINED:
        handler = logging.StreamHandler()

    if formatter is UNDEFINED:
        formatter = new_formatter(handler)

    if root:
        logger = logging.getLogger()
    else:
        library, _, _ = __name__.partition('.')
        logger = logging.getLogger(library)

    handler.setFormatter(formatter)
    logger.setLevel(level)
    logger.addHandler(handler)


__all__ = (
    'HAS_ORJSON',
    'to_json',
    'from_json',
    'maybe_coroutine',
    'copy_doc',
    'utcnow',
    'parse_timestamp',
    'ExponentialBackoff',
    'setup_logging',
)
