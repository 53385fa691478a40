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

from enum import Enum, IntEnum


class ChannelType(IntEnum):
    """Specifies the type of channel. The values are fixed by the wire protocol."""

    text = 0
    private = 1
    voice = 2
    group = 3
    category = 4

    def __str__(self) -> str:
        return self.name


class UserStatus(Enum):
    online = 'online'
    idle = 'idle'
    dnd = 'dnd'
    offline = 'offline'
    invisible = 'invisible'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_value(cls, value: str | None, /) -> UserStatus:
        """Returns the status for given wire value, falling back to :attr:`offline` for unknown ones."""
        try:
            return cls(value)
        except ValueError:
            return cls.offline


class ActivityType(IntEnum):
    playing = 0
    streaming = 1
    listening = 2
    watching = 3
    custom = 4
    competing = 5
    unknown = -1

    @classmethod
    def from_value(cls, value: int | None, /) -> ActivityType:
        try:
            return cls(value)
        except ValueError:
            return cls.unknown


class OverwriteType(IntEnum):
    """Specifies the subject kind of a permission overwrite."""

    role = 0
    member = 1


class PermissionState(Enum):
    """The state of single permission in an overwrite."""

    allowed = 'ALLOWED'
    denied = 'DENIED'
    unset = 'UNSET'


class ShardState(Enum):
    """The lifecycle phase of a :class:`~snowcord.Shard`.

    The usual path is ``disconnected -> connecting -> awaiting_hello -> identifying -> ready -> connected``,
    dropped connections go through ``reconnecting`` and then either ``resuming`` or ``identifying``.
    """

    disconnected = 'DISCONNECTED'
    connecting = 'CONNECTING'
    awaiting_hello = 'AWAITING_HELLO'
    identifying = 'IDENTIFYING'
    resuming = 'RESUMING'
    ready = 'READY'
    connected = 'CONNECTED'
    reconnecting = 'RECONNECTING'

    def is_handshaking(self) -> bool:
        return self in (ShardState.identifying, ShardState.resuming)


__all__ = (
    'ChannelType',
    'UserStatus',
    'ActivityType',
    'OverwriteType',
    'PermissionState',
    'ShardState',
)
