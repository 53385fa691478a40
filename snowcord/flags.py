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

import inspect
import typing

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from typing_extensions import Self

BF = typing.TypeVar('BF', bound='BaseFlags')


class flag(typing.Generic[BF]):
    # Exposes single bit of BaseFlags as boolean attribute
    __slots__ = (
        '__doc__',
        '_func',
        'name',
        'value',
        'alias',
    )

    def __init__(self, *, alias: bool = False) -> None:
        self.__doc__: typing.Optional[str] = None
        self._func: typing.Optional[Callable[[type[BF]], int]] = None
        self.name: str = ''
        self.value: int = 0
        self.alias: bool = alias

    def __call__(self, func: Callable[[type[BF]], int], /) -> Self:
        self._func = func
        self.__doc__ = func.__doc__
        self.name = func.__name__
        return self

    @typing.overload
    def __get__(self, instance: None, owner: type[BF], /) -> Self: ...

    @typing.overload
    def __get__(self, instance: BF, owner: type[BF], /) -> bool: ...

    def __get__(self, instance: typing.Optional[BF], owner: type[BF], /) -> typing.Union[bool, Self]:
        if instance is None:
            return self
        return (instance.value & self.value) == self.value

    def __set__(self, instance: BF, value: bool, /) -> None:
        if value:
            instance.value |= self.value
        else:
            instance.value &= ~self.value

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f'<flag name={self.name!r} value={self.value}>'


class BaseFlags:
    """Base class for flags."""

    if typing.TYPE_CHECKING:
        ALL_VALUE: typing.ClassVar[int]
        VALID_FLAGS: typing.ClassVar[dict[str, int]]

    __slots__ = ('value',)

    def __init_subclass__(cls, **kwargs: typing.Any) -> None:
        super().__init_subclass__(**kwargs)

        valid_flags = {}
        for _, f in inspect.getmembers(cls):
            if isinstance(f, flag) and f._func is not None:
                f.value = f._func(cls)
                if f.alias:
                    continue
                valid_flags[f.name] = f.value

        all = 0
        for value in valid_flags.values():
            all |= value

        cls.ALL_VALUE = all
        cls.VALID_FLAGS = valid_flags

    def __init__(self, value: int = 0, /, **kwargs: bool) -> None:
        self.value: int = value
        for k, v in kwargs.items():
            if k not in self.VALID_FLAGS:
                raise TypeError(f'Unknown flag {k}')
            setattr(self, k, v)

    @classmethod
    def all(cls) -> Self:
        """Returns instance with all flags."""
        return cls(cls.ALL_VALUE)

    @classmethod
    def none(cls) -> Self:
        """Returns instance with no flags."""
        return cls(0)

    def __hash__(self) -> int:
        return hash(self.value)

    def __iter__(self) -> Iterator[tuple[str, bool]]:
        for name in self.VALID_FLAGS:
            yield (name, getattr(self, name))

    def __repr__(self, /) -> str:
        return f'<{self.__class__.__name__}: {self.value}>'

    def __int__(self) -> int:
        return self.value

    def copy(self) -> Self:
        """Copies the flag value."""
        return self.__class__(self.value)

    def _value_of(self, other: typing.Union[Self, flag[Self], int], /) -> int:
        if isinstance(other, int):
            return other
        elif isinstance(other, (flag, self.__class__)):
            return other.value
        raise TypeError(f'cannot get {other.__class__.__name__} value')

    def is_subset(self, other: typing.Union[Self, flag[Self], int], /) -> bool:
        """:class:`bool`: Returns ``True`` if self has the same or fewer flags as other."""
        return (self.value & self._value_of(other)) == self.value

    def is_superset(self, other: typing.Union[Self, flag[Self], int], /) -> bool:
        """:class:`bool`: Returns ``True`` if self has the same or more flags as other."""
        return (self.value | self._value_of(other)) == self.value

    __le__ = is_subset
    __ge__ = is_superset

    def __and__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        return self.__class__(self.value & self._value_of(other))

    def __or__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        return self.__class__(self.value | self._value_of(other))

    def __xor__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        return self.__class__(self.value ^ self._value_of(other))

    def __invert__(self) -> Self:
        return self.__class__(self.value ^ self.ALL_VALUE)

    def __iand__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        self.value &= self._value_of(other)
        return self

    def __ior__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        self.value |= self._value_of(other)
        return self

    def __ixor__(self, other: typing.Union[Self, flag[Self], int], /) -> Self:
        self.value ^= self._value_of(other)
        return self

    def __bool__(self) -> bool:
        return self.value != 0

    def __contains__(self, other: typing.Union[Self, flag[Self], int], /) -> bool:
        ov = self._value_of(other)
        return (self.value & ov) == ov

    def __eq__(self, other: object, /) -> bool:
        return self is other or isinstance(other, self.__class__) and self.value == other.value

    def __ne__(self, other: object, /) -> bool:
        return not self.__eq__(other)


class Permissions(BaseFlags):
    """Wraps up a permission bitmask. Used by roles and by channel permission overwrites."""

    __slots__ = ()

    # * General permissions

    @flag()
    def create_instant_invite(cls) -> int:
        """:class:`bool`: Whether the user can create invites."""
        return 1 << 0

    @flag()
    def kick_members(cls) -> int:
        """:class:`bool`: Whether the user can kick other members."""
        return 1 << 1

    @flag()
    def ban_members(cls) -> int:
        """:class:`bool`: Whether the user can ban other members."""
        return 1 << 2

    @flag()
    def administrator(cls) -> int:
        """:class:`bool`: Whether the user is an administrator.

        Administrators bypass every channel permission overwrite.
        """
        return 1 << 3

    @flag()
    def manage_channels(cls) -> int:
        """:class:`bool`: Whether the user can edit, delete, or create channels in the server."""
        return 1 << 4

    @flag()
    def manage_server(cls) -> int:
        """:class:`bool`: Whether the user can edit server properties."""
        return 1 << 5

    @flag()
    def add_reactions(cls) -> int:
        return 1 << 6

    @flag()
    def view_audit_log(cls) -> int:
        return 1 << 7

    @flag()
    def priority_speaker(cls) -> int:
        return 1 << 8

    @flag()
    def stream(cls) -> int:
        return 1 << 9

    # * Text permissions

    @flag()
    def view_channel(cls) -> int:
        """:class:`bool`: Whether the user can see a channel and read its messages."""
        return 1 << 10

    @flag(alias=True)
    def read_messages(cls) -> int:
        """An alias for :attr:`view_channel`."""
        return 1 << 10

    @flag()
    def send_messages(cls) -> int:
        """:class:`bool`: Whether the user can send messages in a channel."""
        return 1 << 11

    @flag()
    def send_tts_messages(cls) -> int:
        return 1 << 12

    @flag()
    def manage_messages(cls) -> int:
        """:class:`bool`: Whether the user can delete or pin other's messages."""
        return 1 << 13

    @flag()
    def embed_links(cls) -> int:
        return 1 << 14

    @flag()
    def attach_files(cls) -> int:
        return 1 << 15

    @flag()
    def read_message_history(cls) -> int:
        """:class:`bool`: Whether the user can read a channel's past message history."""
        return 1 << 16

    @flag()
    def mention_everyone(cls) -> int:
        return 1 << 17

    @flag()
    def use_external_emojis(cls) -> int:
        return 1 << 18

    # % 1 bit reserved

    # * Voice permissions

    @flag()
    def connect(cls) -> int:
        """:class:`bool`: Whether the user can connect to a voice channel."""
        return 1 << 20

    @flag()
    def speak(cls) -> int:
        return 1 << 21

    @flag()
    def mute_members(cls) -> int:
        return 1 << 22

    @flag()
    def deafen_members(cls) -> int:
        return 1 << 23

    @flag()
    def move_members(cls) -> int:
        return 1 << 24

    @flag()
    def use_voice_activation(cls) -> int:
        return 1 << 25

    # * Member permissions

    @flag()
    def change_nickname(cls) -> int:
        """:class:`bool`: Whether the user can change own nickname."""
        return 1 << 26

    @flag()
    def manage_nicknames(cls) -> int:
        """:class:`bool`: Whether the user can change nicknames of other members."""
        return 1 << 27

    @flag()
    def manage_roles(cls) -> int:
        """:class:`bool`: Whether the user can manage roles on server.

        This also corresponds to the "Manage Permissions" channel-specific override.
        """
        return 1 << 28

    @flag()
    def manage_webhooks(cls) -> int:
        return 1 << 29

    @flag()
    def manage_emojis(cls) -> int:
        return 1 << 30

    @classmethod
    def text(cls) -> Self:
        """:class:`Permissions`: Returns permissions related to text channels."""
        return cls(
            view_channel=True,
            send_messages=True,
            send_tts_messages=True,
            manage_messages=True,
            embed_links=True,
            attach_files=True,
            read_message_history=True,
            mention_everyone=True,
            use_external_emojis=True,
            add_reactions=True,
        )

    @classmethod
    def voice(cls) -> Self:
        """:class:`Permissions`: Returns permissions related to voice channels."""
        return cls(
            connect=True,
            speak=True,
            mute_members=True,
            deafen_members=True,
            move_members=True,
            use_voice_activation=True,
            priority_speaker=True,
            stream=True,
        )


class Intents(BaseFlags):
    """Wraps up the gateway intents bitmask sent in the identify handshake.

    Each intent enables a category of dispatched events.
    """

    __slots__ = ()

    @flag()
    def servers(cls) -> int:
        """:class:`bool`: Whether server, role and channel related events are enabled."""
        return 1 << 0

    @flag()
    def members(cls) -> int:
        """:class:`bool`: Whether member join, update and remove events are enabled.

        This is a privileged intent.
        """
        return 1 << 1

    @flag()
    def bans(cls) -> int:
        return 1 << 2

    @flag()
    def emojis(cls) -> int:
        return 1 << 3

    @flag()
    def integrations(cls) -> int:
        return 1 << 4

    @flag()
    def webhooks(cls) -> int:
        return 1 << 5

    @flag()
    def invites(cls) -> int:
        return 1 << 6

    @flag()
    def voice_states(cls) -> int:
        return 1 << 7

    @flag()
    def presences(cls) -> int:
        """:class:`bool`: Whether presence update events are enabled.

        This is a privileged intent.
        """
        return 1 << 8

    @flag()
    def server_messages(cls) -> int:
        return 1 << 9

    @flag()
    def server_reactions(cls) -> int:
        return 1 << 10

    @flag()
    def server_typing(cls) -> int:
        return 1 << 11

    @flag()
    def dm_messages(cls) -> int:
        return 1 << 12

    @flag()
    def dm_reactions(cls) -> int:
        return 1 << 13

    @flag()
    def dm_typing(cls) -> int:
        return 1 << 14

    @flag()
    def message_content(cls) -> int:
        """:class:`bool`: Whether message content is delivered in message events.

        This is a privileged intent.
        """
        return 1 << 15

    @classmethod
    def default(cls) -> Self:
        """:class:`Intents`: Returns all intents except the privileged ones."""
        self = cls.all()
        self.members = False
        self.presences = False
        self.message_content = False
        return self


__all__ = (
    'BF',
    'flag',
    'BaseFlags',
    'Permissions',
    'Intents',
)
