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

from attrs import define, field

from .base import Base

if typing.TYPE_CHECKING:
    from . import raw
    from .server import Server


@define(slots=True, eq=False)
class PartialEmoji:
    """Represents an emoji used in a reaction.

    This may be either a unicode emoji (``id`` is ``None``), or a custom emoji.
    """

    id: typing.Optional[int] = field(repr=True, kw_only=True)
    """Optional[:class:`int`]: The custom emoji's ID. ``None`` for unicode emojis."""

    name: typing.Optional[str] = field(repr=True, kw_only=True)
    """Optional[:class:`str`]: The emoji name, or the unicode character itself."""

    animated: bool = field(repr=True, default=False, kw_only=True)
    """:class:`bool`: Whether the emoji is animated."""

    def __hash__(self) -> int:
        return hash(self.key)

    def __eq__(self, other: object, /) -> bool:
        return self is other or isinstance(other, PartialEmoji) and self.key == other.key

    def __str__(self) -> str:
        if self.id is None:
            return self.name or ''
        return f'<{"a" if self.animated else ""}:{self.name}:{self.id}>'

    @property
    def key(self) -> str:
        """:class:`str`: The key that identifies this emoji in reactions and routes."""
        if self.id is None:
            return self.name or ''
        return f'{self.name}:{self.id}'

    def is_unicode(self) -> bool:
        """:class:`bool`: Whether this is a unicode emoji."""
        return self.id is None

    def build(self) -> raw.PartialEmoji:
        return {
            'id': None if self.id is None else str(self.id),
            'name': self.name,
            'animated': self.animated,
        }


@define(slots=True, eq=False)
class CustomEmoji(Base):
    """Represents a custom emoji in :class:`.Server`."""

    server_id: int = field(repr=True, kw_only=True)
    """:class:`int`: The server's ID the emoji belongs to."""

    name: str = field(repr=True, kw_only=True)
    """:class:`str`: The emoji's name."""

    animated: bool = field(repr=True, default=False, kw_only=True)
    """:class:`bool`: Whether the emoji is animated."""

    require_colons: bool = field(repr=False, default=True, kw_only=True)
    managed: bool = field(repr=False, default=False, kw_only=True)

    role_ids: list[int] = field(repr=False, factory=list, kw_only=True)
    """List[:class:`int`]: The IDs of roles allowed to use this emoji. Empty if everyone can use it."""

    def __str__(self) -> str:
        return f'<{"a" if self.animated else ""}:{self.name}:{self.id}>'

    @property
    def server(self) -> typing.Optional[Server]:
        """Optional[:class:`.Server`]: The server the emoji belongs to."""
        return self.state.cache.get_server(self.server_id)

    def to_partial(self) -> PartialEmoji:
        """:class:`.PartialEmoji`: Converts the emoji into one usable in reactions."""
        return PartialEmoji(id=self.id, name=self.name, animated=self.animated)


ResolvableEmoji = typing.Union[PartialEmoji, CustomEmoji, str]


def resolve_emoji(resolvable: ResolvableEmoji, /) -> str:
    """:class:`str`: Resolves emoji key from parameter.

    Parameters
    ----------
    resolvable: :class:`.ResolvableEmoji`
        The object to resolve key from. Strings are either unicode emojis or ``name:id`` pairs.

    Returns
    -------
    :class:`str`
        The resolved emoji key.
    """
    if isinstance(resolvable, CustomEmoji):
        key = resolvable.to_partial().key
    elif isinstance(resolvable, PartialEmoji):
        key = resolvable.key
    else:
        key = resolvable.strip('<>')
        if key.startswith('a:'):
            key = key[2:]
        elif key.startswith(':'):
            key = key[1:]
    return key


__all__ = (
    'PartialEmoji',
    'CustomEmoji',
    'ResolvableEmoji',
    'resolve_emoji',
)
