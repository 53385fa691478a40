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

from attrs import define, field, fields
from datetime import datetime
import typing


from .core import snowflake_time

if typing.TYPE_CHECKING:
    from .state import State


@define(slots=True)
class Base:
    state: State = field(repr=False, eq=False, kw_only=True)
    """:class:`.State`: The state that controls this entity."""

    id: int = field(repr=True, kw_only=True)
    """:class:`int`: The snowflake ID of the entity."""

    # Fields that are owned by the cache and must survive a snapshot update.
    __local_fields__: typing.ClassVar[tuple[str, ...]] = ()

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object, /) -> bool:
        return self is other or isinstance(other, self.__class__) and self.id == other.id

    @property
    def created_at(self) -> datetime:
        """:class:`~datetime.datetime`: When the entity was created, derived from its ID."""
        return snowflake_time(self.id)

    def locally_update(self, data: typing.Any, /) -> None:
        """Copies every attribute of a freshly parsed snapshot of same entity into this object.

        Attributes listed in ``__local_fields__`` are left untouched.

        .. warning::
            This is called by library internally to keep cache up to date.
        """
        if data.id != self.id:
            raise ValueError(f'Cannot update {self.id} with snapshot of {data.id}')
        skip = self.__local_fields__
        for attribute in fields(type(self)):
            name = attribute.name
            if name in ('state', 'id') or name in skip:
                continue
            if hasattr(data, name):
                setattr(self, name, getattr(data, name))


__all__ = ('Base',)
