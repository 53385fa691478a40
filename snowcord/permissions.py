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

from .enums import OverwriteType, PermissionState
from .flags import Permissions

if typing.TYPE_CHECKING:
    from collections.abc import Iterable

    from . import raw


class PermissionOverwrite:
    """Represents a single permission overwrite in a channel's overwrite table.

    A permission that is neither allowed nor denied is unset, and is inherited
    from the previous step of the calculation.

    Attributes
    ----------
    allow: :class:`Permissions`
        Allow bit flags.
    deny: :class:`Permissions`
        Disallow bit flags.
    """

    __slots__ = ('allow', 'deny')

    def __init__(
        self,
        allow: typing.Optional[Permissions] = None,
        deny: typing.Optional[Permissions] = None,
    ) -> None:
        self.allow: Permissions = allow or Permissions.none()
        self.deny: Permissions = deny or Permissions.none()

    def __eq__(self, other: object, /) -> bool:
        return (
            self is other
            or isinstance(other, PermissionOverwrite)
            and self.allow == other.allow
            and self.deny == other.deny
        )

    def __repr__(self) -> str:
        return f'<PermissionOverwrite allow={self.allow!r} deny={self.deny!r}>'

    def state_of(self, name: str, /) -> PermissionState:
        """:class:`PermissionState`: Returns the state of permission with given name (e.g. ``'send_messages'``)."""
        value = Permissions.VALID_FLAGS[name]
        if self.deny.value & value:
            return PermissionState.denied
        if self.allow.value & value:
            return PermissionState.allowed
        return PermissionState.unset

    def is_empty(self) -> bool:
        return not self.allow and not self.deny

    def apply(self, value: int, /) -> int:
        """:class:`int`: Applies this overwrite to raw permissions value."""
        return (value & ~self.deny.value) | self.allow.value

    def build(self, subject_type: OverwriteType, subject_id: int, /) -> raw.PermissionOverwrite:
        return {
            'id': str(subject_id),
            'type': int(subject_type),
            'allow': str(self.allow.value),
            'deny': str(self.deny.value),
        }


def calculate_permissions(
    base: int,
    /,
    *,
    overwrites: Iterable[PermissionOverwrite] = (),
    owner: bool = False,
) -> Permissions:
    """Calculates effective permissions.

    Overwrites are applied in order, so a later overwrite takes precedence over earlier ones.

    Parameters
    ----------
    base: :class:`int`
        The server-wide permissions, OR'ed together from every role the member holds.
    overwrites: Iterable[:class:`PermissionOverwrite`]
        The channel overwrites to apply, in precedence order.
    owner: :class:`bool`
        Whether the member owns the server.

    Returns
    -------
    :class:`Permissions`
        The calculated permissions.
    """
    if owner or base & Permissions.administrator.value:
        return Permissions.all()

    value = base
    for overwrite in overwrites:
        value = overwrite.apply(value)
    return Permissions(value)


__all__ = (
    'PermissionOverwrite',
    'calculate_permissions',
)
