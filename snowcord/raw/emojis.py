from __future__ import annotations

import typing
import typing_extensions


class PartialEmoji(typing.TypedDict):
    id: typing.Optional[str]
    name: typing.Optional[str]
    animated: typing_extensions.NotRequired[bool]


class CustomEmoji(typing.TypedDict):
    id: str
    name: typing.Optional[str]
    roles: typing_extensions.NotRequired[list[str]]
    require_colons: typing_extensions.NotRequired[bool]
    managed: typing_extensions.NotRequired[bool]
    animated: typing_extensions.NotRequired[bool]


__all__ = ('PartialEmoji', 'CustomEmoji')
