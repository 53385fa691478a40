from __future__ import annotations

import typing
import typing_extensions

from .emojis import PartialEmoji
from .servers import InlineMember, Member
from .users import User


class EmbedFooter(typing.TypedDict):
    text: str


class EmbedMedia(typing.TypedDict):
    url: str


class EmbedField(typing.TypedDict):
    name: str
    value: str
    inline: typing_extensions.NotRequired[bool]


class Embed(typing.TypedDict):
    title: typing_extensions.NotRequired[str]
    description: typing_extensions.NotRequired[str]
    url: typing_extensions.NotRequired[str]
    color: typing_extensions.NotRequired[int]
    timestamp: typing_extensions.NotRequired[str]
    footer: typing_extensions.NotRequired[EmbedFooter]
    image: typing_extensions.NotRequired[EmbedMedia]
    thumbnail: typing_extensions.NotRequired[EmbedMedia]
    fields: typing_extensions.NotRequired[list[EmbedField]]


class Attachment(typing.TypedDict):
    id: str
    filename: str
    size: int
    url: str
    proxy_url: str
    width: typing_extensions.NotRequired[typing.Optional[int]]
    height: typing_extensions.NotRequired[typing.Optional[int]]


class Reaction(typing.TypedDict):
    emoji: PartialEmoji
    count: int
    me: bool


class Message(typing.TypedDict):
    id: str
    channel_id: str
    guild_id: typing_extensions.NotRequired[str]
    author: User
    member: typing_extensions.NotRequired[InlineMember]
    webhook_id: typing_extensions.NotRequired[str]
    content: str
    timestamp: typing_extensions.NotRequired[str]
    edited_timestamp: typing_extensions.NotRequired[typing.Optional[str]]
    tts: typing_extensions.NotRequired[bool]
    mentions: typing_extensions.NotRequired[list[User]]
    attachments: typing_extensions.NotRequired[list[Attachment]]
    embeds: typing_extensions.NotRequired[list[Embed]]
    reactions: typing_extensions.NotRequired[list[Reaction]]
    nonce: typing_extensions.NotRequired[typing.Optional[typing.Union[int, str]]]
    pinned: typing_extensions.NotRequired[bool]


class PartialMessage(typing.TypedDict):
    id: str
    channel_id: str
    guild_id: typing_extensions.NotRequired[str]
    content: typing_extensions.NotRequired[str]
    edited_timestamp: typing_extensions.NotRequired[typing.Optional[str]]
    mentions: typing_extensions.NotRequired[list[User]]
    attachments: typing_extensions.NotRequired[list[Attachment]]
    embeds: typing_extensions.NotRequired[list[Embed]]
    pinned: typing_extensions.NotRequired[bool]


class DataMessageSend(typing.TypedDict):
    content: typing_extensions.NotRequired[str]
    embeds: typing_extensions.NotRequired[list[Embed]]
    tts: typing_extensions.NotRequired[bool]
    nonce: typing_extensions.NotRequired[str]


class DataMessageEdit(typing.TypedDict):
    content: typing_extensions.NotRequired[typing.Optional[str]]
    embeds: typing_extensions.NotRequired[list[Embed]]


class MessageDelete(typing.TypedDict):
    id: str
    channel_id: str
    guild_id: typing_extensions.NotRequired[str]


class MessageDeleteBulk(typing.TypedDict):
    ids: list[str]
    channel_id: str
    guild_id: typing_extensions.NotRequired[str]


class MessageReaction(typing.TypedDict):
    user_id: str
    channel_id: str
    message_id: str
    guild_id: typing_extensions.NotRequired[str]
    member: typing_extensions.NotRequired[Member]
    emoji: PartialEmoji


class MessageReactionRemoveAll(typing.TypedDict):
    channel_id: str
    message_id: str
    guild_id: typing_extensions.NotRequired[str]


class TypingStart(typing.TypedDict):
    channel_id: str
    guild_id: typing_extensions.NotRequired[str]
    user_id: str
    timestamp: int
    member: typing_extensions.NotRequired[Member]


__all__ = (
    'EmbedFooter',
    'EmbedMedia',
    'EmbedField',
    'Embed',
    'Attachment',
    'Reaction',
    'Message',
    'PartialMessage',
    'DataMessageSend',
    'DataMessageEdit',
    'MessageDelete',
    'MessageDeleteBulk',
    'MessageReaction',
    'MessageReactionRemoveAll',
    'TypingStart',
)
