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

from . import utils
from .channel import (
    ServerChannel,
    ServerTextChannel,
    ServerVoiceChannel,
    ChannelCategory,
    PrivateChannel,
    GroupChannel,
    Channel,
)
from .core import UNDEFINED, parse_optional_snowflake, parse_snowflake
from .emoji import PartialEmoji, CustomEmoji
from .enums import ActivityType, ChannelType, OverwriteType, UserStatus
from .errors import InvalidData
from .flags import Permissions
from .message import (
    Attachment,
    EmbedField,
    Embed,
    UserAuthor,
    WebhookAuthor,
    Author,
    Reaction,
    PartialMessage,
    Message,
)
from .permissions import PermissionOverwrite
from .server import Role, Server
from .user import Activity, PartialUser, User, OwnUser

if typing.TYPE_CHECKING:
    from . import raw
    from .state import State


class Parser:
    """An entity parser.

    Every method turns a raw payload into a fresh, detached object. The parser never
    reads from nor writes into the cache.

    Attributes
    ----------
    state: :class:`State`
        The state the parser is attached to.
    """

    __slots__ = ('state',)

    def __init__(self, *, state: State) -> None:
        self.state: State = state

    def parse_activity(self, payload: raw.Activity, /) -> Activity:
        return Activity(
            type=ActivityType.from_value(payload.get('type')),
            name=payload['name'],
            url=payload.get('url'),
        )

    def parse_attachment(self, payload: raw.Attachment, /) -> Attachment:
        return Attachment(
            id=parse_snowflake(payload['id']),
            filename=payload['filename'],
            size=payload['size'],
            url=payload['url'],
            proxy_url=payload['proxy_url'],
            width=payload.get('width'),
            height=payload.get('height'),
        )

    def parse_author(self, payload: raw.Message, /) -> Author:
        """Parses the author of a message.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The message payload.

        Returns
        -------
        Union[:class:`.UserAuthor`, :class:`.WebhookAuthor`]
            The parsed author.
        """
        author = payload['author']
        webhook_id = payload.get('webhook_id')
        if webhook_id is not None:
            return WebhookAuthor(
                id=parse_snowflake(webhook_id),
                name=author.get('username', ''),
                avatar_id=author.get('avatar'),
            )
        return UserAuthor(state=self.state, id=parse_snowflake(author['id']))

    def parse_channel(self, payload: raw.Channel, /, server_id: typing.Optional[int] = None) -> Channel:
        """Parses a channel object.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The channel payload to parse.
        server_id: Optional[:class:`int`]
            The server's ID, used when the payload does not carry one (e.g. channels sent in ``GUILD_CREATE``).

        Raises
        ------
        :class:`InvalidData`
            The channel type is unknown, or a server channel lacks server ID.

        Returns
        -------
        :class:`.Channel`
            The parsed channel object.
        """
        try:
            channel_type = ChannelType(payload['type'])
        except ValueError:
            raise InvalidData(f'Unknown channel type: {payload["type"]!r}') from None

        channel_id = parse_snowflake(payload['id'])

        if channel_type is ChannelType.private:
            recipients = payload.get('recipients') or []
            if not recipients:
                raise InvalidData(f'Private channel {channel_id} has no recipient')
            return PrivateChannel(
                state=self.state,
                id=channel_id,
                recipient_id=parse_snowflake(recipients[0]['id']),
                last_message_id=parse_optional_snowflake(payload.get('last_message_id')),
            )

        if channel_type is ChannelType.group:
            return GroupChannel(
                state=self.state,
                id=channel_id,
                name=payload.get('name'),
                owner_id=parse_snowflake(payload['owner_id']),
                recipient_ids=[parse_snowflake(u['id']) for u in payload.get('recipients', ())],
                icon_id=payload.get('icon'),
                last_message_id=parse_optional_snowflake(payload.get('last_message_id')),
            )

        raw_server_id = payload.get('guild_id')
        if raw_server_id is not None:
            server_id = parse_snowflake(raw_server_id)
        if server_id is None:
            raise InvalidData(f'Server channel {channel_id} has no server ID')

        name = payload.get('name') or ''
        position = payload.get('position', 0)
        parent_id = parse_optional_snowflake(payload.get('parent_id'))
        overwrites = self.parse_overwrites(payload.get('permission_overwrites', ()))

        if channel_type is ChannelType.text:
            return ServerTextChannel(
                state=self.state,
                id=channel_id,
                server_id=server_id,
                name=name,
                position=position,
                parent_id=parent_id,
                overwrites=overwrites,
                topic=payload.get('topic'),
                nsfw=payload.get('nsfw', False),
                slowmode=payload.get('rate_limit_per_user', 0),
                last_message_id=parse_optional_snowflake(payload.get('last_message_id')),
            )
        elif channel_type is ChannelType.voice:
            return ServerVoiceChannel(
                state=self.state,
                id=channel_id,
                server_id=server_id,
                name=name,
                position=position,
                parent_id=parent_id,
                overwrites=overwrites,
                bitrate=payload.get('bitrate', 64000),
                user_limit=payload.get('user_limit', 0),
            )
        else:
            return ChannelCategory(
                state=self.state,
                id=channel_id,
                server_id=server_id,
                name=name,
                position=position,
                # Categories cannot be nested
                parent_id=None,
                overwrites=overwrites,
            )

    def parse_server_channel(self, payload: raw.Channel, server_id: int, /) -> ServerChannel:
        channel = self.parse_channel(payload, server_id)
        if not isinstance(channel, ServerChannel):
            raise InvalidData(f'Expected server channel, got {channel.type}')
        return channel

    def parse_custom_emoji(self, payload: raw.CustomEmoji, server_id: int, /) -> CustomEmoji:
        return CustomEmoji(
            state=self.state,
            id=parse_snowflake(payload['id']),
            server_id=server_id,
            name=payload.get('name') or '',
            animated=payload.get('animated', False),
            require_colons=payload.get('require_colons', True),
            managed=payload.get('managed', False),
            role_ids=[parse_snowflake(r) for r in payload.get('roles', ())],
        )

    def parse_embed(self, payload: raw.Embed, /) -> Embed:
        footer = payload.get('footer')
        image = payload.get('image')
        thumbnail = payload.get('thumbnail')
        return Embed(
            title=payload.get('title'),
            description=payload.get('description'),
            url=payload.get('url'),
            color=payload.get('color'),
            timestamp=utils.parse_timestamp(payload.get('timestamp')),
            footer=None if footer is None else footer.get('text'),
            image_url=None if image is None else image.get('url'),
            thumbnail_url=None if thumbnail is None else thumbnail.get('url'),
            fields=[
                EmbedField(name=f['name'], value=f['value'], inline=f.get('inline', False))
                for f in payload.get('fields', ())
            ],
        )

    def parse_member(self, payload: raw.Member, /) -> tuple[User, list[int], typing.Optional[str]]:
        """Parses a member object.

        Members are not entities on their own: the user is shared across servers,
        and the per-server data is returned separately to be stored on server.

        Returns
        -------
        Tuple[:class:`.User`, List[:class:`int`], Optional[:class:`str`]]
            The user, IDs of roles the member has and the nickname.
        """
        return (
            self.parse_user(payload['user']),
            [parse_snowflake(r) for r in payload.get('roles', ())],
            payload.get('nick'),
        )

    def parse_message(self, payload: raw.Message, /) -> Message:
        """Parses a message object.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The message payload to parse.

        Returns
        -------
        :class:`.Message`
            The parsed message object.
        """
        return Message(
            state=self.state,
            id=parse_snowflake(payload['id']),
            channel_id=parse_snowflake(payload['channel_id']),
            server_id=parse_optional_snowflake(payload.get('guild_id')),
            author=self.parse_author(payload),
            content=payload.get('content', ''),
            embeds=[self.parse_embed(e) for e in payload.get('embeds', ())],
            attachments=[self.parse_attachment(a) for a in payload.get('attachments', ())],
            reactions=[self.parse_reaction(r) for r in payload.get('reactions', ())],
            pinned=payload.get('pinned', False),
            edited_at=utils.parse_timestamp(payload.get('edited_timestamp')),
            tts=payload.get('tts', False),
            mention_ids=[parse_snowflake(u['id']) for u in payload.get('mentions', ())],
            nonce=None if payload.get('nonce') is None else str(payload['nonce']),
        )

    def parse_overwrites(
        self, payload: typing.Iterable[raw.PermissionOverwrite], /
    ) -> dict[tuple[OverwriteType, int], PermissionOverwrite]:
        overwrites = {}
        for overwrite in payload:
            try:
                subject_type = OverwriteType(overwrite['type'])
            except ValueError:
                raise InvalidData(f'Unknown overwrite type: {overwrite["type"]!r}') from None
            overwrites[(subject_type, parse_snowflake(overwrite['id']))] = PermissionOverwrite(
                allow=Permissions(int(overwrite.get('allow', 0))),
                deny=Permissions(int(overwrite.get('deny', 0))),
            )
        return overwrites

    def parse_own_user(self, payload: raw.User, /) -> OwnUser:
        return OwnUser(
            state=self.state,
            id=parse_snowflake(payload['id']),
            name=payload['username'],
            discriminator=payload.get('discriminator', '0'),
            bot=payload.get('bot', False),
            avatar_id=payload.get('avatar'),
            status=UserStatus.online,
        )

    def parse_partial_emoji(self, payload: raw.PartialEmoji, /) -> PartialEmoji:
        return PartialEmoji(
            id=parse_optional_snowflake(payload.get('id')),
            name=payload.get('name'),
            animated=payload.get('animated', False),
        )

    def parse_partial_message(self, payload: raw.PartialMessage, /) -> PartialMessage:
        """Parses a partial message object, as seen in ``MESSAGE_UPDATE``.

        Fields absent from payload are left :data:`UNDEFINED`.
        """
        embeds = payload.get('embeds')
        attachments = payload.get('attachments')
        mentions = payload.get('mentions')
        return PartialMessage(
            state=self.state,
            id=parse_snowflake(payload['id']),
            channel_id=parse_snowflake(payload['channel_id']),
            content=payload.get('content', UNDEFINED),
            edited_at=(
                utils.parse_timestamp(payload['edited_timestamp']) if 'edited_timestamp' in payload else UNDEFINED
            ),
            embeds=UNDEFINED if embeds is None else [self.parse_embed(e) for e in embeds],
            attachments=UNDEFINED if attachments is None else [self.parse_attachment(a) for a in attachments],
            pinned=payload.get('pinned', UNDEFINED),
            mention_ids=UNDEFINED if mentions is None else [parse_snowflake(u['id']) for u in mentions],
        )

    def parse_partial_user(self, payload: raw.PartialUser, /) -> PartialUser:
        return PartialUser(
            state=self.state,
            id=parse_snowflake(payload['id']),
            name=payload.get('username', UNDEFINED),
            discriminator=payload.get('discriminator', UNDEFINED),
            avatar_id=payload.get('avatar', UNDEFINED),
            bot=payload.get('bot', UNDEFINED),
        )

    def parse_presence(self, payload: raw.Presence, /) -> PartialUser:
        """Parses a presence into partial user carrying status and activity.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The presence payload to parse.

        Returns
        -------
        :class:`.PartialUser`
            The user data updated by presence.
        """
        user = self.parse_partial_user(payload['user'])
        user.status = UserStatus.from_value(payload.get('status'))

        activities = payload.get('activities')
        if activities is None:
            game = payload.get('game')
            user.activity = None if game is None else self.parse_activity(game)
        else:
            user.activity = self.parse_activity(activities[0]) if activities else None
        return user

    def parse_reaction(self, payload: raw.Reaction, /) -> Reaction:
        return Reaction(
            emoji=self.parse_partial_emoji(payload['emoji']),
            count=payload.get('count', 1),
            me=payload.get('me', False),
        )

    def parse_role(self, payload: raw.Role, server_id: int, /) -> Role:
        """Parses a role object.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The role payload to parse.
        server_id: :class:`int`
            The server's ID the role belongs to.

        Returns
        -------
        :class:`.Role`
            The parsed role object.
        """
        return Role(
            state=self.state,
            id=parse_snowflake(payload['id']),
            server_id=server_id,
            name=payload['name'],
            color=payload.get('color', 0),
            position=payload.get('position', 0),
            raw_permissions=int(payload.get('permissions', 0)),
            hoist=payload.get('hoist', False),
            mentionable=payload.get('mentionable', False),
            managed=payload.get('managed', False),
        )

    def parse_server(self, payload: raw.Server, /) -> Server:
        """Parses a server object along with its roles and emojis.

        Channels and members are not parsed, as they reference cache-owned entities.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The server payload to parse.

        Returns
        -------
        :class:`.Server`
            The parsed server object.
        """
        server_id = parse_snowflake(payload['id'])
        roles = [self.parse_role(r, server_id) for r in payload.get('roles', ())]
        emojis = [self.parse_custom_emoji(e, server_id) for e in payload.get('emojis', ())]

        return Server(
            state=self.state,
            id=server_id,
            name=payload['name'],
            region=payload.get('region'),
            owner_id=parse_snowflake(payload['owner_id']),
            large=payload.get('large', False),
            member_count=payload.get('member_count', 0),
            icon_id=payload.get('icon'),
            roles={role.id: role for role in roles},
            emojis={emoji.id: emoji for emoji in emojis},
        )

    def parse_user(self, payload: raw.User, /) -> User:
        """Parses a user object.

        Parameters
        ----------
        payload: Dict[:class:`str`, Any]
            The user payload to parse.

        Returns
        -------
        :class:`.User`
            The parsed user object.
        """
        return User(
            state=self.state,
            id=parse_snowflake(payload['id']),
            name=payload['username'],
            discriminator=payload.get('discriminator', '0'),
            bot=payload.get('bot', False),
            avatar_id=payload.get('avatar'),
        )


__all__ = ('Parser',)
