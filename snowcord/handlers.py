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

import asyncio
import copy
from datetime import datetime, timezone
from inspect import isawaitable
import logging
import typing

from . import utils
from .core import UNDEFINED, parse_optional_snowflake, parse_snowflake
from .errors import HTTPException, ShardError
from .events import (
    ShardStateChangeEvent,
    BeforeConnectEvent,
    AfterConnectEvent,
    ReadyEvent,
    ResumedEvent,
    ServerJoinEvent,
    ServerBecomesAvailableEvent,
    ServerBecomesUnavailableEvent,
    ServerUpdateEvent,
    ServerLeaveEvent,
    MemberJoinEvent,
    MemberUpdateEvent,
    MemberRemoveEvent,
    MembersChunkEvent,
    RoleCreateEvent,
    RoleUpdateEvent,
    RoleDeleteEvent,
    EmojisUpdateEvent,
    ChannelCreateEvent,
    ChannelUpdateEvent,
    ChannelDeleteEvent,
    MessageCreateEvent,
    MessageUpdateEvent,
    MessageDeleteEvent,
    MessageDeleteBulkEvent,
    ReactionAddEvent,
    ReactionRemoveEvent,
    ReactionRemoveAllEvent,
    PresenceUpdateEvent,
    UserUpdateEvent,
    TypingStartEvent,
)
from .shard import EventHandler

if typing.TYPE_CHECKING:
    import aiohttp

    from . import raw
    from .channel import Channel
    from .client import Client
    from .enums import ShardState
    from .packets import Packet
    from .server import Server
    from .shard import Shard
    from .user import User

_L = logging.getLogger(__name__)


class PacketHandlers(EventHandler):
    """The default event handler for the client.

    Each handler applies a dispatch payload to the cache, and only then dispatches
    the domain event, so listeners always observe the updated cache.

    Events about entities that are not cached are handled as following:

    - servers, channels and messages: the event is not dispatched;
    - updates carrying a complete entity (roles, channels): the entity is inserted, but no event is dispatched;
    - users referenced only by ID: the user is fetched over REST first, and the event is not dispatched if that fails;
    - members with inline data: the member is inserted from payload.
    """

    __slots__ = ('_client', '_state', 'dispatch', '_handlers')

    def __init__(self, client: Client) -> None:
        self._client = client
        self._state = client._state
        self.dispatch = client.dispatch

        self._handlers: dict[str, typing.Callable[[Shard, typing.Any], utils.MaybeAwaitable[None]]] = {
            'READY': self.handle_ready,
            'RESUMED': self.handle_resumed,
            'GUILD_CREATE': self.handle_guild_create,
            'GUILD_UPDATE': self.handle_guild_update,
            'GUILD_DELETE': self.handle_guild_delete,
            'GUILD_MEMBER_ADD': self.handle_guild_member_add,
            'GUILD_MEMBER_UPDATE': self.handle_guild_member_update,
            'GUILD_MEMBER_REMOVE': self.handle_guild_member_remove,
            'GUILD_MEMBERS_CHUNK': self.handle_guild_members_chunk,
            'GUILD_ROLE_CREATE': self.handle_guild_role_create,
            'GUILD_ROLE_UPDATE': self.handle_guild_role_update,
            'GUILD_ROLE_DELETE': self.handle_guild_role_delete,
            'GUILD_EMOJIS_UPDATE': self.handle_guild_emojis_update,
            'CHANNEL_CREATE': self.handle_channel_create,
            'CHANNEL_UPDATE': self.handle_channel_update,
            'CHANNEL_DELETE': self.handle_channel_delete,
            'MESSAGE_CREATE': self.handle_message_create,
            'MESSAGE_UPDATE': self.handle_message_update,
            'MESSAGE_DELETE': self.handle_message_delete,
            'MESSAGE_DELETE_BULK': self.handle_message_delete_bulk,
            'MESSAGE_REACTION_ADD': self.handle_message_reaction_add,
            'MESSAGE_REACTION_REMOVE': self.handle_message_reaction_remove,
            'MESSAGE_REACTION_REMOVE_ALL': self.handle_message_reaction_remove_all,
            'PRESENCE_UPDATE': self.handle_presence_update,
            'USER_UPDATE': self.handle_user_update,
            'TYPING_START': self.handle_typing_start,
        }

    @property
    def event_names(self) -> list[str]:
        """List[:class:`str`]: The names of events that have a handler."""
        return list(self._handlers)

    def _store_member(self, server_id: int, payload: raw.Member, /) -> typing.Optional[User]:
        user, role_ids, nick = self._state.parser.parse_member(payload)
        return self._state.cache.store_member(server_id, user, nick=nick, role_ids=role_ids)

    def _forget_servers_of(self, shard: Shard, /) -> None:
        state = self._state
        cache = state.cache
        for server_id in list(cache.get_servers_mapping()):
            if state.shard_for(server_id) == shard.shard_id:
                cache.remove_server(server_id)
        for server_id in cache.unavailable_server_ids():
            if state.shard_for(server_id) == shard.shard_id:
                cache.remove_unavailable(server_id)

    def _reconcile_server(self, cached: Server, server: Server, payload: raw.Server, /) -> None:
        cache = self._state.cache

        # Updates do not carry counters
        if 'member_count' not in payload:
            server.member_count = cached.member_count
        if 'large' not in payload:
            server.large = cached.large
        cached.locally_update(server)
        if 'roles' in payload:
            for role in server.roles.values():
                cache.store_role(role)
            for role_id in set(cached.roles) - set(server.roles):
                cache.remove_role(cached.id, role_id)
        if 'emojis' in payload:
            cache.set_server_emojis(cached.id, server.emojis.values())

    def _store_channel(self, channel: Channel, /) -> bool:
        cache = self._state.cache
        cached = cache.get_channel(channel.id)
        if cached is not None and type(cached) is type(channel):
            cached.locally_update(channel)
            return cache.store_channel(cached)
        return cache.store_channel(channel)

    def handle_ready(self, shard: Shard, payload: raw.Ready, /) -> None:
        state = self._state
        cache = state.cache
        parser = state.parser

        # A fresh session starts with servers of this shard being unknown
        self._forget_servers_of(shard)

        me = state._set_me(parser.parse_own_user(payload['user']))

        for channel_payload in payload.get('private_channels', ()):
            for recipient in channel_payload.get('recipients', ()):
                cache.store_user(parser.parse_user(recipient))
            cache.store_channel(parser.parse_channel(channel_payload))

        unavailable_server_ids = []
        for server_payload in payload.get('guilds', ()):
            server_id = parse_snowflake(server_payload['id'])
            cache.add_unavailable(server_id)
            unavailable_server_ids.append(server_id)

        self.dispatch(
            ReadyEvent(
                shard=shard,
                me=me,
                session_id=payload['session_id'],
                unavailable_server_ids=unavailable_server_ids,
            )
        )

    def handle_resumed(self, shard: Shard, payload: typing.Any, /) -> None:
        self.dispatch(ResumedEvent(shard=shard))

    async def handle_guild_create(self, shard: Shard, payload: raw.Server, /) -> None:
        state = self._state
        cache = state.cache
        parser = state.parser

        server_id = parse_snowflake(payload['id'])
        if payload.get('unavailable'):
            removed = cache.remove_server(server_id)
            cache.add_unavailable(server_id)
            if removed is not None:
                self.dispatch(ServerBecomesUnavailableEvent(shard=shard, server_id=server_id, server=removed))
            return

        server = parser.parse_server(payload)
        channels = [parser.parse_server_channel(c, server_id) for c in payload.get('channels', ())]

        was_unavailable = cache.remove_unavailable(server_id)
        cached = cache.get_server(server_id)

        if cached is None:
            server.channels = {channel.id: channel for channel in channels}
            cache.store_server(server)
            target = server
        else:
            self._reconcile_server(cached, server, payload)
            if 'channels' in payload:
                for channel in channels:
                    self._store_channel(channel)
                for channel_id in set(cached.channels) - {channel.id for channel in channels}:
                    cache.remove_channel(channel_id)
            target = cached

        # Roles and channels must be in place before members referencing them
        for member_payload in payload.get('members', ()):
            self._store_member(server_id, member_payload)

        for presence_payload in payload.get('presences', ()):
            data = parser.parse_presence(presence_payload)
            user = cache.get_user(data.id)
            if user is not None:
                user.locally_update(data)

        if target.needs_chunking():
            try:
                await shard.request_members(server_id)
            except (ShardError, OSError):
                _L.warning('Shard %i failed to request members of %i', shard.shard_id, server_id, exc_info=True)

        if was_unavailable:
            self.dispatch(ServerBecomesAvailableEvent(shard=shard, server=target))
        elif cached is None:
            self.dispatch(ServerJoinEvent(shard=shard, server=target))
        else:
            _L.debug('Server %i was already cached, not dispatching join', server_id)

    def handle_guild_update(self, shard: Shard, payload: raw.Server, /) -> None:
        state = self._state

        server = state.parser.parse_server(payload)
        cached = state.cache.get_server(server.id)
        if cached is None:
            return

        old = copy.copy(cached)
        self._reconcile_server(cached, server, payload)
        self.dispatch(ServerUpdateEvent(shard=shard, old=old, server=cached))

    def handle_guild_delete(self, shard: Shard, payload: raw.UnavailableServer, /) -> None:
        cache = self._state.cache

        server_id = parse_snowflake(payload['id'])
        server = cache.remove_server(server_id)

        if payload.get('unavailable'):
            cache.add_unavailable(server_id)
            self.dispatch(ServerBecomesUnavailableEvent(shard=shard, server_id=server_id, server=server))
            return

        was_unavailable = cache.remove_unavailable(server_id)
        if server is None and not was_unavailable:
            return
        self.dispatch(ServerLeaveEvent(shard=shard, server_id=server_id, server=server))

    def handle_guild_member_add(self, shard: Shard, payload: raw.ServerMember, /) -> None:
        cache = self._state.cache

        server_id = parse_snowflake(payload['guild_id'])
        server = cache.get_server(server_id)
        if server is None:
            return

        was_member = parse_snowflake(payload['user']['id']) in server.member_ids
        user = self._store_member(server_id, payload)
        if user is None:
            return
        if not was_member:
            server.member_count += 1
        self.dispatch(MemberJoinEvent(shard=shard, server=server, user=user))

    def handle_guild_member_update(self, shard: Shard, payload: raw.ServerMember, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_snowflake(payload['guild_id'])
        server = cache.get_server(server_id)
        if server is None:
            return

        user = state.parser.parse_user(payload['user'])
        old_nick = server.nickname_of(user.id)
        old_role_ids = set(server.member_roles.get(user.id, ()))

        cached = cache.store_member(
            server_id,
            user,
            nick=payload['nick'] if 'nick' in payload else UNDEFINED,
            role_ids=[parse_snowflake(r) for r in payload['roles']] if 'roles' in payload else UNDEFINED,
        )
        if cached is None:
            return
        self.dispatch(
            MemberUpdateEvent(shard=shard, server=server, user=cached, old_nick=old_nick, old_role_ids=old_role_ids)
        )

    def handle_guild_member_remove(self, shard: Shard, payload: raw.ServerMemberRemove, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_snowflake(payload['guild_id'])
        user_id = parse_snowflake(payload['user']['id'])

        if cache.remove_member(server_id, user_id):
            server = cache.get_server(server_id)
            if server is not None and server.member_count > 0:
                server.member_count -= 1

        user = cache.get_user(user_id) or state.parser.parse_partial_user(payload['user'])
        self.dispatch(MemberRemoveEvent(shard=shard, server_id=server_id, user=user))

    def handle_guild_members_chunk(self, shard: Shard, payload: raw.ServerMembersChunk, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_snowflake(payload['guild_id'])
        server = cache.get_server(server_id)
        if server is None:
            return

        users = []
        for member_payload in payload.get('members', ()):
            user = self._store_member(server_id, member_payload)
            if user is not None:
                users.append(user)

        for presence_payload in payload.get('presences', ()):
            data = state.parser.parse_presence(presence_payload)
            user = cache.get_user(data.id)
            if user is not None:
                user.locally_update(data)

        self.dispatch(
            MembersChunkEvent(
                shard=shard,
                server=server,
                users=users,
                chunk_index=payload.get('chunk_index', 0),
                chunk_count=payload.get('chunk_count', 1),
            )
        )

    def handle_guild_role_create(self, shard: Shard, payload: raw.ServerRoleEvent, /) -> None:
        state = self._state

        role = state.parser.parse_role(payload['role'], parse_snowflake(payload['guild_id']))
        cached = state.cache.store_role(role)
        if cached is None:
            return
        self.dispatch(RoleCreateEvent(shard=shard, role=cached))

    def handle_guild_role_update(self, shard: Shard, payload: raw.ServerRoleEvent, /) -> None:
        state = self._state
        cache = state.cache

        role = state.parser.parse_role(payload['role'], parse_snowflake(payload['guild_id']))
        existing = cache.get_role(role.id)
        if existing is None:
            cache.store_role(role)
            return

        old = copy.copy(existing)
        old.member_ids = set(existing.member_ids)
        cached = cache.store_role(role)
        if cached is None:
            return
        self.dispatch(RoleUpdateEvent(shard=shard, old=old, role=cached))

    def handle_guild_role_delete(self, shard: Shard, payload: raw.ServerRoleDelete, /) -> None:
        role = self._state.cache.remove_role(
            parse_snowflake(payload['guild_id']),
            parse_snowflake(payload['role_id']),
        )
        if role is None:
            return
        self.dispatch(RoleDeleteEvent(shard=shard, role=role))

    def handle_guild_emojis_update(self, shard: Shard, payload: raw.ServerEmojisUpdate, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_snowflake(payload['guild_id'])
        server = cache.get_server(server_id)
        if server is None:
            return

        old = list(server.emojis.values())
        emojis = [state.parser.parse_custom_emoji(e, server_id) for e in payload['emojis']]
        cache.set_server_emojis(server_id, emojis)
        self.dispatch(EmojisUpdateEvent(shard=shard, server=server, old=old, emojis=emojis))

    def handle_channel_create(self, shard: Shard, payload: raw.Channel, /) -> None:
        state = self._state
        cache = state.cache

        for recipient in payload.get('recipients', ()):
            cache.store_user(state.parser.parse_user(recipient))

        channel = state.parser.parse_channel(payload)
        duplicate = cache.get_channel(channel.id) is not None
        if not self._store_channel(channel) or duplicate:
            return
        self.dispatch(ChannelCreateEvent(shard=shard, channel=channel))

    def handle_channel_update(self, shard: Shard, payload: raw.Channel, /) -> None:
        state = self._state
        cache = state.cache

        channel = state.parser.parse_channel(payload)
        cached = cache.get_channel(channel.id)
        if cached is None:
            cache.store_channel(channel)
            return

        old = copy.copy(cached)
        if not self._store_channel(channel):
            return
        self.dispatch(ChannelUpdateEvent(shard=shard, old=old, channel=cache.get_channel(channel.id) or channel))

    def handle_channel_delete(self, shard: Shard, payload: raw.Channel, /) -> None:
        channel = self._state.cache.remove_channel(parse_snowflake(payload['id']))
        if channel is None:
            return
        self.dispatch(ChannelDeleteEvent(shard=shard, channel=channel))

    async def _resolve_channel(self, channel_id: int, server_id: typing.Optional[int], /) -> typing.Optional[Channel]:
        state = self._state
        channel = state.cache.get_channel(channel_id)
        if channel is not None or server_id is not None:
            return channel

        # Private channels are not sent on startup
        try:
            return await state.http.fetch_channel(channel_id)
        except HTTPException:
            _L.debug('Failed to fetch channel %i, skipping event', channel_id, exc_info=True)
            return None

    async def handle_message_create(self, shard: Shard, payload: raw.Message, /) -> None:
        state = self._state
        cache = state.cache

        message = state.parser.parse_message(payload)
        channel = await self._resolve_channel(message.channel_id, message.server_id)
        if channel is None:
            return

        if 'webhook_id' not in payload:
            user = cache.store_user(state.parser.parse_user(payload['author']))
            member = payload.get('member')
            if member is not None and message.server_id is not None:
                cache.store_member(
                    message.server_id,
                    user,
                    nick=member.get('nick'),
                    role_ids=[parse_snowflake(r) for r in member.get('roles', ())],
                )

        cached = cache.messages.store(message)
        if not cache.messages.mark_announced(cached.id):
            return

        if hasattr(channel, 'last_message_id'):
            channel.last_message_id = cached.id  # type: ignore
        self.dispatch(MessageCreateEvent(shard=shard, message=cached))

    def handle_message_update(self, shard: Shard, payload: raw.PartialMessage, /) -> None:
        state = self._state

        data = state.parser.parse_partial_message(payload)
        cached = state.cache.messages.get(data.id)
        if cached is None:
            return

        old = copy.copy(cached)
        cached.locally_update(data)
        self.dispatch(MessageUpdateEvent(shard=shard, old=old, message=cached, data=data))

    def handle_message_delete(self, shard: Shard, payload: raw.MessageDelete, /) -> None:
        message = self._state.cache.messages.remove(parse_snowflake(payload['id']))
        if message is None:
            return
        self.dispatch(MessageDeleteEvent(shard=shard, message=message))

    def handle_message_delete_bulk(self, shard: Shard, payload: raw.MessageDeleteBulk, /) -> None:
        cache = self._state.cache

        messages = []
        for message_id in payload['ids']:
            message = cache.messages.remove(parse_snowflake(message_id))
            if message is not None:
                messages.append(message)

        if not messages:
            return
        self.dispatch(
            MessageDeleteBulkEvent(shard=shard, channel_id=parse_snowflake(payload['channel_id']), messages=messages)
        )

    def _is_me(self, user_id: int, /) -> bool:
        me = self._state.me
        return me is not None and me.id == user_id

    def handle_message_reaction_add(self, shard: Shard, payload: raw.MessageReaction, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_optional_snowflake(payload.get('guild_id'))
        member = payload.get('member')
        if member is not None and server_id is not None:
            self._store_member(server_id, member)

        message = cache.messages.get(parse_snowflake(payload['message_id']))
        if message is None:
            return

        user_id = parse_snowflake(payload['user_id'])
        emoji = state.parser.parse_partial_emoji(payload['emoji'])
        reaction = message._add_reaction(emoji, user_id, me=self._is_me(user_id))
        if reaction is None:
            return
        self.dispatch(ReactionAddEvent(shard=shard, message=message, user_id=user_id, emoji=emoji, reaction=reaction))

    def handle_message_reaction_remove(self, shard: Shard, payload: raw.MessageReaction, /) -> None:
        state = self._state

        message = state.cache.messages.get(parse_snowflake(payload['message_id']))
        if message is None:
            return

        user_id = parse_snowflake(payload['user_id'])
        emoji = state.parser.parse_partial_emoji(payload['emoji'])
        reaction = message._remove_reaction(emoji, user_id, me=self._is_me(user_id))
        if reaction is None:
            return
        self.dispatch(
            ReactionRemoveEvent(shard=shard, message=message, user_id=user_id, emoji=emoji, reaction=reaction)
        )

    def handle_message_reaction_remove_all(self, shard: Shard, payload: raw.MessageReactionRemoveAll, /) -> None:
        message = self._state.cache.messages.get(parse_snowflake(payload['message_id']))
        if message is None:
            return

        reactions = message._clear_reactions()
        self.dispatch(ReactionRemoveAllEvent(shard=shard, message=message, reactions=reactions))

    def handle_presence_update(self, shard: Shard, payload: raw.Presence, /) -> None:
        state = self._state

        data = state.parser.parse_presence(payload)
        user = state.cache.get_user(data.id)
        if user is None:
            return

        old = copy.copy(user)
        user.locally_update(data)
        self.dispatch(
            PresenceUpdateEvent(
                shard=shard,
                old=old,
                user=user,
                server_id=parse_optional_snowflake(payload.get('guild_id')),
            )
        )

    def handle_user_update(self, shard: Shard, payload: raw.User, /) -> None:
        state = self._state
        me = state.me
        if me is None:
            return

        old = copy.copy(me)
        user = state._set_me(state.parser.parse_own_user(payload))
        self.dispatch(UserUpdateEvent(shard=shard, old=old, user=user))

    async def handle_typing_start(self, shard: Shard, payload: raw.TypingStart, /) -> None:
        state = self._state
        cache = state.cache

        server_id = parse_optional_snowflake(payload.get('guild_id'))
        channel = await self._resolve_channel(parse_snowflake(payload['channel_id']), server_id)
        if channel is None:
            return
        textable = channel.as_textable()
        if textable is None:
            return

        user: typing.Optional[User] = None
        member = payload.get('member')
        if member is not None and server_id is not None:
            user = self._store_member(server_id, member)

        if user is None:
            user_id = parse_snowflake(payload['user_id'])
            user = cache.get_user(user_id)
            if user is None:
                try:
                    user = await state.http.fetch_user(user_id)
                except HTTPException:
                    _L.debug('Failed to fetch user %i, skipping TYPING_START', user_id, exc_info=True)
                    return

        timestamp = payload.get('timestamp')
        if timestamp is None:
            started_at = utils.utcnow()
        else:
            started_at = datetime.fromtimestamp(timestamp, timezone.utc)

        self.dispatch(TypingStartEvent(shard=shard, channel=textable, user=user, started_at=started_at))

    async def _handle_library_error(self, shard: Shard, packet: Packet, exc: Exception, name: str, /) -> None:
        try:
            r = self._client.on_library_error(shard, packet, exc)
            if isawaitable(r):
                await r
        except Exception:
            _L.exception('on_library_error (task: %s) raised an exception', name)

    async def _handle(self, shard: Shard, packet: Packet, /) -> None:
        type = packet.event_name
        try:
            handler = self._handlers[type]  # type: ignore
        except KeyError:
            _L.debug('Received unknown event: %s. Discarding.', type)
        else:
            _L.debug('Handling %s', type)
            try:
                r = handler(shard, packet.data)
                if isawaitable(r):
                    await r
            except Exception as exc:
                if type == 'READY':
                    # This is fatal
                    raise

                _L.exception('%s handler raised an exception', type)

                name = f'snowcord-dispatch-{self._client._get_i()}'
                asyncio.create_task(self._handle_library_error(shard, packet, exc, name), name=name)

    def handle_raw(self, shard: Shard, packet: Packet, /) -> utils.MaybeAwaitable[None]:
        return self._handle(shard, packet)

    def before_connect(self, shard: Shard, /) -> utils.MaybeAwaitable[None]:
        self.dispatch(BeforeConnectEvent(shard=shard))

    def after_connect(self, shard: Shard, socket: aiohttp.ClientWebSocketResponse, /) -> utils.MaybeAwaitable[None]:
        self.dispatch(AfterConnectEvent(shard=shard, socket=socket))

    def state_changed(
        self, shard: Shard, old: ShardState, new: ShardState, error: typing.Optional[BaseException], /
    ) -> utils.MaybeAwaitable[None]:
        self._client._shard_state_changed(shard, new, error)
        self.dispatch(ShardStateChangeEvent(shard=shard, old=old, new=new, error=error))


__all__ = ('PacketHandlers',)
