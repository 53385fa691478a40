from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import pytest
import snowcord


SERVER_ID = 81384788765712384
OWNER_ID = 80351110224678912


def server_payload(**kwargs):
    payload = {
        'id': str(SERVER_ID),
        'name': 'Discord API',
        'owner_id': str(OWNER_ID),
        'member_count': 2,
        'roles': [
            {'id': str(SERVER_ID), 'name': '@everyone', 'permissions': '3072', 'position': 0},
            {'id': '30', 'name': 'mod', 'permissions': '8192', 'position': 1},
        ],
        'channels': [
            {'id': '10', 'type': 4, 'name': 'text channels', 'position': 0},
            {'id': '11', 'type': 0, 'name': 'general', 'position': 0, 'parent_id': '10'},
            {'id': '12', 'type': 0, 'name': 'memes', 'position': 1, 'parent_id': '10'},
        ],
        'members': [
            {'user': {'id': str(OWNER_ID), 'username': 'owner', 'discriminator': '0001'}, 'roles': []},
            {'user': {'id': '5', 'username': 'user', 'discriminator': '0002'}, 'roles': ['30'], 'nick': 'moderator'},
        ],
    }
    payload.update(kwargs)
    return payload


def message_payload(message_id: int, channel_id: int = 11):
    return {
        'id': str(message_id),
        'channel_id': str(channel_id),
        'guild_id': str(SERVER_ID),
        'author': {'id': '5', 'username': 'user', 'discriminator': '0002'},
        'content': 'hello',
    }


def make_client(cls: type[snowcord.Client] = snowcord.Client) -> snowcord.Client:
    return cls(message_cache_sweep_interval=0)


async def feed(client: snowcord.Client, event_name: str, data) -> None:
    shard = client.shards[0]
    await shard.handler.handle_raw(
        shard,
        snowcord.Packet(op=snowcord.OpCode.dispatch, event_name=event_name, data=data),
    )
    await asyncio.gather(*client._tasks)


def collect(client: snowcord.Client, event: type[snowcord.BaseEvent], **kwargs) -> list:
    received = []
    client.subscribe(event, received.append, **kwargs)
    return received


@pytest.mark.asyncio
async def test_server_becomes_available():
    client = make_client()

    joined = collect(client, snowcord.ServerJoinEvent)
    available = collect(client, snowcord.ServerBecomesAvailableEvent)

    await feed(client, 'GUILD_CREATE', {'id': str(SERVER_ID), 'unavailable': True})
    assert client.unavailable_server_ids == {SERVER_ID}
    assert client.get_server(SERVER_ID) is None
    assert not joined and not available

    await feed(client, 'GUILD_CREATE', server_payload())
    assert client.unavailable_server_ids == set()
    assert joined == []
    assert len(available) == 1

    server = available[0].server
    assert server is client.get_server(SERVER_ID)
    assert server.name == 'Discord API'
    assert set(server.channels) == {10, 11, 12}
    assert server.member_roles[5] == {30}
    assert server.nickname_of(5) == 'moderator'

    # Duplicate delivery changes nothing visible
    await feed(client, 'GUILD_CREATE', server_payload())
    assert joined == []
    assert len(available) == 1
    assert client.get_server(SERVER_ID) is server


@pytest.mark.asyncio
async def test_server_join():
    client = make_client()
    joined = collect(client, snowcord.ServerJoinEvent, scope=SERVER_ID)

    await feed(client, 'GUILD_CREATE', server_payload())
    assert len(joined) == 1

    category = client.get_channel(10)
    assert isinstance(category, snowcord.ChannelCategory)
    assert category.child_ids == [11, 12]

    role = client.get_role(30)
    assert role is not None
    assert role.member_ids == {5}


@pytest.mark.asyncio
async def test_channel_delete_in_category():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    received = []
    client.subscribe(snowcord.ChannelDeleteEvent, lambda event, /: received.append('global'))
    client.subscribe(snowcord.ChannelDeleteEvent, lambda event, /: received.append('channel'), scope=11)
    client.subscribe(snowcord.ChannelDeleteEvent, lambda event, /: received.append('category'), scope=10)
    client.subscribe(snowcord.ChannelDeleteEvent, lambda event, /: received.append('server'), scope=SERVER_ID)
    client.subscribe(snowcord.ChannelDeleteEvent, lambda event, /: received.append('other'), scope=12)

    await feed(client, 'CHANNEL_DELETE', {'id': '11', 'type': 0, 'guild_id': str(SERVER_ID), 'parent_id': '10'})
    assert received == ['global', 'channel', 'category', 'server']

    category = client.get_channel(10)
    assert isinstance(category, snowcord.ChannelCategory)
    assert category.child_ids == [12]
    assert client.get_channel(11) is None

    received.clear()
    await feed(client, 'CHANNEL_DELETE', {'id': '11', 'type': 0, 'guild_id': str(SERVER_ID), 'parent_id': '10'})
    assert received == []


@pytest.mark.asyncio
async def test_message_create_is_announced_once():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    created = collect(client, snowcord.MessageCreateEvent, scope=11)

    await feed(client, 'MESSAGE_CREATE', message_payload(100))
    await feed(client, 'MESSAGE_CREATE', message_payload(100))

    assert len(created) == 1
    message = created[0].message
    assert client.get_message(100) is message

    channel = client.get_channel(11)
    assert isinstance(channel, snowcord.ServerTextChannel)
    assert channel.last_message_id == 100


@pytest.mark.asyncio
async def test_message_in_unknown_channel_is_skipped():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    created = collect(client, snowcord.MessageCreateEvent)
    await feed(client, 'MESSAGE_CREATE', message_payload(100, channel_id=999))

    assert created == []
    assert client.get_message(100) is None


@pytest.mark.asyncio
async def test_reactions():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    added = collect(client, snowcord.ReactionAddEvent)
    removed = collect(client, snowcord.ReactionRemoveEvent)

    reaction = {
        'user_id': '5',
        'channel_id': '11',
        'message_id': '100',
        'guild_id': str(SERVER_ID),
        'emoji': {'id': None, 'name': '\N{THUMBS UP SIGN}'},
    }

    # Message is not cached yet
    await feed(client, 'MESSAGE_REACTION_ADD', reaction)
    assert added == []

    await feed(client, 'MESSAGE_CREATE', message_payload(100))
    await feed(client, 'MESSAGE_REACTION_ADD', reaction)
    await feed(client, 'MESSAGE_REACTION_ADD', reaction)
    assert len(added) == 1

    message = client.get_message(100)
    assert message is not None
    assert len(message.reactions) == 1
    assert message.reactions[0].count == 1

    await feed(client, 'MESSAGE_REACTION_REMOVE', reaction)
    assert len(removed) == 1
    assert message.reactions == []


@pytest.mark.asyncio
async def test_member_remove():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    removed = collect(client, snowcord.MemberRemoveEvent)

    await feed(client, 'GUILD_MEMBER_REMOVE', {'guild_id': str(SERVER_ID), 'user': {'id': '5'}})
    assert len(removed) == 1
    assert removed[0].user is client.get_user(5)

    server = client.get_server(SERVER_ID)
    assert server is not None
    assert 5 not in server.member_ids
    assert 5 not in server.member_roles
    assert server.member_count == 1

    role = client.get_role(30)
    assert role is not None
    assert role.member_ids == set()

    # Removing an unknown member is still reported
    await feed(client, 'GUILD_MEMBER_REMOVE', {'guild_id': str(SERVER_ID), 'user': {'id': '6'}})
    assert len(removed) == 2
    assert removed[1].user.id == 6
    assert server.member_count == 1


@pytest.mark.asyncio
async def test_role_updates():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    updated = collect(client, snowcord.RoleUpdateEvent)
    deleted = collect(client, snowcord.RoleDeleteEvent)

    await feed(
        client,
        'GUILD_ROLE_UPDATE',
        {'guild_id': str(SERVER_ID), 'role': {'id': '30', 'name': 'moderator', 'permissions': '8192'}},
    )
    assert len(updated) == 1
    assert updated[0].old.name == 'mod'
    assert updated[0].role.name == 'moderator'
    assert updated[0].role.member_ids == {5}

    # Uncached role is inserted silently
    await feed(client, 'GUILD_ROLE_UPDATE', {'guild_id': str(SERVER_ID), 'role': {'id': '31', 'name': 'new'}})
    assert len(updated) == 1
    assert client.get_role(31) is not None

    await feed(client, 'GUILD_ROLE_DELETE', {'guild_id': str(SERVER_ID), 'role_id': '30'})
    assert len(deleted) == 1

    server = client.get_server(SERVER_ID)
    assert server is not None
    assert server.member_roles[5] == set()


@pytest.mark.asyncio
async def test_server_leave():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())
    await feed(client, 'MESSAGE_CREATE', message_payload(100))

    unavailable = collect(client, snowcord.ServerBecomesUnavailableEvent)
    left = collect(client, snowcord.ServerLeaveEvent)

    await feed(client, 'GUILD_DELETE', {'id': str(SERVER_ID), 'unavailable': True})
    assert len(unavailable) == 1
    assert client.get_server(SERVER_ID) is None
    assert client.get_channel(11) is None
    assert client.get_message(100) is None
    assert client.unavailable_server_ids == {SERVER_ID}

    await feed(client, 'GUILD_DELETE', {'id': str(SERVER_ID)})
    assert len(left) == 1
    assert client.unavailable_server_ids == set()

    await feed(client, 'GUILD_DELETE', {'id': str(SERVER_ID)})
    assert len(left) == 1


@pytest.mark.asyncio
async def test_bad_packet_does_not_stop_processing():
    errors = []

    class MyClient(snowcord.Client):
        async def on_library_error(self, _shard, packet, exc, /) -> None:
            errors.append((packet.event_name, type(exc)))

    client = make_client(MyClient)
    joined = collect(client, snowcord.ServerJoinEvent)

    await feed(client, 'GUILD_CREATE', {'id': str(SERVER_ID)})
    await feed(client, 'GUILD_CREATE', server_payload())
    await asyncio.sleep(0.01)

    assert errors == [('GUILD_CREATE', KeyError)]
    assert len(joined) == 1

    # Unknown events are discarded
    await feed(client, 'SOME_FUTURE_EVENT', {})


@pytest.mark.asyncio
async def test_ready_errors_are_fatal():
    client = make_client()

    with pytest.raises(KeyError):
        await feed(client, 'READY', {'session_id': 'abc'})


@pytest.mark.asyncio
async def test_ready():
    client = make_client()
    ready = collect(client, snowcord.ReadyEvent)

    await feed(
        client,
        'READY',
        {
            'session_id': 'abc',
            'user': {'id': '1', 'username': 'bot', 'discriminator': '0000', 'bot': True},
            'guilds': [{'id': str(SERVER_ID), 'unavailable': True}],
            'private_channels': [],
        },
    )

    assert len(ready) == 1
    assert ready[0].session_id == 'abc'
    assert ready[0].unavailable_server_ids == [SERVER_ID]
    assert client.me is not None
    assert client.me.id == 1
    assert client.get_user(1) is client.me
    assert client.unavailable_server_ids == {SERVER_ID}


def snapshot(client: snowcord.Client):
    servers = {}
    for server_id, server in client.servers.items():
        servers[server_id] = (
            server.name,
            server.member_count,
            sorted(server.channels),
            sorted(server.roles),
            {user_id: sorted(role_ids) for user_id, role_ids in server.member_roles.items()},
        )
    categories = {
        channel.id: list(channel.child_ids)
        for channel in client.channels.values()
        if isinstance(channel, snowcord.ChannelCategory)
    }
    messages = sorted(
        (message.id, message.content, [(r.emoji.name, r.count) for r in message.reactions])
        for message in client.cache.messages.messages_of(11)
    )
    return servers, categories, messages, client.unavailable_server_ids


@pytest.mark.asyncio
async def test_same_packets_give_same_cache():
    packets = [
        ('GUILD_CREATE', server_payload()),
        ('CHANNEL_CREATE', {'id': '13', 'type': 0, 'guild_id': str(SERVER_ID), 'parent_id': '10', 'position': 2}),
        ('MESSAGE_CREATE', message_payload(100)),
        ('MESSAGE_CREATE', message_payload(101)),
        ('MESSAGE_UPDATE', {'id': '101', 'channel_id': '11', 'content': 'edited'}),
        (
            'MESSAGE_REACTION_ADD',
            {'user_id': '5', 'channel_id': '11', 'message_id': '100', 'emoji': {'id': None, 'name': 'x'}},
        ),
        ('GUILD_MEMBER_UPDATE', {'guild_id': str(SERVER_ID), 'user': {'id': '5', 'username': 'user'}, 'roles': []}),
        ('CHANNEL_DELETE', {'id': '12', 'type': 0, 'guild_id': str(SERVER_ID), 'parent_id': '10'}),
    ]

    first = make_client()
    second = make_client()
    for client in (first, second):
        for event_name, data in packets:
            await feed(client, event_name, data)

    assert snapshot(first) == snapshot(second)

    servers, categories, messages, _ = snapshot(first)
    assert categories == {10: [11, 13]}
    assert messages == [(100, 'hello', [('x', 1)]), (101, 'edited', [])]
    assert servers[SERVER_ID][4][5] == []


@pytest.mark.asyncio
async def test_typing_start():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    typing = collect(client, snowcord.TypingStartEvent, scope=5)

    await feed(
        client,
        'TYPING_START',
        {'channel_id': '11', 'guild_id': str(SERVER_ID), 'user_id': '5', 'timestamp': 1462015105},
    )
    assert len(typing) == 1
    assert typing[0].user is client.get_user(5)
    assert typing[0].channel is client.get_channel(11)
    assert typing[0].started_at == datetime(2016, 4, 30, 11, 18, 25, tzinfo=timezone.utc)

    # Unknown channel
    await feed(client, 'TYPING_START', {'channel_id': '99', 'guild_id': str(SERVER_ID), 'user_id': '5'})
    assert len(typing) == 1


class SentPackets:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False

    async def send_str(self, data: str) -> None:
        self.sent.append(json.loads(data))


@pytest.mark.asyncio
async def test_large_server_requests_members():
    client = make_client()
    socket = SentPackets()
    client.shards[0]._socket = socket  # type: ignore

    await feed(client, 'GUILD_CREATE', server_payload(large=True, member_count=5))
    assert socket.sent == [{'op': 8, 'd': {'guild_id': str(SERVER_ID), 'query': '', 'limit': 0}}]

    # Every member is cached already
    await feed(client, 'GUILD_CREATE', server_payload(large=True, member_count=2))
    assert len(socket.sent) == 1


@pytest.mark.asyncio
async def test_cached_server_becomes_unavailable():
    client = make_client()
    await feed(client, 'GUILD_CREATE', server_payload())

    unavailable = collect(client, snowcord.ServerBecomesUnavailableEvent)
    available = collect(client, snowcord.ServerBecomesAvailableEvent)

    await feed(client, 'GUILD_CREATE', {'id': str(SERVER_ID), 'unavailable': True})
    assert client.get_server(SERVER_ID) is None
    assert client.get_channel(11) is None
    assert client.unavailable_server_ids == {SERVER_ID}
    assert len(unavailable) == 1
    assert unavailable[0].server.name == 'Discord API'

    await feed(client, 'GUILD_CREATE', server_payload())
    assert client.unavailable_server_ids == set()
    assert len(available) == 1
