import pytest
import snowcord


SERVER_ID = 1
OWNER_ID = 2
USER_ID = 5

P = snowcord.Permissions


def make_channel(overwrites: list[dict], *, roles: list[dict], member_roles: list[str]) -> snowcord.ServerChannel:
    state = snowcord.State()
    cache = state.cache
    parser = state.parser

    server = parser.parse_server(
        {
            'id': str(SERVER_ID),
            'name': 'server',
            'owner_id': str(OWNER_ID),
            'roles': [
                {'id': str(SERVER_ID), 'name': '@everyone', 'permissions': str(P.text().value), 'position': 0},
                *roles,
            ],
        }
    )
    cache.store_server(server)

    user = parser.parse_user({'id': str(USER_ID), 'username': 'user'})
    cache.store_member(SERVER_ID, user, role_ids=[int(r) for r in member_roles])

    channel = parser.parse_server_channel(
        {'id': '10', 'type': 0, 'name': 'general', 'permission_overwrites': overwrites},
        SERVER_ID,
    )
    cache.store_channel(channel)
    return channel


def overwrite(subject_id: int, type: int, *, allow: int = 0, deny: int = 0) -> dict:
    return {'id': str(subject_id), 'type': type, 'allow': str(allow), 'deny': str(deny)}


def test_everyone_overwrite():
    channel = make_channel(
        [overwrite(SERVER_ID, 0, deny=P.send_messages.value)],
        roles=[],
        member_roles=[],
    )

    permissions = channel.permissions_for(USER_ID)
    assert permissions.view_channel
    assert not permissions.send_messages


def test_highest_role_overwrite_wins():
    channel = make_channel(
        [
            overwrite(SERVER_ID, 0, deny=P.send_messages.value),
            # Lower role allows, higher role denies
            overwrite(30, 0, allow=P.send_messages.value | P.embed_links.value),
            overwrite(31, 0, deny=P.send_messages.value),
        ],
        roles=[
            {'id': '31', 'name': 'muted', 'permissions': '0', 'position': 2},
            {'id': '30', 'name': 'helper', 'permissions': '0', 'position': 1},
        ],
        member_roles=['30', '31'],
    )

    permissions = channel.permissions_for(USER_ID)
    assert not permissions.send_messages
    assert permissions.embed_links


def test_member_overwrite_is_last():
    channel = make_channel(
        [
            overwrite(30, 0, deny=P.attach_files.value),
            overwrite(USER_ID, 1, allow=P.attach_files.value),
        ],
        roles=[{'id': '30', 'name': 'role', 'permissions': '0', 'position': 1}],
        member_roles=['30'],
    )

    assert channel.permissions_for(USER_ID).attach_files


def test_owner_and_administrator():
    channel = make_channel(
        [overwrite(SERVER_ID, 0, deny=P.all().value)],
        roles=[{'id': '30', 'name': 'admin', 'permissions': str(P.administrator.value), 'position': 1}],
        member_roles=['30'],
    )

    assert channel.permissions_for(OWNER_ID) == P.all()
    assert channel.permissions_for(USER_ID) == P.all()


def test_uncached_server():
    state = snowcord.State()
    channel = state.parser.parse_server_channel({'id': '10', 'type': 0, 'name': 'general'}, SERVER_ID)

    with pytest.raises(snowcord.NoData):
        channel.permissions_for(USER_ID)


def test_permission_overwrite():
    po = snowcord.PermissionOverwrite(allow=P(send_messages=True), deny=P(attach_files=True))

    assert po.state_of('send_messages') is snowcord.PermissionState.allowed
    assert po.state_of('attach_files') is snowcord.PermissionState.denied
    assert po.state_of('speak') is snowcord.PermissionState.unset
    assert not po.is_empty()
    assert snowcord.PermissionOverwrite().is_empty()

    value = P(attach_files=True, speak=True).value
    assert po.apply(value) == P(send_messages=True, speak=True).value

    assert po.build(snowcord.OverwriteType.member, 5) == {
        'id': '5',
        'type': 1,
        'allow': str(P.send_messages.value),
        'deny': str(P.attach_files.value),
    }


def test_calculate_permissions():
    base = P(view_channel=True, send_messages=True).value

    deny_then_allow = [
        snowcord.PermissionOverwrite(deny=P(send_messages=True)),
        snowcord.PermissionOverwrite(allow=P(send_messages=True)),
    ]
    assert snowcord.calculate_permissions(base, overwrites=deny_then_allow).send_messages
    assert not snowcord.calculate_permissions(base, overwrites=deny_then_allow[:1]).send_messages
    assert snowcord.calculate_permissions(0, owner=True) == P.all()
