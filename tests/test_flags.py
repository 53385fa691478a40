import pytest
import snowcord


def test_flags():
    permissions = snowcord.Permissions()
    assert permissions.value == 0

    permissions.manage_webhooks = True
    assert permissions.manage_webhooks is True
    assert permissions.value == 536870912

    permissions.manage_webhooks = False
    assert permissions.manage_webhooks is False
    assert permissions.value == 0

    permissions = snowcord.Permissions(manage_webhooks=True)
    assert permissions.manage_webhooks is True
    assert permissions.value == 536870912

    permissions.manage_webhooks = False
    assert permissions.manage_webhooks is False
    assert permissions.value == 0


def test_flag_aliases():
    permissions = snowcord.Permissions(view_channel=True)
    assert permissions.read_messages is True
    assert 'read_messages' not in snowcord.Permissions.VALID_FLAGS

    with pytest.raises(TypeError):
        snowcord.Permissions(read_messages=True)


def test_flag_operators():
    text = snowcord.Permissions.text()
    assert text.send_messages
    assert not text.administrator

    assert snowcord.Permissions(send_messages=True) <= text
    assert text >= snowcord.Permissions.send_messages
    assert snowcord.Permissions.send_messages in text

    combined = text | snowcord.Permissions.voice()
    assert combined.speak and combined.send_messages
    assert (combined & snowcord.Permissions.voice()) == snowcord.Permissions.voice()

    assert ~snowcord.Permissions.none() == snowcord.Permissions.all()
    assert not snowcord.Permissions.none()


def test_intents():
    intents = snowcord.Intents.default()
    assert intents.servers
    assert intents.server_messages
    assert not intents.members
    assert not intents.presences
    assert not intents.message_content

    intents.members = True
    assert intents.members
    assert intents.value & (1 << 1)


def test_flag_descriptor():
    descriptor = snowcord.Permissions.kick_members
    assert isinstance(descriptor, snowcord.flag)
    assert descriptor.name == 'kick_members'
    assert descriptor.value == 1 << 1
    assert descriptor.__doc__ == ':class:`bool`: Whether the user can kick other members.'
    assert int(descriptor) == 2
