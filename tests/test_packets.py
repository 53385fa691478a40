import json
import zlib

import pytest
import snowcord


def test_decode_dispatch():
    decoder = snowcord.PacketDecoder()

    packet = decoder.decode('{"op":0,"s":42,"t":"MESSAGE_CREATE","d":{"id":"1"}}')
    assert packet is not None
    assert packet.op is snowcord.OpCode.dispatch
    assert packet.sequence == 42
    assert packet.event_name == 'MESSAGE_CREATE'
    assert packet.data == {'id': '1'}
    assert packet.is_known()


def test_decode_control_packets():
    decoder = snowcord.PacketDecoder()

    hello = decoder.decode(b'{"op":10,"d":{"heartbeat_interval":41250}}')
    assert hello is not None
    assert hello.op is snowcord.OpCode.hello
    assert hello.data['heartbeat_interval'] == 41250
    assert hello.sequence is None

    ack = decoder.decode('{"op":11}')
    assert ack is not None
    assert ack.op is snowcord.OpCode.heartbeat_ack

    invalid = decoder.decode('{"op":9,"d":true}')
    assert invalid is not None
    assert invalid.data is True

    invalid = decoder.decode('{"op":9,"d":null}')
    assert invalid is not None
    assert invalid.data is False


def test_decode_unknown_opcode():
    decoder = snowcord.PacketDecoder()

    packet = decoder.decode('{"op":99,"d":{"x":1}}')
    assert packet is not None
    assert packet.op == 99
    assert not packet.is_known()
    assert packet.data == {'x': 1}


@pytest.mark.parametrize(
    'frame',
    [
        'not json',
        '[1, 2, 3]',
        '{"d":{}}',
        '{"op":"0"}',
        '{"op":true}',
        '{"op":0,"s":"1","t":"READY","d":{}}',
        '{"op":0,"s":1,"d":{}}',
        '{"op":10,"d":{}}',
        '{"op":10,"d":{"heartbeat_interval":0}}',
        b'\xff\xfe',
    ],
)
def test_decode_malformed(frame):
    decoder = snowcord.PacketDecoder()

    with pytest.raises(snowcord.InvalidData):
        decoder.decode(frame)


def test_decode_zlib_stream():
    decoder = snowcord.PacketDecoder(compress=True)
    compressor = zlib.compressobj()

    first = compressor.compress(b'{"op":10,"d":{"heartbeat_interval":45000}}')
    first += compressor.flush(zlib.Z_SYNC_FLUSH)
    assert first.endswith(snowcord.ZLIB_SUFFIX)

    # Split one message across two frames
    assert decoder.decode(first[:5]) is None
    packet = decoder.decode(first[5:])
    assert packet is not None
    assert packet.op is snowcord.OpCode.hello

    # Later messages share the same zlib context
    second = compressor.compress(b'{"op":11}') + compressor.flush(zlib.Z_SYNC_FLUSH)
    packet = decoder.decode(second)
    assert packet is not None
    assert packet.op is snowcord.OpCode.heartbeat_ack

    # Text frames bypass the stream
    packet = decoder.decode('{"op":1,"d":null}')
    assert packet is not None
    assert packet.op is snowcord.OpCode.heartbeat

    decoder.reset()
    compressor = zlib.compressobj()
    third = compressor.compress(b'{"op":7}') + compressor.flush(zlib.Z_SYNC_FLUSH)
    packet = decoder.decode(third)
    assert packet is not None
    assert packet.op is snowcord.OpCode.reconnect


def test_identify_payload():
    intents = snowcord.Intents.default()
    payload = snowcord.identify_payload('token', 2, 4, intents, large_threshold=100)

    assert payload['token'] == 'token'
    assert payload['shard'] == [2, 4]
    assert payload['intents'] == intents.value
    assert payload['large_threshold'] == 100
    assert payload['compress'] is False
    assert 'presence' not in payload

    frame = snowcord.encode(snowcord.OpCode.identify, payload)
    assert json.loads(frame) == {'op': 2, 'd': payload}

    packet = snowcord.PacketDecoder().decode(frame)
    assert packet is not None
    assert packet.op is snowcord.OpCode.identify
    assert packet.data == payload


def test_other_payloads():
    assert snowcord.resume_payload('token', 'abc', 10) == {'token': 'token', 'session_id': 'abc', 'seq': 10}
    assert snowcord.heartbeat_payload(None) is None

    payload = snowcord.request_members_payload(81384788765712384, query='ab', limit=5)
    assert payload == {'guild_id': '81384788765712384', 'query': 'ab', 'limit': 5}

    payload = snowcord.presence_payload('idle', afk=True)
    assert payload == {'since': None, 'activities': [], 'status': 'idle', 'afk': True}
