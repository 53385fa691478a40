from __future__ import annotations

import asyncio
import json
import random

from aiohttp import web, ClientSession, WSMessage, WSMsgType
import pytest
import snowcord


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeSocket:
    def __init__(self, messages: list[WSMessage] | None = None) -> None:
        self.sent: list[dict] = []
        self.close_codes: list[int] = []
        self.closed = False
        self.close_code = None
        self.messages = list(messages or ())

    async def send_str(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, *, code: int = 1000) -> bool:
        self.close_codes.append(code)
        self.closed = True
        return True

    async def receive(self) -> WSMessage:
        return self.messages.pop(0)


class RecordingHandler(snowcord.EventHandler):
    def __init__(self) -> None:
        self.packets: list[tuple[str | None, int | None]] = []
        self.states: list[snowcord.ShardState] = []

    def handle_raw(self, shard: snowcord.Shard, packet: snowcord.Packet, /) -> None:
        # Sequence must not be advanced before the handler finishes
        self.packets.append((packet.event_name, shard.sequence))

    def state_changed(self, shard, old, new, error, /) -> None:
        self.states.append(new)


class FastShard(snowcord.Shard):
    async def _sleep(self, delay: float, /) -> bool:
        self.delays.append(delay)
        return True


def make_shard(cls: type[snowcord.Shard] = snowcord.Shard, **kwargs) -> tuple[snowcord.Shard, FakeSocket, FakeClock]:
    clock = FakeClock()
    shard = cls(
        'token',
        handler=RecordingHandler(),
        session=lambda _: ClientSession(),
        state=snowcord.State(),
        clock=clock,
        rng=random.Random(0),
        **kwargs,
    )
    socket = FakeSocket()
    shard._socket = socket  # type: ignore
    return shard, socket, clock


def hello(interval: int = 41250) -> snowcord.Packet:
    return snowcord.Packet(op=snowcord.OpCode.hello, data={'heartbeat_interval': interval})


@pytest.mark.asyncio
async def test_hello_identifies():
    shard, socket, _ = make_shard(shard_id=1, shard_count=2)

    await shard.received(hello())
    try:
        assert shard.status is snowcord.ShardState.identifying
        assert len(socket.sent) == 1
        assert socket.sent[0]['op'] == 2
        assert socket.sent[0]['d']['token'] == 'token'
        assert socket.sent[0]['d']['shard'] == [1, 2]
    finally:
        shard._stop_heartbeat()


@pytest.mark.asyncio
async def test_hello_resumes_existing_session():
    shard, socket, _ = make_shard()
    shard.session_id = 'abc'
    shard.sequence = 42

    await shard.received(hello())
    try:
        assert shard.status is snowcord.ShardState.resuming
        assert socket.sent == [{'op': 6, 'd': {'token': 'token', 'session_id': 'abc', 'seq': 42}}]
    finally:
        shard._stop_heartbeat()


@pytest.mark.asyncio
async def test_heartbeat_timeout():
    shard, socket, clock = make_shard()

    await shard.received(hello())
    try:
        shard.sequence = 7
        clock.now = 41.25
        assert await shard.heartbeat_tick()
        assert socket.sent[-1] == {'op': 1, 'd': 7}

        # No acknowledgement arrived
        assert not shard._heartbeat.timed_out(82.4)
        assert shard._heartbeat.timed_out(82.5)

        clock.now = 82.5
        assert not await shard.heartbeat_tick()
        assert socket.close_codes == [4000]
        assert shard.status is snowcord.ShardState.reconnecting

        # Already reconnecting
        assert not await shard.reconnect()
        assert socket.close_codes == [4000]
    finally:
        shard._stop_heartbeat()


@pytest.mark.asyncio
async def test_heartbeat_ack_measures_latency():
    shard, socket, clock = make_shard()

    await shard.received(hello())
    try:
        clock.now = 41.25
        await shard.heartbeat_tick()
        clock.now = 41.5
        await shard.received(snowcord.Packet(op=snowcord.OpCode.heartbeat_ack))
        assert shard.latency == pytest.approx(0.25)

        clock.now = 82.5
        assert await shard.heartbeat_tick()
        assert socket.close_codes == []
    finally:
        shard._stop_heartbeat()


@pytest.mark.asyncio
async def test_server_requested_heartbeat():
    shard, socket, _ = make_shard()
    shard.sequence = 3

    await shard.received(snowcord.Packet(op=snowcord.OpCode.heartbeat))
    assert socket.sent == [{'op': 1, 'd': 3}]


@pytest.mark.asyncio
async def test_reconnect_is_deduplicated():
    shard, socket, _ = make_shard()
    shard.status = snowcord.ShardState.connected

    results = await asyncio.gather(shard.reconnect(), shard.reconnect())
    assert sorted(results) == [False, True]
    assert socket.close_codes == [4000]

    shard._socket = None
    assert not await shard.reconnect()


@pytest.mark.asyncio
async def test_sequence_is_advanced_after_handler():
    shard, _, _ = make_shard()
    handler = shard.handler
    assert isinstance(handler, RecordingHandler)

    await shard.received(
        snowcord.Packet(
            op=snowcord.OpCode.dispatch,
            event_name='READY',
            sequence=1,
            data={'session_id': 'abc', 'resume_gateway_url': 'wss://resume.example'},
        )
    )
    await shard.received(
        snowcord.Packet(op=snowcord.OpCode.dispatch, event_name='MESSAGE_CREATE', sequence=2, data={})
    )

    assert handler.packets == [('READY', None), ('MESSAGE_CREATE', 1)]
    assert shard.sequence == 2
    assert shard.session_id == 'abc'
    assert shard.resume_url == 'wss://resume.example'
    assert shard.status is snowcord.ShardState.connected
    assert handler.states == [snowcord.ShardState.ready, snowcord.ShardState.connected]


@pytest.mark.asyncio
async def test_invalid_session_while_identifying():
    shard, _, _ = make_shard()

    await shard.received(hello())
    try:
        with pytest.raises(snowcord.AuthenticationError):
            await shard.received(snowcord.Packet(op=snowcord.OpCode.invalid_session, data=False))
    finally:
        shard._stop_heartbeat()


@pytest.mark.asyncio
async def test_invalid_session_identifies_again():
    shard, socket, _ = make_shard(FastShard)
    shard.delays = []  # type: ignore
    shard.session_id = 'abc'
    shard.sequence = 10
    shard.status = snowcord.ShardState.connected

    await shard.received(snowcord.Packet(op=snowcord.OpCode.invalid_session, data=False))

    assert shard.session_id is None
    assert shard.sequence is None
    assert len(shard.delays) == 1  # type: ignore
    assert 1.0 <= shard.delays[0] <= 5.0  # type: ignore
    assert [p['op'] for p in socket.sent] == [2]


@pytest.mark.asyncio
async def test_resumable_invalid_session_resumes():
    shard, socket, _ = make_shard()
    shard.session_id = 'abc'
    shard.status = snowcord.ShardState.connected

    await shard.received(snowcord.Packet(op=snowcord.OpCode.invalid_session, data=True))
    assert [p['op'] for p in socket.sent] == [6]


@pytest.mark.asyncio
async def test_poll_skips_malformed_frames():
    shard, _, _ = make_shard()
    handler = shard.handler
    assert isinstance(handler, RecordingHandler)

    socket = FakeSocket(
        [
            WSMessage(WSMsgType.TEXT, 'garbage', None),
            WSMessage(WSMsgType.TEXT, '{"op":0,"s":5,"t":"TYPING_START","d":{}}', None),
            WSMessage(WSMsgType.CLOSE, 4004, None),
        ]
    )

    code = await shard._poll(socket)  # type: ignore
    assert code == 4004
    assert handler.packets == [('TYPING_START', None)]
    assert shard.sequence == 5


def test_close_codes():
    assert 4004 in snowcord.FATAL_CLOSE_CODES
    assert 4014 in snowcord.FATAL_CLOSE_CODES
    assert 4000 not in snowcord.FATAL_CLOSE_CODES
    assert 4009 in snowcord.SESSION_INVALIDATING_CLOSE_CODES
    assert 1000 in snowcord.SESSION_INVALIDATING_CLOSE_CODES
    assert not snowcord.FATAL_CLOSE_CODES & snowcord.SESSION_INVALIDATING_CLOSE_CODES


@pytest.mark.asyncio
async def test_shard_id_out_of_range():
    with pytest.raises(ValueError):
        snowcord.Shard('token', shard_id=2, shard_count=2, session=lambda _: ClientSession(), state=snowcord.State())


@pytest.mark.asyncio
async def test_fatal_close_code_stops_shard():
    identify_payloads = []

    routes = web.RouteTableDef()

    @routes.get('/')
    async def gateway(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        await ws.send_str('{"op":10,"d":{"heartbeat_interval":45000}}')
        identify_payloads.append(json.loads((await ws.receive()).data))
        await ws.send_str(
            '{"op":0,"s":1,"t":"READY","d":{"session_id":"abc","resume_gateway_url":"ws://127.0.0.1:5210/"}}'
        )
        await ws.close(code=4004)
        return ws

    app = web.Application()
    app.add_routes(routes)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host='localhost', port=5210)
    await site.start()

    handler = RecordingHandler()
    shard = snowcord.Shard(
        'token',
        base='ws://127.0.0.1:5210/',
        handler=handler,
        session=ClientSession(),
        state=snowcord.State(),
        rng=random.Random(0),
    )

    try:
        with pytest.raises(snowcord.ShardFatalError) as exc_info:
            await asyncio.wait_for(shard.connect(), timeout=10)
    finally:
        await shard.cleanup()
        await site.stop()

    assert exc_info.value.code == 4004
    assert identify_payloads[0]['op'] == 2
    assert handler.packets == [('READY', None)]
    assert handler.states == [
        snowcord.ShardState.connecting,
        snowcord.ShardState.awaiting_hello,
        snowcord.ShardState.identifying,
        snowcord.ShardState.ready,
        snowcord.ShardState.connected,
        snowcord.ShardState.disconnected,
    ]


class BrokenSocket(FakeSocket):
    async def send_str(self, data: str) -> None:
        raise ConnectionResetError('transport closing')


@pytest.mark.asyncio
async def test_failed_heartbeat_reconnects():
    shard, _, _ = make_shard()
    socket = BrokenSocket()
    shard._socket = socket  # type: ignore
    shard.status = snowcord.ShardState.connected
    shard._heartbeat.start(0.01, 0.0)

    # The loop must end quietly instead of dying with the error
    await asyncio.wait_for(shard._heartbeat_loop(0.01), timeout=5)

    assert socket.close_codes == [4000]
    assert shard.status is snowcord.ShardState.reconnecting


@pytest.mark.asyncio
async def test_heartbeat_without_socket():
    shard, _, _ = make_shard()
    shard._socket = None
    shard.status = snowcord.ShardState.connected

    assert not await shard.heartbeat_tick()


@pytest.mark.asyncio
async def test_resumable_invalid_session_while_identifying():
    shard, socket, _ = make_shard(FastShard)
    shard.delays = []  # type: ignore
    shard.status = snowcord.ShardState.identifying

    await shard.received(snowcord.Packet(op=snowcord.OpCode.invalid_session, data=True))

    assert len(shard.delays) == 1  # type: ignore
    assert 1.0 <= shard.delays[0] <= 5.0  # type: ignore
    assert [p['op'] for p in socket.sent] == [2]


@pytest.mark.asyncio
@pytest.mark.parametrize('data', [{}, None, {'session_id': None}])
async def test_ready_without_session(data):
    shard, _, _ = make_shard()

    with pytest.raises(snowcord.InvalidData):
        await shard.received(snowcord.Packet(op=snowcord.OpCode.dispatch, event_name='READY', sequence=1, data=data))

    assert shard.session_id is None
    assert shard.sequence is None


class QuickShard(snowcord.Shard):
    async def _sleep(self, delay: float, /) -> bool:
        return not self._closing.is_set()


@pytest.mark.asyncio
async def test_resume_falls_back_to_identify():
    ops = []

    routes = web.RouteTableDef()

    @routes.get('/')
    async def gateway(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        await ws.send_str('{"op":10,"d":{"heartbeat_interval":45000}}')
        ops.append(json.loads((await ws.receive()).data)['op'])

        if len(ops) == 1:
            await ws.send_str(
                '{"op":0,"s":1,"t":"READY","d":{"session_id":"abc","resume_gateway_url":"ws://127.0.0.1:5211/"}}'
            )
            await ws.close(code=4000)
        elif len(ops) < 4:
            await ws.close(code=4000)
        else:
            await ws.close(code=4004)
        return ws

    app = web.Application()
    app.add_routes(routes)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host='localhost', port=5211)
    await site.start()

    shard = QuickShard(
        'token',
        base='ws://127.0.0.1:5211/',
        handler=RecordingHandler(),
        max_resume_attempts=2,
        session=ClientSession(),
        state=snowcord.State(),
        rng=random.Random(0),
    )

    try:
        with pytest.raises(snowcord.ShardFatalError):
            await asyncio.wait_for(shard.connect(), timeout=10)
    finally:
        await shard.cleanup()
        await site.stop()

    # Identify, two resumes, then identify again
    assert ops == [2, 6, 6, 2]
    assert shard.session_id is None


@pytest.mark.asyncio
async def test_connect_retries_are_capped():
    shard = QuickShard(
        'token',
        base='ws://127.0.0.1:5212/',
        handler=RecordingHandler(),
        max_connect_retries=3,
        session=ClientSession(),
        state=snowcord.State(),
        rng=random.Random(0),
    )

    try:
        with pytest.raises(snowcord.ConnectError) as exc_info:
            await asyncio.wait_for(shard.connect(), timeout=10)
    finally:
        await shard.cleanup()

    assert len(exc_info.value.errors) == 3
    assert shard.status is snowcord.ShardState.disconnected
