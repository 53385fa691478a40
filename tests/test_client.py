from __future__ import annotations

from attrs import define, field
import asyncio
from aiohttp import web
import pytest
import snowcord


@define(slots=True)
class AddEvent(snowcord.BaseEvent):
    event_name = 'add'

    a: int = field(repr=True, kw_only=True)
    b: int = field(repr=True, kw_only=True)


@define(slots=True)
class SubtractEvent(snowcord.BaseEvent):
    a: int = field(repr=True, kw_only=True)
    b: int = field(repr=True, kw_only=True)


@define(slots=True)
class ScopedEvent(snowcord.BaseEvent):
    ids: tuple[int, ...] = field(repr=True, kw_only=True)

    def scope_ids(self) -> tuple[int, ...]:
        return self.ids


@pytest.mark.asyncio
async def test_events():
    queue: asyncio.Queue[int] = asyncio.Queue()

    client = snowcord.Client()

    async def on_add(event: AddEvent, /) -> None:
        await queue.put(event.a + event.b)

    async def on_subtract(event: SubtractEvent, /) -> None:
        await queue.put(event.a - event.b)

    client.subscribe(AddEvent, on_add)
    client.subscribe(SubtractEvent, on_subtract)

    await client.dispatch(AddEvent(a=1, b=2))
    await client.dispatch(SubtractEvent(a=13, b=7))

    response = await asyncio.wait_for(queue.get(), timeout=1)
    assert response == 3

    response = await asyncio.wait_for(queue.get(), timeout=1)
    assert response == 6

    subscription = client.wait_for(AddEvent, check=lambda event, /: event.a == 0xDEAD, count=1, timeout=3)
    await client.dispatch(AddEvent(a=0xDEAD, b=11))

    number = await subscription
    assert number.a + number.b == 57016

    subscription = client.wait_for(AddEvent, check=lambda event, /: event.a == 0xBEEF, count=3, timeout=3)

    await client.dispatch(AddEvent(a=0xBEEF, b=11))
    await client.dispatch(AddEvent(a=0xBEEF, b=12))
    await client.dispatch(AddEvent(a=0xBEEF, b=13))

    numbers = [event.b async for event in subscription]

    assert sum(numbers) == 36


@pytest.mark.asyncio
async def test_wait_for_timeout():
    client = snowcord.Client()

    with pytest.raises(asyncio.TimeoutError):
        await client.wait_for(AddEvent, timeout=0.05)

    with pytest.raises(TypeError):
        client.wait_for(AddEvent, count=0)


@pytest.mark.asyncio
async def test_parent_subscriptions():
    received = []

    client = snowcord.Client()
    client.subscribe(snowcord.BaseEvent, lambda event, /: received.append(('base', type(event).__name__)))
    client.subscribe(AddEvent, lambda event, /: received.append(('add', event.a)))

    await client.dispatch(AddEvent(a=1, b=2))
    await client.dispatch(SubtractEvent(a=3, b=4))

    # Registration order, not event specificity
    assert received == [
        ('base', 'AddEvent'),
        ('add', 1),
        ('base', 'SubtractEvent'),
    ]


@pytest.mark.asyncio
async def test_scoped_subscriptions():
    received = []

    client = snowcord.Client()
    client.subscribe(ScopedEvent, lambda event, /: received.append('global'))
    client.subscribe(ScopedEvent, lambda event, /: received.append('channel'), scope=10)
    client.subscribe(ScopedEvent, lambda event, /: received.append('category'), scope=20)
    client.subscribe(ScopedEvent, lambda event, /: received.append('other'), scope=30)

    await client.dispatch(ScopedEvent(ids=(10, 20)))
    assert received == ['global', 'channel', 'category']

    received.clear()
    await client.dispatch(ScopedEvent(ids=()))
    assert received == ['global']


@pytest.mark.asyncio
async def test_listener_receives_event_once():
    received = []

    def callback(event: ScopedEvent, /) -> None:
        received.append(event.ids)

    client = snowcord.Client()
    # Same callback in both the base and the concrete chain
    client.subscribe(snowcord.BaseEvent, callback)
    sub = client.subscribe(ScopedEvent, callback, scope=10)

    await client.dispatch(ScopedEvent(ids=(10, 10, 20)))
    assert received == [(10, 10, 20), (10, 10, 20)]

    received.clear()
    sub.remove()
    await client.dispatch(ScopedEvent(ids=(10,)))
    assert received == [(10,)]

    assert len(client.unsubscribe(snowcord.BaseEvent, callback)) == 1
    assert client.all_subscriptions() == []


@pytest.mark.asyncio
async def test_listen_decorator():
    received = []

    client = snowcord.Client()

    @client.listen()
    def on_add(event: AddEvent, /) -> None:
        received.append(event.a)

    @client.on(SubtractEvent, scope=5)
    async def on_subtract(event, /) -> None:
        received.append(-event.a)

    assert client.subscriptions_for(AddEvent) == [on_add]
    assert on_subtract.scope == 5
    assert client.subscriptions_for(snowcord.BaseEvent, include_subclasses=True) == [on_add, on_subtract]

    await client.dispatch(AddEvent(a=7, b=0))
    await client.dispatch(SubtractEvent(a=7, b=0))
    assert received == [7]


@pytest.mark.asyncio
async def test_listener_errors_are_reported():
    errors = []
    received = []

    class MyClient(snowcord.Client):
        async def on_user_error(self, event: snowcord.BaseEvent, /) -> None:
            errors.append(event)

        def on_add(self, event: AddEvent, /) -> None:
            received.append('on_add')

        def on_event(self, event: snowcord.BaseEvent, /) -> None:
            received.append('on_event')

    def fail(event: AddEvent, /) -> None:
        raise RuntimeError('boom')

    client = MyClient()
    client.subscribe(AddEvent, fail)
    client.subscribe(AddEvent, lambda event, /: received.append('after'))

    event = AddEvent(a=1, b=1)
    await client.dispatch(event)

    assert errors == [event]
    assert received == ['after', 'on_add', 'on_event']


@pytest.mark.asyncio
async def test_client_configuration():
    client = snowcord.Client(token='token', shard_count=4, shard_ids=[1, 3])

    assert client.shard_count == 4
    assert [shard.shard_id for shard in client.shards] == [1, 3]
    assert client.shard_for(175928847299117063) == (175928847299117063 >> 22) % 4
    assert client.me is None
    assert client.servers == {}
    assert client.closed

    with pytest.raises(ValueError):
        snowcord.Client(shard_count=0)

    await client.close()


@pytest.mark.asyncio
async def test_login_requires_token():
    client = snowcord.Client()

    with pytest.raises(TypeError):
        await client.login()

    await client.close()


@pytest.mark.asyncio
async def test_cancelling_login_closes_connection():
    identified = asyncio.Event()
    disconnected = asyncio.Event()

    routes = web.RouteTableDef()

    @routes.get('/')
    async def gateway(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        await ws.send_str('{"op":10,"d":{"heartbeat_interval":45000}}')
        await ws.receive()
        identified.set()

        # READY is never sent
        async for _ in ws:
            pass
        disconnected.set()
        return ws

    app = web.Application()
    app.add_routes(routes)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host='localhost', port=5214)
    await site.start()

    client = snowcord.Client(token='token', gateway_url='ws://127.0.0.1:5214/')
    login = asyncio.create_task(client.login())

    try:
        await asyncio.wait_for(identified.wait(), timeout=10)
        login.cancel()
        with pytest.raises(asyncio.CancelledError):
            await login
        await asyncio.wait_for(disconnected.wait(), timeout=10)
        await asyncio.sleep(0)
    finally:
        if not client.closed:
            await client.close()
        await site.stop()

    shard = client.shards[0]
    assert client.closed
    assert shard._socket is None
    assert shard._heartbeat_task is None
    assert shard.status is snowcord.ShardState.disconnected
    assert not [t for t in asyncio.all_tasks() if t.get_name().startswith('snowcord-heartbeat') and not t.done()]
