from __future__ import annotations

import asyncio
from aiohttp import web, ClientSession
import pytest
import snowcord
from snowcord import routes


USER = {'id': '5', 'username': 'user', 'discriminator': '0002'}


async def start_server(routes_: web.RouteTableDef, port: int) -> web.TCPSite:
    app = web.Application()
    app.add_routes(routes_)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host='localhost', port=port)
    await site.start()
    return site


def make_http(port: int) -> snowcord.HTTPClient:
    return snowcord.HTTPClient(
        'token',
        base=f'http://127.0.0.1:{port}',
        session=ClientSession(),
        state=snowcord.State(),
    )


@pytest.mark.asyncio
async def test_retries_once_after_ratelimit():
    hits = []

    routes_ = web.RouteTableDef()

    @routes_.get('/users/{user_id}')
    async def fetch_user(request: web.Request) -> web.Response:
        hits.append(asyncio.get_running_loop().time())
        assert request.headers['Authorization'] == 'Bot token'
        if len(hits) == 1:
            return web.json_response({'message': 'rate limited', 'retry_after': 500}, status=429)
        return web.json_response(USER)

    site = await start_server(routes_, 5201)
    http = make_http(5201)

    try:
        user = await http.fetch_user(5)
    finally:
        await http.cleanup()
        await site.stop()

    assert len(hits) == 2
    assert hits[1] - hits[0] >= 0.5
    assert user.name == 'user'
    assert http.state.cache.get_user(5) is user


@pytest.mark.asyncio
async def test_second_ratelimit_is_raised():
    hits = []

    routes_ = web.RouteTableDef()

    @routes_.get('/channels/{channel_id}')
    async def fetch_channel(request: web.Request) -> web.Response:
        hits.append(request.match_info['channel_id'])
        return web.json_response({'message': 'rate limited', 'retry_after': 100, 'global': False}, status=429)

    site = await start_server(routes_, 5202)
    http = make_http(5202)

    try:
        with pytest.raises(snowcord.Ratelimited) as exc_info:
            await http.request(routes.CHANNELS_FETCH.compile(channel_id=11))
    finally:
        await http.cleanup()
        await site.stop()

    assert hits == ['11', '11']
    assert exc_info.value.status == 429
    assert exc_info.value.retry_after == 0.1
    assert exc_info.value.message == 'rate limited'


@pytest.mark.asyncio
async def test_errors_are_not_retried():
    hits = []

    routes_ = web.RouteTableDef()

    @routes_.delete('/channels/{channel_id}')
    async def delete_channel(request: web.Request) -> web.Response:
        hits.append(request.match_info['channel_id'])
        return web.json_response({'message': 'Missing Permissions', 'code': 50013}, status=403)

    @routes_.get('/guilds/{server_id}')
    async def fetch_server(request: web.Request) -> web.Response:
        hits.append(request.match_info['server_id'])
        return web.Response(text='oops', status=500)

    site = await start_server(routes_, 5203)
    http = make_http(5203)

    try:
        with pytest.raises(snowcord.Forbidden) as forbidden:
            await http.delete_channel(11)

        with pytest.raises(snowcord.InternalServerError) as server_error:
            await http.request(routes.SERVERS_FETCH.compile(server_id=1))
    finally:
        await http.cleanup()
        await site.stop()

    assert hits == ['11', '1']
    assert forbidden.value.code == 50013
    assert forbidden.value.message == 'Missing Permissions'
    assert isinstance(forbidden.value, snowcord.HTTPException)
    assert server_error.value.data == 'oops'


@pytest.mark.asyncio
async def test_routes_share_bucket():
    hits = []

    routes_ = web.RouteTableDef()

    @routes_.get('/channels/{channel_id}')
    async def fetch_channel(request: web.Request) -> web.Response:
        hits.append(asyncio.get_running_loop().time())
        remaining = 1 if len(hits) == 1 else 0
        return web.json_response(
            {'id': request.match_info['channel_id'], 'type': 1, 'recipients': [USER]},
            headers={
                'X-RateLimit-Bucket': 'shared',
                'X-RateLimit-Limit': '2',
                'X-RateLimit-Remaining': str(remaining),
                'X-RateLimit-Reset-After': '0.5',
            },
        )

    site = await start_server(routes_, 5204)
    http = make_http(5204)

    try:
        # Different major parameters, but the API reports same bucket
        await http.request(routes.CHANNELS_FETCH.compile(channel_id=11))
        await http.request(routes.CHANNELS_FETCH.compile(channel_id=12))
        await http.request(routes.CHANNELS_FETCH.compile(channel_id=11))
    finally:
        await http.cleanup()
        await site.stop()

    assert len(hits) == 3
    assert hits[1] - hits[0] < 0.4
    assert hits[2] - hits[1] >= 0.4


def test_ratelimit_keys():
    first = routes.MESSAGES_FETCH.compile(channel_id=1, message_id=2)
    second = routes.MESSAGES_FETCH.compile(channel_id=1, message_id=3)
    third = routes.MESSAGES_FETCH.compile(channel_id=4, message_id=2)

    assert first.build() == '/channels/1/messages/2'
    assert first.build_ratelimit_key() == second.build_ratelimit_key()
    assert first.build_ratelimit_key() != third.build_ratelimit_key()


@pytest.mark.asyncio
async def test_ratelimit_pauses_bucket():
    hits = []
    limited = asyncio.Event()

    routes_ = web.RouteTableDef()

    @routes_.get('/channels/{channel_id}')
    async def fetch_channel(request: web.Request) -> web.Response:
        now = asyncio.get_running_loop().time()
        hits.append(now)
        headers = {
            'X-RateLimit-Bucket': 'shared',
            'X-RateLimit-Limit': '5',
            'X-RateLimit-Remaining': '3',
            'X-RateLimit-Reset-After': '10',
        }
        if len(hits) == 2:
            limited.set()
            return web.json_response({'message': 'rate limited', 'retry_after': 500}, status=429, headers=headers)
        return web.json_response(
            {'id': request.match_info['channel_id'], 'type': 1, 'recipients': [USER]}, headers=headers
        )

    site = await start_server(routes_, 5205)
    http = make_http(5205)

    async def after_ratelimit() -> None:
        await limited.wait()
        await asyncio.sleep(0.05)
        await http.request(routes.CHANNELS_FETCH.compile(channel_id=11))

    try:
        await http.request(routes.CHANNELS_FETCH.compile(channel_id=11))
        await asyncio.gather(
            http.request(routes.CHANNELS_FETCH.compile(channel_id=11)),
            after_ratelimit(),
        )
    finally:
        await http.cleanup()
        await site.stop()

    assert len(hits) == 4
    # Nobody may use the bucket before retry_after passes
    assert hits[2] - hits[1] >= 0.45
    assert hits[3] - hits[1] >= 0.45


@pytest.mark.asyncio
async def test_global_ratelimit_blocks_every_route():
    hits = []
    limited = asyncio.Event()

    routes_ = web.RouteTableDef()

    @routes_.get('/users/{user_id}')
    async def fetch_user(request: web.Request) -> web.Response:
        hits.append(('user', asyncio.get_running_loop().time()))
        if len(hits) == 1:
            limited.set()
            return web.json_response({'message': 'rate limited', 'retry_after': 300, 'global': True}, status=429)
        return web.json_response(USER)

    @routes_.get('/guilds/{server_id}')
    async def fetch_server(request: web.Request) -> web.Response:
        hits.append(('server', asyncio.get_running_loop().time()))
        return web.json_response({'message': 'Unknown Guild', 'code': 10004}, status=404)

    site = await start_server(routes_, 5206)
    http = make_http(5206)

    async def other_route() -> None:
        await limited.wait()
        await asyncio.sleep(0.05)
        with pytest.raises(snowcord.NotFound):
            await http.request(routes.SERVERS_FETCH.compile(server_id=1))

    try:
        await asyncio.gather(http.fetch_user(5), other_route())
    finally:
        await http.cleanup()
        await site.stop()

    assert len(hits) == 3
    first = hits[0][1]
    assert all(at - first >= 0.25 for _, at in hits[1:])
    assert {name for name, _ in hits[1:]} == {'user', 'server'}


class ResettingHTTPClient(snowcord.HTTPClient):
    connection_reset_delay = 0.0

    async def send_request(self, session, /, **kwargs):
        self.attempts += 1  # type: ignore
        raise ConnectionResetError(54, 'Connection reset by peer')


@pytest.mark.asyncio
async def test_connection_reset_is_retried_once():
    http = ResettingHTTPClient('token', base='http://127.0.0.1:5207', session=ClientSession(), state=snowcord.State())
    http.attempts = 0  # type: ignore

    try:
        with pytest.raises(ConnectionResetError):
            await http.request(routes.USERS_FETCH.compile(user_id=5))
    finally:
        await http.cleanup()

    assert http.attempts == 2  # type: ignore
