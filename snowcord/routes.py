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
from urllib.parse import quote

HTTPMethod = typing.Literal['GET', 'POST', 'PATCH', 'DELETE', 'PUT']

# Only these parameters split routes into separate rate limit buckets
MAJOR_PARAMETERS: typing.Final[tuple[str, ...]] = ('channel_id', 'server_id', 'webhook_id')


class _MajorParameters(dict[str, str]):
    __slots__ = ()

    def __missing__(self, key: str) -> str:
        return '{' + key + '}'


class CompiledRoute:
    """Represents compiled API route."""

    __slots__ = ('route', 'args')

    def __init__(self, route: Route, /, **args: typing.Any) -> None:
        self.route: Route = route
        self.args: dict[str, typing.Any] = args

    def __repr__(self) -> str:
        return f'<CompiledRoute route={self.route!r} args={self.args!r}>'

    def __str__(self) -> str:
        return f'CompiledRoute({self.route}, **{self.args!r})'

    def build(self) -> str:
        return self.route.path.format_map({k: quote(str(v), safe='') for k, v in self.args.items()})

    def build_ratelimit_key(self) -> str:
        """:class:`str`: The key that groups requests before the server tells which bucket they belong to.

        Minor parameters, such as message IDs, are left as placeholders.
        """
        major = _MajorParameters({k: str(v) for k, v in self.args.items() if k in MAJOR_PARAMETERS})
        return self.route.ratelimit_key_template.format_map(major)


class Route:
    """Represents API route."""

    __slots__ = (
        'method',
        'path',
        'ratelimit_key_template',
    )

    def __init__(self, method: HTTPMethod, path: str, /) -> None:
        self.method: HTTPMethod = method
        self.path: str = path
        self.ratelimit_key_template: str = f'{method} {path}'

    def __repr__(self) -> str:
        return f'<Route method={self.method!r} path={self.path!r}>'

    def __str__(self) -> str:
        return f'{self.method} {self.path}'

    def compile(self, **args: typing.Any) -> CompiledRoute:
        """Compiles route."""
        return CompiledRoute(self, **args)


GET: typing.Final[HTTPMethod] = 'GET'
POST: typing.Final[HTTPMethod] = 'POST'
PUT: typing.Final[HTTPMethod] = 'PUT'
DELETE: typing.Final[HTTPMethod] = 'DELETE'
PATCH: typing.Final[HTTPMethod] = 'PATCH'

GATEWAY_BOT: typing.Final[Route] = Route(GET, '/gateway/bot')

# Users
USERS_FETCH: typing.Final[Route] = Route(GET, '/users/{user_id}')
USERS_EDIT_SELF: typing.Final[Route] = Route(PATCH, '/users/@me')
USERS_CREATE_DM: typing.Final[Route] = Route(POST, '/users/@me/channels')
USERS_LEAVE_SERVER: typing.Final[Route] = Route(DELETE, '/users/@me/guilds/{server_id}')

# Channels
CHANNELS_FETCH: typing.Final[Route] = Route(GET, '/channels/{channel_id}')
CHANNELS_EDIT: typing.Final[Route] = Route(PATCH, '/channels/{channel_id}')
CHANNELS_DELETE: typing.Final[Route] = Route(DELETE, '/channels/{channel_id}')
CHANNELS_TYPING: typing.Final[Route] = Route(POST, '/channels/{channel_id}/typing')

# Messages
MESSAGES_FETCH_MANY: typing.Final[Route] = Route(GET, '/channels/{channel_id}/messages')
MESSAGES_FETCH: typing.Final[Route] = Route(GET, '/channels/{channel_id}/messages/{message_id}')
MESSAGES_SEND: typing.Final[Route] = Route(POST, '/channels/{channel_id}/messages')
MESSAGES_EDIT: typing.Final[Route] = Route(PATCH, '/channels/{channel_id}/messages/{message_id}')
MESSAGES_DELETE: typing.Final[Route] = Route(DELETE, '/channels/{channel_id}/messages/{message_id}')
MESSAGES_PIN: typing.Final[Route] = Route(PUT, '/channels/{channel_id}/pins/{message_id}')
MESSAGES_UNPIN: typing.Final[Route] = Route(DELETE, '/channels/{channel_id}/pins/{message_id}')

# Reactions
REACTIONS_ADD: typing.Final[Route] = Route(PUT, '/channels/{channel_id}/messages/{message_id}/reactions/{emoji}/@me')
REACTIONS_REMOVE_OWN: typing.Final[Route] = Route(
    DELETE, '/channels/{channel_id}/messages/{message_id}/reactions/{emoji}/@me'
)
REACTIONS_REMOVE_USER: typing.Final[Route] = Route(
    DELETE, '/channels/{channel_id}/messages/{message_id}/reactions/{emoji}/{user_id}'
)
REACTIONS_CLEAR: typing.Final[Route] = Route(DELETE, '/channels/{channel_id}/messages/{message_id}/reactions')

# Servers
SERVERS_FETCH: typing.Final[Route] = Route(GET, '/guilds/{server_id}')
SERVERS_EDIT: typing.Final[Route] = Route(PATCH, '/guilds/{server_id}')

# Members
MEMBERS_FETCH: typing.Final[Route] = Route(GET, '/guilds/{server_id}/members/{user_id}')
MEMBERS_EDIT: typing.Final[Route] = Route(PATCH, '/guilds/{server_id}/members/{user_id}')
MEMBERS_EDIT_SELF_NICK: typing.Final[Route] = Route(PATCH, '/guilds/{server_id}/members/@me/nick')
MEMBERS_KICK: typing.Final[Route] = Route(DELETE, '/guilds/{server_id}/members/{user_id}')
BANS_CREATE: typing.Final[Route] = Route(PUT, '/guilds/{server_id}/bans/{user_id}')

# Roles
ROLES_CREATE: typing.Final[Route] = Route(POST, '/guilds/{server_id}/roles')
ROLES_EDIT: typing.Final[Route] = Route(PATCH, '/guilds/{server_id}/roles/{role_id}')
ROLES_DELETE: typing.Final[Route] = Route(DELETE, '/guilds/{server_id}/roles/{role_id}')
MEMBER_ROLES_ADD: typing.Final[Route] = Route(PUT, '/guilds/{server_id}/members/{user_id}/roles/{role_id}')
MEMBER_ROLES_REMOVE: typing.Final[Route] = Route(DELETE, '/guilds/{server_id}/members/{user_id}/roles/{role_id}')

__all__ = (
    'HTTPMethod',
    'MAJOR_PARAMETERS',
    'CompiledRoute',
    'Route',
    'GET',
    'POST',
    'PUT',
    'DELETE',
    'PATCH',
    'GATEWAY_BOT',
    'USERS_FETCH',
    'USERS_EDIT_SELF',
    'USERS_CREATE_DM',
    'USERS_LEAVE_SERVER',
    'CHANNELS_FETCH',
    'CHANNELS_EDIT',
    'CHANNELS_DELETE',
    'CHANNELS_TYPING',
    'MESSAGES_FETCH_MANY',
    'MESSAGES_FETCH',
    'MESSAGES_SEND',
    'MESSAGES_EDIT',
    'MESSAGES_DELETE',
    'MESSAGES_PIN',
    'MESSAGES_UNPIN',
    'REACTIONS_ADD',
    'REACTIONS_REMOVE_OWN',
    'REACTIONS_REMOVE_USER',
    'REACTIONS_CLEAR',
    'SERVERS_FETCH',
    'SERVERS_EDIT',
    'MEMBERS_FETCH',
    'MEMBERS_EDIT',
    'MEMBERS_EDIT_SELF_NICK',
    'MEMBERS_KICK',
    'BANS_CREATE',
    'ROLES_CREATE',
    'ROLES_EDIT',
    'ROLES_DELETE',
    'MEMBER_ROLES_ADD',
    'MEMBER_ROLES_REMOVE',
)
