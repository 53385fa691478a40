import snowcord


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_state(**kwargs) -> snowcord.State:
    return snowcord.State(cache=snowcord.MapCache(**kwargs))


def make_message(state: snowcord.State, message_id: int, channel_id: int = 100) -> snowcord.Message:
    return state.parser.parse_message(
        {
            'id': str(message_id),
            'channel_id': str(channel_id),
            'author': {'id': '5', 'username': 'user', 'discriminator': '0001'},
            'content': f'message {message_id}',
        }
    )


def test_message_cache_capacity():
    state = make_state(message_cache_capacity=3)
    messages = state.cache.messages

    for i in range(1, 6):
        messages.store(make_message(state, i))

    # Eviction only happens on sweep
    assert len(messages) == 5

    evicted = messages.sweep()
    assert [m.id for m in evicted] == [1, 2]
    assert len(messages) == 3
    assert 1 not in messages
    assert messages.get(5) is not None


def test_message_cache_keeps_forever_messages():
    state = make_state(message_cache_capacity=2)
    messages = state.cache.messages

    pinned = make_message(state, 1)
    pinned.set_cached_forever(True)
    assert 1 in messages

    for i in range(2, 6):
        messages.store(make_message(state, i))

    messages.sweep()
    assert sorted(m.id for m in messages.messages_of(100)) == [1, 4, 5]

    # Explicit removal ignores the flag
    assert messages.remove(1) is pinned
    assert 1 not in messages


def test_message_cache_age():
    clock = FakeClock()
    state = make_state(message_cache_max_age=60.0, clock=clock)
    messages = state.cache.messages

    messages.store(make_message(state, 1))
    clock.now = 30.0
    messages.store(make_message(state, 2))

    clock.now = 59.9
    assert messages.sweep() == []

    clock.now = 60.0
    assert [m.id for m in messages.sweep()] == [1]

    assert [m.id for m in messages.sweep(90.0)] == [2]
    assert len(messages) == 0


def test_message_cache_store_is_idempotent():
    state = make_state()
    messages = state.cache.messages

    first = make_message(state, 1)
    assert messages.store(first) is first
    assert messages.store(make_message(state, 1)) is first
    assert len(messages) == 1

    assert messages.mark_announced(1)
    assert not messages.mark_announced(1)


def test_message_history_follows_cache():
    state = make_state(message_cache_capacity=2)
    messages = state.cache.messages

    fetched = [make_message(state, i) for i in (3, 1, 2)]
    for message in sorted(fetched, key=lambda m: m.id):
        messages.store(message)
    messages.store(make_message(state, 10, channel_id=200))

    history = snowcord.MessageHistory(state, 100, fetched)
    messages.add_observer(history)
    assert [m.id for m in history] == [1, 2, 3]
    assert history.oldest is not None and history.oldest.id == 1

    messages.sweep()
    assert [m.id for m in history] == [3]

    with history:
        messages.remove(3)
        assert len(history) == 0

    assert history.is_closed()

    messages.store(make_message(state, 11))
    messages.remove(11)
    assert len(history) == 0


def test_category_children():
    state = make_state()
    cache = state.cache
    parser = state.parser

    server = parser.parse_server({'id': '1', 'name': 'server', 'owner_id': '2'})
    cache.store_server(server)

    category = parser.parse_channel({'id': '10', 'type': 4, 'name': 'category', 'position': 0}, 1)
    assert cache.store_channel(category)

    for channel_id, position in (('12', 2), ('11', 1)):
        channel = parser.parse_channel(
            {'id': channel_id, 'type': 0, 'name': 'text', 'position': position, 'parent_id': '10'}, 1
        )
        assert cache.store_channel(channel)

    assert isinstance(category, snowcord.ChannelCategory)
    assert category.child_ids == [11, 12]

    # Moving a channel out of the category
    moved = parser.parse_channel({'id': '12', 'type': 0, 'name': 'text', 'position': 2}, 1)
    cache.store_channel(moved)
    assert category.child_ids == [11]

    cache.store_channel(parser.parse_channel({'id': '12', 'type': 0, 'position': 2, 'parent_id': '10'}, 1))
    assert category.child_ids == [11, 12]

    cache.messages.store(make_message(state, 50, channel_id=11))

    removed = cache.remove_channel(11)
    assert removed is not None
    assert category.child_ids == [12]
    assert 11 not in server.channels
    assert cache.get_message(50) is None

    cache.remove_channel(10)
    child = cache.get_channel(12)
    assert isinstance(child, snowcord.ServerChannel)
    assert child.parent_id is None


def test_channel_of_unknown_server_is_not_stored():
    state = make_state()

    channel = state.parser.parse_channel({'id': '10', 'type': 0, 'name': 'general'}, 99)
    assert not state.cache.store_channel(channel)
    assert state.cache.get_channel(10) is None


def test_roles_and_members():
    state = make_state()
    cache = state.cache
    parser = state.parser

    server = parser.parse_server(
        {
            'id': '1',
            'name': 'server',
            'owner_id': '2',
            'roles': [{'id': '1', 'name': '@everyone', 'permissions': '0'}],
        }
    )
    cache.store_server(server)

    user = parser.parse_user({'id': '5', 'username': 'user', 'discriminator': '0001'})
    cache.store_member(1, user, role_ids=[30])

    role = cache.store_role(parser.parse_role({'id': '30', 'name': 'mod', 'permissions': '8'}, 1))
    assert role is not None
    assert role.member_ids == {5}
    assert cache.get_role(30) is role

    cache.remove_role(1, 30)
    assert cache.get_role(30) is None
    assert 30 not in server.member_roles[5]

    assert cache.remove_member(1, 5)
    assert not cache.remove_member(1, 5)
    assert cache.get_user(5) is user

    assert cache.store_role(parser.parse_role({'id': '31', 'name': 'x'}, 99)) is None


def test_store_user_updates_in_place():
    state = make_state()
    cache = state.cache
    parser = state.parser

    first = cache.store_user(parser.parse_user({'id': '5', 'username': 'old', 'discriminator': '0001'}))
    second = cache.store_user(parser.parse_user({'id': '5', 'username': 'new', 'discriminator': '0001'}))

    assert second is first
    assert first.name == 'new'
