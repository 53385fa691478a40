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
import builtins
from inspect import isawaitable, signature
import logging
import typing

from . import utils
from .core import SnowflakeOr, resolve_id
from .events import BaseEvent

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Generator

    from .packets import Packet
    from .shard import Shard

_L = logging.getLogger(__name__)

EventT = typing.TypeVar('EventT', bound='BaseEvent')


def _parents_of(type: builtins.type[BaseEvent], /) -> tuple[builtins.type[BaseEvent], ...]:
    """Tuple[Type[:class:`.BaseEvent`], ...]: Returns parents of BaseEvent, including BaseEvent itself."""
    if type is BaseEvent:
        return (BaseEvent,)
    tmp: typing.Any = tuple(t for t in type.__mro__ if isinstance(t, builtins.type) and issubclass(t, BaseEvent))
    return tmp


class EventSubscription(typing.Generic[EventT]):
    """Represents a event subscription.

    Attributes
    ----------
    dispatcher: :class:`Dispatcher`
        The dispatcher that this subscription is tied to.
    id: :class:`int`
        The ID of the subscription. Subscriptions are invoked in order of their IDs.
    callback: MaybeAwaitableFunc[[EventT], None]
        The callback.
    event: Type[EventT]
        The event type subscribed to.
    scope: Optional[:class:`int`]
        The entity ID the subscription is scoped to. ``None`` means the subscription receives every event.
    """

    __slots__ = (
        'dispatcher',
        'id',
        'callback',
        'event',
        'scope',
    )

    def __init__(
        self,
        *,
        dispatcher: Dispatcher,
        id: int,
        callback: utils.MaybeAwaitableFunc[[EventT], None],
        event: type[EventT],
        scope: typing.Optional[int] = None,
    ) -> None:
        self.dispatcher: Dispatcher = dispatcher
        self.id: int = id
        self.callback: utils.MaybeAwaitableFunc[[EventT], None] = callback
        self.event: type[EventT] = event
        self.scope: typing.Optional[int] = scope

    def __repr__(self) -> str:
        return f'<EventSubscription id={self.id} event={self.event.__name__} scope={self.scope}>'

    def __call__(self, arg: EventT, /) -> utils.MaybeAwaitable[None]:
        return self.callback(arg)

    def matches(self, scopes: typing.Container[int], /) -> bool:
        return self.scope is None or self.scope in scopes

    async def _handle(self, arg: EventT, name: str, /) -> None:
        await self.dispatcher._run_callback(self.callback, arg, name)

    def remove(self) -> None:
        """Removes the event subscription."""
        try:
            self.dispatcher._handlers[self.event][0].pop(self.id, None)
        except KeyError:
            pass


class TemporarySubscription(typing.Generic[EventT]):
    """Represents a temporary event subscription."""

    __slots__ = (
        'dispatcher',
        'id',
        'event',
        'future',
        'check',
        'coro',
    )

    def __init__(
        self,
        *,
        dispatcher: Dispatcher,
        id: int,
        event: type[EventT],
        future: asyncio.Future[EventT],
        check: Callable[[EventT], utils.MaybeAwaitable[bool]],
        coro: Coroutine[typing.Any, typing.Any, EventT],
    ) -> None:
        self.dispatcher: Dispatcher = dispatcher
        self.id: int = id
        self.event: type[EventT] = event
        self.future: asyncio.Future[EventT] = future
        self.check: Callable[[EventT], utils.MaybeAwaitable[bool]] = check
        self.coro: Coroutine[typing.Any, typing.Any, EventT] = coro

    def __await__(self) -> Generator[typing.Any, typing.Any, EventT]:
        return self.coro.__await__()

    async def _handle(self, arg: EventT, name: str, /) -> bool:
        if self.future.done():
            return True
        try:
            can = self.check(arg)
            if isawaitable(can):
                can = await can

            if can:
                self.future.set_result(arg)
            return can
        except Exception as exc:
            try:
                self.future.set_exception(exc)
            except asyncio.InvalidStateError:
                pass
            _L.exception('Checker function (task: %s) raised an exception', name)
            return True

    def cancel(self) -> None:
        """Cancels the subscription."""
        self.future.cancel()
        try:
            self.dispatcher._handlers[self.event][1].pop(self.id, None)
        except KeyError:
            pass


class TemporarySubscriptionListIterator(typing.Generic[EventT]):
    __slots__ = ('subscription',)

    def __init__(self, *, subscription: TemporarySubscriptionList[EventT]) -> None:
        self.subscription: TemporarySubscriptionList[EventT] = subscription

    async def __anext__(self) -> EventT:
        subscription = self.subscription

        if subscription.exception is not None:
            raise subscription.exception

        if subscription.done.is_set() and subscription.queue.empty():
            raise StopAsyncIteration

        while True:
            index = await subscription.queue.get()

            if subscription.exception is not None:
                raise subscription.exception

            if index >= 0:
                break

        return subscription.result[index]


class TemporarySubscriptionList(typing.Generic[EventT]):
    """Represents a temporary subscription on multiple events."""

    __slots__ = (
        'dispatcher',
        'id',
        'event',
        'done',
        'check',
        'result',
        'exception',
        'expected',
        'queue',
        'timeout',
    )

    def __init__(
        self,
        *,
        dispatcher: Dispatcher,
        expected: int,
        id: int,
        event: type[EventT],
        check: Callable[[EventT], utils.MaybeAwaitable[bool]],
        timeout: typing.Optional[float] = None,
    ) -> None:
        self.dispatcher: Dispatcher = dispatcher
        self.id: int = id
        self.event: type[EventT] = event
        self.done: asyncio.Event = asyncio.Event()
        self.check: Callable[[EventT], utils.MaybeAwaitable[bool]] = check
        self.result: list[EventT] = []
        self.exception: typing.Optional[Exception] = None
        self.expected: int = expected
        self.timeout: typing.Optional[float] = timeout

        self.queue: asyncio.Queue[int] = asyncio.Queue(expected + 1)

    async def wait(self) -> list[EventT]:
        if len(self.result) < self.expected:
            try:
                await asyncio.wait_for(self.done.wait(), self.timeout)
            except asyncio.TimeoutError:
                self.cancel()
                raise

            if self.exception is not None:
                raise self.exception

            if len(self.result) < self.expected:
                raise asyncio.TimeoutError('Timed out waiting.')

        return self.result

    def __await__(self) -> Generator[typing.Any, typing.Any, list[EventT]]:
        return self.wait().__await__()

    def __aiter__(self) -> TemporarySubscriptionListIterator[EventT]:
        return TemporarySubscriptionListIterator(subscription=self)

    async def _handle(self, arg: EventT, name: str, /) -> bool:
        if self.done.is_set():
            return True

        try:
            can = self.check(arg)
            if isawaitable(can):
                can = await can

            if can:
                self.result.append(arg)
                if len(self.result) >= self.expected:
                    self.done.set()
                self.queue.put_nowait(len(self.result) - 1)

            return self.done.is_set()
        except Exception as exc:
            _L.exception('Checker function (task: %s) raised an exception', name)
            self.exception = exc
            self.done.set()
            self.queue.put_nowait(-1)
            return True

    def cancel(self) -> None:
        """Cancels the subscription."""

        self.done.set()
        try:
            self.dispatcher._handlers[self.event][1].pop(self.id, None)
        except KeyError:
            pass


_DEFAULT_HANDLERS: tuple[dict[typing.Any, typing.Any], dict[typing.Any, typing.Any]] = ({}, {})


class Dispatcher:
    """A registry of event listeners.

    Listeners are keyed by event type; an event is delivered to listeners of its type and of every parent type.
    Listeners may be scoped to an entity, in which case they only receive events about that entity.

    Every listener receives an event at most once, and listeners are invoked in the order they were registered.
    """

    __slots__ = (
        '_handlers',
        '_i',
        '_tasks',
        '_types',
    )

    def __init__(self) -> None:
        # {Type[BaseEvent]: (Dict[int, EventSubscription], Dict[int, TemporarySubscription])}
        self._handlers: dict[
            type[BaseEvent],
            tuple[
                dict[int, EventSubscription[BaseEvent]],
                dict[int, typing.Union[TemporarySubscription[BaseEvent], TemporarySubscriptionList[BaseEvent]]],
            ],
        ] = {}
        self._i: int = 0
        self._tasks: set[asyncio.Task[None]] = set()
        # {Type[BaseEvent]: Tuple[Type[BaseEvent], ...]}
        self._types: dict[type[BaseEvent], tuple[type[BaseEvent], ...]] = {}

    def _get_i(self) -> int:
        self._i += 1
        return self._i

    async def on_user_error(self, event: BaseEvent, /) -> None:
        """Handles user errors that came from handlers.
        You can get current exception being raised via :func:`sys.exc_info`.

        By default, this logs exception.
        """
        _L.exception(
            'One of %s handlers raised an exception',
            event.__class__.__name__,
        )

    async def on_library_error(self, _shard: Shard, packet: Packet, exc: Exception, /) -> None:
        """Handles library errors. By default, this logs exception.

        .. note::
            This won't be called if handling ``READY`` will raise a exception as it is fatal.
        """
        _L.error('%s handler raised an exception', packet.event_name, exc_info=exc)

    async def _run_callback(
        self, callback: Callable[[EventT], utils.MaybeAwaitable[None]], arg: EventT, name: str, /
    ) -> None:
        try:
            r = callback(arg)
            if isawaitable(r):
                await r
        except Exception:
            try:
                r = self.on_user_error(arg)
                if isawaitable(r):
                    await r
            except Exception:
                _L.exception('on_user_error (task: %s) raised an exception', name)

    async def _dispatch(self, types: tuple[type[BaseEvent], ...], event: BaseEvent, name: str, /) -> None:
        scopes = frozenset(event.scope_ids())

        matched: dict[int, EventSubscription[BaseEvent]] = {}
        event_names: list[str] = []

        for type in types:
            handlers, temporary_handlers = self._handlers.get(type, _DEFAULT_HANDLERS)
            if _L.isEnabledFor(logging.DEBUG):
                _L.debug(
                    'Dispatching %s (%i handlers, originating from %s)',
                    type.__name__,
                    len(handlers),
                    event.__class__.__name__,
                )

            remove = []
            for handler in list(temporary_handlers.values()):
                if await handler._handle(event, name):
                    remove.append(handler.id)
            for i in remove:
                temporary_handlers.pop(i, None)

            for handler in handlers.values():
                if handler.matches(scopes):
                    # An event reaching listener via several scopes is delivered once
                    matched.setdefault(handler.id, handler)

            event_name: typing.Optional[str] = getattr(type, 'event_name', None)
            if event_name and event_name not in event_names:
                event_names.append(event_name)

        for handler in sorted(matched.values(), key=lambda h: h.id):
            await handler._handle(event, name)

        for event_name in event_names:
            callback = getattr(self, 'on_' + event_name, None)
            if callback:
                await self._run_callback(callback, event, name)

    def dispatch(self, event: BaseEvent, /) -> asyncio.Task[None]:
        """Dispatches a event.

        Parameters
        ----------
        event: :class:`.BaseEvent`
            The event to dispatch.

        Returns
        -------
        :class:`asyncio.Task`
            The asyncio task.
        """

        et = builtins.type(event)
        try:
            types = self._types[et]
        except KeyError:
            types = self._types[et] = _parents_of(et)

        name = f'snowcord-dispatch-{self._get_i()}'
        task = asyncio.create_task(self._dispatch(types, event, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def subscribe(
        self,
        event: type[EventT],
        /,
        callback: utils.MaybeAwaitableFunc[[EventT], None],
        *,
        scope: typing.Optional[SnowflakeOr[typing.Any]] = None,
    ) -> EventSubscription[EventT]:
        """Subscribes to event.

        Parameters
        ----------
        event: Type[EventT]
            The type of the event.
        callback: MaybeAwaitableFunc[[EventT], None]
            The callback for the event.
        scope: Optional[SnowflakeOr[Any]]
            The entity to scope subscription to, such as channel, category or server.
            The callback then only receives events about that entity.
        """
        sub: EventSubscription[EventT] = EventSubscription(
            dispatcher=self,
            id=self._get_i(),
            callback=callback,
            event=event,
            scope=None if scope is None else resolve_id(scope),
        )

        # The actual generic of value type is same as key
        try:
            self._handlers[event][0][sub.id] = sub  # type: ignore
        except KeyError:
            self._handlers[event] = ({sub.id: sub}, {})  # type: ignore
        return sub

    def unsubscribe(
        self,
        event: type[EventT],
        callback: utils.MaybeAwaitableFunc[[EventT], None],
        /,
    ) -> list[EventSubscription[EventT]]:
        """Removes every subscription of event with given callback.

        Returns
        -------
        List[EventSubscription[EventT]]
            The removed subscriptions.
        """
        try:
            subscriptions = self._handlers[event][0]
        except KeyError:
            return []

        removed = [k for k, subscription in subscriptions.items() if subscription.callback == callback]
        return [subscriptions.pop(k) for k in removed]  # type: ignore

    def listen(
        self,
        event: typing.Optional[type[EventT]] = None,
        /,
        *,
        scope: typing.Optional[SnowflakeOr[typing.Any]] = None,
    ) -> Callable[
        [utils.MaybeAwaitableFunc[[EventT], None]],
        EventSubscription[EventT],
    ]:
        """Register an event listener.

        There is alias called :meth:`on`.

        Examples
        --------

        Ping Pong: ::

            @client.listen()
            async def on_message_create(event: snowcord.MessageCreateEvent):
                message = event.message
                if message.content == '!ping':
                    await message.channel.send('pong!')


            # It returns :class:`EventSubscription`, so you can do ``on_message_create.remove()``

        Parameters
        ----------
        event: Optional[Type[EventT]]
            The event to listen to. If omitted, it is taken from annotation of the callback's first parameter.
        scope: Optional[SnowflakeOr[Any]]
            The entity to scope subscription to.
        """

        def decorator(callback: utils.MaybeAwaitableFunc[[EventT], None], /) -> EventSubscription[EventT]:
            tmp = event

            if tmp is None:
                parameters = list(signature(callback).parameters)
                if not parameters:
                    raise TypeError('Cannot use listen() on callback without parameters')
                hints = typing.get_type_hints(callback)
                tmp = hints.get(parameters[0])
                if tmp is None:
                    raise TypeError('Cannot use listen() without event annotation type')

            return self.subscribe(tmp, callback, scope=scope)  # type: ignore

        return decorator

    on = listen

    @typing.overload
    def wait_for(
        self,
        event: type[EventT],
        /,
        *,
        check: typing.Optional[Callable[[EventT], utils.MaybeAwaitable[bool]]] = None,
        count: typing.Literal[1] = 1,
        timeout: typing.Optional[float] = None,
    ) -> TemporarySubscription[EventT]: ...

    @typing.overload
    def wait_for(
        self,
        event: type[EventT],
        /,
        *,
        check: typing.Optional[Callable[[EventT], utils.MaybeAwaitable[bool]]] = None,
        count: int = 1,
        timeout: typing.Optional[float] = None,
    ) -> TemporarySubscriptionList[EventT]: ...

    def wait_for(
        self,
        event: type[EventT],
        /,
        *,
        check: typing.Optional[Callable[[EventT], utils.MaybeAwaitable[bool]]] = None,
        count: int = 1,
        timeout: typing.Optional[float] = None,
    ) -> typing.Union[TemporarySubscription[EventT], TemporarySubscriptionList[EventT]]:
        """|coro|

        Waits for an event to be dispatched.

        This function returns the **first event that meets the requirements**.

        Examples
        --------

        Waiting for a user reply: ::

            @client.on(snowcord.MessageCreateEvent)
            async def on_message_create(event):
                message = event.message
                if message.content.startswith('$greet'):
                    channel = message.channel
                    await channel.send('Say hello!')

                    def check(event):
                        return event.message.content == 'hello' and event.message.channel_id == channel.id

                    msg = await client.wait_for(snowcord.MessageCreateEvent, check=check)
                    await channel.send(f'Hello {msg.message.author.user}!')

        Parameters
        ------------
        event: Type[EventT]
            The event to wait for.
        check: Optional[Callable[[EventT], :class:`bool`]]
            A predicate to check what to wait for.
        count: :class:`int`
            How many events to wait for. Defaults to ``1``.
        timeout: Optional[:class:`float`]
            The number of seconds to wait before timing out and raising
            :exc:`asyncio.TimeoutError`.

        Raises
        -------
        TypeError
            If ``count`` parameter was negative or zero.
        asyncio.TimeoutError
            If a timeout is provided and it was reached.

        Returns
        --------
        Union[:class:`TemporarySubscription`, :class:`TemporarySubscriptionList`]
            The subscription. This can be ``await``'ed.
        """

        if count <= 0:
            raise TypeError('Cannot wait for zero events')

        if check is None:
            check = lambda _, /: True

        sub: typing.Union[TemporarySubscription[EventT], TemporarySubscriptionList[EventT]]
        if count > 1:
            sub = TemporarySubscriptionList(
                dispatcher=self,
                expected=count,
                id=self._get_i(),
                event=event,
                check=check,
                timeout=timeout,
            )
        else:
            future = asyncio.get_running_loop().create_future()
            sub = TemporarySubscription(
                dispatcher=self,
                id=self._get_i(),
                event=event,
                future=future,
                check=check,
                coro=self._wait_for_future(event, future, timeout),
            )

        try:
            self._handlers[event][1][sub.id] = sub  # type: ignore
        except KeyError:
            self._handlers[event] = ({}, {sub.id: sub})  # type: ignore
        return sub

    async def _wait_for_future(
        self, event: type[EventT], future: asyncio.Future[EventT], timeout: typing.Optional[float], /
    ) -> EventT:
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            for handlers in self._handlers.get(event, _DEFAULT_HANDLERS)[1:]:
                for k, v in list(handlers.items()):
                    if getattr(v, 'future', None) is future:
                        handlers.pop(k, None)

    def all_subscriptions(self) -> list[EventSubscription[BaseEvent]]:
        """List[EventSubscription[:class:`BaseEvent`]]: Returns all event subscriptions."""
        ret = []
        for _, v in self._handlers.items():
            ret.extend(v[0].values())
        return ret

    def subscriptions_for(
        self, event: type[EventT], /, *, include_subclasses: bool = False
    ) -> list[EventSubscription[EventT]]:
        """List[EventSubscription[EventT]]: Returns the subscriptions for event.

        Parameters
        ----------
        event: Type[EventT]
            The event to get subscriptions to.
        include_subclasses: class:`bool`
            Whether to include subclassed events. Defaults to ``False``.
        """
        if include_subclasses:
            ret = []
            for k, v in self._handlers.items():
                if issubclass(k, event):
                    ret.extend(v[0].values())
            return ret

        try:
            return list(self._handlers[event][0].values())  # type: ignore
        except KeyError:
            return []


__all__ = (
    'EventSubscription',
    'TemporarySubscription',
    'TemporarySubscriptionListIterator',
    'TemporarySubscriptionList',
    'Dispatcher',
)
