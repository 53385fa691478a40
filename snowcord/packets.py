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

from enum import IntEnum
import typing
import zlib

from attrs import define, field

from . import utils
from .errors import InvalidData

if typing.TYPE_CHECKING:
    from . import raw
    from .flags import Intents


ZLIB_SUFFIX: typing.Final[bytes] = b'\x00\x00\xff\xff'


class OpCode(IntEnum):
    """The gateway opcodes."""

    dispatch = 0
    heartbeat = 1
    identify = 2
    presence = 3
    resume = 6
    reconnect = 7
    request_members = 8
    invalid_session = 9
    hello = 10
    heartbeat_ack = 11


@define(slots=True)
class Packet:
    """Represents a decoded gateway frame."""

    op: typing.Union[OpCode, int] = field(repr=True, kw_only=True)
    """Union[:class:`.OpCode`, :class:`int`]: The opcode. Unknown opcodes are kept as plain :class:`int`."""

    data: typing.Any = field(repr=False, default=None, kw_only=True)
    """Any: The payload."""

    sequence: typing.Optional[int] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`int`]: The sequence number. Only set for dispatch packets."""

    event_name: typing.Optional[str] = field(repr=True, default=None, kw_only=True)
    """Optional[:class:`str`]: The event name. Only set for dispatch packets."""

    def is_known(self) -> bool:
        """:class:`bool`: Whether the opcode is one this library understands."""
        return isinstance(self.op, OpCode)


class PacketDecoder:
    """Parses raw gateway frames into :class:`.Packet` objects.

    Parameters
    ----------
    compress: :class:`bool`
        Whether binary frames are parts of a zlib stream. Defaults to ``False``.
    """

    __slots__ = (
        'compress',
        '_buffer',
        '_inflator',
    )

    def __init__(self, *, compress: bool = False) -> None:
        self.compress: bool = compress
        self._buffer: bytearray = bytearray()
        self._inflator = zlib.decompressobj()

    def reset(self) -> None:
        """Resets the zlib stream. Must be called for every new connection."""
        self._buffer = bytearray()
        self._inflator = zlib.decompressobj()

    def decode(self, frame: typing.Union[str, bytes], /) -> typing.Optional[Packet]:
        """Decodes a frame.

        Parameters
        ----------
        frame: Union[:class:`str`, :class:`bytes`]
            The raw frame.

        Raises
        ------
        :class:`InvalidData`
            The frame is malformed.

        Returns
        -------
        Optional[:class:`.Packet`]
            The decoded packet, or ``None`` if the frame is an incomplete part of zlib stream.
        """
        if isinstance(frame, (bytes, bytearray)):
            if self.compress:
                self._buffer.extend(frame)
                if len(frame) < 4 or frame[-4:] != ZLIB_SUFFIX:
                    return None
                try:
                    text = self._inflator.decompress(self._buffer).decode('utf-8')
                except (zlib.error, UnicodeDecodeError) as exc:
                    self._buffer = bytearray()
                    raise InvalidData(f'Bad compressed frame: {exc}') from exc
                self._buffer = bytearray()
            else:
                try:
                    text = bytes(frame).decode('utf-8')
                except UnicodeDecodeError as exc:
                    raise InvalidData(f'Bad binary frame: {exc}') from exc
        else:
            text = frame

        try:
            payload = utils.from_json(text)
        except ValueError as exc:
            raise InvalidData(f'Frame is not JSON: {exc}') from exc

        return self.parse(payload)

    def parse(self, payload: typing.Any, /) -> Packet:
        """Validates an already deserialized frame envelope.

        Raises
        ------
        :class:`InvalidData`
            The envelope is malformed.
        """
        if not isinstance(payload, dict):
            raise InvalidData(f'Expected object envelope, got {type(payload).__name__}')

        try:
            op = payload['op']
        except KeyError:
            raise InvalidData('Envelope is missing opcode') from None

        if not isinstance(op, int) or isinstance(op, bool):
            raise InvalidData(f'Opcode must be integer, got {op!r}')

        try:
            op = OpCode(op)
        except ValueError:
            # Unknown opcodes are not errors
            return Packet(op=op, data=payload.get('d'))

        data = payload.get('d')
        sequence = payload.get('s')
        if sequence is not None and (not isinstance(sequence, int) or isinstance(sequence, bool)):
            raise InvalidData(f'Sequence must be integer, got {sequence!r}')

        if op is OpCode.dispatch:
            event_name = payload.get('t')
            if not isinstance(event_name, str):
                raise InvalidData('Dispatch packet is missing event name')
            return Packet(op=op, data=data, sequence=sequence, event_name=event_name)

        if op is OpCode.hello:
            if not isinstance(data, dict):
                raise InvalidData('Hello packet is missing payload')
            interval = data.get('heartbeat_interval')
            if not isinstance(interval, (int, float)) or isinstance(interval, bool) or interval <= 0:
                raise InvalidData(f'Hello packet has invalid heartbeat interval: {interval!r}')

        elif op is OpCode.invalid_session:
            data = bool(data)

        return Packet(op=op, data=data)


def encode(op: OpCode, data: typing.Any, /) -> str:
    """Serializes an outbound frame."""
    return utils.to_json({'op': int(op), 'd': data})


def identify_payload(
    token: str,
    shard_id: int,
    shard_count: int,
    intents: Intents,
    /,
    *,
    large_threshold: int = 250,
    presence: typing.Optional[raw.PresenceUpdate] = None,
    properties: typing.Optional[dict[str, str]] = None,
    compress: bool = False,
) -> raw.Identify:
    if properties is None:
        properties = {
            'os': 'linux',
            'browser': 'snowcord',
            'device': 'snowcord',
        }
    payload: raw.Identify = {
        'token': token,
        'properties': properties,
        'compress': compress,
        'large_threshold': large_threshold,
        'shard': [shard_id, shard_count],
        'intents': intents.value,
    }
    if presence is not None:
        payload['presence'] = presence
    return payload


def resume_payload(token: str, session_id: str, sequence: typing.Optional[int], /) -> raw.Resume:
    return {
        'token': token,
        'session_id': session_id,
        'seq': sequence,
    }


def heartbeat_payload(sequence: typing.Optional[int], /) -> typing.Optional[int]:
    return sequence


def request_members_payload(
    server_id: int, /, *, query: str = '', limit: int = 0, nonce: typing.Optional[str] = None
) -> raw.RequestMembers:
    payload: raw.RequestMembers = {
        'guild_id': str(server_id),
        'query': query,
        'limit': limit,
    }
    if nonce is not None:
        payload['nonce'] = nonce
    return payload


def presence_payload(
    status: str,
    /,
    *,
    activity: typing.Optional[raw.Activity] = None,
    afk: bool = False,
    since: typing.Optional[int] = None,
) -> raw.PresenceUpdate:
    return {
        'since': since,
        'activities': [] if activity is None else [activity],
        'status': status,
        'afk': afk,
    }


__all__ = (
    'ZLIB_SUFFIX',
    'OpCode',
    'Packet',
    'PacketDecoder',
    'encode',
    'identify_payload',
    'resume_payload',
    'heartbeat_payload',
    'request_members_payload',
    'presence_payload',
)
