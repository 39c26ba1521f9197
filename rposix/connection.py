"""The rposix transport

Requests are written to the DUT's posix server as frames (see `rposix.wire`), each
tagged with an id; the server writes back one response frame with the same id for each
request. Responses may come back in any order, since the server may block in one
syscall (accept, say) while executing others.

So, many tasks can have calls outstanding on one connection at the same time. A single
task writes all outgoing frames, draining a channel that callers put their requests
on; another task reads all incoming frames and hands each response to the caller
waiting for it. No lock is held while a caller waits.

We also send keepalive pings, and declare the connection broken if the DUT doesn't
answer one in time, so that a DUT which dies without closing the connection doesn't
leave callers hanging.

"""
from __future__ import annotations
from rposix.near.sysif import (
    RemoteCallInterface, TransportError, TransportSendError, TransportHangup, MalformedMessage,
)
from rposix.sys.syscall import SYS
from rposix.wire import FRAME, Frame, FrameHeader
from dataclasses import dataclass, field
import logging
import math
import outcome
import trio
import typing as t

__all__ = [
    "MAX_BODY_LENGTH",
    "FrameReader",
    "PosixConnection",
    "open_connection",
]

logger = logging.getLogger(__name__)

# larger than any buffer or option value a test will send or receive in one call
MAX_BODY_LENGTH = 64 * 1024 * 1024

class FrameReader:
    "Reads whole frames off a byte stream"
    def __init__(self, stream: trio.abc.ReceiveStream, max_body_length: int=MAX_BODY_LENGTH) -> None:
        self.stream = stream
        self.max_body_length = max_body_length
        self.buf = bytearray()

    async def _read_length(self, length: int) -> bytes:
        while len(self.buf) < length:
            data = await self.stream.receive_some(4096)
            if len(data) == 0:
                raise TransportHangup("got EOF while reading a frame")
            self.buf += data
        ret = bytes(self.buf[:length])
        del self.buf[:length]
        return ret

    async def read_frame(self) -> Frame:
        header = FrameHeader.from_bytes(await self._read_length(FrameHeader.sizeof()))
        if header.length > self.max_body_length:
            raise MalformedMessage("frame claims a body of", header.length, "bytes, more than the maximum", self.max_body_length)
        body = await self._read_length(header.length)
        return Frame(header.kind, header.method, header.id, body)

@dataclass
class _Pending:
    "A call which has been queued and is waiting for its response"
    method: SYS
    event: trio.Event = field(default_factory=trio.Event)
    result: t.Optional[outcome.Outcome] = None

    def finish(self, result: outcome.Outcome) -> None:
        self.result = result
        self.event.set()

class PosixConnection(RemoteCallInterface):
    "A connection to some posix server where we can make calls"
    def __init__(self, stream: trio.abc.Stream, keepalive: t.Optional[float]=None) -> None:
        self.stream = stream
        self.keepalive = keepalive
        self.reader = FrameReader(stream)
        self.send_channel, self.receive_channel = trio.open_memory_channel(math.inf)
        self.pending: t.Dict[int, _Pending] = {}
        self.next_id = 0
        self.broken: t.Optional[BaseException] = None
        self.pong = trio.Event()
        self.cancel_scope = trio.CancelScope()
        self.started = False
        self.closed = trio.Event()

    def __str__(self) -> str:
        return f"PosixConnection({self.stream})"

    def start(self, nursery: trio.Nursery) -> None:
        "Start the background tasks which send and receive frames; calls hang until this is done"
        self.started = True
        nursery.start_soon(self._run)

    async def call(self, method: SYS, request: bytes) -> bytes:
        if self.broken is not None:
            raise TransportHangup("connection to the DUT is already broken") from self.broken
        id = self.next_id
        self.next_id = (self.next_id + 1) % 2**32
        pending = _Pending(method)
        self.pending[id] = pending
        try:
            self.send_channel.send_nowait(Frame(FRAME.REQUEST, method, id, request))
            await pending.event.wait()
        finally:
            # if we were cancelled, the response is dropped when it arrives
            self.pending.pop(id, None)
        assert pending.result is not None
        return pending.result.unwrap()

    async def close_interface(self) -> None:
        self._break(TransportHangup("connection closed locally"))
        if self.started:
            await self.closed.wait()
        else:
            await trio.aclose_forcefully(self.stream)

    def _break(self, reason: BaseException) -> None:
        "Mark this connection broken, failing every pending call, and stop the background tasks"
        if self.broken is None:
            logger.debug("%s broken: %s", self, reason)
            self.broken = reason
        for pending in self.pending.values():
            hangup = TransportHangup("connection to the DUT broke while waiting for a response")
            hangup.__cause__ = self.broken
            pending.finish(outcome.Error(hangup))
        self.pending.clear()
        self.cancel_scope.cancel()

    async def _run(self) -> None:
        try:
            with self.cancel_scope:
                async with trio.open_nursery() as nursery:
                    nursery.start_soon(self._run_requests)
                    nursery.start_soon(self._run_responses)
                    if self.keepalive is not None:
                        nursery.start_soon(self._run_keepalive)
        finally:
            self._break(TransportHangup("connection background tasks exited"))
            with trio.CancelScope(shield=True):
                await trio.aclose_forcefully(self.stream)
            self.closed.set()

    async def _run_requests(self) -> None:
        async for frame in self.receive_channel:
            logger.debug("%s sending frame: %s %s %s", self, frame.kind.name, frame.id, frame.method)
            try:
                await self.stream.send_all(frame.to_bytes())
            except (trio.BrokenResourceError, trio.ClosedResourceError) as send_error:
                exn = TransportSendError("failed to send frame to the DUT")
                exn.__cause__ = send_error
                pending = self.pending.pop(frame.id, None) if frame.kind == FRAME.REQUEST else None
                if pending is not None:
                    pending.finish(outcome.Error(exn))
                self._break(exn)
                return

    async def _run_responses(self) -> None:
        try:
            while True:
                frame = await self.reader.read_frame()
                if frame.kind == FRAME.RESPONSE:
                    self._dispatch_response(frame)
                elif frame.kind == FRAME.PONG:
                    logger.debug("%s got keepalive response %s", self, frame.id)
                    self.pong.set()
                elif frame.kind == FRAME.PING:
                    self.send_channel.send_nowait(Frame(FRAME.PONG, 0, frame.id))
                else:
                    raise MalformedMessage("the DUT sent us a frame we only send", frame.kind)
        except (TransportError, trio.BrokenResourceError, trio.ClosedResourceError) as exn:
            self._break(exn)

    def _dispatch_response(self, frame: Frame) -> None:
        pending = self.pending.pop(frame.id, None)
        if pending is None:
            logger.debug("%s dropping response to abandoned call %s %s", self, frame.id, frame.method)
        elif pending.method != frame.method:
            pending.finish(outcome.Error(MalformedMessage(
                "response for call", frame.id, "is for method", frame.method, "but the call was", pending.method)))
        else:
            pending.finish(outcome.Value(frame.body))

    async def _run_keepalive(self) -> None:
        assert self.keepalive is not None
        ping_id = 0
        while True:
            await trio.sleep(self.keepalive)
            self.pong = trio.Event()
            logger.debug("%s sending keepalive %s", self, ping_id)
            self.send_channel.send_nowait(Frame(FRAME.PING, 0, ping_id))
            ping_id = (ping_id + 1) % 2**32
            with trio.move_on_after(self.keepalive):
                await self.pong.wait()
            if not self.pong.is_set():
                self._break(TransportHangup("no keepalive response from the DUT within", self.keepalive))
                return

async def open_connection(nursery: trio.Nursery, host: str, port: int,
                          keepalive: t.Optional[float]=None) -> PosixConnection:
    "Connect to the posix server at host:port, running the connection's background tasks in `nursery`"
    stream = await trio.open_tcp_stream(host, port)
    connection = PosixConnection(stream, keepalive)
    connection.start(nursery)
    return connection
