"""A posix server which makes the calls it's sent on the local kernel

This is the other end of `rposix.connection.PosixConnection`, standing in for the
server on a real DUT, so that tests can make real socket calls and see real results.
Each request is executed in its own task, so a blocking call (accept, recv) doesn't
hold up others on the same connection.

"""
from __future__ import annotations
from rposix.connection import FrameReader
from rposix.near.sysif import TransportError
from rposix.netinet.in_ import SockaddrIn, SockaddrIn6
from rposix.sys.socket import Sockaddr, sockaddr_to_wire, sockaddr_from_wire
from rposix.sys.syscall import SYS
from rposix.time import Timeval, timeval_to_wire, timeval_from_wire
from rposix.wire import (
    FRAME, Frame, MESSAGES, Response, WireSockaddr,
    RetResponse, SockaddrResponse, BufResponse, IntResponse, TimevalResponse,
)
import errno
import functools
import logging
import os
import socket
import trio
import typing as t

__all__ = [
    "PosixServer",
]

logger = logging.getLogger(__name__)

def _addr_to_python(wire: t.Optional[WireSockaddr]) -> t.Tuple[t.Any, ...]:
    addr = sockaddr_from_wire(wire)
    if isinstance(addr, SockaddrIn):
        return (str(addr.addr), addr.port)
    elif isinstance(addr, SockaddrIn6):
        return (str(addr.addr), addr.port, 0, addr.scope_id)
    else:
        raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))

def _addr_from_python(family: int, addr: t.Tuple[t.Any, ...]) -> Sockaddr:
    if family == socket.AF_INET:
        return SockaddrIn(addr[1], addr[0])
    elif family == socket.AF_INET6:
        # link-local addresses come back as "fe80::1%eth0"
        return SockaddrIn6(addr[1], addr[0].split('%')[0], addr[3])
    else:
        raise OSError(errno.EAFNOSUPPORT, os.strerror(errno.EAFNOSUPPORT))

class PosixServer:
    "Serves any number of connections, sharing one table of sockets between them"
    def __init__(self) -> None:
        self.sockets: t.Dict[int, trio.socket.SocketType] = {}
        self.answer_pings = True

    async def serve(self, nursery: trio.Nursery) -> int:
        "Start listening on localhost; returns the port"
        listeners = await nursery.start(functools.partial(
            trio.serve_tcp, self.handle_connection, 0, host="127.0.0.1"))
        return listeners[0].socket.getsockname()[1]

    def close(self) -> None:
        for sock in self.sockets.values():
            sock.close()
        self.sockets.clear()

    async def handle_connection(self, stream: trio.SocketStream) -> None:
        reader = FrameReader(stream)
        send_lock = trio.Lock()
        async def send(frame: Frame) -> None:
            async with send_lock:
                await stream.send_all(frame.to_bytes())
        async with trio.open_nursery() as nursery:
            try:
                while True:
                    frame = await reader.read_frame()
                    if frame.kind == FRAME.PING:
                        if self.answer_pings:
                            await send(Frame(FRAME.PONG, 0, frame.id))
                    elif frame.kind == FRAME.REQUEST:
                        nursery.start_soon(self._answer, send, frame)
            except (TransportError, trio.BrokenResourceError, trio.ClosedResourceError) as exn:
                logger.debug("posix server connection ended: %s", exn)
            nursery.cancel_scope.cancel()

    async def _answer(self, send: t.Callable[[Frame], t.Awaitable[None]], frame: Frame) -> None:
        method = SYS(frame.method)
        request_cls, response_cls = MESSAGES[method]
        request = request_cls.from_bytes(frame.body)
        try:
            response = await self._execute(method, request)
        except OSError as exn:
            response = response_cls(-1, exn.errno)
        logger.debug("%s(%s) -> %s", method.name, request, response)
        try:
            await send(Frame(FRAME.RESPONSE, method, frame.id, response.to_bytes()))
        except (trio.BrokenResourceError, trio.ClosedResourceError):
            logger.debug("posix server dropping response to %s; connection is gone", method.name)

    def _get(self, fd: int) -> trio.socket.SocketType:
        try:
            return self.sockets[fd]
        except KeyError:
            raise OSError(errno.EBADF, os.strerror(errno.EBADF)) from None

    async def _execute(self, method: SYS, req: t.Any) -> Response:
        if method == SYS.socket:
            sock = trio.socket.socket(req.domain, req.type, req.protocol)
            self.sockets[sock.fileno()] = sock
            return RetResponse(sock.fileno(), 0)
        elif method == SYS.bind:
            await self._get(req.sockfd).bind(_addr_to_python(req.addr))
            return RetResponse(0, 0)
        elif method == SYS.connect:
            await self._get(req.sockfd).connect(_addr_to_python(req.addr))
            return RetResponse(0, 0)
        elif method == SYS.listen:
            self._get(req.sockfd).listen(req.backlog)
            return RetResponse(0, 0)
        elif method == SYS.accept:
            conn, addr = await self._get(req.fd).accept()
            self.sockets[conn.fileno()] = conn
            return SockaddrResponse(conn.fileno(), 0, sockaddr_to_wire(_addr_from_python(conn.family, addr)))
        elif method == SYS.getsockname:
            sock = self._get(req.fd)
            return SockaddrResponse(0, 0, sockaddr_to_wire(_addr_from_python(sock.family, sock.getsockname())))
        elif method == SYS.close:
            sock = self.sockets.pop(req.fd, None)
            if sock is None:
                raise OSError(errno.EBADF, os.strerror(errno.EBADF))
            sock.close()
            return RetResponse(0, 0)
        elif method == SYS.send:
            return RetResponse(await self._get(req.sockfd).send(req.buf, req.flags), 0)
        elif method == SYS.sendto:
            sock = self._get(req.sockfd)
            return RetResponse(await sock.sendto(req.buf, req.flags, _addr_to_python(req.dest_addr)), 0)
        elif method == SYS.recv:
            data = await self._get(req.sockfd).recv(req.len, req.flags)
            return BufResponse(len(data), 0, data)
        elif method == SYS.getsockopt:
            data = self._get(req.sockfd).getsockopt(req.level, req.optname, req.optlen)
            return BufResponse(0, 0, data)
        elif method == SYS.getsockopt_int:
            return IntResponse(0, 0, self._get(req.sockfd).getsockopt(req.level, req.optname))
        elif method == SYS.getsockopt_timeval:
            data = self._get(req.sockfd).getsockopt(req.level, req.optname, Timeval.sizeof())
            return TimevalResponse(0, 0, timeval_to_wire(Timeval.from_bytes(data)))
        elif method == SYS.setsockopt:
            self._get(req.sockfd).setsockopt(req.level, req.optname, req.optval)
            return RetResponse(0, 0)
        elif method == SYS.setsockopt_int:
            self._get(req.sockfd).setsockopt(req.level, req.optname, req.intval)
            return RetResponse(0, 0)
        elif method == SYS.setsockopt_timeval:
            self._get(req.sockfd).setsockopt(req.level, req.optname, timeval_from_wire(req.timeval).to_bytes())
            return RetResponse(0, 0)
        else:
            raise OSError(errno.ENOSYS, os.strerror(errno.ENOSYS))
