"""The raw remote calls: each one is a single round trip to the DUT

`Task` turns each socket operation into a request, sends it through its
`RemoteCallInterface`, and turns the response back into local values. It never looks
at whether the syscall succeeded; that's the caller's business. What it returns is a
`Result`: the return code, the call-specific value, and the errno, exactly as the DUT
reported them.

What it does guarantee is that every call ends. Each one is bounded by a deadline,
either passed by the caller or the Task's default, and a call which hits its deadline
throws DeadlineExceeded. Anything else which prevents us from getting a response
throws some other TransportError. Those are never mixed into the errno, which is only
ever the errno of the syscall on the DUT.

"""
from __future__ import annotations
from rposix.errno_ import Errno
from rposix.near.sysif import RemoteCallInterface, TransportError, DeadlineExceeded
from rposix.near.types import FileDescriptor
import rposix.netinet.in_ # registers the address types sockaddr_from_wire can return
from rposix.sys.socket import Sockaddr, sockaddr_to_wire, sockaddr_from_wire
from rposix.sys.syscall import SYS
from rposix.time import Timeval, timeval_to_wire, timeval_from_wire
from rposix.wire import (
    Message, Response,
    SocketRequest, FdRequest, SockaddrRequest, ListenRequest, SendRequest, RecvRequest,
    GetSockOptRequest, SetSockOptRequest, SetSockOptIntRequest, SetSockOptTimevalRequest,
    RetResponse, SockaddrResponse, BufResponse, IntResponse, TimevalResponse, WireSockaddr,
)
import logging
import trio
import typing as t

__all__ = [
    "Result",
    "Task",
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')
class Result(t.NamedTuple, t.Generic[T]):
    """The outcome of one remote call, as reported by the DUT

    `ret` is the syscall's return code; for socket and accept, that's the new file
    descriptor. `errno` is only meaningful if the call failed, which is indicated by a
    negative `ret`; we don't check that the DUT agrees.

    """
    ret: int
    value: T
    errno: Errno

    @property
    def failed(self) -> bool:
        return self.ret < 0

def _result(response: Response, value: T) -> Result[T]:
    return Result(response.ret, value, Errno(response.errno))

def _naming(method: SYS, exn: TransportError) -> TransportError:
    "The same error, with the call it broke at the front of its args"
    named = type(exn)(method.name, *exn.args)
    named.__cause__ = exn
    return named

def _sockaddr_from_wire(method: SYS, wire: t.Optional[WireSockaddr]) -> t.Optional[Sockaddr]:
    try:
        return sockaddr_from_wire(wire)
    except TransportError as exn:
        raise _naming(method, exn)

class Task:
    "Makes remote calls on the DUT through a RemoteCallInterface, bounding each with a deadline"
    def __init__(self, sysif: RemoteCallInterface, timeout: float) -> None:
        self.sysif = sysif
        self.timeout = timeout

    def __str__(self) -> str:
        return f"Task({self.sysif})"

    R = t.TypeVar('R', bound=Response)
    async def _invoke(self, method: SYS, request: Message, response_cls: t.Type[R],
                      timeout: t.Optional[float]) -> R:
        if timeout is None:
            timeout = self.timeout
        logger.debug("%s(%s)", method.name, request)
        try:
            with trio.fail_after(timeout):
                data = await self.sysif.call(method, request.to_bytes())
            response = response_cls.from_bytes(data)
        except trio.TooSlowError:
            logger.debug("%s -/ no response within %ss", method.name, timeout)
            raise DeadlineExceeded(method.name, "got no response within", timeout) from None
        except TransportError as exn:
            logger.debug("%s -/ %s", method.name, exn)
            raise _naming(method, exn)
        except Exception as exn:
            logger.debug("%s -/ %s", method.name, exn)
            raise
        logger.debug("%s -> %s", method.name, response)
        return response

    async def accept_with_errno(
            self, sockfd: FileDescriptor, *, timeout: t.Optional[float]=None,
    ) -> Result[t.Tuple[FileDescriptor, t.Optional[Sockaddr]]]:
        response = await self._invoke(SYS.accept, FdRequest(int(sockfd)), SockaddrResponse, timeout)
        return _result(response, (FileDescriptor(response.ret), _sockaddr_from_wire(SYS.accept, response.addr)))

    async def bind_with_errno(self, sockfd: FileDescriptor, addr: Sockaddr, *,
                              timeout: t.Optional[float]=None) -> Result[None]:
        response = await self._invoke(SYS.bind, SockaddrRequest(int(sockfd), sockaddr_to_wire(addr)),
                                      RetResponse, timeout)
        return _result(response, None)

    async def close_with_errno(self, fd: FileDescriptor, *,
                               timeout: t.Optional[float]=None) -> Result[None]:
        response = await self._invoke(SYS.close, FdRequest(int(fd)), RetResponse, timeout)
        return _result(response, None)

    async def connect_with_errno(self, sockfd: FileDescriptor, addr: Sockaddr, *,
                                 timeout: t.Optional[float]=None) -> Result[None]:
        response = await self._invoke(SYS.connect, SockaddrRequest(int(sockfd), sockaddr_to_wire(addr)),
                                      RetResponse, timeout)
        return _result(response, None)

    async def getsockname_with_errno(self, sockfd: FileDescriptor, *,
                                     timeout: t.Optional[float]=None) -> Result[t.Optional[Sockaddr]]:
        response = await self._invoke(SYS.getsockname, FdRequest(int(sockfd)), SockaddrResponse, timeout)
        return _result(response, _sockaddr_from_wire(SYS.getsockname, response.addr))

    async def getsockopt_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, optlen: int, *,
                                    timeout: t.Optional[float]=None) -> Result[bytes]:
        """Get a socket option as raw bytes, at most `optlen` of them

        The bytes are in whatever width and byte order the DUT uses; prefer the int and
        timeval variants where they apply.

        """
        response = await self._invoke(SYS.getsockopt, GetSockOptRequest(int(sockfd), level, optname, optlen),
                                      BufResponse, timeout)
        return _result(response, response.buf)

    async def getsockopt_int_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, *,
                                        timeout: t.Optional[float]=None) -> Result[int]:
        response = await self._invoke(SYS.getsockopt_int, GetSockOptRequest(int(sockfd), level, optname),
                                      IntResponse, timeout)
        return _result(response, response.intval)

    async def getsockopt_timeval_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, *,
                                            timeout: t.Optional[float]=None) -> Result[Timeval]:
        response = await self._invoke(SYS.getsockopt_timeval, GetSockOptRequest(int(sockfd), level, optname),
                                      TimevalResponse, timeout)
        return _result(response, timeval_from_wire(response.timeval))

    async def listen_with_errno(self, sockfd: FileDescriptor, backlog: int, *,
                                timeout: t.Optional[float]=None) -> Result[None]:
        response = await self._invoke(SYS.listen, ListenRequest(int(sockfd), backlog), RetResponse, timeout)
        return _result(response, None)

    async def recv_with_errno(self, sockfd: FileDescriptor, length: int, flags: int, *,
                              timeout: t.Optional[float]=None) -> Result[bytes]:
        response = await self._invoke(SYS.recv, RecvRequest(int(sockfd), length, flags), BufResponse, timeout)
        return _result(response, response.buf)

    async def send_with_errno(self, sockfd: FileDescriptor, buf: bytes, flags: int, *,
                              timeout: t.Optional[float]=None) -> Result[int]:
        "The value is the number of bytes sent, which is also the return code"
        response = await self._invoke(SYS.send, SendRequest(int(sockfd), buf, flags), RetResponse, timeout)
        return _result(response, response.ret)

    async def sendto_with_errno(self, sockfd: FileDescriptor, buf: bytes, flags: int, dest_addr: Sockaddr, *,
                                timeout: t.Optional[float]=None) -> Result[int]:
        request = SendRequest(int(sockfd), buf, flags, sockaddr_to_wire(dest_addr))
        response = await self._invoke(SYS.sendto, request, RetResponse, timeout)
        return _result(response, response.ret)

    async def setsockopt_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, optval: bytes, *,
                                    timeout: t.Optional[float]=None) -> Result[None]:
        """Set a socket option from raw bytes, passed to the DUT unchanged

        See `rposix.sys.socket.optval_from_int` and `rposix.time.Timeval.to_bytes` for
        producing these bytes locally, if the DUT is known to share our layout.

        """
        response = await self._invoke(SYS.setsockopt, SetSockOptRequest(int(sockfd), level, optname, optval),
                                      RetResponse, timeout)
        return _result(response, None)

    async def setsockopt_int_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, optval: int, *,
                                        timeout: t.Optional[float]=None) -> Result[None]:
        request = SetSockOptIntRequest(int(sockfd), level, optname, optval)
        response = await self._invoke(SYS.setsockopt_int, request, RetResponse, timeout)
        return _result(response, None)

    async def setsockopt_timeval_with_errno(self, sockfd: FileDescriptor, level: int, optname: int, tv: Timeval, *,
                                            timeout: t.Optional[float]=None) -> Result[None]:
        request = SetSockOptTimevalRequest(int(sockfd), level, optname, timeval_to_wire(tv))
        response = await self._invoke(SYS.setsockopt_timeval, request, RetResponse, timeout)
        return _result(response, None)

    async def socket_with_errno(self, domain: int, type: int, protocol: int, *,
                                timeout: t.Optional[float]=None) -> Result[FileDescriptor]:
        response = await self._invoke(SYS.socket, SocketRequest(domain, type, protocol), RetResponse, timeout)
        return _result(response, FileDescriptor(response.ret))
