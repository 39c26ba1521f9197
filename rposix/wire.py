"""The rposix wire schema

Every message on the connection is a frame: a fixed-size header giving the frame's
kind, the method it's for, the id which pairs a response with its request, and the
length of the body which follows. The body of a request or response frame is one of
the messages below.

Each message is a packed C struct (see `rposix._raw`), sometimes followed by
variable-length data (a send buffer, a received buffer, an option value) whose length
is given in the struct. Integers are in the byte order of the platform; both ends are
assumed to agree on it.

These are plain data; the conversion between these wire values and the values that
users work with lives with those values, in `rposix.sys.socket` and `rposix.time`.

"""
from __future__ import annotations
from rposix._raw import ffi
from rposix.near.sysif import MalformedMessage
from rposix.struct import Struct
from rposix.sys.syscall import SYS
from dataclasses import dataclass, field
import enum
import socket
import typing as t

__all__ = [
    "FRAME",
    "SOCKADDR",
    "FrameHeader",
    "Frame",
    "WireSockaddrIn",
    "WireSockaddrIn6",
    "WireSockaddrUnrecognized",
    "WireSockaddr",
    "WireTimeval",
    "Message",
    "Response",
    "SocketRequest",
    "FdRequest",
    "SockaddrRequest",
    "ListenRequest",
    "SendRequest",
    "RecvRequest",
    "GetSockOptRequest",
    "SetSockOptRequest",
    "SetSockOptIntRequest",
    "SetSockOptTimevalRequest",
    "RetResponse",
    "SockaddrResponse",
    "BufResponse",
    "IntResponse",
    "TimevalResponse",
    "MESSAGES",
]

class FRAME(enum.IntEnum):
    REQUEST = 1
    RESPONSE = 2
    # keepalive probes; the body is empty
    PING = 3
    PONG = 4

class SOCKADDR(enum.IntEnum):
    "The tag saying which member of struct rposix_sockaddr is present"
    NONE = 0
    IN = 1
    IN6 = 2

def _cast(ctype: str, data: bytes) -> t.Any:
    size = ffi.sizeof(ctype)
    if len(data) < size:
        raise MalformedMessage("data too small for", ctype, "need", size, "got", len(data))
    return ffi.cast(ctype + '*', ffi.from_buffer(data))

def _trailer(data: bytes, offset: int, length: int) -> bytes:
    if len(data) != offset + length:
        raise MalformedMessage("message should have", length, "trailing bytes, but has", len(data) - offset)
    return data[offset:]

#### Framing ####

@dataclass(frozen=True)
class FrameHeader(Struct):
    kind: FRAME
    method: int
    id: int
    length: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new('struct rposix_frame*', {
            "kind": self.kind,
            "method": self.method,
            "id": self.id,
            "length": self.length,
        })))

    T = t.TypeVar('T', bound='FrameHeader')
    @classmethod
    def from_bytes(cls: t.Type[T], data: bytes) -> T:
        struct = _cast('struct rposix_frame', data)
        try:
            kind = FRAME(struct.kind)
        except ValueError:
            raise MalformedMessage("unknown frame kind", struct.kind) from None
        return cls(kind, struct.method, struct.id, struct.length)

    @classmethod
    def sizeof(cls) -> int:
        return ffi.sizeof('struct rposix_frame')

@dataclass
class Frame:
    kind: FRAME
    method: int
    id: int
    body: bytes = b""

    def to_bytes(self) -> bytes:
        return FrameHeader(self.kind, self.method, self.id, len(self.body)).to_bytes() + self.body

#### Values embedded in messages ####

@dataclass(frozen=True)
class WireSockaddrIn:
    port: int
    addr: bytes
    family: int = socket.AF_INET

@dataclass(frozen=True)
class WireSockaddrIn6:
    port: int
    addr: bytes
    scope_id: int = 0
    flowinfo: int = 0
    family: int = socket.AF_INET6

@dataclass(frozen=True)
class WireSockaddrUnrecognized:
    """A socket address whose tag we don't know

    We still decode it, so that whoever interprets it can say what it was.
    """
    kind: int

WireSockaddr = t.Union[WireSockaddrIn, WireSockaddrIn6, WireSockaddrUnrecognized]

def _sockaddr_to_cffi(addr: t.Optional[WireSockaddr]) -> t.Dict[str, t.Any]:
    if addr is None:
        return {"kind": SOCKADDR.NONE}
    elif isinstance(addr, WireSockaddrIn):
        return {"kind": SOCKADDR.IN, "u": {"in4": {
            "family": addr.family,
            "port": addr.port,
            "addr": list(addr.addr),
        }}}
    elif isinstance(addr, WireSockaddrIn6):
        return {"kind": SOCKADDR.IN6, "u": {"in6": {
            "family": addr.family,
            "port": addr.port,
            "flowinfo": addr.flowinfo,
            "scope_id": addr.scope_id,
            "addr": list(addr.addr),
        }}}
    else:
        return {"kind": addr.kind}

def _sockaddr_from_cffi(struct: t.Any) -> t.Optional[WireSockaddr]:
    if struct.kind == SOCKADDR.NONE:
        return None
    elif struct.kind == SOCKADDR.IN:
        in4 = struct.u.in4
        return WireSockaddrIn(in4.port, bytes(ffi.buffer(in4.addr)), in4.family)
    elif struct.kind == SOCKADDR.IN6:
        in6 = struct.u.in6
        return WireSockaddrIn6(in6.port, bytes(ffi.buffer(in6.addr)),
                               in6.scope_id, in6.flowinfo, in6.family)
    else:
        return WireSockaddrUnrecognized(struct.kind)

@dataclass(frozen=True)
class WireTimeval:
    seconds: int
    microseconds: int

    def _to_cffi_dict(self) -> t.Dict[str, int]:
        return {
            "seconds": self.seconds,
            "microseconds": self.microseconds,
        }

    @classmethod
    def from_cffi(cls, cffi_value: t.Any) -> WireTimeval:
        return cls(cffi_value.seconds, cffi_value.microseconds)

#### Messages ####

class Message(Struct):
    "A request or response body; the fixed-size part is the C struct named by `ctype`"
    ctype: t.ClassVar[str]

    @classmethod
    def sizeof(cls) -> int:
        return ffi.sizeof(cls.ctype)

@dataclass
class SocketRequest(Message):
    ctype = 'struct rposix_socket_request'
    domain: int
    type: int
    protocol: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "domain": self.domain, "type": self.type, "protocol": self.protocol,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> SocketRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.domain, struct.type, struct.protocol)

@dataclass
class FdRequest(Message):
    "Used by every method whose only argument is a file descriptor: accept, close, getsockname"
    ctype = 'struct rposix_fd_request'
    fd: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {"fd": self.fd})))

    @classmethod
    def from_bytes(cls, data: bytes) -> FdRequest:
        return cls(_cast(cls.ctype, data).fd)

@dataclass
class SockaddrRequest(Message):
    "Used by bind and connect"
    ctype = 'struct rposix_sockaddr_request'
    sockfd: int
    addr: t.Optional[WireSockaddr]

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "addr": _sockaddr_to_cffi(self.addr),
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> SockaddrRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, _sockaddr_from_cffi(struct.addr))

@dataclass
class ListenRequest(Message):
    ctype = 'struct rposix_listen_request'
    sockfd: int
    backlog: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "backlog": self.backlog,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> ListenRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, struct.backlog)

@dataclass
class SendRequest(Message):
    "Used by send, with no dest_addr, and by sendto"
    ctype = 'struct rposix_send_request'
    sockfd: int
    buf: bytes
    flags: int
    dest_addr: t.Optional[WireSockaddr] = None

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd,
            "flags": self.flags,
            "dest_addr": _sockaddr_to_cffi(self.dest_addr),
            "buflen": len(self.buf),
        }))) + self.buf

    @classmethod
    def from_bytes(cls, data: bytes) -> SendRequest:
        struct = _cast(cls.ctype, data)
        buf = _trailer(data, cls.sizeof(), struct.buflen)
        return cls(struct.sockfd, buf, struct.flags, _sockaddr_from_cffi(struct.dest_addr))

@dataclass
class RecvRequest(Message):
    ctype = 'struct rposix_recv_request'
    sockfd: int
    len: int
    flags: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "len": self.len, "flags": self.flags,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> RecvRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, struct.len, struct.flags)

@dataclass
class GetSockOptRequest(Message):
    "Used by all the getsockopt methods; optlen only matters for the raw-bytes one"
    ctype = 'struct rposix_getsockopt_request'
    sockfd: int
    level: int
    optname: int
    optlen: int = 0

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "level": self.level,
            "optname": self.optname, "optlen": self.optlen,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> GetSockOptRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, struct.level, struct.optname, struct.optlen)

@dataclass
class SetSockOptRequest(Message):
    ctype = 'struct rposix_setsockopt_request'
    sockfd: int
    level: int
    optname: int
    optval: bytes

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "level": self.level,
            "optname": self.optname, "optlen": len(self.optval),
        }))) + self.optval

    @classmethod
    def from_bytes(cls, data: bytes) -> SetSockOptRequest:
        struct = _cast(cls.ctype, data)
        optval = _trailer(data, cls.sizeof(), struct.optlen)
        return cls(struct.sockfd, struct.level, struct.optname, optval)

@dataclass
class SetSockOptIntRequest(Message):
    ctype = 'struct rposix_setsockopt_int_request'
    sockfd: int
    level: int
    optname: int
    intval: int

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "level": self.level,
            "optname": self.optname, "intval": self.intval,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> SetSockOptIntRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, struct.level, struct.optname, struct.intval)

@dataclass
class SetSockOptTimevalRequest(Message):
    ctype = 'struct rposix_setsockopt_timeval_request'
    sockfd: int
    level: int
    optname: int
    timeval: WireTimeval

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "sockfd": self.sockfd, "level": self.level,
            "optname": self.optname, "timeval": self.timeval._to_cffi_dict(),
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> SetSockOptTimevalRequest:
        struct = _cast(cls.ctype, data)
        return cls(struct.sockfd, struct.level, struct.optname, WireTimeval.from_cffi(struct.timeval))

@dataclass
class Response(Message):
    """The common prefix of every response: the syscall's return value and errno

    For socket and accept, `ret` is the new file descriptor. The payload fields of
    subclasses have defaults, so that any response class can be constructed from just
    a failed return value and errno.

    """
    ret: int
    errno: int

@dataclass
class RetResponse(Response):
    ctype = 'struct rposix_ret_response'

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {"ret": self.ret, "errno_": self.errno})))

    @classmethod
    def from_bytes(cls, data: bytes) -> RetResponse:
        struct = _cast(cls.ctype, data)
        return cls(struct.ret, struct.errno_)

@dataclass
class SockaddrResponse(Response):
    "Used by accept and getsockname"
    ctype = 'struct rposix_sockaddr_response'
    addr: t.Optional[WireSockaddr] = None

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "ret": self.ret, "errno_": self.errno, "addr": _sockaddr_to_cffi(self.addr),
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> SockaddrResponse:
        struct = _cast(cls.ctype, data)
        return cls(struct.ret, struct.errno_, _sockaddr_from_cffi(struct.addr))

@dataclass
class BufResponse(Response):
    "Used by recv and the raw-bytes getsockopt"
    ctype = 'struct rposix_buf_response'
    buf: bytes = b""

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "ret": self.ret, "errno_": self.errno, "length": len(self.buf),
        }))) + self.buf

    @classmethod
    def from_bytes(cls, data: bytes) -> BufResponse:
        struct = _cast(cls.ctype, data)
        return cls(struct.ret, struct.errno_, _trailer(data, cls.sizeof(), struct.length))

@dataclass
class IntResponse(Response):
    ctype = 'struct rposix_int_response'
    intval: int = 0

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "ret": self.ret, "errno_": self.errno, "intval": self.intval,
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> IntResponse:
        struct = _cast(cls.ctype, data)
        return cls(struct.ret, struct.errno_, struct.intval)

@dataclass
class TimevalResponse(Response):
    ctype = 'struct rposix_timeval_response'
    timeval: WireTimeval = field(default_factory=lambda: WireTimeval(0, 0))

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new(self.ctype + '*', {
            "ret": self.ret, "errno_": self.errno, "timeval": self.timeval._to_cffi_dict(),
        })))

    @classmethod
    def from_bytes(cls, data: bytes) -> TimevalResponse:
        struct = _cast(cls.ctype, data)
        return cls(struct.ret, struct.errno_, WireTimeval.from_cffi(struct.timeval))

MESSAGES: t.Dict[SYS, t.Tuple[t.Type[Message], t.Type[Response]]] = {
    SYS.accept: (FdRequest, SockaddrResponse),
    SYS.bind: (SockaddrRequest, RetResponse),
    SYS.close: (FdRequest, RetResponse),
    SYS.connect: (SockaddrRequest, RetResponse),
    SYS.getsockname: (FdRequest, SockaddrResponse),
    SYS.getsockopt: (GetSockOptRequest, BufResponse),
    SYS.getsockopt_int: (GetSockOptRequest, IntResponse),
    SYS.getsockopt_timeval: (GetSockOptRequest, TimevalResponse),
    SYS.listen: (ListenRequest, RetResponse),
    SYS.recv: (RecvRequest, BufResponse),
    SYS.send: (SendRequest, RetResponse),
    SYS.sendto: (SendRequest, RetResponse),
    SYS.setsockopt: (SetSockOptRequest, RetResponse),
    SYS.setsockopt_int: (SetSockOptIntRequest, RetResponse),
    SYS.setsockopt_timeval: (SetSockOptTimevalRequest, RetResponse),
    SYS.socket: (SocketRequest, RetResponse),
}

#### Tests ####
from unittest import TestCase
class TestWire(TestCase):
    def test_frame_header(self) -> None:
        initial = FrameHeader(FRAME.RESPONSE, SYS.accept, 7, 123)
        self.assertEqual(FrameHeader.from_bytes(initial.to_bytes()), initial)
        self.assertEqual(len(initial.to_bytes()), FrameHeader.sizeof())

    def test_unknown_frame_kind(self) -> None:
        data = bytearray(FrameHeader(FRAME.PING, 0, 0, 0).to_bytes())
        data[0] = 0xff
        with self.assertRaises(MalformedMessage):
            FrameHeader.from_bytes(bytes(data))

    def test_sockaddr_request(self) -> None:
        for addr in [None,
                     WireSockaddrIn(80, b'\x7f\x00\x00\x01'),
                     WireSockaddrIn6(443, bytes(range(16)), scope_id=3)]:
            initial = SockaddrRequest(5, addr)
            self.assertEqual(SockaddrRequest.from_bytes(initial.to_bytes()), initial)

    def test_unrecognized_sockaddr_survives(self) -> None:
        initial = SockaddrResponse(4, 0, WireSockaddrUnrecognized(42))
        self.assertEqual(SockaddrResponse.from_bytes(initial.to_bytes()).addr, WireSockaddrUnrecognized(42))

    def test_trailing_data(self) -> None:
        initial = SendRequest(3, b"hello", 0, WireSockaddrIn(53, b'\x01\x02\x03\x04'))
        self.assertEqual(SendRequest.from_bytes(initial.to_bytes()), initial)
        with self.assertRaises(MalformedMessage):
            SendRequest.from_bytes(initial.to_bytes()[:-1])

    def test_truncated(self) -> None:
        with self.assertRaises(MalformedMessage):
            RetResponse.from_bytes(b'\x00\x00')

    def test_failure_defaults(self) -> None:
        for _, response_cls in MESSAGES.values():
            response = response_cls(-1, 9)
            decoded = response_cls.from_bytes(response.to_bytes())
            self.assertEqual(decoded.ret, -1)
            self.assertEqual(decoded.errno, 9)
