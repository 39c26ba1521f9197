"`#include <sys/socket.h>`"
from __future__ import annotations
from rposix.near.sysif import MalformedMessage
from rposix.struct import Int32
from rposix.wire import WireSockaddr, WireSockaddrUnrecognized
import abc
import enum
import socket
import typing as t

__all__ = [
    "AF",
    "SOCK",
    "SOL",
    "SO",
    "MSG",
    "Sockaddr",
    "UnknownAddressFamily",
    "sockaddr_to_wire",
    "sockaddr_from_wire",
    "optval_from_int",
    "optval_to_int",
]

class AF(enum.IntEnum):
    UNSPEC = socket.AF_UNSPEC
    UNIX = socket.AF_UNIX
    INET = socket.AF_INET
    INET6 = socket.AF_INET6

class SOCK(enum.IntFlag):
    NONE = 0
    # socket kinds
    DGRAM = socket.SOCK_DGRAM
    STREAM = socket.SOCK_STREAM
    SEQPACKET = socket.SOCK_SEQPACKET
    RAW = socket.SOCK_RAW
    # flags that can be or'd in
    CLOEXEC = socket.SOCK_CLOEXEC
    NONBLOCK = socket.SOCK_NONBLOCK

class MSG(enum.IntFlag):
    NONE = 0
    # send flags
    CONFIRM = socket.MSG_CONFIRM
    DONTROUTE = socket.MSG_DONTROUTE
    EOR = socket.MSG_EOR
    MORE = socket.MSG_MORE
    NOSIGNAL = socket.MSG_NOSIGNAL
    # recv flags
    ERRQUEUE = socket.MSG_ERRQUEUE
    PEEK = socket.MSG_PEEK
    TRUNC = socket.MSG_TRUNC
    WAITALL = socket.MSG_WAITALL
    # both
    DONTWAIT = socket.MSG_DONTWAIT
    OOB = socket.MSG_OOB

class SOL(enum.IntEnum):
    """Stands for Sock Opt Level

    This is what should be passed as the "level" argument to
    getsockopt/setsockopt.

    """
    SOCKET = socket.SOL_SOCKET
    IP = socket.IPPROTO_IP
    IPV6 = socket.IPPROTO_IPV6
    TCP = socket.IPPROTO_TCP
    UDP = socket.IPPROTO_UDP

class SO(enum.IntEnum):
    ACCEPTCONN = socket.SO_ACCEPTCONN
    BINDTODEVICE = socket.SO_BINDTODEVICE
    BROADCAST = socket.SO_BROADCAST
    DEBUG = socket.SO_DEBUG
    DOMAIN = socket.SO_DOMAIN
    ERROR = socket.SO_ERROR
    DONTROUTE = socket.SO_DONTROUTE
    KEEPALIVE = socket.SO_KEEPALIVE
    LINGER = socket.SO_LINGER
    OOBINLINE = socket.SO_OOBINLINE
    PASSCRED = socket.SO_PASSCRED
    PEERCRED = socket.SO_PEERCRED
    PROTOCOL = socket.SO_PROTOCOL
    RCVBUF = socket.SO_RCVBUF
    RCVLOWAT = socket.SO_RCVLOWAT
    SNDLOWAT = socket.SO_SNDLOWAT
    RCVTIMEO = socket.SO_RCVTIMEO
    SNDTIMEO = socket.SO_SNDTIMEO
    REUSEADDR = socket.SO_REUSEADDR
    REUSEPORT = socket.SO_REUSEPORT
    SNDBUF = socket.SO_SNDBUF
    TYPE = socket.SO_TYPE

class UnknownAddressFamily(MalformedMessage):
    "The DUT sent us a socket address of a kind we don't know how to represent."
    pass

wire_to_class: t.Dict[t.Type[WireSockaddr], t.Type[Sockaddr]] = {}
def _register_sockaddr(sockaddr: t.Type[Sockaddr]) -> None:
    if sockaddr.wire_type in wire_to_class:
        raise Exception("tried to register sockaddr", sockaddr, "for wire type", sockaddr.wire_type,
                        "but there's already a class registered for that wire type:",
                        wire_to_class[sockaddr.wire_type])
    wire_to_class[sockaddr.wire_type] = sockaddr

class Sockaddr:
    """A socket address which we can pass to or receive from the DUT

    This is not useful on its own; you want the derived classes, `SockaddrIn` and
    `SockaddrIn6` in `rposix.netinet.in_`. Each one knows how to convert itself to its
    wire form, and registers the wire form it accepts back.

    """
    family: t.ClassVar[AF]
    wire_type: t.ClassVar[t.Type[WireSockaddr]]

    @abc.abstractmethod
    def to_wire(self) -> WireSockaddr:
        pass

    T = t.TypeVar('T', bound='Sockaddr')
    @classmethod
    def from_wire(cls: t.Type[T], wire: t.Any) -> T:
        raise NotImplementedError("from_wire not implemented on", cls)

    @classmethod
    def check_family(cls, family: int) -> None:
        if cls.family != family:
            raise MalformedMessage("sa_family should be", cls.family, "is instead", family)

def sockaddr_to_wire(addr: Sockaddr) -> WireSockaddr:
    "Convert a local socket address to the form the DUT expects"
    return addr.to_wire()

def sockaddr_from_wire(wire: t.Optional[WireSockaddr]) -> t.Optional[Sockaddr]:
    """Convert a socket address received from the DUT to a local socket address

    Failed accept and getsockname calls carry no address, which we return as None. Any
    address we can't represent is a malformed response, not a syscall failure.

    """
    if wire is None:
        return None
    if isinstance(wire, WireSockaddrUnrecognized):
        raise UnknownAddressFamily("unknown socket address kind", wire.kind)
    cls = wire_to_class.get(type(wire))
    if cls is None:
        raise UnknownAddressFamily("no socket address registered for", type(wire))
    return cls.from_wire(wire)

def optval_from_int(val: int) -> bytes:
    "Encode an int as the bytes of a C int, for setting integer options through the raw-bytes setsockopt"
    return Int32(val).to_bytes()

def optval_to_int(data: bytes) -> int:
    "Decode the bytes returned by the raw-bytes getsockopt for an integer option"
    return int(Int32.from_bytes(data))
