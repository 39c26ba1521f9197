"`#include <netinet/in.h>`"
from __future__ import annotations
from rposix.sys.socket import Sockaddr, AF, _register_sockaddr
from rposix.wire import WireSockaddrIn, WireSockaddrIn6
import ipaddress
import typing as t
from dataclasses import dataclass

__all__ = [
    'SockaddrIn',
    'SockaddrIn6',
]

@dataclass(frozen=True)
class SockaddrIn(Sockaddr):
    """Representation of struct sockaddr_in

    The port is in totally-normal host byte order, even though with the real
    struct sockaddr_in, the port (and address) would be in network byte
    order. That's just an encoding quirk of C, not something we want to copy.

    """
    port: int
    addr: ipaddress.IPv4Address
    family = AF.INET
    wire_type = WireSockaddrIn
    def __init__(self, port: int, addr: t.Union[str, int, bytes, ipaddress.IPv4Address]) -> None:
        # the dataclass is frozen so we have to use __setattr__
        object.__setattr__(self, 'port', port)
        object.__setattr__(self, 'addr', ipaddress.IPv4Address(addr))

    def to_wire(self) -> WireSockaddrIn:
        return WireSockaddrIn(self.port, self.addr.packed, AF.INET)

    T = t.TypeVar('T', bound='SockaddrIn')
    @classmethod
    def from_wire(cls: t.Type[T], wire: WireSockaddrIn) -> T:
        cls.check_family(wire.family)
        return cls(wire.port, wire.addr)

    def addr_as_string(self) -> str:
        "Returns the addr portion of this address in 127.0.0.1 form"
        return str(self.addr)

    def __str__(self) -> str:
        return f"SockaddrIn({self.addr_as_string()}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
_register_sockaddr(SockaddrIn)


@dataclass(frozen=True)
class SockaddrIn6(Sockaddr):
    """Representation of struct sockaddr_in6

    We don't carry a flow label; it's always sent to the DUT as 0, and ignored when
    received.

    """
    port: int
    addr: ipaddress.IPv6Address
    scope_id: int
    family = AF.INET6
    wire_type = WireSockaddrIn6
    def __init__(self, port: int, addr: t.Union[str, int, bytes, ipaddress.IPv6Address],
                 scope_id: int=0) -> None:
        object.__setattr__(self, 'port', port)
        object.__setattr__(self, 'addr', ipaddress.IPv6Address(addr))
        object.__setattr__(self, 'scope_id', scope_id)

    def to_wire(self) -> WireSockaddrIn6:
        return WireSockaddrIn6(self.port, self.addr.packed, self.scope_id, 0, AF.INET6)

    T = t.TypeVar('T', bound='SockaddrIn6')
    @classmethod
    def from_wire(cls: t.Type[T], wire: WireSockaddrIn6) -> T:
        cls.check_family(wire.family)
        return cls(wire.port, wire.addr, wire.scope_id)

    def __str__(self) -> str:
        if self.scope_id:
            return f"SockaddrIn6([{self.addr}%{self.scope_id}]:{self.port})"
        return f"SockaddrIn6([{self.addr}]:{self.port})"

    def __repr__(self) -> str:
        return str(self)
_register_sockaddr(SockaddrIn6)


#### Tests ####
from unittest import TestCase
from rposix.near.sysif import MalformedMessage
from rposix.sys.socket import sockaddr_to_wire, sockaddr_from_wire, UnknownAddressFamily
from rposix.wire import WireSockaddrUnrecognized
class TestIn(TestCase):
    def test_sockaddrin(self) -> None:
        for initial in [SockaddrIn(42, "127.0.0.1"), SockaddrIn(0, "0.0.0.0"),
                        SockaddrIn(65535, "255.255.255.255")]:
            self.assertEqual(sockaddr_from_wire(sockaddr_to_wire(initial)), initial)

    def test_sockaddrin6(self) -> None:
        for initial in [SockaddrIn6(42, "34:12::19:9a"), SockaddrIn6(443, "::1"),
                        SockaddrIn6(1, "fe80::1", scope_id=7)]:
            self.assertEqual(sockaddr_from_wire(sockaddr_to_wire(initial)), initial)

    def test_flowinfo_is_zero(self) -> None:
        wire = sockaddr_to_wire(SockaddrIn6(80, "fe80::2", scope_id=2))
        assert isinstance(wire, WireSockaddrIn6)
        self.assertEqual(wire.flowinfo, 0)
        self.assertEqual(wire.scope_id, 2)

    def test_absent(self) -> None:
        self.assertIsNone(sockaddr_from_wire(None))

    def test_unrecognized(self) -> None:
        with self.assertRaises(UnknownAddressFamily) as cm:
            sockaddr_from_wire(WireSockaddrUnrecognized(99))
        self.assertIn(99, cm.exception.args)

    def test_wrong_family(self) -> None:
        with self.assertRaises(MalformedMessage):
            sockaddr_from_wire(WireSockaddrIn(80, b'\x7f\x00\x00\x01', family=AF.INET6))
