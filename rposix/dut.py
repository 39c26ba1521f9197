"""The DUT: a session with the posix server on a device under test

A `DUT` makes socket calls on the device under test. It has two forms of each call.
The raw form, inherited from `rposix.handle.Task`, is named with a `_with_errno`
suffix, takes an optional timeout, and returns the `Result` exactly as the DUT
reported it. The convenience form has the plain name, uses the default timeout, and
returns just the value; if the call failed, it reports that through the DUT's
`Reporter`, which ends the test.

Use the convenience form when a failure means the test can't go on, which is the usual
case; use the raw form when the failure is what you're testing.

    async with trio.open_nursery() as nursery:
        dut = await open_dut(nursery, Config.from_args(), TestCaseReporter(self))
        try:
            listener, port = await dut.create_listener(SOCK.STREAM, 0, 1)
            ...
        finally:
            await dut.teardown()

"""
from __future__ import annotations
from rposix.config import Config
from rposix.connection import open_connection
from rposix.handle import Task, Result
from rposix.near.sysif import RemoteCallInterface, UnusableRemoteCallInterface
from rposix.near.types import FileDescriptor
from rposix.netinet.in_ import SockaddrIn, SockaddrIn6
from rposix.report import Reporter, RaisingReporter
from rposix.sys.socket import AF, Sockaddr
from rposix.time import Timeval
import ipaddress
import logging
import trio
import typing as t

__all__ = [
    "DUT",
    "open_dut",
]

# hide our frames from unittest tracebacks, so failures point at the test's own line
__unittest = True

logger = logging.getLogger(__name__)

T = t.TypeVar('T')
class DUT(Task):
    "A connection to the posix server on a device under test, where we can make socket calls"
    def __init__(self, sysif: RemoteCallInterface, config: Config,
                 reporter: t.Optional[Reporter]=None) -> None:
        super().__init__(sysif, config.rpc_timeout)
        self.config = config
        self.reporter = reporter if reporter is not None else RaisingReporter()

    def __str__(self) -> str:
        return f"DUT({self.config.address})"

    async def teardown(self) -> None:
        "Close the connection to the DUT; calls in progress throw TransportHangup, later calls TransportSendError"
        logger.debug("%s tearing down", self)
        sysif, self.sysif = self.sysif, UnusableRemoteCallInterface()
        await sysif.close_interface()

    def _check(self, result: Result[T], what: str) -> T:
        if result.failed:
            self.reporter.fatal(f"failed to {what}: {result.errno}")
        return result.value

    async def accept(self, sockfd: FileDescriptor) -> t.Tuple[FileDescriptor, Sockaddr]:
        fd, addr = self._check(await self.accept_with_errno(sockfd), "accept")
        if addr is None:
            self.reporter.fatal(f"accept on {sockfd} returned {fd} but no peer address")
        return fd, addr

    async def bind(self, sockfd: FileDescriptor, addr: Sockaddr) -> None:
        self._check(await self.bind_with_errno(sockfd, addr), "bind socket")

    async def close(self, fd: FileDescriptor) -> None:
        self._check(await self.close_with_errno(fd), "close")

    async def connect(self, sockfd: FileDescriptor, addr: Sockaddr) -> None:
        self._check(await self.connect_with_errno(sockfd, addr), "connect socket")

    async def getsockname(self, sockfd: FileDescriptor) -> Sockaddr:
        addr = self._check(await self.getsockname_with_errno(sockfd), "getsockname")
        if addr is None:
            self.reporter.fatal(f"getsockname on {sockfd} returned no address")
        return addr

    async def getsockopt(self, sockfd: FileDescriptor, level: int, optname: int, optlen: int) -> bytes:
        return self._check(await self.getsockopt_with_errno(sockfd, level, optname, optlen), "getsockopt")

    async def getsockopt_int(self, sockfd: FileDescriptor, level: int, optname: int) -> int:
        return self._check(await self.getsockopt_int_with_errno(sockfd, level, optname), "getsockopt int")

    async def getsockopt_timeval(self, sockfd: FileDescriptor, level: int, optname: int) -> Timeval:
        return self._check(await self.getsockopt_timeval_with_errno(sockfd, level, optname), "getsockopt timeval")

    async def listen(self, sockfd: FileDescriptor, backlog: int) -> None:
        self._check(await self.listen_with_errno(sockfd, backlog), "listen")

    async def recv(self, sockfd: FileDescriptor, length: int, flags: int) -> bytes:
        return self._check(await self.recv_with_errno(sockfd, length, flags), "recv")

    async def send(self, sockfd: FileDescriptor, buf: bytes, flags: int) -> int:
        return self._check(await self.send_with_errno(sockfd, buf, flags), "send")

    async def sendto(self, sockfd: FileDescriptor, buf: bytes, flags: int, dest_addr: Sockaddr) -> int:
        return self._check(await self.sendto_with_errno(sockfd, buf, flags, dest_addr), "sendto")

    async def setsockopt(self, sockfd: FileDescriptor, level: int, optname: int, optval: bytes) -> None:
        self._check(await self.setsockopt_with_errno(sockfd, level, optname, optval), "setsockopt")

    async def setsockopt_int(self, sockfd: FileDescriptor, level: int, optname: int, optval: int) -> None:
        self._check(await self.setsockopt_int_with_errno(sockfd, level, optname, optval), "setsockopt int")

    async def setsockopt_timeval(self, sockfd: FileDescriptor, level: int, optname: int, tv: Timeval) -> None:
        self._check(await self.setsockopt_timeval_with_errno(sockfd, level, optname, tv), "setsockopt timeval")

    async def socket(self, domain: int, type: int, protocol: int) -> FileDescriptor:
        return self._check(await self.socket_with_errno(domain, type, protocol), "create socket")

    async def create_bound_socket(
            self, type: int, protocol: int,
            addr: t.Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address],
    ) -> t.Tuple[FileDescriptor, int]:
        """Make a socket on the DUT bound to `addr` and a port the DUT chooses

        Returns the socket and the chosen port. IPv4 addresses, including IPv4-mapped
        IPv6 addresses, get an AF.INET socket; other IPv6 addresses get an AF.INET6 one.

        """
        try:
            ip = ipaddress.ip_address(addr)
        except ValueError as exn:
            self.reporter.fatal(f"unknown ip address type for {addr!r}: {exn}")
        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        sockaddr: Sockaddr
        if isinstance(ip, ipaddress.IPv4Address):
            fd = await self.socket(AF.INET, type, protocol)
            sockaddr = SockaddrIn(0, ip)
        else:
            fd = await self.socket(AF.INET6, type, protocol)
            sockaddr = SockaddrIn6(0, ip)
        await self.bind(fd, sockaddr)
        bound = await self.getsockname(fd)
        if not isinstance(bound, (SockaddrIn, SockaddrIn6)):
            self.reporter.fatal(f"unknown sockaddr type from getsockname: {bound}")
        return fd, bound.port

    async def create_listener(self, type: int, protocol: int, backlog: int) -> t.Tuple[FileDescriptor, int]:
        "Make a listening socket on the DUT at the configured remote_ipv4; returns it and its port"
        fd, port = await self.create_bound_socket(type, protocol, self.config.remote_ipv4)
        await self.listen(fd, backlog)
        return fd, port

async def open_dut(nursery: trio.Nursery, config: Config, reporter: t.Optional[Reporter]=None) -> DUT:
    """Connect to the posix server named by `config`

    The connection's background tasks run in `nursery`. Failing to connect is fatal.

    """
    if reporter is None:
        reporter = RaisingReporter()
    try:
        connection = await open_connection(
            nursery, config.posix_server_ip, config.posix_server_port, config.rpc_keepalive)
    except OSError as exn:
        reporter.fatal(f"failed to connect to the posix server at {config.address}: {exn}")
    reporter.note(f"connected to the posix server at {config.address}")
    return DUT(connection, config, reporter)
