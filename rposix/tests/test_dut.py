from rposix.tests.trio_test_case import TrioTestCase
from rposix.tests.posix_server import PosixServer

from rposix.config import Config
from rposix.dut import DUT, open_dut
from rposix.near.sysif import TransportError
from rposix.near.types import FileDescriptor
from rposix.netinet.in_ import SockaddrIn
from rposix.netinet.tcp import TCP
from rposix.report import TestCaseReporter, RaisingReporter, PosixCallFailed
from rposix.sys.socket import *
from rposix.time import Timeval
import errno
import trio

import logging
logger = logging.getLogger(__name__)

class TestDUT(TrioTestCase):
    async def asyncSetUp(self) -> None:
        self.server = PosixServer()
        port = await self.server.serve(self.nursery)
        # generous, since these calls are real
        config = Config(posix_server_port=port, rpc_timeout=5)
        self.dut = await open_dut(self.nursery, config, TestCaseReporter(self))

    async def asyncTearDown(self) -> None:
        await self.dut.teardown()
        self.server.close()

    async def test_bind_learns_port(self) -> None:
        fd, port = await self.dut.create_bound_socket(SOCK.STREAM, 0, "127.0.0.1")
        self.assertTrue(fd.valid)
        self.assertGreater(port, 0)
        other_fd, other_port = await self.dut.create_bound_socket(SOCK.STREAM, 0, "127.0.0.1")
        self.assertNotEqual(fd, other_fd)
        self.assertNotEqual(port, other_port)
        self.assertEqual(await self.dut.getsockname(fd), SockaddrIn(port, "127.0.0.1"))

    async def test_bind_any_learns_port(self) -> None:
        fd, port = await self.dut.create_bound_socket(SOCK.DGRAM, 0, "0.0.0.0")
        self.assertTrue(fd.valid)
        self.assertGreater(port, 0)
        self.assertEqual(await self.dut.getsockname(fd), SockaddrIn(port, "0.0.0.0"))

    async def test_ipv4_mapped_address_is_ipv4(self) -> None:
        fd, port = await self.dut.create_bound_socket(SOCK.DGRAM, 0, "::ffff:127.0.0.1")
        self.assertEqual(await self.dut.getsockname(fd), SockaddrIn(port, "127.0.0.1"))

    async def test_listen_accept(self) -> None:
        listener, port = await self.dut.create_listener(SOCK.STREAM, 0, 1)
        client = await self.dut.socket(AF.INET, SOCK.STREAM, 0)
        await self.dut.connect(client, SockaddrIn(port, "127.0.0.1"))
        conn, peer = await self.dut.accept(listener)
        self.assertEqual(peer, await self.dut.getsockname(client))

        data = b"hello"
        self.assertEqual(await self.dut.send(client, data, 0), len(data))
        self.assertEqual(await self.dut.recv(conn, len(data), MSG.WAITALL), data)
        for fd in [conn, client, listener]:
            await self.dut.close(fd)

    async def test_failed_connect(self) -> None:
        # bound, but not listening, so nothing will accept
        _, port = await self.dut.create_bound_socket(SOCK.STREAM, 0, "127.0.0.1")
        client = await self.dut.socket(AF.INET, SOCK.STREAM, 0)
        result = await self.dut.connect_with_errno(client, SockaddrIn(port, "127.0.0.1"))
        self.assertTrue(result.failed)
        self.assertEqual(result.ret, -1)
        self.assertEqual(result.errno, errno.ECONNREFUSED)
        other_client = await self.dut.socket(AF.INET, SOCK.STREAM, 0)
        with self.assertRaises(self.failureException):
            await self.dut.connect(other_client, SockaddrIn(port, "127.0.0.1"))

    async def test_sendto_recv(self) -> None:
        receiver, port = await self.dut.create_bound_socket(SOCK.DGRAM, 0, "127.0.0.1")
        sender, _ = await self.dut.create_bound_socket(SOCK.DGRAM, 0, "127.0.0.1")
        data = b"datagram"
        self.assertEqual(await self.dut.sendto(sender, data, 0, SockaddrIn(port, "127.0.0.1")), len(data))
        self.assertEqual(await self.dut.recv(receiver, 100, 0), data)

    async def test_option_shapes(self) -> None:
        fd = await self.dut.socket(AF.INET, SOCK.STREAM, 0)
        await self.dut.setsockopt_int(fd, SOL.SOCKET, SO.REUSEADDR, 1)
        self.assertEqual(await self.dut.getsockopt_int(fd, SOL.SOCKET, SO.REUSEADDR), 1)
        raw = await self.dut.getsockopt(fd, SOL.SOCKET, SO.REUSEADDR, 4)
        self.assertEqual(optval_to_int(raw), 1)
        await self.dut.setsockopt(fd, SOL.SOCKET, SO.REUSEADDR, optval_from_int(0))
        self.assertEqual(await self.dut.getsockopt_int(fd, SOL.SOCKET, SO.REUSEADDR), 0)
        await self.dut.setsockopt_int(fd, SOL.TCP, TCP.NODELAY, 1)
        self.assertEqual(await self.dut.getsockopt_int(fd, SOL.TCP, TCP.NODELAY), 1)

    async def test_timeval_option(self) -> None:
        fd = await self.dut.socket(AF.INET, SOCK.DGRAM, 0)
        tv = Timeval(2, 500000)
        await self.dut.setsockopt_timeval(fd, SOL.SOCKET, SO.RCVTIMEO, tv)
        self.assertEqual(await self.dut.getsockopt_timeval(fd, SOL.SOCKET, SO.RCVTIMEO), tv)
        # and the same option, read as raw bytes in the native layout
        raw = await self.dut.getsockopt(fd, SOL.SOCKET, SO.RCVTIMEO, Timeval.sizeof())
        self.assertEqual(Timeval.from_bytes(raw), tv)

    async def test_bad_fd(self) -> None:
        result = await self.dut.close_with_errno(FileDescriptor(9999))
        self.assertTrue(result.failed)
        self.assertEqual(result.errno, errno.EBADF)
        with self.assertRaises(self.failureException):
            await self.dut.close(FileDescriptor(9999))

    async def test_bad_address(self) -> None:
        with self.assertRaises(self.failureException):
            await self.dut.create_bound_socket(SOCK.STREAM, 0, "not an address")

    async def test_raising_reporter(self) -> None:
        dut = DUT(self.dut.sysif, self.dut.config, RaisingReporter())
        with self.assertRaises(PosixCallFailed):
            await dut.close(FileDescriptor(9999))

    async def test_teardown(self) -> None:
        await self.dut.teardown()
        with self.assertRaises(TransportError) as cm:
            await self.dut.socket_with_errno(AF.INET, SOCK.STREAM, 0)
        self.assertEqual(cm.exception.args[0], "socket")
        # idempotent
        await self.dut.teardown()

    async def test_concurrent_calls(self) -> None:
        "A blocked accept doesn't hold up other calls on the same connection"
        listener, port = await self.dut.create_listener(SOCK.STREAM, 0, 4)
        accepted = []
        async def accept() -> None:
            accepted.append(await self.dut.accept(listener))
        async with trio.open_nursery() as nursery:
            nursery.start_soon(accept)
            client = await self.dut.socket(AF.INET, SOCK.STREAM, 0)
            await self.dut.connect(client, SockaddrIn(port, "127.0.0.1"))
        [(conn, peer)] = accepted
        self.assertEqual(peer, await self.dut.getsockname(client))

class TestOpen(TrioTestCase):
    async def test_note(self) -> None:
        server = PosixServer()
        port = await server.serve(self.nursery)
        with self.assertLogs("rposix.report", level="INFO") as cm:
            dut = await open_dut(self.nursery, Config(posix_server_port=port), TestCaseReporter(self))
        self.assertIn(f"127.0.0.1:{port}", cm.output[0])
        await dut.teardown()

    async def test_no_server(self) -> None:
        # find a port with nothing listening on it
        sock = trio.socket.socket()
        await sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()
        with self.assertRaises(self.failureException):
            await open_dut(self.nursery, Config(posix_server_port=port), TestCaseReporter(self))
