"""Remote socket calls on a device under test

rposix lets a test program command a device under test (the DUT) to make POSIX socket
calls, and observe their results, including the raw errno. Calls are sent to a posix
server running on the DUT, which makes them and sends back what happened.

## `DUT`

The main entry point is `rposix.dut.open_dut`, which connects to the posix server
named by a `rposix.config.Config` and returns a `DUT`.

Every socket call exists twice on a `DUT`:

- as a *raw* call, like `DUT.bind_with_errno`, which returns a `rposix.handle.Result`
  holding the return code, the call-specific value, and the errno, exactly as the
  DUT reported them;
- as a *convenience* call, like `DUT.bind`, which returns just the value, and reports a
  failed call through the DUT's `rposix.report.Reporter`, ending the test.

Tests usually use the convenience calls, and the raw calls when the failure is what's
being tested. `DUT.create_bound_socket` and `DUT.create_listener` cover the most common
setup sequences.

## Failures

A syscall failing on the DUT is not an exception; it's data, in the `Result`. What
raises is anything which prevents us from getting a result at all: losing the
connection, the DUT taking longer than the call's deadline, or the DUT sending
something we can't parse. Those are all `rposix.near.sysif.TransportError`s, and
they're always fatal.

## Transport

`DUT` is a `rposix.handle.Task`, which makes calls through a
`rposix.near.sysif.RemoteCallInterface`. The main implementation is
`rposix.connection.PosixConnection`, which speaks the framed protocol described in
`rposix.wire` over a trio stream. Many tasks can make calls on one connection at the
same time.

"""
from rposix.config import Config
from rposix.dut import DUT, open_dut
from rposix.errno_ import Errno
from rposix.handle import Task, Result
from rposix.near.sysif import (
    RemoteCallInterface, TransportError, TransportSendError, TransportHangup,
    DeadlineExceeded, MalformedMessage,
)
from rposix.near.types import FileDescriptor
from rposix.netinet.in_ import SockaddrIn, SockaddrIn6
from rposix.netinet.tcp import TCP
from rposix.report import Reporter, RaisingReporter, TestCaseReporter, PosixCallFailed
from rposix.sys.socket import AF, SOCK, SOL, SO, MSG, Sockaddr, UnknownAddressFamily
from rposix.time import Timeval

__all__ = [
    'Config',
    'DUT', 'open_dut',
    'Errno',
    'Task', 'Result',
    'RemoteCallInterface', 'TransportError', 'TransportSendError', 'TransportHangup',
    'DeadlineExceeded', 'MalformedMessage',
    'FileDescriptor',
    'SockaddrIn', 'SockaddrIn6',
    'TCP',
    'Reporter', 'RaisingReporter', 'TestCaseReporter', 'PosixCallFailed',
    'AF', 'SOCK', 'SOL', 'SO', 'MSG', 'Sockaddr', 'UnknownAddressFamily',
    'Timeval',
]
