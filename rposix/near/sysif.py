"""The lowest-level interface for making remote calls

A RemoteCallInterface sends one request to the DUT and returns its response; it knows
nothing about what the request means. The encoding and decoding of requests and
responses is done by our caller, `rposix.handle.Task`.

Everything that can go wrong at this level is a TransportError. These are always
fatal: a TransportError means our connection to the DUT is broken or the DUT is
misbehaving, not that a syscall on the DUT failed. Syscall failures are data, carried
in a successful response.

"""
from __future__ import annotations
from rposix.sys.syscall import SYS
import abc

__all__ = [
    "RemoteCallInterface",
    "TransportError",
    "TransportSendError",
    "TransportHangup",
    "DeadlineExceeded",
    "MalformedMessage",
    "UnusableRemoteCallInterface",
]

class RemoteCallInterface:
    """The lowest-level interface for an object which lets us send calls to the DUT.

    Implementations must tolerate concurrent use: many tasks may each have a call
    outstanding at the same time, and each must get back the response to its own
    request.

    """
    @abc.abstractmethod
    async def call(self, method: SYS, request: bytes) -> bytes:
        """Send a request and wait for its response, throwing TransportError on failure.

        There's no timeout here; the caller bounds the call with a trio cancel scope.
        If the call is cancelled after the request is sent, the response is discarded
        when it arrives. The syscall may or may not have been executed on the DUT.

        """
        pass

    @abc.abstractmethod
    async def close_interface(self) -> None:
        "Close this interface, shutting down the connection to the DUT; pending calls throw TransportHangup."
        pass

class TransportError(Exception):
    """Something prevents us from returning a normal response for this call.

    The call may or may not have been actually sent to the DUT, and may or may not have
    actually been executed.

    """
    pass

class TransportSendError(TransportError):
    """We encountered an error when we tried to send this call.

    We know for sure that this call was not executed.

    """
    pass

class TransportHangup(TransportError):
    """We lost our connection to the DUT while waiting for the response to this call.

    This is a permanent error; all future calls on this interface will also throw
    TransportHangup.

    """
    pass

class DeadlineExceeded(TransportError):
    "We gave up waiting for the response to this call before it arrived."
    pass

class MalformedMessage(TransportError):
    "We got a message which we can't parse."
    pass

class UnusableRemoteCallInterface(RemoteCallInterface):
    "Installed in place of a real interface after it has been closed"
    async def call(self, method: SYS, request: bytes) -> bytes:
        raise TransportSendError("can't send calls through this interface; it has been closed")

    async def close_interface(self) -> None:
        pass
