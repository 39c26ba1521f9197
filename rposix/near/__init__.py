"""Definitions of DUT-local identifiers and RemoteCallInterface

The DUT-local identifiers are like near pointers, in systems with segmented memory.
They are valid only within a specific segment; here, the process on the DUT which
executes our calls.

The RemoteCallInterface is the segment register override prefix, which is used with
the instruction to say which segment to use. We don't know from a RemoteCallInterface
alone that the file descriptors we pass through it were created by the process
behind it.

"""
# re-exported DUT-local identifiers
from rposix.near.types import (
    FileDescriptor,
)
# re-exported RemoteCallInterface
from rposix.near.sysif import RemoteCallInterface, TransportError, TransportHangup
__all__ = [
    'FileDescriptor',
    'RemoteCallInterface', 'TransportError', 'TransportHangup',
]
