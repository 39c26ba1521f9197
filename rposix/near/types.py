"""Definitions of DUT-local identifiers.

These identifiers are like near pointers, in systems with segmented memory. They are
valid only within a specific segment: here, the process on the DUT which is executing
our calls.

"""

from __future__ import annotations
from dataclasses import dataclass

__all__  = [
    "FileDescriptor",
]

@dataclass(frozen=True)
class FileDescriptor:
    """The integer identifier for a file descriptor in the DUT's process.

    We never own or dereference it locally; it's just the number the DUT gave us, which
    we pass back to it. Negative numbers are never valid descriptors; the DUT returns
    them from socket and accept to indicate failure.

    """
    __slots__ = ('number')
    number: int

    @property
    def valid(self) -> bool:
        return self.number >= 0

    def __str__(self) -> str:
        return f"FD({self.number})"

    def __repr__(self) -> str:
        return str(self)

    def __int__(self) -> int:
        return self.number
