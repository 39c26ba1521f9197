"`#include <errno.h>`"
from __future__ import annotations
import errno
import os
import typing as t

__all__ = [
    "Errno",
]

class Errno(int):
    """An errno value, as reported by the DUT alongside a syscall's return code.

    This is only meaningful when the return code indicates failure; when the call
    succeeded, the DUT may report anything here, usually 0.

    We assume the DUT uses the same errno numbering as we do, which is true as long as
    both are Linux.

    """
    @property
    def name(self) -> str:
        "The symbolic name, like ECONNREFUSED"
        return errno.errorcode.get(int(self), f"errno {int(self)}")

    def to_exception(self) -> OSError:
        "Return the OSError (or the appropriate subclass of it) that this errno would raise locally"
        return OSError(int(self), os.strerror(self))

    def __str__(self) -> str:
        return os.strerror(self)

    def __repr__(self) -> str:
        return f"Errno({self.name})"

#### Tests ####
from unittest import TestCase
class TestErrno(TestCase):
    def test_render(self) -> None:
        err = Errno(errno.ECONNREFUSED)
        self.assertEqual(err, errno.ECONNREFUSED)
        self.assertEqual(err.name, "ECONNREFUSED")
        self.assertEqual(str(err), os.strerror(errno.ECONNREFUSED))
        self.assertIsInstance(err.to_exception(), ConnectionRefusedError)

    def test_unknown(self) -> None:
        self.assertEqual(Errno(100000).name, "errno 100000")
