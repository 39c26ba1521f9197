"`#include <sys/time.h>`"
from __future__ import annotations
from rposix._raw import ffi
from rposix.struct import Struct
from rposix.wire import WireTimeval
import math
import typing as t
from dataclasses import dataclass

__all__ = [
    "USEC_PER_SEC",
    "Timeval",
    "timeval_to_wire",
    "timeval_from_wire",
]

USEC_PER_SEC = 1_000_000

@dataclass(frozen=True)
class Timeval(Struct):
    """struct timeval, as used by interval socket options like SO_RCVTIMEO.

    Both fields are signed 64-bit integers, and they're passed through unchanged in
    both directions: we don't normalize usec into [0, 1000000), since the point of this
    library is to let the caller see exactly what the DUT does with whatever they send.

    `to_bytes` and `from_bytes` give the local platform's native struct timeval, for
    callers who want to get or set an interval option through the raw-bytes
    getsockopt and setsockopt.

    """
    sec: int
    usec: int

    def _to_cffi_dict(self) -> t.Dict[str, int]:
        return {
            "tv_sec": self.sec,
            "tv_usec": self.usec,
        }

    def to_bytes(self) -> bytes:
        return bytes(ffi.buffer(ffi.new('struct timeval const*', self._to_cffi_dict())))

    def to_float(self) -> float:
        return self.sec + self.usec/USEC_PER_SEC

    T = t.TypeVar('T', bound='Timeval')
    @classmethod
    def from_float(cls: t.Type[T], value: float) -> T:
        fractional, integer = math.modf(value)
        return cls(int(integer), int(round(fractional*USEC_PER_SEC)))

    @classmethod
    def from_cffi(cls: t.Type[T], cffi_value: t.Any) -> T:
        return cls(cffi_value.tv_sec, cffi_value.tv_usec)

    @classmethod
    def from_bytes(cls: t.Type[T], data: bytes) -> T:
        if len(data) < cls.sizeof():
            raise ValueError("data too small", data)
        struct = ffi.cast('struct timeval*', ffi.from_buffer(data))
        return cls.from_cffi(struct)

    @classmethod
    def sizeof(cls) -> int:
        return ffi.sizeof('struct timeval')

def timeval_to_wire(tv: Timeval) -> WireTimeval:
    return WireTimeval(tv.sec, tv.usec)

def timeval_from_wire(wire: WireTimeval) -> Timeval:
    return Timeval(wire.seconds, wire.microseconds)

#### Tests ####
from unittest import TestCase
class TestTimeval(TestCase):
    def test_wire(self) -> None:
        for initial in [Timeval(0, 0), Timeval(2, 500000), Timeval(-1, -1),
                        Timeval(2**63 - 1, -2**63)]:
            self.assertEqual(timeval_from_wire(timeval_to_wire(initial)), initial)

    def test_native(self) -> None:
        initial = Timeval(12, 345)
        self.assertEqual(len(initial.to_bytes()), Timeval.sizeof())
        self.assertEqual(Timeval.from_bytes(initial.to_bytes()), initial)

    def test_float(self) -> None:
        self.assertEqual(Timeval.from_float(2.5), Timeval(2, 500000))
        self.assertEqual(Timeval(2, 500000).to_float(), 2.5)
