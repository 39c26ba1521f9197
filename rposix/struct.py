"Interfaces and basic functionality for our serialization framework."
from __future__ import annotations
import abc
import typing as t
import struct

__all__ = [
    "Serializable",
    "FixedSize",
    "Struct",
    "Int32",
]

class Serializable:
    "Something whose serialization methods are defined directly on the class"
    @abc.abstractmethod
    def to_bytes(self) -> bytes:
        "Directly serialize the value `self` as bytes"
        pass

    T_serializable = t.TypeVar('T_serializable', bound='Serializable')
    @classmethod
    def from_bytes(cls: t.Type[T_serializable], data: bytes) -> T_serializable:
        "Return a value of type `cls` deserialized from `data`"
        raise NotImplementedError("from_bytes not implemented on", cls)

class FixedSize:
    """Something which, if we know its class, has a fixed-length serialized prefix

    For plain C structs, that's the whole thing; for wire messages, it's the header
    which is followed by variable-length data whose length the header describes.
    """
    @classmethod
    @abc.abstractmethod
    def sizeof(cls) -> int:
        "Return the length of the fixed-size part of the serialization of this class"
        pass

class Struct(Serializable, FixedSize):
    "A helper class for fixed-size structures; the serialization methods are defined directly on the class"
    pass

# mypy is very upset with me for inheriting from int and overriding int's methods in an incompatible way
class Int32(Struct, int): # type: ignore
    """A 32-bit integer, as used by many socket options

    This is in the local platform's byte order, which is what the raw-byte socket
    option operations carry to the DUT unchanged.
    """
    def to_bytes(self) -> bytes: # type: ignore
        return struct.pack('i', self)

    T = t.TypeVar('T', bound='Int32')
    @classmethod
    def from_bytes(cls: t.Type[T], data: bytes) -> T: # type: ignore
        if len(data) < cls.sizeof():
            raise ValueError("data too small", data)
        val, = struct.unpack_from('i', data)
        return cls(val)

    @classmethod
    def sizeof(cls) -> int:
        return struct.calcsize('i')

#### Tests ####
from unittest import TestCase
class TestInt32(TestCase):
    def test_roundtrip(self) -> None:
        for val in [0, 1, -1, 2**31 - 1, -2**31]:
            self.assertEqual(Int32.from_bytes(Int32(val).to_bytes()), val)

    def test_too_small(self) -> None:
        with self.assertRaises(ValueError):
            Int32.from_bytes(b'\x01')
