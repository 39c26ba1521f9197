"The methods the DUT's posix server accepts"
import enum

__all__ = [
    "SYS",
]

class SYS(enum.IntEnum):
    """The method argument passed to the low-level `call` method and carried in each request frame

    Passing one of these numbers is how we indicate to the DUT which syscall we want it to
    make on our behalf. Some syscalls have several methods, differing in how the
    arguments and results are shaped on the wire; getsockopt, for example, can carry its
    option value as opaque bytes, as an int, or as a timeval.

    """
    accept = 1
    bind = 2
    close = 3
    connect = 4
    getsockname = 5
    getsockopt = 6
    getsockopt_int = 7
    getsockopt_timeval = 8
    listen = 9
    recv = 10
    send = 11
    sendto = 12
    setsockopt = 13
    setsockopt_int = 14
    setsockopt_timeval = 15
    socket = 16
