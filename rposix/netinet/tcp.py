"`#include <netinet/tcp.h>`"
import enum
import socket

__all__ = [
    'TCP',
]

class TCP(enum.IntEnum):
    "User-settable options (used with setsockopt at level SOL.TCP)"
    NODELAY = socket.TCP_NODELAY                 # Don't delay send to coalesce packets
    MAXSEG = socket.TCP_MAXSEG                   # Set maximum segment size
    CORK = socket.TCP_CORK                       # Control sending of partial frames
    KEEPIDLE = socket.TCP_KEEPIDLE               # Start keeplives after this period
    KEEPINTVL = socket.TCP_KEEPINTVL             # Interval between keepalives
    KEEPCNT = socket.TCP_KEEPCNT                 # Number of keepalives before death
    SYNCNT = socket.TCP_SYNCNT                   # Number of SYN retransmits
    LINGER2 = socket.TCP_LINGER2                 # Life time of orphaned FIN-WAIT-2 state
    DEFER_ACCEPT = socket.TCP_DEFER_ACCEPT       # Wake up listener only when data arrive
    WINDOW_CLAMP = socket.TCP_WINDOW_CLAMP       # Bound advertised window
    INFO = socket.TCP_INFO                       # Information about this connection.
    QUICKACK = socket.TCP_QUICKACK               # Bock/reenable quick ACKs.
    CONGESTION = socket.TCP_CONGESTION           # Congestion control algorithm.
    USER_TIMEOUT = socket.TCP_USER_TIMEOUT       # How long for loss retry before timeout
    FASTOPEN = socket.TCP_FASTOPEN               # Enable FastOpen on listeners
    NOTSENT_LOWAT = socket.TCP_NOTSENT_LOWAT     # Limit number of unsent bytes in write queue.
