"""C declarations for the rposix wire structs

These are declared in cffi's in-line ABI mode, so nothing is compiled: every
struct is fully specified, with explicit widths, and packed, so its layout is
the same on both ends of the connection as long as they agree on byte order.

`struct timeval` is the exception; it's the native struct, used only for
converting interval socket options to and from the bytes the kernel expects.

"""
from cffi import FFI

__all__ = [
    "ffi",
]

ffi = FFI()
ffi.cdef("""
struct rposix_frame {
    uint32_t kind;
    uint32_t method;
    uint32_t id;
    uint32_t length;
};

struct rposix_sockaddr_in {
    uint32_t family;
    uint32_t port;
    uint8_t addr[4];
};

struct rposix_sockaddr_in6 {
    uint32_t family;
    uint32_t port;
    uint32_t flowinfo;
    uint32_t scope_id;
    uint8_t addr[16];
};

struct rposix_sockaddr {
    uint32_t kind;
    union {
        struct rposix_sockaddr_in in4;
        struct rposix_sockaddr_in6 in6;
    } u;
};

struct rposix_timeval {
    int64_t seconds;
    int64_t microseconds;
};

struct rposix_socket_request {
    int32_t domain;
    int32_t type;
    int32_t protocol;
};

struct rposix_fd_request {
    int32_t fd;
};

struct rposix_sockaddr_request {
    int32_t sockfd;
    struct rposix_sockaddr addr;
};

struct rposix_listen_request {
    int32_t sockfd;
    int32_t backlog;
};

struct rposix_send_request {
    int32_t sockfd;
    int32_t flags;
    struct rposix_sockaddr dest_addr;
    uint32_t buflen;
};

struct rposix_recv_request {
    int32_t sockfd;
    int32_t len;
    int32_t flags;
};

struct rposix_getsockopt_request {
    int32_t sockfd;
    int32_t level;
    int32_t optname;
    int32_t optlen;
};

struct rposix_setsockopt_request {
    int32_t sockfd;
    int32_t level;
    int32_t optname;
    uint32_t optlen;
};

struct rposix_setsockopt_int_request {
    int32_t sockfd;
    int32_t level;
    int32_t optname;
    int32_t intval;
};

struct rposix_setsockopt_timeval_request {
    int32_t sockfd;
    int32_t level;
    int32_t optname;
    struct rposix_timeval timeval;
};

struct rposix_ret_response {
    int32_t ret;
    int32_t errno_;
};

struct rposix_sockaddr_response {
    int32_t ret;
    int32_t errno_;
    struct rposix_sockaddr addr;
};

struct rposix_buf_response {
    int32_t ret;
    int32_t errno_;
    uint32_t length;
};

struct rposix_int_response {
    int32_t ret;
    int32_t errno_;
    int32_t intval;
};

struct rposix_timeval_response {
    int32_t ret;
    int32_t errno_;
    struct rposix_timeval timeval;
};
""", packed=True)
ffi.cdef("""
struct timeval {
    long tv_sec;
    long tv_usec;
};
""")
