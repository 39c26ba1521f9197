"""Where to find the DUT's posix server, and how long to wait for it

These used to be process-wide flags; now they're a plain value, passed to
`rposix.dut.open_dut`, so that different sessions can use different settings. The
flags still exist, for test programs that want them: `Config.from_args` reads them.

"""
from __future__ import annotations
from dataclasses import dataclass
import argparse
import typing as t

__all__ = [
    "Config",
]

@dataclass(frozen=True)
class Config:
    posix_server_ip: str = "127.0.0.1"
    posix_server_port: int = 40000
    # seconds
    rpc_timeout: float = 0.1
    rpc_keepalive: float = 10.0
    # the address on the DUT that create_listener binds to
    remote_ipv4: str = "127.0.0.1"

    @property
    def address(self) -> str:
        return f"{self.posix_server_ip}:{self.posix_server_port}"

    @staticmethod
    def add_arguments(parser: argparse.ArgumentParser) -> None:
        defaults = Config()
        parser.add_argument('--posix_server_ip', default=defaults.posix_server_ip,
                            help="ip address of the posix server on the DUT")
        parser.add_argument('--posix_server_port', type=int, default=defaults.posix_server_port,
                            help="port of the posix server on the DUT")
        parser.add_argument('--rpc_timeout', type=float, default=defaults.rpc_timeout,
                            help="seconds to wait for a response to each remote call")
        parser.add_argument('--rpc_keepalive', type=float, default=defaults.rpc_keepalive,
                            help="seconds between keepalive pings, and to wait for their response")
        parser.add_argument('--remote_ipv4', default=defaults.remote_ipv4,
                            help="ipv4 address on the DUT to bind listeners to")

    @classmethod
    def from_args(cls, argv: t.Optional[t.Sequence[str]]=None) -> Config:
        "Parse our flags out of argv, ignoring any others; with no argv, use sys.argv"
        parser = argparse.ArgumentParser(add_help=False)
        cls.add_arguments(parser)
        args, _ = parser.parse_known_args(argv)
        return cls(
            posix_server_ip=args.posix_server_ip,
            posix_server_port=args.posix_server_port,
            rpc_timeout=args.rpc_timeout,
            rpc_keepalive=args.rpc_keepalive,
            remote_ipv4=args.remote_ipv4,
        )

#### Tests ####
from unittest import TestCase
class TestConfig(TestCase):
    def test_defaults(self) -> None:
        self.assertEqual(Config.from_args([]), Config())

    def test_flags(self) -> None:
        config = Config.from_args(["--posix_server_ip", "10.0.0.2", "--posix_server_port=1234",
                                   "--rpc_timeout", "0.5", "--unrelated", "flag"])
        self.assertEqual(config.address, "10.0.0.2:1234")
        self.assertEqual(config.rpc_timeout, 0.5)
        self.assertEqual(config.rpc_keepalive, Config().rpc_keepalive)
