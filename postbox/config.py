"""Configuration settings for the postbox file-drop server."""
import argparse
import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

# Body limits
MAX_STORE_BODY = 1024 * 1024  # 1MB
MAX_MINIMAL_BODY = 1024  # 1KB

# Per-outcome timeouts (seconds)
STORE_TIMEOUT_SECONDS = 10.0
MINIMAL_TIMEOUT_SECONDS = 0.000001

# Storage failure alerting
FAILURE_THRESHOLD = 5
FAILURE_WINDOW_SECONDS = 60

# Log directory
LOG_DIR = "./logs"


@dataclass(frozen=True)
class Context:
    """Process-wide settings shared read-only by every request."""
    file_root: Path
    key: bytes
    root_url: str


def parse_tcp_address(addr: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port = addr.rpartition(':')
    if not sep or not host or not port.isdigit():
        raise ValueError(f"expected HOST:PORT, got {addr!r}")
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    port_value = int(port)
    if not 0 < port_value < 65536:
        raise ValueError(f"port out of range: {port_value}")
    return host, port_value


@dataclass
class Config:
    root: Path
    key: bytes
    url: str
    tcp: Optional[Tuple[str, int]] = None
    unix: Optional[str] = None
    log_level: str = 'INFO'

    @classmethod
    def from_args(cls, argv: Optional[List[str]] = None) -> 'Config':
        """Create Config from command line arguments."""
        parser = argparse.ArgumentParser(prog='postbox', description='Anonymous file-drop HTTP server')
        parser.add_argument('--root', metavar='PATH', default='.',
                            help='Set output root path')
        parser.add_argument('--tcp', metavar='ADDR',
                            help='Listen to ADDR (HOST:PORT) on TCP')
        parser.add_argument('--unix', metavar='FILE',
                            help='Listen to FILE as a Unix named socket')
        parser.add_argument('--key', metavar='KEY',
                            help='Use KEY (base64) as HMAC key')
        parser.add_argument('--url', metavar='URL',
                            help='Use URL as base URL for generated URLs')
        parser.add_argument('--log-level', default='INFO',
                            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                            help='Console log level')
        args = parser.parse_args(argv)

        if args.key is None:
            parser.error('You must specify HMAC key with --key')
        if args.url is None:
            parser.error('You must specify root url with --url')
        if (args.tcp is None) == (args.unix is None):
            parser.error('Exactly one of --tcp and --unix must be given')

        try:
            key = base64.b64decode(args.key, validate=True)
        except (binascii.Error, ValueError):
            parser.error('KEY must be correctly base64 encoded')
        if not key:
            parser.error('KEY must not be empty')

        tcp = None
        if args.tcp is not None:
            try:
                tcp = parse_tcp_address(args.tcp)
            except ValueError as e:
                parser.error(f"Invalid --tcp address: {e}")

        return cls(
            root=Path(args.root).absolute(),
            key=key,
            url=args.url,
            tcp=tcp,
            unix=args.unix,
            log_level=args.log_level,
        )

    def context(self) -> Context:
        return Context(file_root=self.root, key=self.key, root_url=self.url)

    @property
    def listen_address(self) -> str:
        if self.unix is not None:
            return self.unix
        host, port = self.tcp
        return f"{host}:{port}"
