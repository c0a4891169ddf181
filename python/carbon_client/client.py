from __future__ import annotations

import contextlib
import enum
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable

from .errors import ConfigError, ConnectError, RetriesExhausted
from .message import Message, encode

logger = logging.getLogger(__name__)

DEFAULT_PORT = 2003
DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT_S = 5.0
DEFAULT_TTL = 240

SocketFactory = Callable[..., socket.socket]


@dataclass(frozen=True)
class CarbonClientConfig:
    address: str
    port: int
    retries: int = DEFAULT_RETRIES
    timeout_s: float = DEFAULT_TIMEOUT_S
    ttl: int = DEFAULT_TTL
    nodelay: bool = True
    connect_on_init: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.address, str):
            raise ConfigError(f"address must be a string, got {self.address!r}")
        try:
            ipaddress.ip_address(self.address)
        except ValueError as e:
            # Hostnames land here too; there is no DNS resolution.
            raise ConfigError(f"address must be an IP literal, got {self.address!r}") from e

        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise ConfigError(f"port must be in 1..65535, got {self.port!r}")
        if isinstance(self.retries, bool) or not isinstance(self.retries, int) or self.retries < 0:
            raise ConfigError(f"retries must be a non-negative integer, got {self.retries!r}")
        if isinstance(self.timeout_s, bool) or not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigError(f"timeout_s must be > 0, got {self.timeout_s!r}")
        if isinstance(self.ttl, bool) or not isinstance(self.ttl, int) or not 1 <= self.ttl <= 255:
            raise ConfigError(f"ttl must be in 1..255, got {self.ttl!r}")

    @property
    def sock_addr(self) -> tuple[str, int]:
        return (self.address, self.port)

    @property
    def ip_version(self) -> int:
        return ipaddress.ip_address(self.address).version


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class _Outcome(enum.Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


def _classify(err: OSError) -> _Outcome:
    # An address family the host cannot use will not start working on retry.
    if isinstance(err, socket.gaierror):
        return _Outcome.FATAL
    return _Outcome.TRANSIENT


class CarbonClient:
    """Sends metrics to a Carbon daemon over one persistent TCP connection.

    A failed connect or write is retried with a fresh connection up to
    ``cfg.retries`` times. Not safe for concurrent use; give each sender its
    own client or serialize access externally.
    """

    def __init__(self, cfg: CarbonClientConfig, socket_factory: SocketFactory = socket.create_connection):
        self._cfg = cfg
        self._socket_factory = socket_factory
        self._sock: socket.socket | None = None
        self._state = ConnectionState.DISCONNECTED
        if cfg.connect_on_init:
            self.reconnect()

    @classmethod
    def build(
        cls,
        address: str,
        port: int,
        retries: int = DEFAULT_RETRIES,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        *,
        socket_factory: SocketFactory = socket.create_connection,
        **options: Any,
    ) -> CarbonClient:
        cfg = CarbonClientConfig(address, port, retries=retries, timeout_s=timeout_s, **options)
        return cls(cfg, socket_factory=socket_factory)

    @property
    def config(self) -> CarbonClientConfig:
        return self._cfg

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _open(self) -> socket.socket:
        cfg = self._cfg
        sock = self._socket_factory(cfg.sock_addr, timeout=cfg.timeout_s)
        try:
            sock.settimeout(cfg.timeout_s)
            if cfg.nodelay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            if cfg.ip_version == 6:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS, cfg.ttl)
            else:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, cfg.ttl)
        except OSError:
            sock.close()
            raise
        return sock

    def _connect_once(self) -> socket.socket:
        self._state = ConnectionState.RECONNECTING
        try:
            sock = self._open()
        except OSError:
            self._state = ConnectionState.DISCONNECTED
            raise
        self._sock = sock
        self._state = ConnectionState.CONNECTED
        logger.debug("Connected to %s:%d", *self._cfg.sock_addr)
        return sock

    def _try_connect(self) -> tuple[_Outcome, OSError | None]:
        try:
            self._connect_once()
        except OSError as e:
            return _classify(e), e
        return _Outcome.SUCCESS, None

    def _try_send(self, data: bytes) -> tuple[_Outcome, OSError | None]:
        sock = self._sock
        if sock is None:
            try:
                sock = self._connect_once()
            except OSError as e:
                return _classify(e), e
        try:
            sock.sendall(data)
        except OSError as e:
            self._drop()
            return _Outcome.TRANSIENT, e
        return _Outcome.SUCCESS, None

    def reconnect(self) -> None:
        """Replace the current connection, trying up to ``retries`` times."""
        self._drop()
        cfg = self._cfg
        last_error: OSError | None = None
        for attempt in range(1, cfg.retries + 1):
            outcome, last_error = self._try_connect()
            if outcome is _Outcome.SUCCESS:
                return
            if outcome is _Outcome.FATAL:
                raise ConnectError(cfg.sock_addr, attempt, last_error) from last_error
            logger.warning(
                "Connect attempt %d/%d to %s:%d failed: %s", attempt, cfg.retries, *cfg.sock_addr, last_error
            )

        logger.error("Giving up connecting to %s:%d after %d attempt(s)", *cfg.sock_addr, cfg.retries)
        raise ConnectError(cfg.sock_addr, cfg.retries, last_error) from last_error

    def send_message(self, message: Message) -> int:
        """Write one metric line, reconnecting on failure. Returns bytes written.

        Each of the ``retries`` attempts connects if needed and then writes;
        once they are used up ``RetriesExhausted`` is raised. A connect that
        fails with ``socket.gaierror`` (an address the host cannot use at all)
        is not retried and raises ``ConnectError`` straight away.
        ``InvalidMetric`` is raised before any attempt.
        """
        data = encode(message).encode("ascii")
        cfg = self._cfg
        last_error: OSError | None = None
        for attempt in range(1, cfg.retries + 1):
            outcome, last_error = self._try_send(data)
            if outcome is _Outcome.SUCCESS:
                logger.debug("Sent %d bytes to %s:%d", len(data), *cfg.sock_addr)
                return len(data)
            if outcome is _Outcome.FATAL:
                raise ConnectError(cfg.sock_addr, attempt, last_error) from last_error
            logger.warning("Send attempt %d/%d failed: %s", attempt, cfg.retries, last_error)

        self._drop()
        logger.error("Giving up sending %r after %d attempt(s)", message.key_path, cfg.retries)
        raise RetriesExhausted(cfg.retries, last_error) from last_error

    def _drop(self) -> None:
        sock, self._sock = self._sock, None
        self._state = ConnectionState.DISCONNECTED
        if sock is None:
            return
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        sock.close()

    def close(self) -> None:
        self._drop()

    def __enter__(self) -> CarbonClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_sock", None) is not None:
            self._drop()

    def __repr__(self) -> str:
        host, port = self._cfg.sock_addr
        return f"CarbonClient({host}:{port}, retries={self._cfg.retries}, state={self._state.value})"
