from .client import (
    DEFAULT_PORT,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TTL,
    CarbonClient,
    CarbonClientConfig,
    ConnectionState,
)
from .errors import CarbonError, ConfigError, ConnectError, InvalidMetric, RetriesExhausted, SendError
from .message import Message, encode, parse_line

__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT_S",
    "DEFAULT_TTL",
    "CarbonClient",
    "CarbonClientConfig",
    "CarbonError",
    "ConfigError",
    "ConnectError",
    "ConnectionState",
    "InvalidMetric",
    "Message",
    "RetriesExhausted",
    "SendError",
    "encode",
    "parse_line",
]
