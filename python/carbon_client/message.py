from __future__ import annotations

import time
from dataclasses import dataclass, field

from .errors import InvalidMetric


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class Message:
    key_path: str
    value: str
    timestamp: int = field(default_factory=_now)

    def __post_init__(self) -> None:
        # Numbers keep whatever precision str() gives them.
        if isinstance(self.value, (int, float)) and not isinstance(self.value, bool):
            object.__setattr__(self, "value", str(self.value))

    def __str__(self) -> str:
        return encode(self)


def _check_token(name: str, token: object) -> str:
    if not isinstance(token, str) or not token:
        raise InvalidMetric(f"{name} must be a non-empty string, got {token!r}")
    if not token.isascii():
        raise InvalidMetric(f"{name} must be ASCII: {token!r}")
    if any(ch.isspace() for ch in token):
        raise InvalidMetric(f"{name} must not contain whitespace: {token!r}")
    return token


def encode(message: Message) -> str:
    """Render a message as one Carbon plaintext line, newline included."""
    key_path = _check_token("key path", message.key_path)
    value = _check_token("value", message.value)
    ts = message.timestamp
    if isinstance(ts, bool) or not isinstance(ts, int) or ts < 0:
        raise InvalidMetric(f"timestamp must be a non-negative integer, got {ts!r}")
    return f"{key_path} {value} {ts}\n"


def parse_line(line: str) -> Message:
    """Parse one plaintext protocol line back into a Message."""
    if line.endswith("\n"):
        line = line[:-1]
    if "\n" in line:
        raise InvalidMetric(f"Expected a single line: {line!r}")

    fields = line.split(" ")
    if len(fields) != 3:
        raise InvalidMetric(f"Expected 'path value timestamp': {line!r}")
    key_path, value, raw_ts = fields
    if not (raw_ts.isascii() and raw_ts.isdigit()):
        raise InvalidMetric(f"Invalid timestamp {raw_ts!r}")

    msg = Message(key_path, value, int(raw_ts))
    # Reject anything encode() would not have produced.
    encode(msg)
    return msg
