from __future__ import annotations


class CarbonError(Exception):
    pass


class ConfigError(CarbonError, ValueError):
    pass


class InvalidMetric(CarbonError, ValueError):
    pass


class ConnectError(CarbonError):
    def __init__(self, address: tuple[str, int], attempts: int, last_error: OSError | None):
        self.address = address
        self.attempts = attempts
        self.last_error = last_error
        host, port = address
        super().__init__(f"Cannot connect to {host}:{port} after {attempts} attempt(s): {last_error}")


class SendError(CarbonError):
    pass


class RetriesExhausted(SendError):
    def __init__(self, attempts: int, last_error: Exception | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Send failed after {attempts} attempt(s): {last_error}")
