# Errors - Connection Layer Exceptions

"""
Error Module

Every failure the client can observe maps to one of these. Only
ConfigurationError is ever raised to callers (at construction); the others
are handed to interceptor error callbacks.
"""

from enum import Enum, auto


class SocketClientError(Exception):
    """Base error for the reconnecting socket client"""

    class Code(Enum):
        CONFIGURATION = auto()
        NOT_CONNECTED = auto()
        TRANSPORT = auto()
        RECONNECT_EXHAUSTED = auto()
        HEARTBEAT_TIMEOUT = auto()

    code = Code.TRANSPORT

    def __init__(self, message: str, code: "SocketClientError.Code" = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(SocketClientError):
    """Invalid client configuration"""

    code = SocketClientError.Code.CONFIGURATION

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class TransportError(SocketClientError):
    """Transport refused an operation or failed underneath us"""

    code = SocketClientError.Code.TRANSPORT


class ReconnectExhaustedError(SocketClientError):
    """Reconnect attempt limit reached; auto-recovery has stopped"""

    code = SocketClientError.Code.RECONNECT_EXHAUSTED

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Gave up reconnecting after {attempts} attempts")


class HeartbeatTimeoutError(SocketClientError):
    """Peer did not answer a heartbeat in time"""

    code = SocketClientError.Code.HEARTBEAT_TIMEOUT
