# Client Config - Connection Settings
# Immutable configuration record for ReconnectingSocketClient

"""
Client Config Module

Responsibilities:
- Hold every tunable of the reconnecting client with its default
- Validate values at construction (invalid values are rejected, never clamped)
- Build a config from a plain mapping such as a YAML section

All intervals are milliseconds.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError
from ..utils.logger import setup_logger, is_valid_level

PingMessage = Union[str, Callable[[], str]]

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def validate_config(values: Mapping[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate client configuration values

    Only keys present in the mapping are checked, so a partial section
    from a config file can be validated before defaults are applied.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    url = values.get('url')
    if url is not None and not isinstance(url, str):
        errors.append("url must be a string")

    non_negative = [
        'reconnect_interval',
        'max_reconnect_interval',
        'max_reconnect_attempts',
        'connect_timeout',
        'pong_timeout',
    ]
    for key in non_negative:
        value = values.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"{key} must be a number")
        elif value < 0:
            errors.append(f"{key} must not be negative (got {value})")

    if isinstance(values.get('connect_timeout'), (int, float)) and values['connect_timeout'] == 0:
        errors.append("connect_timeout must be greater than 0")

    attempts = values.get('max_reconnect_attempts')
    if isinstance(attempts, float):
        errors.append(f"max_reconnect_attempts must be a whole number (got {attempts})")

    auto_reconnect = values.get('auto_reconnect')
    if auto_reconnect is not None and not isinstance(auto_reconnect, bool):
        errors.append("auto_reconnect must be true or false")

    base = values.get('reconnect_interval')
    cap = values.get('max_reconnect_interval')
    if isinstance(base, (int, float)) and isinstance(cap, (int, float)) and cap < base:
        errors.append(
            f"max_reconnect_interval ({cap}) must not be below reconnect_interval ({base})"
        )

    decay = values.get('reconnect_decay')
    if decay is not None:
        if isinstance(decay, bool) or not isinstance(decay, (int, float)):
            errors.append("reconnect_decay must be a number")
        elif decay < 1:
            errors.append(f"reconnect_decay must be >= 1 (got {decay})")

    ping_interval = values.get('ping_interval')
    if ping_interval is not None and (
        isinstance(ping_interval, bool) or not isinstance(ping_interval, (int, float))
    ):
        errors.append("ping_interval must be a number")

    ping_message = values.get('ping_message')
    if ping_message is not None and not (isinstance(ping_message, str) or callable(ping_message)):
        errors.append("ping_message must be a string or a zero-argument callable")

    if 'protocols' in values:
        protocols = values['protocols']
        if not isinstance(protocols, (list, tuple)) or not all(isinstance(p, str) for p in protocols):
            errors.append("protocols must be a list of strings")

    level = values.get('log_level')
    if level is not None and not is_valid_level(level):
        errors.append(f"log_level {level!r} is not a logging level")

    log_file = values.get('log_file')
    if log_file is not None and not isinstance(log_file, str):
        errors.append("log_file must be a path string")

    return (len(errors) == 0, errors)


@dataclass(frozen=True)
class ClientConfig:
    """Reconnecting client configuration (immutable after construction)"""
    url: str = ""
    protocols: Sequence[str] = field(default_factory=tuple)
    auto_reconnect: bool = True
    reconnect_interval: float = 1000
    max_reconnect_interval: float = 30000
    reconnect_decay: float = 1.5
    max_reconnect_attempts: int = 0      # 0 = unlimited
    ping_interval: float = 30000         # <= 0 disables heartbeat
    ping_message: PingMessage = "ping"
    connect_timeout: float = 10000
    pong_timeout: float = 0              # 0 = never give up on a silent peer
    log_level: str = "INFO"
    log_file: Optional[str] = None       # also write component logs here

    def __post_init__(self):
        is_valid, errors = validate_config(self.as_dict())
        if not is_valid:
            raise ConfigurationError(errors)
        object.__setattr__(self, 'protocols', tuple(self.protocols))

    @property
    def ping_enabled(self) -> bool:
        return self.ping_interval > 0

    @property
    def pong_timeout_enabled(self) -> bool:
        return self.ping_enabled and self.pong_timeout > 0

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ClientConfig":
        """
        Build config from a mapping

        Keys may be snake_case or camelCase (``reconnectInterval``).
        Unknown keys are logged and ignored.

        Raises:
            ConfigurationError: if any value is invalid
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (values or {}).items():
            name = _CAMEL_BOUNDARY.sub('_', key).lower()
            if name == 'timeout':
                name = 'connect_timeout'
            if name in known:
                kwargs[name] = value
            else:
                setup_logger("ClientConfig", "INFO").warning(
                    f"Ignoring unknown config key: {key}"
                )
        return cls(**kwargs)


def check_option_names(names: Iterable[str]):
    """
    Reject keyword options that are not ClientConfig fields

    Raises:
        ConfigurationError: listing every unknown name
    """
    known = {f.name for f in fields(ClientConfig)}
    unknown = sorted(name for name in names if name not in known)
    if unknown:
        raise ConfigurationError([f"unknown option: {name}" for name in unknown])
