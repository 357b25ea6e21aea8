# Heartbeat Manager - Keep Connection Alive
# Periodic ping while open, optional timeout on a silent peer

"""
Heartbeat Manager Module

Responsibilities:
- Send the ping payload every ping_interval ms while the connection is open
- Evaluate a ping producer fresh on every tick
- Expect traffic after each ping when pong_timeout is set
- Report a silent peer so the client can reconnect
- Recognise heartbeat frames so they never reach message interceptors
"""

from typing import Any, Callable, Optional

from .client_config import ClientConfig
from ..utils.helpers import ms_to_seconds, format_duration
from ..utils.logger import setup_component_logger

PONG = "pong"


class HeartbeatManager:
    """
    Manages the heartbeat timer and the pong-timeout timer

    At most one of each is pending at any time: start() and every tick
    cancel the previous instance before arming a new one.
    """

    def __init__(
        self,
        loop,
        config: ClientConfig,
        send: Callable[[str], Any],
        on_timeout: Optional[Callable[[], None]] = None
    ):
        """
        Args:
            loop: Event loop providing call_later()
            config: Client configuration
            send: Sends one payload over the transport (may raise)
            on_timeout: Called when no frame arrived within pong_timeout
        """
        self._loop = loop
        self.config = config
        self._send = send
        self._on_timeout = on_timeout
        self._ping_timer = None
        self._pong_timer = None
        self._active = False
        self._last_payload: Optional[str] = None
        self.pings_sent = 0
        self.logger = setup_component_logger("HeartbeatManager", config.log_level, config.log_file)

    @property
    def running(self) -> bool:
        return self._ping_timer is not None

    @property
    def awaiting_pong(self) -> bool:
        return self._pong_timer is not None

    def start(self):
        """Start heartbeat loop (no-op when ping_interval <= 0)"""
        self.stop()
        if not self.config.ping_enabled:
            return
        self._active = True
        self._arm_ping()
        self.logger.debug(
            f"Heartbeat started (every {format_duration(self.config.ping_interval)})"
        )

    def stop(self):
        """Cancel heartbeat and pong timeout"""
        self._active = False
        if self._ping_timer is not None:
            self._ping_timer.cancel()
            self._ping_timer = None
        self._cancel_pong()

    def acknowledge(self):
        """Any inbound frame proves the peer is alive"""
        self._cancel_pong()

    def next_payload(self) -> str:
        message = self.config.ping_message
        payload = message() if callable(message) else message
        self._last_payload = payload
        return payload

    def is_heartbeat(self, payload) -> bool:
        """True for ping echoes and pong replies"""
        # Text frames only; binary frames are never treated as heartbeat traffic
        if isinstance(payload, (bytes, bytearray)):
            return False
        if payload == PONG:
            return True
        if isinstance(self.config.ping_message, str):
            return payload == self.config.ping_message
        return self._last_payload is not None and payload == self._last_payload

    def send_ping(self):
        """Send one ping; failures are logged, never raised"""
        try:
            payload = self.next_payload()
            self._send(payload)
            self.pings_sent += 1
            self.logger.debug("Sent ping")
        except Exception as e:
            self.logger.error(f"Failed to send heartbeat: {e}")
            return

        if self.config.pong_timeout_enabled and self._pong_timer is None:
            self._pong_timer = self._loop.call_later(
                ms_to_seconds(self.config.pong_timeout), self._pong_expired
            )

    def _arm_ping(self):
        self._ping_timer = self._loop.call_later(
            ms_to_seconds(self.config.ping_interval), self._tick
        )

    def _tick(self):
        self._ping_timer = None
        self.send_ping()
        # send_ping may have stopped us via a synchronous close
        if self._active and self._ping_timer is None:
            self._arm_ping()

    def _cancel_pong(self):
        if self._pong_timer is not None:
            self._pong_timer.cancel()
            self._pong_timer = None

    def _pong_expired(self):
        self._pong_timer = None
        self.logger.warning(
            f"No response to heartbeat within {format_duration(self.config.pong_timeout)}"
        )
        if self._on_timeout:
            self._on_timeout()
