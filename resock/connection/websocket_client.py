# WebSocket Client - Connection Management
# Reconnecting client for a persistent, message-oriented socket

"""
WebSocket Client Module

Responsibilities:
- Establish the transport connection and arm a connect timeout
- Track connection state (CONNECTING / OPEN / CLOSING / CLOSED)
- Auto-reconnect with bounded exponential backoff
- Heartbeat while open
- Dispatch lifecycle and message events to interceptors
- Outbound send with JSON serialisation

Everything runs on the event loop as short callbacks (transport events and
call_later timers); nothing blocks and nothing is awaited internally.
"""

import asyncio
import dataclasses
import inspect
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from .client_config import ClientConfig, check_option_names
from .errors import HeartbeatTimeoutError, ReconnectExhaustedError, TransportError
from .heartbeat_manager import HeartbeatManager
from .reconnect_scheduler import ReconnectScheduler, ReconnectState
from .transport import Transport, WebsocketsTransport
from ..processors.message_parser import MessageParser
from ..utils.helpers import ms_to_seconds, format_duration, truncate
from ..utils.logger import setup_component_logger

TransportFactory = Callable[[str, Sequence[str]], Transport]

HEARTBEAT_TIMEOUT_CODE = 4000


class ConnectionState(Enum):
    """Connection states (values match the WebSocket readyState numbers)"""
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class ConnectionInterceptor:
    """Lifecycle callbacks: on_open(event), on_error(error)"""
    on_open: Optional[Callable] = None
    on_error: Optional[Callable] = None


@dataclass
class MessageInterceptor:
    """Message callbacks: on_message(InboundMessage), on_error(error)"""
    on_message: Optional[Callable] = None
    on_error: Optional[Callable] = None


class ReconnectingSocketClient:
    """
    Reconnecting socket client

    Features:
    - Auto-reconnect with exponential backoff and an optional attempt limit
    - Connect timeout
    - Heartbeat with optional pong timeout
    - Single-slot interceptors for lifecycle and message events
    - Manual close that suppresses auto-reconnect

    The client starts connecting as soon as it is constructed. Construct
    it inside a running event loop or pass ``loop`` explicitly.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        loop=None,
        **overrides
    ):
        """
        Initialize client and start connecting

        Args:
            config: Client configuration (defaults to ClientConfig())
            transport_factory: Builds a transport from (url, protocols);
                defaults to WebsocketsTransport
            loop: Event loop providing call_later() (defaults to the running loop)
            **overrides: ClientConfig fields applied on top of ``config``

        Raises:
            ConfigurationError: if an override is unknown or the resulting
                configuration is invalid
        """
        check_option_names(overrides)
        if config is None:
            config = ClientConfig(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config

        self._loop = loop or asyncio.get_running_loop()
        self._transport_factory = transport_factory or self._default_transport
        self.logger = setup_component_logger(
            "ReconnectingSocketClient", config.log_level, config.log_file
        )

        # Connection state
        self.transport: Optional[Transport] = None
        self.state = ConnectionState.CLOSED
        self.reconnect_state = ReconnectState()

        # Timers
        self._connect_timer = None
        self.scheduler = ReconnectScheduler(self._loop, config, self._on_reconnect_timer)
        self.heartbeat = HeartbeatManager(
            self._loop, config, self._send_raw, self._on_heartbeat_timeout
        )

        self.parser = MessageParser(config.log_level, config.log_file)
        self.connection_interceptor = ConnectionInterceptor()
        self.message_interceptor = MessageInterceptor()
        self._tasks: set = set()

        self.connect()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def connect(self):
        """Open a new transport unless already open"""
        if self.state == ConnectionState.OPEN:
            self.logger.info("Already connected")
            return

        self._clear_timers()
        self.reconnect_state.manual_close = False
        self.state = ConnectionState.CONNECTING
        self._discard_transport()

        self.logger.info(f"Connecting to {self.config.url}...")
        try:
            transport = self._transport_factory(self.config.url, list(self.config.protocols))
        except Exception as e:
            self.logger.error(f"Failed to create transport: {e}")
            self.state = ConnectionState.CLOSED
            self._report(self.connection_interceptor.on_error, TransportError(str(e)))
            self._schedule_reconnect()
            return

        self._attach(transport)
        self._connect_timer = self._loop.call_later(
            ms_to_seconds(self.config.connect_timeout), self._on_connect_timeout
        )

    def close(self, code: int = 1000, reason: str = "normal closure"):
        """
        Close the connection and stop auto-reconnect

        Cancels every timer and detaches the transport before returning.
        """
        self.logger.info("Disconnecting...")
        self.reconnect_state.manual_close = True
        self._clear_timers()

        if self.transport is not None:
            self.state = ConnectionState.CLOSING
        self._discard_transport(code, reason)

        self.state = ConnectionState.CLOSED
        self.logger.info("✅ Disconnected")

    def reconnect(self):
        """Start a fresh connection now, skipping any backoff wait"""
        self.logger.info("Manual reconnect requested")
        self.reconnect_state.reset()
        self.close()
        self.reconnect_state.manual_close = False
        self.connect()

    def send(self, data: Any) -> bool:
        """
        Send a message

        Args:
            data: str/bytes sent as-is, anything else JSON-serialised

        Returns:
            True if handed to the transport, False otherwise
        """
        if self.state != ConnectionState.OPEN or self.transport is None:
            self.logger.warning("Cannot send message: Not connected")
            return False

        try:
            message = data if isinstance(data, (str, bytes)) else json.dumps(data)
            self.transport.send(message)
            self.logger.debug(f"Sent: {truncate(message)}")
            return True
        except Exception as e:
            self.logger.error(f"Failed to send message: {e}")
            return False

    def get_state(self) -> ConnectionState:
        return self.state

    @property
    def status(self) -> str:
        return self.state.label

    @property
    def ready_state(self) -> int:
        return self.state.value

    @property
    def reconnect_attempts(self) -> int:
        return self.reconnect_state.attempts

    def is_connected(self) -> bool:
        return self.state == ConnectionState.OPEN and self.transport is not None

    # Interceptor registration (re-registering replaces the previous pair)
    def use_connection_interceptor(self, on_open: Optional[Callable] = None, on_error: Optional[Callable] = None):
        self.connection_interceptor = ConnectionInterceptor(on_open, on_error)

    def use_message_interceptor(self, on_message: Optional[Callable] = None, on_error: Optional[Callable] = None):
        self.message_interceptor = MessageInterceptor(on_message, on_error)

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def _default_transport(self, url: str, protocols: Sequence[str]) -> Transport:
        return WebsocketsTransport(
            url, protocols, loop=self._loop,
            log_level=self.config.log_level, log_file=self.config.log_file
        )

    def _attach(self, transport: Transport):
        self.transport = transport
        transport.on_open = lambda event: self._on_transport_open(transport, event)
        transport.on_message = lambda data: self._on_transport_message(transport, data)
        transport.on_error = lambda error: self._on_transport_error(transport, error)
        transport.on_close = lambda code, reason: self._on_transport_close(transport, code, reason)

    def _on_transport_open(self, transport: Transport, event):
        if transport is not self.transport:
            return
        self._cancel_connect_timer()
        self.state = ConnectionState.OPEN
        self.reconnect_state.reset()
        self.logger.info("✅ Connected successfully")

        interceptor = self.connection_interceptor
        self._dispatch(interceptor.on_open, event, interceptor.on_error)

        # on_open may have closed us
        if self.state == ConnectionState.OPEN:
            self.heartbeat.start()

    def _on_transport_message(self, transport: Transport, data):
        if transport is not self.transport:
            return
        self.heartbeat.acknowledge()
        if self.heartbeat.is_heartbeat(data):
            self.logger.debug("Received heartbeat")
            return

        interceptor = self.message_interceptor
        try:
            message = self.parser.parse(data)
        except Exception as e:
            self.logger.error(f"Error handling message: {e}")
            self._report(interceptor.on_error, e)
            return
        self._dispatch(interceptor.on_message, message, interceptor.on_error)

    def _on_transport_error(self, transport: Transport, error: Exception):
        if transport is not self.transport:
            return
        self.logger.error(f"Transport error: {error}")
        self._report(self.connection_interceptor.on_error, error)

    def _on_transport_close(self, transport: Transport, code: int, reason: str):
        if transport is not self.transport:
            return
        self.transport = None
        transport.detach()
        self._connection_lost(code, reason)

    def _connection_lost(self, code: int, reason: str):
        self.logger.warning(f"Connection closed: {code} {reason}")
        self._cancel_connect_timer()
        self.heartbeat.stop()
        self.state = ConnectionState.CLOSED

        if not self.reconnect_state.manual_close and self.config.auto_reconnect:
            self._schedule_reconnect()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _on_connect_timeout(self):
        self._connect_timer = None
        if self.state == ConnectionState.OPEN:
            return
        self.logger.warning(
            f"Connection timeout after {format_duration(self.config.connect_timeout)}"
        )
        self._discard_transport()
        self._schedule_reconnect()

    def _on_heartbeat_timeout(self):
        if self.state != ConnectionState.OPEN:
            return
        self.logger.error("Heartbeat timeout - forcing reconnect")
        self._report(
            self.connection_interceptor.on_error,
            HeartbeatTimeoutError("No response to heartbeat"),
        )
        self._discard_transport(HEARTBEAT_TIMEOUT_CODE, "heartbeat timeout")
        self._connection_lost(HEARTBEAT_TIMEOUT_CODE, "heartbeat timeout")

    def _on_reconnect_timer(self):
        self.reconnect_state.attempts += 1
        self.connect()

    def _schedule_reconnect(self):
        """Feed one lost or failed attempt to the backoff scheduler"""
        if self.reconnect_state.manual_close:
            return
        if not self.config.auto_reconnect:
            self.logger.info("Auto-reconnect disabled, staying closed")
            self.state = ConnectionState.CLOSED
            return

        attempts = self.reconnect_state.attempts
        if self.scheduler.schedule(attempts) is None:
            self.state = ConnectionState.CLOSED
            self._report(self.connection_interceptor.on_error, ReconnectExhaustedError(attempts))

    def _cancel_connect_timer(self):
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

    def _clear_timers(self):
        self._cancel_connect_timer()
        self.heartbeat.stop()
        self.scheduler.cancel()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send_raw(self, payload):
        if self.transport is None:
            raise TransportError("No transport")
        self.transport.send(payload)

    def _discard_transport(self, code: int = 1000, reason: str = "normal closure"):
        """Detach and close the current transport, if any"""
        transport = self.transport
        self.transport = None
        if transport is None:
            return
        transport.detach()
        try:
            transport.close(code, reason)
        except Exception as e:
            self.logger.warning(f"Error closing transport: {e}")

    def _dispatch(self, callback: Optional[Callable], arg, on_error: Optional[Callable]):
        """Call an interceptor callback; failures go to on_error"""
        if callback is None:
            return
        try:
            result = callback(arg)
        except Exception as e:
            self.logger.error(f"Interceptor callback failed: {e}")
            self._report(on_error, e)
            return
        if inspect.isawaitable(result):
            self._track(result, on_error)

    def _report(self, on_error: Optional[Callable], error: Exception):
        """Hand an error to an interceptor error callback"""
        if on_error is None:
            return
        try:
            result = on_error(error)
        except Exception as e:
            self.logger.error(f"Error callback failed: {e}")
            return
        if inspect.isawaitable(result):
            self._track(result, None)

    def _track(self, awaitable, on_error: Optional[Callable]):
        task = asyncio.ensure_future(awaitable, loop=self._loop)
        self._tasks.add(task)

        def done(t):
            self._tasks.discard(t)
            if t.cancelled() or t.exception() is None:
                return
            self.logger.error(f"Interceptor callback failed: {t.exception()}")
            self._report(on_error, t.exception())

        task.add_done_callback(done)


def create_client(config: Optional[ClientConfig] = None, **options) -> ReconnectingSocketClient:
    """Build a new client; each call returns an independent instance"""
    return ReconnectingSocketClient(config, **options)
