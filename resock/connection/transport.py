# Transport - Socket Primitive
# The bidirectional, message-oriented connection the client drives

"""
Transport Module

Responsibilities:
- Describe the transport contract the client relies on
  (open/message/error/close callbacks, send, close)
- Provide the default implementation on top of the websockets library
- Allow a replaced transport to be detached so it can no longer
  deliver events into its former owner
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence

import websockets
from websockets.exceptions import ConnectionClosed
from websockets.uri import parse_uri

from .errors import SocketClientError, TransportError
from ..utils.helpers import truncate
from ..utils.logger import setup_component_logger

ABNORMAL_CLOSURE = 1006


class Transport(ABC):
    """
    Abstract transport

    Owners assign the four callbacks right after construction. Events
    fire from the event loop; a callback set to None is skipped.
    """

    def __init__(self, url: str, protocols: Sequence[str] = ()):
        self.url = url
        self.protocols = tuple(protocols)
        self.on_open: Optional[Callable[[Any], None]] = None
        self.on_message: Optional[Callable[[Any], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_close: Optional[Callable[[int, str], None]] = None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def send(self, payload) -> None:
        """Send one frame; raises TransportError unless open"""

    @abstractmethod
    def close(self, code: int = 1000, reason: str = "") -> None:
        ...

    def detach(self):
        """Drop every callback"""
        self.on_open = None
        self.on_message = None
        self.on_error = None
        self.on_close = None

    def _emit_open(self, event):
        if self.on_open:
            self.on_open(event)

    def _emit_message(self, data):
        if self.on_message:
            self.on_message(data)

    def _emit_error(self, error: Exception):
        if self.on_error:
            self.on_error(error)

    def _emit_close(self, code: int, reason: str):
        if self.on_close:
            self.on_close(code, reason)


class WebsocketsTransport(Transport):
    """
    Transport backed by the websockets asyncio client

    The handshake starts on construction. Library keepalive and open
    timeout are disabled: the owning client runs its own heartbeat and
    connect timeout.
    """

    def __init__(
        self,
        url: str,
        protocols: Sequence[str] = (),
        loop: Optional[asyncio.AbstractEventLoop] = None,
        log_level: str = "INFO",
        log_file: Optional[str] = None
    ):
        """
        Args:
            url: ws:// or wss:// address
            protocols: Subprotocols to offer
            loop: Event loop (defaults to the running loop)

        Raises:
            websockets.exceptions.InvalidURI: if url is not a WebSocket URI
            RuntimeError: if no loop is given and none is running
        """
        super().__init__(url, protocols)
        parse_uri(url)
        self._loop = loop or asyncio.get_running_loop()
        self.logger = setup_component_logger("WebsocketsTransport", log_level, log_file)
        self.connection = None
        self._open = False
        self._closing = False
        self._tasks: set = set()
        self._runner = self._loop.create_task(self._run())

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def ready_state(self) -> int:
        """0 connecting, 1 open, 2 closing, 3 closed"""
        if self._open:
            return 1
        if self._runner.done():
            return 3
        if self._closing:
            return 2
        return 0

    async def _run(self):
        try:
            self.connection = await websockets.connect(
                self.url,
                subprotocols=list(self.protocols) or None,
                ping_interval=None,  # heartbeat handled by the client
                open_timeout=None,   # connect timeout handled by the client
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Connection to {self.url} failed: {e}")
            self._emit_error(e)
            self._emit_close(ABNORMAL_CLOSURE, str(e))
            return

        self._open = True
        self._emit_open({
            'url': self.url,
            'subprotocol': self.connection.subprotocol,
        })

        try:
            async for message in self.connection:
                self._emit_message(message)
        except ConnectionClosed:
            pass
        except asyncio.CancelledError:
            self._open = False
            raise
        except Exception as e:
            self.logger.error(f"Receive loop error: {e}")
            self._emit_error(e)

        self._open = False
        self._emit_close(
            self.connection.close_code or ABNORMAL_CLOSURE,
            self.connection.close_reason or "",
        )

    def send(self, payload) -> None:
        if not self._open or self.connection is None:
            raise TransportError("Transport is not open", SocketClientError.Code.NOT_CONNECTED)
        self.logger.debug(f"Sending: {truncate(payload)}")
        self._track(self._loop.create_task(self.connection.send(payload)))

    def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closing:
            return
        self._closing = True
        self._open = False
        if self.connection is not None:
            self._track(self._loop.create_task(self.connection.close(code, reason)))
        else:
            # Handshake still in flight
            self._runner.cancel()

    def _track(self, task: asyncio.Task):
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and not isinstance(error, ConnectionClosed):
            self.logger.error(f"Transport operation failed: {error}")
            self._emit_error(error)
