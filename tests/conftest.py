"""Shared fixtures: a manually advanced event loop and a scriptable transport."""

import itertools

import pytest

from resock.connection.errors import TransportError
from resock.connection.transport import Transport
from resock.connection.websocket_client import ReconnectingSocketClient


class FakeTimer:
    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """call_later() with a clock that only moves when told to."""

    def __init__(self):
        self.now = 0.0
        self._timers = []
        self._seq = itertools.count()

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        timer = FakeTimer(self.now + delay, next(self._seq), callback, args)
        self._timers.append(timer)
        return timer

    def pending(self):
        return [t for t in self._timers if not t.cancelled and not t.fired]

    def advance(self, ms):
        target = self.now + ms / 1000.0
        while True:
            due = [t for t in self.pending() if t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self.now = max(self.now, timer.when)
            timer.fired = True
            timer.callback(*timer.args)
        self.now = target


class FakeTransport(Transport):
    """Transport whose lifecycle is driven by the test."""

    def __init__(self, url, protocols=()):
        super().__init__(url, protocols)
        self.sent = []
        self.closed_with = None
        self.fail_send = False
        self._open = False

    @property
    def is_open(self):
        return self._open

    def send(self, payload):
        if not self._open:
            raise TransportError("not open")
        if self.fail_send:
            raise TransportError("send failed")
        self.sent.append(payload)

    def close(self, code=1000, reason=""):
        self.closed_with = (code, reason)
        self._open = False

    # Test drivers
    def open(self):
        self._open = True
        self._emit_open({'url': self.url})

    def receive(self, data):
        self._emit_message(data)

    def fail(self, error):
        self._emit_error(error)

    def drop(self, code=1006, reason="connection lost"):
        self._open = False
        self._emit_close(code, reason)


class FakeTransportFactory:
    def __init__(self):
        self.created = []
        self.refuse = False

    def __call__(self, url, protocols):
        if self.refuse:
            raise OSError("connection refused")
        transport = FakeTransport(url, protocols)
        self.created.append(transport)
        return transport

    @property
    def last(self):
        return self.created[-1]


@pytest.fixture
def loop():
    return FakeLoop()


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def make_client(loop, factory):
    def make(**overrides):
        overrides.setdefault('url', "ws://test.local/ws")
        return ReconnectingSocketClient(transport_factory=factory, loop=loop, **overrides)
    return make


@pytest.fixture
def recorder():
    class Recorder:
        def __init__(self):
            self.opened = []
            self.errors = []
            self.messages = []
            self.message_errors = []

        def install(self, client):
            client.use_connection_interceptor(self.opened.append, self.errors.append)
            client.use_message_interceptor(self.messages.append, self.message_errors.append)
            return client

    return Recorder()
