"""HeartbeatManager timer behaviour."""

from resock.connection.client_config import ClientConfig
from resock.connection.heartbeat_manager import HeartbeatManager


def make_heartbeat(loop, sent, on_timeout=None, **config):
    return HeartbeatManager(loop, ClientConfig(**config), sent.append, on_timeout)


def test_one_ping_per_interval(loop):
    sent = []
    heartbeat = make_heartbeat(loop, sent, ping_interval=30000)
    heartbeat.start()

    loop.advance(29999)
    assert sent == []
    loop.advance(1)
    assert sent == ["ping"]
    loop.advance(30000)
    assert sent == ["ping", "ping"]
    assert heartbeat.pings_sent == 2


def test_restart_does_not_duplicate_timers(loop):
    sent = []
    heartbeat = make_heartbeat(loop, sent, ping_interval=1000)
    heartbeat.start()
    heartbeat.start()
    heartbeat.start()

    assert len(loop.pending()) == 1
    loop.advance(1000)
    assert sent == ["ping"]


def test_disabled_heartbeat(loop):
    sent = []
    heartbeat = make_heartbeat(loop, sent, ping_interval=0)
    heartbeat.start()
    assert not heartbeat.running
    assert loop.pending() == []


def test_stop_cancels(loop):
    sent = []
    heartbeat = make_heartbeat(loop, sent, ping_interval=1000)
    heartbeat.start()
    heartbeat.stop()
    loop.advance(10000)
    assert sent == []
    assert not heartbeat.running


def test_producer_called_every_tick(loop):
    sent = []
    ticks = iter(range(10))
    heartbeat = make_heartbeat(loop, sent, ping_interval=1000, ping_message=lambda: f"hb:{next(ticks)}")
    heartbeat.start()
    loop.advance(3000)
    assert sent == ["hb:0", "hb:1", "hb:2"]


def test_send_failure_keeps_heartbeat_running(loop):
    calls = []

    def flaky_send(payload):
        calls.append(payload)
        if len(calls) == 1:
            raise ConnectionError("write failed")

    heartbeat = HeartbeatManager(loop, ClientConfig(ping_interval=1000), flaky_send)
    heartbeat.start()
    loop.advance(2000)

    assert calls == ["ping", "ping"]
    assert heartbeat.pings_sent == 1
    assert heartbeat.running


def test_stop_during_send_is_respected(loop):
    holder = {}

    def send_then_stop(payload):
        holder['heartbeat'].stop()

    heartbeat = HeartbeatManager(loop, ClientConfig(ping_interval=1000), send_then_stop)
    holder['heartbeat'] = heartbeat
    heartbeat.start()
    loop.advance(1000)

    assert not heartbeat.running
    assert loop.pending() == []


def test_pong_timeout_fires_without_traffic(loop):
    sent, timeouts = [], []
    heartbeat = make_heartbeat(
        loop, sent, lambda: timeouts.append(loop.now), ping_interval=10000, pong_timeout=3000
    )
    heartbeat.start()
    loop.advance(10000)
    assert heartbeat.awaiting_pong
    loop.advance(3000)
    assert len(timeouts) == 1


def test_acknowledge_cancels_pong_timeout(loop):
    sent, timeouts = [], []
    heartbeat = make_heartbeat(
        loop, sent, lambda: timeouts.append(True), ping_interval=10000, pong_timeout=3000
    )
    heartbeat.start()
    loop.advance(10000)
    heartbeat.acknowledge()
    assert not heartbeat.awaiting_pong
    loop.advance(3000)
    assert timeouts == []


def test_is_heartbeat(loop):
    heartbeat = make_heartbeat(loop, [], ping_message="ping")
    assert heartbeat.is_heartbeat("ping")
    assert heartbeat.is_heartbeat("pong")
    assert not heartbeat.is_heartbeat("PING")
    assert not heartbeat.is_heartbeat({"event": "ping"})


def test_is_heartbeat_with_producer(loop):
    heartbeat = make_heartbeat(loop, [], ping_message=lambda: "hb-1")
    assert not heartbeat.is_heartbeat("hb-1")
    heartbeat.next_payload()
    assert heartbeat.is_heartbeat("hb-1")
    assert heartbeat.is_heartbeat("pong")


def test_binary_frames_are_not_heartbeats(loop):
    heartbeat = make_heartbeat(loop, [], ping_message=lambda: b"hb")
    heartbeat.next_payload()
    assert not heartbeat.is_heartbeat(b"pong")
    assert not heartbeat.is_heartbeat(b"ping")
    assert not heartbeat.is_heartbeat(b"hb")
