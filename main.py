# resock - Main Entry Point
# Runs one reconnecting socket client until SIGINT/SIGTERM

"""
resock runner

Loads config/config.yaml (plus config/secrets.env and RESOCK_* environment
overrides), connects, re-sends the configured subscription messages after
every (re)connect, logs inbound traffic and reports connection statistics
periodically.

Usage:
    python main.py
"""

import asyncio
import os
import signal
from copy import deepcopy
from datetime import datetime
from pathlib import Path

import yaml
from dotenv import load_dotenv

from resock.connection.client_config import ClientConfig, validate_config
from resock.connection.errors import ConfigurationError
from resock.connection.websocket_client import ReconnectingSocketClient
from resock.utils.helpers import format_timestamp, truncate
from resock.utils.logger import setup_logger

# Global flag for shutdown
shutdown_event = asyncio.Event()

DEFAULT_CONFIG = {
    'websocket': {
        'url': "ws://localhost:8765",
        'protocols': [],
        'auto_reconnect': True,
        'reconnect_interval': 1000,
        'max_reconnect_interval': 30000,
        'reconnect_decay': 1.5,
        'max_reconnect_attempts': 0,
        'ping_interval': 30000,
        'ping_message': "ping",
        'connect_timeout': 10000,
        'pong_timeout': 0,
    },
    'session': {
        'subscribe': [],
        'stats_interval': 60,
    },
    'logging': {
        'level': "INFO",
        'file': None,
    },
}


class SocketMonitor:
    """
    Application wrapper around ReconnectingSocketClient
    """

    def __init__(self, config: dict):
        """Initialize monitor from a validated config"""
        self.config = config
        logging_config = config.get('logging', {})
        self.logger = setup_logger(
            "SocketMonitor",
            logging_config.get('level', "INFO"),
            logging_config.get('file'),
        )

        session_config = config.get('session', {})
        self.subscriptions = session_config.get('subscribe', [])
        self.stats_interval = session_config.get('stats_interval', 60)

        ws_config = dict(config['websocket'])
        ws_config.setdefault('log_level', logging_config.get('level', "INFO"))
        ws_config.setdefault('log_file', logging_config.get('file'))
        self.client_config = ClientConfig.from_dict(ws_config)
        self.client = None

        self.stats = {
            'connections': 0,
            'messages_received': 0,
            'structured_messages': 0,
            'errors': 0,
            'message_errors': 0,
        }
        self.start_time = datetime.now()

    def on_open(self, event):
        """Re-send subscriptions on every (re)connect"""
        self.stats['connections'] += 1
        self.logger.info(f"🔌 Connected (connection #{self.stats['connections']})")
        for message in self.subscriptions:
            if self.client.send(message):
                self.logger.info(f"Subscribed: {truncate(message)}")

    def on_error(self, error: Exception):
        self.stats['errors'] += 1
        self.logger.error(f"Connection error: {error}")

    def on_message(self, message):
        self.stats['messages_received'] += 1
        if not isinstance(message.payload, (str, bytes)):
            self.stats['structured_messages'] += 1
        self.logger.info(
            f"📨 [{format_timestamp(message.received_at_ms)}] {truncate(message.payload)}"
        )

    def on_message_error(self, error: Exception):
        self.stats['message_errors'] += 1
        self.logger.error(f"Message handling error: {error}")

    async def stats_reporter(self):
        """Log connection statistics every stats_interval seconds"""
        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.stats_interval)
            except asyncio.TimeoutError:
                pass
            uptime = (datetime.now() - self.start_time).total_seconds()
            self.logger.info(
                f"📊 status={self.client.status} "
                f"attempts={self.client.reconnect_attempts} "
                f"connections={self.stats['connections']} "
                f"messages={self.stats['messages_received']} "
                f"errors={self.stats['errors']} "
                f"uptime={uptime:.0f}s"
            )

    async def run(self):
        """Run until shutdown_event is set"""
        self.logger.info(f"🚀 Starting client for {self.client_config.url}")
        self.client = ReconnectingSocketClient(self.client_config)
        self.client.use_connection_interceptor(self.on_open, self.on_error)
        self.client.use_message_interceptor(self.on_message, self.on_message_error)

        reporter = asyncio.create_task(self.stats_reporter())
        try:
            await shutdown_event.wait()
        finally:
            self.logger.info("Shutting down...")
            self.client.close(1000, "client shutdown")
            reporter.cancel()
            try:
                await reporter
            except asyncio.CancelledError:
                pass
            self.logger.info("✅ Shutdown complete")


def validate_app_config(config: dict) -> tuple[bool, list[str]]:
    """
    Validate configuration structure

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if 'websocket' not in config:
        errors.append("Missing required section: websocket")
        return (False, errors)

    if not config['websocket'].get('url'):
        errors.append("Config error: websocket.url must be set")

    _, ws_errors = validate_config(config['websocket'])
    errors.extend(f"Config error: websocket.{error}" for error in ws_errors)

    subscriptions = config.get('session', {}).get('subscribe', [])
    if not isinstance(subscriptions, list):
        errors.append("Config error: session.subscribe must be a list")

    stats_interval = config.get('session', {}).get('stats_interval', 60)
    if not isinstance(stats_interval, (int, float)) or stats_interval <= 0:
        errors.append("Config error: session.stats_interval must be a positive number")

    return (len(errors) == 0, errors)


def load_config() -> dict:
    """
    Load configuration from files and environment

    config/config.yaml sections are merged over DEFAULT_CONFIG;
    RESOCK_URL, RESOCK_PROTOCOLS and RESOCK_LOG_FILE override them.
    """
    project_root = Path(__file__).parent
    load_dotenv(project_root / "config" / "secrets.env")

    config = deepcopy(DEFAULT_CONFIG)
    config_path = project_root / "config" / "config.yaml"
    if config_path.exists():
        with open(config_path) as f:
            loaded = yaml.safe_load(f) or {}
        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values

    if os.getenv('RESOCK_URL'):
        config['websocket']['url'] = os.getenv('RESOCK_URL')
    if os.getenv('RESOCK_PROTOCOLS'):
        config['websocket']['protocols'] = [
            p.strip() for p in os.getenv('RESOCK_PROTOCOLS').split(',') if p.strip()
        ]
    if os.getenv('RESOCK_LOG_FILE'):
        config['logging']['file'] = os.getenv('RESOCK_LOG_FILE')

    return config


def handle_shutdown(signum=None, frame=None):
    """Handle shutdown signals"""
    print("\n🛑 Received shutdown signal")
    shutdown_event.set()


async def main():
    """Main entry point"""
    logger = setup_logger("Main", "INFO")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_shutdown)
        except NotImplementedError:
            signal.signal(sig, handle_shutdown)

    logger.info("Loading configuration...")
    config = load_config()

    is_valid, errors = validate_app_config(config)
    if not is_valid:
        logger.error("❌ Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return

    try:
        app = SocketMonitor(config)
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        return

    await app.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
