# Reconnect Scheduler - Exponential Backoff
# Single-shot reconnect timer with a bounded, growing delay

"""
Reconnect Scheduler Module

Responsibilities:
- Compute backoff delay: min(base * decay^attempt, cap)
- Enforce the reconnect attempt limit (0 = unlimited)
- Own the one reconnect-delay timer (arming always cancels the previous one)
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .client_config import ClientConfig
from ..utils.helpers import ms_to_seconds, format_duration
from ..utils.logger import setup_component_logger


def compute_backoff_delay(attempt: int, base: float, decay: float, cap: float) -> float:
    """
    Delay before reconnect attempt number ``attempt + 1``

    Args:
        attempt: Attempts made since the last successful open
        base: Base delay in ms
        decay: Growth factor (>= 1)
        cap: Maximum delay in ms

    Returns:
        Delay in milliseconds
    """
    try:
        return min(base * (decay ** attempt), cap)
    except OverflowError:
        # decay ** attempt left float range after a very long outage
        return cap


@dataclass
class ReconnectState:
    """Reconnect bookkeeping owned by the client"""
    attempts: int = 0
    manual_close: bool = False

    def reset(self):
        self.attempts = 0


class ReconnectScheduler:
    """
    Arms the reconnect-delay timer

    The scheduler does not decide *whether* a loss should be retried
    (manual close, auto_reconnect); the client does that. It only decides
    *when*, and whether the attempt limit still allows it.
    """

    def __init__(self, loop, config: ClientConfig, on_fire: Callable[[], None]):
        """
        Args:
            loop: Event loop providing call_later()
            config: Client configuration
            on_fire: Called when the delay elapses
        """
        self._loop = loop
        self.config = config
        self._on_fire = on_fire
        self._timer = None
        self.logger = setup_component_logger("ReconnectScheduler", config.log_level, config.log_file)

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def exhausted(self, attempt: int) -> bool:
        """True once the attempt limit forbids another try"""
        limit = self.config.max_reconnect_attempts
        return limit > 0 and attempt >= limit

    def delay_for(self, attempt: int) -> float:
        return compute_backoff_delay(
            attempt,
            self.config.reconnect_interval,
            self.config.reconnect_decay,
            self.config.max_reconnect_interval,
        )

    def schedule(self, attempt: int) -> Optional[float]:
        """
        Arm the reconnect timer for the given attempt count

        Returns:
            Delay in ms, or None if the attempt limit is reached
        """
        self.cancel()

        if self.exhausted(attempt):
            self.logger.warning(
                f"Reached max reconnect attempts ({self.config.max_reconnect_attempts}), "
                f"giving up"
            )
            return None

        delay = self.delay_for(attempt)
        self.logger.info(
            f"Reconnecting in {format_duration(delay)} (attempt {attempt + 1})..."
        )
        self._timer = self._loop.call_later(ms_to_seconds(delay), self._fire)
        return delay

    def cancel(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self):
        self._timer = None
        self._on_fire()
