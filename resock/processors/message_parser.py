# Message Parser - Inbound Frame Decoding
# Best-effort JSON decoding of frames received over the socket

"""
Message Parser Module

Responsibilities:
- Decode JSON frames into Python objects when they are JSON
- Pass anything else through untouched (never an error)
- Wrap the result in an InboundMessage envelope with a receive timestamp
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..utils.helpers import now_ms, truncate
from ..utils.logger import setup_component_logger


@dataclass
class InboundMessage:
    """Envelope handed to the message interceptor"""
    payload: Any
    received_at_ms: int = field(default_factory=now_ms)
    kind: str = "message"


class MessageParser:
    """
    Opportunistic parser for inbound frames

    JSON is a convenience, not a contract: ``'{"a": 1}'`` becomes a dict,
    ``'hello'`` stays ``'hello'``.
    """

    def __init__(self, log_level: str = "INFO", log_file: Optional[str] = None):
        """Initialize message parser"""
        self.logger = setup_component_logger("MessageParser", log_level, log_file)
        self._parse_count = 0
        self._structured_count = 0

    def decode(self, raw: Any) -> Any:
        """
        Try to decode a raw frame as JSON

        Args:
            raw: Frame as delivered by the transport (str or bytes)

        Returns:
            Decoded value on success, ``raw`` unchanged otherwise
        """
        if not isinstance(raw, (str, bytes, bytearray)):
            return raw
        try:
            data = json.loads(raw)
        except (ValueError, TypeError):
            # Not JSON, keep it as-is
            self.logger.debug(f"Raw frame: {truncate(raw)}")
            return raw
        self._structured_count += 1
        return data

    def parse(self, raw: Any) -> InboundMessage:
        """
        Build the envelope for one inbound frame

        Args:
            raw: Frame as delivered by the transport

        Returns:
            InboundMessage with the decoded (or raw) payload
        """
        self._parse_count += 1
        message = InboundMessage(payload=self.decode(raw))
        self.logger.debug(f"Parsed message #{self._parse_count}")
        return message

    def get_stats(self) -> Dict[str, int]:
        return {
            'total_parsed': self._parse_count,
            'structured': self._structured_count,
            'raw': self._parse_count - self._structured_count,
        }
