# src/loadbench/config.py
# Run configuration shared by the clients and the orchestrator.

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

DEFAULT_PORT = 1883
DEFAULT_BROKER = os.getenv("LOADBENCH_BROKER", f"localhost:{DEFAULT_PORT}")
DEFAULT_TOPIC = os.getenv("LOADBENCH_TOPIC", "test")
DEFAULT_QOS = int(os.getenv("LOADBENCH_QOS", "1"))
DEFAULT_KEEPALIVE = 60
FILLER_BYTE = b"A"


@dataclass(frozen=True)
class BrokerAddress:
    host: str
    port: int = DEFAULT_PORT

    @classmethod
    def parse(cls, text):
        """Parse ``host`` or ``host:port``."""
        text = text.strip()
        if not text:
            raise ConfigError("broker address is empty")
        if ":" not in text:
            return cls(text)
        host, port = text.rsplit(":", 1)
        try:
            port = int(port)
        except ValueError:
            raise ConfigError(f"invalid broker port in {text!r}") from None
        if not host or not 0 < port < 65536:
            raise ConfigError(f"invalid broker address {text!r}")
        return cls(host, port)

    def __str__(self):
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ClientSettings:
    """What a single client needs to reach the broker."""

    broker: BrokerAddress = BrokerAddress("localhost")
    topic: str = DEFAULT_TOPIC
    qos: int = DEFAULT_QOS
    keepalive: int = DEFAULT_KEEPALIVE
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        if not self.topic:
            raise ConfigError("topic is empty")
        if self.qos not in (0, 1, 2):
            raise ConfigError(f"qos must be 0, 1 or 2: {self.qos}")
        if self.keepalive <= 0:
            raise ConfigError(f"keepalive must be positive: {self.keepalive}")


@dataclass(frozen=True)
class TestConfig:
    """
    One load test:
    - publisher_count processes publish payload_size bytes every interval
      seconds for duration seconds
    - subscriber_count processes drain topic meanwhile

    interval is a period in seconds, not a rate. An interval longer than the
    duration is allowed; the publisher then sends a single message.
    """

    publisher_count: int
    subscriber_count: int
    payload_size: int
    duration: float
    interval: float
    broker: BrokerAddress = BrokerAddress("localhost")
    topic: str = DEFAULT_TOPIC
    qos: int = DEFAULT_QOS
    keepalive: int = DEFAULT_KEEPALIVE
    username: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self):
        if self.publisher_count < 0 or self.subscriber_count < 0:
            raise ConfigError("process counts must not be negative")
        if self.payload_size < 0:
            raise ConfigError(f"payload size must not be negative: {self.payload_size}")
        if not self.duration > 0:
            raise ConfigError(f"duration must be positive: {self.duration}")
        if not self.interval > 0:
            raise ConfigError(f"interval must be positive: {self.interval}")
        self.client_settings()  # validates the broker fields

    def client_settings(self):
        return ClientSettings(self.broker, self.topic, self.qos, self.keepalive,
                              self.username, self.password)

    def make_payload(self):
        return FILLER_BYTE * self.payload_size
