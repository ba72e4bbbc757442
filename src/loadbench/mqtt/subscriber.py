# src/loadbench/mqtt/subscriber.py

import logging
import os
import threading

from .connection import BrokerConnection, ClientState
from .handlers import discard

logger = logging.getLogger(__name__)

PUMP_TIMEOUT = 0.1


class SubscriberClient:
    """
    Passive drain: subscribes to settings.topic and runs the network loop until
    the stop event is set. Every inbound message goes to the handler. It never
    publishes anything.
    """

    def __init__(self, settings, stop_event=None, handler=discard, connection=None,
                 pump_timeout=PUMP_TIMEOUT):
        self.settings = settings
        self.stop_event = stop_event or threading.Event()
        self.handler = handler
        self.received = 0
        self.connection = connection or BrokerConnection(
            settings.broker,
            client_id=f"sub_{os.getpid()}",
            keepalive=settings.keepalive,
            username=settings.username,
            password=settings.password,
        )
        self.connection.on_message = self._on_message
        self.pump_timeout = pump_timeout
        self.state = ClientState.DISCONNECTED

    def _on_message(self, topic, payload):
        self.received += 1
        self.handler(topic, payload)

    def stop(self):
        self.stop_event.set()

    def run(self):
        """Drain until stopped; returns the number of messages received.
        Raises ConnectError or SubscribeError."""
        self.state = ClientState.CONNECTING
        try:
            with self.connection as conn:
                self.state = ClientState.CONNECTED
                conn.subscribe(self.settings.topic, self.settings.qos)
                logger.info("Subscribed to %s on %s", self.settings.topic, self.settings.broker)
                self.state = ClientState.ACTIVE
                while not self.stop_event.is_set():
                    conn.pump(self.pump_timeout)
                self.state = ClientState.DISCONNECTING
        finally:
            self.state = ClientState.DISCONNECTED

        logger.info("Stopped after receiving %d messages", self.received)
        return self.received
