# src/loadbench/mqtt/publisher.py

import logging
import os
import time
from dataclasses import dataclass

from ..errors import PublishError
from .connection import BrokerConnection, ClientState
from .scheduler import RateScheduler

logger = logging.getLogger(__name__)

IO_SLICE = 0.01
POLL_QUANTUM = 0.05


@dataclass(frozen=True)
class PublishResult:
    sent: int
    elapsed: float
    errors: int = 0

    def report_line(self):
        """The line the orchestrator parses from the publisher's stdout."""
        return f"sent={self.sent} elapsed={self.elapsed:.3f}"

    @classmethod
    def parse_report_line(cls, line):
        fields = dict(part.split("=", 1) for part in line.split() if "=" in part)
        return cls(int(fields["sent"]), float(fields["elapsed"]))


class PublisherClient:
    """
    Publishes config.payload_size bytes to config.topic every config.interval
    seconds for config.duration seconds over a single connection.

    Send times come from a RateScheduler anchored at the loop start. When a
    publish takes longer than the interval the next deadline is already due
    and is sent on the following iteration; missed deadlines are not replayed
    as a burst, so the rate degrades to what the broker can take.
    """

    def __init__(self, config, connection=None, clock=time.monotonic, sleep=time.sleep,
                 io_slice=IO_SLICE, poll_quantum=POLL_QUANTUM):
        self.config = config
        self.connection = connection or BrokerConnection(
            config.broker,
            client_id=f"pub_{os.getpid()}",
            keepalive=config.keepalive,
            username=config.username,
            password=config.password,
        )
        self.clock = clock
        self.sleep = sleep
        self.io_slice = io_slice
        self.poll_quantum = poll_quantum
        self.state = ClientState.DISCONNECTED

    def run(self):
        """Publish until the duration elapses. Raises ConnectError."""
        config = self.config
        self.state = ClientState.CONNECTING
        try:
            with self.connection as conn:
                self.state = ClientState.CONNECTED
                payload = config.make_payload()
                logger.info("Publishing %d-byte payload to %s every %ss for %ss",
                            len(payload), config.topic, config.interval, config.duration)
                self.state = ClientState.ACTIVE
                result = self._publish_loop(conn, payload)
                self.state = ClientState.DISCONNECTING
        finally:
            self.state = ClientState.DISCONNECTED

        logger.info("Sent %d messages in %.3fs", result.sent, result.elapsed)
        return result

    def _publish_loop(self, conn, payload):
        config = self.config
        start = self.clock()
        schedule = RateScheduler(start, config.interval)
        sent = 0
        errors = 0
        k = 0
        deadline = schedule.next_deadline(k)

        while True:
            now = self.clock()
            if now - start >= config.duration:
                break

            # keep-alive and acks advance even between sends
            conn.pump(max(0.0, min(self.io_slice, deadline - now)))

            now = self.clock()
            if now - start >= config.duration:
                break
            if now >= deadline:
                try:
                    conn.publish(config.topic, payload, config.qos)
                    sent += 1
                except PublishError as e:
                    errors += 1
                    logger.warning("Message %d not published: %s", k, e)
                # at most one overdue deadline stays pending; older ones are dropped
                due = schedule.last_due(self.clock())
                if due > k + 1:
                    logger.debug("Publish overran %d deadlines", due - k - 1)
                k = max(k + 1, due)
                deadline = schedule.next_deadline(k)
            else:
                self.sleep(min(deadline - now, self.poll_quantum))

        return PublishResult(sent, self.clock() - start, errors)
