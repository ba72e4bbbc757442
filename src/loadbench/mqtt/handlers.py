# src/loadbench/mqtt/handlers.py
# Inbound message strategies for the subscriber: handler(topic, payload).

import csv
import time


def discard(topic, payload):
    pass


class MessageCounter:
    def __init__(self):
        self.messages = 0
        self.bytes = 0

    def __call__(self, topic, payload):
        self.messages += 1
        self.bytes += len(payload)


class CsvMessageLog(MessageCounter):
    """Counts messages and appends one ``recv, topic, size`` row per message."""

    HEADER = ["recv", "topic", "size"]

    def __init__(self, path):
        super().__init__()
        self.path = path
        self._file = open(path, "w", newline="")
        self._writer = csv.writer(self._file)
        self._writer.writerow(self.HEADER)

    def __call__(self, topic, payload):
        super().__call__(topic, payload)
        self._writer.writerow([f"{time.time():.6f}", topic, len(payload)])

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
