"""MQTT broker load bench: rate-controlled publishers, passive subscribers
and a process orchestrator that runs them against a live broker."""

__version__ = "0.3.0"
