# src/loadbench/mqtt/connection.py
# Broker connection used by both client roles.

import enum
import logging
import time

import paho.mqtt.client as mqtt

from ..errors import ConnectError, PublishError, SubscribeError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
SUBACK_TIMEOUT = 10.0
_HANDSHAKE_SLICE = 0.1


class ClientState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACTIVE = "active"
    DISCONNECTING = "disconnecting"


class BrokerConnection:
    """
    One paho-mqtt client driven by an explicit network loop.

    Nothing runs in a background thread: protocol housekeeping (keep-alive,
    acknowledgements, inbound delivery) only advances inside pump(), so the
    owner decides when the connection gets CPU time.

    Use it as a context manager: connect on enter, disconnect on exit.
    """

    def __init__(self, broker, client_id, keepalive=60, username=None, password=None,
                 on_message=None, connect_timeout=CONNECT_TIMEOUT):
        self.broker = broker
        self.client_id = client_id
        self.keepalive = keepalive
        self.connect_timeout = connect_timeout
        self.on_message = on_message
        self.connected = False

        self._connack = None
        self._subacks = {}

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        if username is not None:
            self.client.username_pw_set(username, password)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_subscribe = self._on_subscribe
        self.client.on_message = self._on_message

    # ---------------------------------------------------
    # paho callbacks
    # ---------------------------------------------------
    def _on_connect(self, client, userdata, flags, reason_code, properties):
        self._connack = reason_code
        self.connected = not reason_code.is_failure

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        if self.connected:
            logger.info("%s disconnected from %s: %s", self.client_id, self.broker, reason_code)
        self.connected = False

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties):
        self._subacks[mid] = reason_code_list

    def _on_message(self, client, userdata, message):
        if self.on_message is not None:
            self.on_message(message.topic, message.payload)

    # ---------------------------------------------------
    # Operations
    # ---------------------------------------------------
    def connect(self):
        """Open the socket and wait for CONNACK. Raises ConnectError."""
        self._connack = None
        try:
            self.client.connect(self.broker.host, self.broker.port, self.keepalive)
        except (OSError, ValueError) as e:
            raise ConnectError(f"cannot reach broker {self.broker}: {e}") from e

        try:
            self._await_connack()
        except ConnectError:
            # the socket is open even though the session is not
            self._close()
            raise
        logger.debug("%s connected to %s", self.client_id, self.broker)

    def _await_connack(self):
        deadline = time.monotonic() + self.connect_timeout
        while self._connack is None:
            if time.monotonic() >= deadline:
                raise ConnectError(f"no CONNACK from {self.broker} within {self.connect_timeout}s")
            rc = self.client.loop(timeout=_HANDSHAKE_SLICE)
            if rc != mqtt.MQTT_ERR_SUCCESS and self._connack is None:
                raise ConnectError(f"connection to {self.broker} failed: {mqtt.error_string(rc)}")

        if self._connack.is_failure:
            raise ConnectError(f"broker {self.broker} refused {self.client_id}: {self._connack}")

    def _close(self):
        self.connected = False
        self.client.disconnect()
        self.client.loop(timeout=0.0)

    def publish(self, topic, payload, qos=1):
        info = self.client.publish(topic, payload, qos=qos)
        if info.rc == mqtt.MQTT_ERR_NO_CONN:
            raise ConnectError(f"{self.client_id} lost its connection to {self.broker}")
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"publish to {topic!r} failed: {mqtt.error_string(info.rc)}")
        return info.mid

    def subscribe(self, topic, qos=1):
        """Subscribe and wait for SUBACK. Raises SubscribeError when refused."""
        rc, mid = self.client.subscribe(topic, qos=qos)
        if rc == mqtt.MQTT_ERR_NO_CONN:
            raise ConnectError(f"{self.client_id} lost its connection to {self.broker}")
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise SubscribeError(f"subscribe to {topic!r} failed: {mqtt.error_string(rc)}")

        deadline = time.monotonic() + SUBACK_TIMEOUT
        while mid not in self._subacks:
            if time.monotonic() >= deadline:
                raise SubscribeError(f"no SUBACK for {topic!r} within {SUBACK_TIMEOUT}s")
            self.pump(_HANDSHAKE_SLICE)

        granted = self._subacks.pop(mid)
        refused = [code for code in granted if code.is_failure]
        if refused:
            raise SubscribeError(f"broker refused subscription to {topic!r}: {refused[0]}")

    def pump(self, timeout):
        """Run the network loop for at most timeout seconds."""
        rc = self.client.loop(timeout=timeout)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            self.connected = False
            raise ConnectError(f"{self.client_id} lost its connection to {self.broker}: "
                               f"{mqtt.error_string(rc)}")

    def disconnect(self):
        if not self.connected:
            return
        self.client.disconnect()
        # flush the DISCONNECT packet
        self.client.loop(timeout=_HANDSHAKE_SLICE)
        self.connected = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False
