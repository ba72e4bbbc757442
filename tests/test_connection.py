# BrokerConnection logic with the paho client replaced by a stub.

import pytest
import paho.mqtt.client as mqtt

from loadbench.config import BrokerAddress
from loadbench.errors import ConnectError, PublishError, SubscribeError
from loadbench.mqtt.connection import BrokerConnection


class Code:
    def __init__(self, failure=False, name="Success"):
        self.is_failure = failure
        self.name = name

    def __str__(self):
        return self.name


class Info:
    def __init__(self, rc, mid=1):
        self.rc = rc
        self.mid = mid


class StubClient:
    """Answers the way a broker would, through the owner's callbacks."""

    def __init__(self, owner, connack=Code(), suback=(Code(),), publish_rc=mqtt.MQTT_ERR_SUCCESS,
                 loop_rc=mqtt.MQTT_ERR_SUCCESS, connect_exc=None, silent=False):
        self.owner = owner
        self.connack = connack
        self.suback = list(suback)
        self.publish_rc = publish_rc
        self.loop_rc = loop_rc
        self.connect_exc = connect_exc
        self.silent = silent
        self.pending = []
        self.disconnects = 0
        self.loops = 0

    def connect(self, host, port, keepalive):
        if self.connect_exc:
            raise self.connect_exc
        if not self.silent:
            self.pending.append(lambda: self.owner._on_connect(self, None, None, self.connack, None))

    def loop(self, timeout=1.0):
        self.loops += 1
        while self.pending:
            self.pending.pop(0)()
        return self.loop_rc

    def publish(self, topic, payload, qos=0):
        return Info(self.publish_rc)

    def subscribe(self, topic, qos=0):
        self.pending.append(lambda: self.owner._on_subscribe(self, None, 7, self.suback, None))
        return mqtt.MQTT_ERR_SUCCESS, 7

    def disconnect(self):
        self.disconnects += 1


def make_connection(**stub_kwargs):
    conn = BrokerConnection(BrokerAddress("localhost"), "pub_1", connect_timeout=0.3)
    conn.client = StubClient(conn, **stub_kwargs)
    return conn


class TestConnect:

    def test_connack_accepted(self):
        conn = make_connection()
        with conn:
            assert conn.connected
        assert not conn.connected
        assert conn.client.disconnects == 1

    def test_connack_refused(self):
        conn = make_connection(connack=Code(True, "Not authorized"))
        with pytest.raises(ConnectError, match="refused"):
            conn.connect()
        assert conn.client.disconnects == 1
        assert not conn.connected

    def test_unreachable_broker(self):
        conn = make_connection(connect_exc=ConnectionRefusedError(111, "Connection refused"))
        with pytest.raises(ConnectError, match="cannot reach"):
            conn.connect()

    def test_no_connack(self):
        conn = make_connection(silent=True)
        with pytest.raises(ConnectError, match="no CONNACK"):
            conn.connect()
        assert conn.client.disconnects == 1

    def test_socket_error_during_handshake_closes_socket(self):
        conn = make_connection(silent=True, loop_rc=mqtt.MQTT_ERR_CONN_LOST)
        with pytest.raises(ConnectError, match="failed"):
            conn.connect()
        assert conn.client.disconnects == 1

    def test_unreachable_broker_has_nothing_to_close(self):
        conn = make_connection(connect_exc=OSError(113, "No route to host"))
        with pytest.raises(ConnectError):
            conn.connect()
        assert conn.client.disconnects == 0


class TestOperations:

    def test_publish_queue_full(self):
        conn = make_connection(publish_rc=mqtt.MQTT_ERR_QUEUE_SIZE)
        with conn, pytest.raises(PublishError):
            conn.publish("bench", b"A", 1)

    def test_publish_without_connection(self):
        conn = make_connection(publish_rc=mqtt.MQTT_ERR_NO_CONN)
        with conn, pytest.raises(ConnectError):
            conn.publish("bench", b"A", 1)

    def test_subscribe_waits_for_suback(self):
        conn = make_connection()
        with conn:
            conn.subscribe("bench", 1)

    def test_subscription_refused(self):
        conn = make_connection(suback=[Code(True, "Not authorized")])
        with conn, pytest.raises(SubscribeError, match="refused"):
            conn.subscribe("bench", 1)

    def test_pump_reports_lost_connection(self):
        conn = make_connection()
        conn.connect()
        conn.client.loop_rc = mqtt.MQTT_ERR_CONN_LOST
        with pytest.raises(ConnectError, match="lost"):
            conn.pump(0.01)
        assert not conn.connected

    def test_inbound_message_reaches_handler(self):
        received = []
        conn = make_connection()
        conn.on_message = lambda topic, payload: received.append((topic, payload))

        class Message:
            topic = "bench"
            payload = b"AAAA"

        conn._on_message(conn.client, None, Message())
        assert received == [("bench", b"AAAA")]
