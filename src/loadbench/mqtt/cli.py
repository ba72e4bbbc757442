# src/loadbench/mqtt/cli.py
# Client entry point:
#   loadbench-client sub
#   loadbench-client pub <payload_size> <duration> <interval>

import argparse
import logging
import signal
import sys
import threading

from ..config import (DEFAULT_BROKER, DEFAULT_KEEPALIVE, DEFAULT_QOS, DEFAULT_TOPIC,
                      BrokerAddress, ClientSettings, TestConfig)
from ..errors import ConfigError, ConnectError, SubscribeError
from ..log import setup_logging
from .connection import BrokerConnection
from .handlers import CsvMessageLog, discard
from .publisher import PublisherClient
from .subscriber import SubscriberClient

logger = logging.getLogger("loadbench.client")

EXIT_OK = 0
EXIT_CONNECT = 1
EXIT_USAGE = 2


def build_parser():
    parser = argparse.ArgumentParser(prog="loadbench-client",
                                     description="MQTT load test client")
    parser.add_argument("--broker", default=DEFAULT_BROKER, help="host[:port]")
    parser.add_argument("--topic", default=DEFAULT_TOPIC)
    parser.add_argument("--qos", type=int, choices=(0, 1, 2), default=DEFAULT_QOS)
    parser.add_argument("--keepalive", type=int, default=DEFAULT_KEEPALIVE)
    parser.add_argument("--client-id", help="defaults to <role>_<pid>")
    parser.add_argument("--username")
    parser.add_argument("--password")
    parser.add_argument("-v", "--verbose", action="store_true")

    modes = parser.add_subparsers(dest="mode", required=True)
    sub = modes.add_parser("sub", help="subscribe and drain until terminated")
    sub.add_argument("--log-messages", metavar="PATH",
                     help="append one CSV row per received message")

    pub = modes.add_parser("pub", help="publish at a fixed interval for a fixed time")
    pub.add_argument("payload_size", type=int, help="payload size in bytes")
    pub.add_argument("duration", type=float, help="seconds to keep publishing")
    pub.add_argument("interval", type=float, help="seconds between messages")
    return parser


def install_stop_handlers(stop_event):
    def handler(signum, frame):
        logger.info("Received signal %d, stopping", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run_subscriber(args, settings):
    stop_event = threading.Event()
    install_stop_handlers(stop_event)

    handler = CsvMessageLog(args.log_messages) if args.log_messages else discard
    connection = None
    if args.client_id:
        connection = BrokerConnection(settings.broker, args.client_id, settings.keepalive,
                                      settings.username, settings.password)
    try:
        SubscriberClient(settings, stop_event, handler, connection).run()
    finally:
        if isinstance(handler, CsvMessageLog):
            handler.close()
    return EXIT_OK


def run_publisher(args, settings):
    config = TestConfig(
        publisher_count=1,
        subscriber_count=0,
        payload_size=args.payload_size,
        duration=args.duration,
        interval=args.interval,
        broker=settings.broker,
        topic=settings.topic,
        qos=settings.qos,
        keepalive=settings.keepalive,
        username=settings.username,
        password=settings.password,
    )
    connection = None
    if args.client_id:
        connection = BrokerConnection(settings.broker, args.client_id, settings.keepalive,
                                      settings.username, settings.password)
    result = PublisherClient(config, connection).run()
    print(result.report_line(), flush=True)
    return EXIT_OK


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = ClientSettings(
            broker=BrokerAddress.parse(args.broker),
            topic=args.topic,
            qos=args.qos,
            keepalive=args.keepalive,
            username=args.username,
            password=args.password,
        )
        if args.mode == "sub":
            return run_subscriber(args, settings)
        return run_publisher(args, settings)
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        logger.error("Invalid arguments: %s", e)
        return EXIT_USAGE
    except (ConnectError, SubscribeError) as e:
        logger.error("%s", e)
        return EXIT_CONNECT


if __name__ == "__main__":
    sys.exit(main())
