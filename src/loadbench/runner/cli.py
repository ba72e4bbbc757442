# src/loadbench/runner/cli.py
# Orchestrator entry point:
#   loadbench <publishers> <subscribers> <payload_size> <duration> <interval>

import argparse
import logging
import sys

from ..config import DEFAULT_BROKER, DEFAULT_QOS, DEFAULT_TOPIC, BrokerAddress, TestConfig
from ..errors import BuildError, ConfigError
from ..log import setup_logging
from .build import ExternalClientBuild, PythonClientBuild
from .orchestrator import GRACE_MARGIN, STOP_GRACE, WARMUP, ProcessOrchestrator
from .records import RunSummary

logger = logging.getLogger("loadbench.runner")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="loadbench",
        description="Run publishers and subscribers against an MQTT broker")
    parser.add_argument("publishers", type=int, help="number of publisher processes")
    parser.add_argument("subscribers", type=int, help="number of subscriber processes")
    parser.add_argument("payload_size", type=int, help="payload size in bytes")
    parser.add_argument("duration", type=float, help="seconds each publisher publishes")
    parser.add_argument("interval", type=float, help="seconds between messages of one publisher")
    parser.add_argument("--broker", default=DEFAULT_BROKER, help="host[:port]")
    parser.add_argument("--topic", default=DEFAULT_TOPIC)
    parser.add_argument("--qos", type=int, choices=(0, 1, 2), default=DEFAULT_QOS)
    parser.add_argument("--warmup", type=float, default=WARMUP,
                        help="seconds between starting subscribers and publishers")
    parser.add_argument("--grace", type=float, default=GRACE_MARGIN,
                        help="extra seconds a publisher may run past the duration")
    parser.add_argument("--stop-grace", type=float, default=STOP_GRACE,
                        help="seconds a subscriber gets to exit once asked to stop")
    parser.add_argument("--client-exe", metavar="PATH",
                        help="external client binary instead of the bundled Python client")
    parser.add_argument("--build-cmd", metavar="CMD",
                        help="command that builds --client-exe before the run")
    parser.add_argument("--results-csv", metavar="PATH",
                        help="write one row per client process")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.build_cmd and not args.client_exe:
        parser.error("--build-cmd needs --client-exe")

    try:
        config = TestConfig(
            publisher_count=args.publishers,
            subscriber_count=args.subscribers,
            payload_size=args.payload_size,
            duration=args.duration,
            interval=args.interval,
            broker=BrokerAddress.parse(args.broker),
            topic=args.topic,
            qos=args.qos,
        )
    except ConfigError as e:
        parser.error(str(e))

    if args.client_exe:
        build = ExternalClientBuild(args.client_exe, args.build_cmd)
    else:
        build = PythonClientBuild()

    orchestrator = ProcessOrchestrator(config, build, warmup=args.warmup,
                                       grace_margin=args.grace, stop_grace=args.stop_grace)
    try:
        summary = orchestrator.run()
    except BuildError as e:
        logger.error("%s", e)
        summary = RunSummary(config.publisher_count, config.subscriber_count, build_failed=True)

    print(summary.format())
    if args.results_csv:
        summary.write_csv(args.results_csv)
        logger.info("Results written to %s", args.results_csv)
    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
