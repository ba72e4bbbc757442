# experiments/runner.py
# Repeated load test runs, one results CSV per run

import argparse

from loadbench.config import BrokerAddress, TestConfig
from loadbench.log import setup_logging
from loadbench.runner import ProcessOrchestrator

RUNS = 10


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--broker", default="localhost:1883")
    parser.add_argument("--topic", default="test")
    parser.add_argument("--runs", type=int, default=RUNS)
    parser.add_argument("--publishers", type=int, default=10)
    parser.add_argument("--subscribers", type=int, default=5)
    parser.add_argument("--payload", type=int, default=100)
    parser.add_argument("--duration", type=float, default=10.0)
    parser.add_argument("--interval", type=float, default=0.02)
    args = parser.parse_args()
    setup_logging()

    config = TestConfig(
        publisher_count=args.publishers,
        subscriber_count=args.subscribers,
        payload_size=args.payload,
        duration=args.duration,
        interval=args.interval,
        broker=BrokerAddress.parse(args.broker),
        topic=args.topic,
    )

    for run in range(args.runs):
        print(f"Run {run + 1}/{args.runs}")
        summary = ProcessOrchestrator(config).run()
        summary.write_csv(f"results_run_{run}.csv")
        print(summary.format())


if __name__ == "__main__":
    main()
