# src/loadbench/runner/orchestrator.py

import logging
import signal
import subprocess
import time

from ..errors import JoinTimeoutError, SpawnError
from ..mqtt.publisher import PublishResult
from .build import PythonClientBuild
from .records import ExitStatus, ProcessRecord, Role, RunSummary

logger = logging.getLogger(__name__)

WARMUP = 2.0
GRACE_MARGIN = 10.0
STOP_GRACE = 3.0

# a subscriber has no other way to finish than being told to stop
_SUBSCRIBER_OK = (0, -signal.SIGTERM)


class ProcessOrchestrator:
    """
    Runs one load test as a set of client processes:

    1. ensure the client executable (BuildError aborts the run)
    2. spawn the subscribers
    3. wait the warm-up so every subscription is live
    4. spawn the publishers
    5. join every publisher, each bounded by duration + grace_margin
    6. ask every subscriber to stop, kill those that outlive stop_grace
    7. summarize

    A client that cannot be spawned, crashes or has to be killed is recorded
    as a failure; only a build failure is raised. No client process outlives
    run().
    """

    def __init__(self, config, build=None, launcher=subprocess.Popen, sleep=time.sleep,
                 clock=time.monotonic, warmup=WARMUP, grace_margin=GRACE_MARGIN,
                 stop_grace=STOP_GRACE):
        self.config = config
        self.build = build or PythonClientBuild()
        self.launcher = launcher
        self.sleep = sleep
        self.clock = clock
        self.warmup = warmup
        self.grace_margin = grace_margin
        self.stop_grace = stop_grace
        self.records = []

    def records_for(self, role):
        return [r for r in self.records if r.role is role]

    def run(self):
        config = self.config
        summary = RunSummary(config.publisher_count, config.subscriber_count, self.records)

        self.build.ensure()

        try:
            logger.info("Starting %d subscribers", config.subscriber_count)
            for i in range(config.subscriber_count):
                self.spawn(Role.SUBSCRIBER, i)

            logger.info("Warming up for %.1fs", self.warmup)
            self.sleep(self.warmup)

            logger.info("Starting %d publishers", config.publisher_count)
            for i in range(config.publisher_count):
                self.spawn(Role.PUBLISHER, i)

            logger.info("Waiting for publishers to finish")
            self.join_publishers()

            logger.info("Stopping subscribers")
            self.stop_subscribers()
        finally:
            self._kill_unsettled()

        logger.info("Run finished: %d/%d publishers, %d/%d subscribers ok, %d messages sent",
                    summary.publishers_succeeded, config.publisher_count,
                    summary.subscribers_succeeded, config.subscriber_count,
                    summary.messages_sent)
        return summary

    # ---------------------------------------------------
    # Spawning
    # ---------------------------------------------------
    def role_args(self, role):
        if role is Role.SUBSCRIBER:
            return ["sub"]
        config = self.config
        return ["pub", str(config.payload_size), repr(config.duration), repr(config.interval)]

    def spawn(self, role, index):
        record = ProcessRecord(role, index)
        self.records.append(record)
        cmd = self.build.command(self.role_args(role), self.config.client_settings())
        # publishers report their count on stdout; logs stay on the shared stderr
        stdout = subprocess.PIPE if role is Role.PUBLISHER else subprocess.DEVNULL
        try:
            record.process = self.launcher(cmd, stdout=stdout, text=True)
        except (OSError, subprocess.SubprocessError) as e:
            err = SpawnError(f"cannot start {record.name}: {e}")
            logger.error("%s", err)
            record.settle(ExitStatus.FAILURE, error=str(err))
            return record
        logger.debug("Started %s (pid %s): %s", record.name, record.pid, " ".join(cmd))
        return record

    # ---------------------------------------------------
    # Join barrier
    # ---------------------------------------------------
    def join_publishers(self):
        limit = self.config.duration + self.grace_margin
        deadline = self.clock() + limit
        for record in self.records_for(Role.PUBLISHER):
            if record.settled:
                continue
            proc = record.process
            finished, out = self._collect(proc, deadline)
            if not finished:
                proc.kill()
                out, _ = proc.communicate()
                err = JoinTimeoutError(f"{record.name} still running {limit:.1f}s after start, killed")
                logger.error("%s", err)
                record.settle(ExitStatus.FAILURE, proc.returncode, str(err))
                continue

            self._read_report(record, out)
            if proc.returncode == 0:
                record.settle(ExitStatus.SUCCESS, 0)
                logger.debug("%s finished, sent %s", record.name, record.sent)
            else:
                logger.warning("%s exited with code %s", record.name, proc.returncode)
                record.settle(ExitStatus.FAILURE, proc.returncode,
                              f"exit code {proc.returncode}")

    def _collect(self, proc, deadline):
        """Returns (finished, stdout). A publisher that already exited is
        collected even when the deadline is spent."""
        if proc.poll() is None:
            try:
                return True, proc.communicate(timeout=max(0.0, deadline - self.clock()))[0]
            except subprocess.TimeoutExpired:
                if proc.poll() is None:
                    return False, None
        return True, proc.communicate()[0]

    def _read_report(self, record, out):
        for line in reversed((out or "").splitlines()):
            if line.startswith("sent="):
                try:
                    result = PublishResult.parse_report_line(line)
                except (KeyError, ValueError):
                    logger.warning("%s: unreadable report %r", record.name, line)
                    return
                record.sent = result.sent
                record.elapsed = result.elapsed
                return
            # the C client reports "PID <pid> sent <n> messages"
            words = line.split()
            if len(words) == 5 and words[0] == "PID" and words[2] == "sent" and words[3].isdigit():
                record.sent = int(words[3])
                return

    # ---------------------------------------------------
    # Teardown
    # ---------------------------------------------------
    def terminate(self, record):
        """Ask a subscriber to stop. A no-op for records that already exited
        or were already accounted for; returns whether a request was sent."""
        if record.settled or record.process is None:
            return False
        if record.process.poll() is not None:
            return False
        try:
            record.process.terminate()
        except ProcessLookupError:
            return False
        return True

    def stop_subscribers(self):
        subscribers = self.records_for(Role.SUBSCRIBER)
        for record in subscribers:
            self.terminate(record)

        deadline = self.clock() + self.stop_grace
        for record in subscribers:
            if record.settled:
                continue
            proc = record.process
            try:
                returncode = proc.wait(timeout=max(0.0, deadline - self.clock()))
            except subprocess.TimeoutExpired:
                proc.kill()
                returncode = proc.wait()
                err = JoinTimeoutError(f"{record.name} ignored the stop request, killed")
                logger.error("%s", err)
                record.settle(ExitStatus.FAILURE, returncode, str(err))
                continue

            if returncode in _SUBSCRIBER_OK:
                record.settle(ExitStatus.SUCCESS, returncode)
            else:
                logger.warning("%s exited with code %s", record.name, returncode)
                record.settle(ExitStatus.FAILURE, returncode, f"exit code {returncode}")

    def _kill_unsettled(self):
        for record in self.records:
            if record.settled or record.process is None:
                continue
            logger.warning("Killing %s (pid %s)", record.name, record.pid)
            record.process.kill()
            record.process.wait()
            record.settle(ExitStatus.FAILURE, record.process.returncode, "run aborted")
