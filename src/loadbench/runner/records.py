# src/loadbench/runner/records.py
# Orchestrator bookkeeping: one ProcessRecord per spawned client.

import csv
import enum
from dataclasses import dataclass, field
from typing import List, Optional


class Role(enum.Enum):
    PUBLISHER = "publisher"
    SUBSCRIBER = "subscriber"


class ExitStatus(enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class ProcessRecord:
    role: Role
    index: int
    process: Optional[object] = None
    status: ExitStatus = ExitStatus.PENDING
    returncode: Optional[int] = None
    error: Optional[str] = None
    sent: Optional[int] = None
    elapsed: Optional[float] = None

    @property
    def name(self):
        return f"{self.role.value}-{self.index}"

    @property
    def pid(self):
        return self.process.pid if self.process is not None else None

    @property
    def settled(self):
        return self.status is not ExitStatus.PENDING

    def settle(self, status, returncode=None, error=None):
        """Record the outcome. Only the first call counts."""
        if self.settled:
            return False
        self.status = status
        self.returncode = returncode
        self.error = error
        return True


@dataclass
class RunSummary:
    publishers_requested: int
    subscribers_requested: int
    records: List[ProcessRecord] = field(default_factory=list)
    build_failed: bool = False

    def _count(self, role, status):
        return sum(1 for r in self.records if r.role is role and r.status is status)

    @property
    def publishers_succeeded(self):
        return self._count(Role.PUBLISHER, ExitStatus.SUCCESS)

    @property
    def publishers_failed(self):
        return self._count(Role.PUBLISHER, ExitStatus.FAILURE)

    @property
    def subscribers_succeeded(self):
        return self._count(Role.SUBSCRIBER, ExitStatus.SUCCESS)

    @property
    def subscribers_failed(self):
        return self._count(Role.SUBSCRIBER, ExitStatus.FAILURE)

    @property
    def messages_sent(self):
        return sum(r.sent or 0 for r in self.records if r.role is Role.PUBLISHER)

    @property
    def exit_code(self):
        if self.build_failed:
            return 1
        if self.publishers_requested > 0 and self.publishers_succeeded == 0:
            return 1
        return 0

    def format(self):
        if self.build_failed:
            return "Build failed, test aborted."
        lines = [
            "Load test summary",
            f"  publishers:  {self.publishers_succeeded}/{self.publishers_requested} succeeded,"
            f" {self.publishers_failed} failed",
            f"  subscribers: {self.subscribers_succeeded}/{self.subscribers_requested} terminated cleanly,"
            f" {self.subscribers_failed} failed",
            f"  messages sent: {self.messages_sent}",
        ]
        for r in self.records:
            if r.status is ExitStatus.FAILURE:
                lines.append(f"  ! {r.name}: {r.error or f'exit code {r.returncode}'}")
        lines.append("Test finished successfully." if self.exit_code == 0 else "Test failed.")
        return "\n".join(lines)

    def write_csv(self, path):
        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["role", "index", "pid", "status", "returncode", "sent", "elapsed"])
            for r in self.records:
                writer.writerow([r.role.value, r.index, r.pid, r.status.value, r.returncode,
                                 r.sent, r.elapsed])
