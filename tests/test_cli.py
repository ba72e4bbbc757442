import os
import signal
import sys

import pytest

from loadbench.errors import BuildError, ConnectError
from loadbench.mqtt import cli as client_cli
from loadbench.mqtt.connection import BrokerConnection
from loadbench.runner import cli as runner_cli
from loadbench.runner.records import RunSummary


@pytest.fixture
def saved_signal_handlers():
    saved = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}
    yield
    for signum, handler in saved.items():
        signal.signal(signum, handler)


class TestClientCli:

    def test_connect_failure_exits_nonzero(self, monkeypatch):
        def refuse(self):
            raise ConnectError("connection refused")

        monkeypatch.setattr(BrokerConnection, "connect", refuse)
        assert client_cli.main(["--broker", "127.0.0.1:1", "pub", "10", "0.2", "0.05"]) == 1

    def test_publisher_reports_count(self, monkeypatch, capsys):
        def connect(self):
            self.connected = True

        monkeypatch.setattr(BrokerConnection, "connect", connect)
        monkeypatch.setattr(BrokerConnection, "disconnect", lambda self: None)
        monkeypatch.setattr(BrokerConnection, "pump", lambda self, timeout: None)
        published = []
        monkeypatch.setattr(BrokerConnection, "publish",
                            lambda self, topic, payload, qos=1: published.append(payload))

        assert client_cli.main(["--topic", "bench", "pub", "32", "0.3", "0.1"]) == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith(f"sent={len(published)} elapsed=")
        assert 2 <= len(published) <= 4
        assert all(len(p) == 32 for p in published)

    @pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX signals")
    def test_subscriber_stops_cleanly_on_sigterm(self, monkeypatch, saved_signal_handlers, tmp_path):
        calls = []

        def connect(self):
            self.connected = True

        def pump(self, timeout):
            calls.append("pump")
            self.on_message("bench", b"A" * 8)
            os.kill(os.getpid(), signal.SIGTERM)

        monkeypatch.setattr(BrokerConnection, "connect", connect)
        monkeypatch.setattr(BrokerConnection, "subscribe",
                            lambda self, topic, qos=1: calls.append(("subscribe", topic, qos)))
        monkeypatch.setattr(BrokerConnection, "pump", pump)
        monkeypatch.setattr(BrokerConnection, "disconnect", lambda self: calls.append("disconnect"))

        log = tmp_path / "messages.csv"
        code = client_cli.main(["--topic", "bench", "--qos", "0", "sub", "--log-messages", str(log)])

        assert code == 0
        assert calls == [("subscribe", "bench", 0), "pump", "disconnect"]
        rows = log.read_text().splitlines()
        assert rows[0] == "recv,topic,size"
        assert rows[1].endswith(",bench,8")
        assert len(rows) == 2

    def test_invalid_values_exit_with_usage_code(self):
        assert client_cli.main(["pub", "10", "1.0", "0"]) == 2
        assert client_cli.main(["--broker", "host:port", "pub", "10", "1.0", "0.5"]) == 2

    def test_missing_arguments(self):
        with pytest.raises(SystemExit) as excinfo:
            client_cli.main(["pub", "10"])
        assert excinfo.value.code == 2

    def test_mode_is_required(self):
        with pytest.raises(SystemExit):
            client_cli.main([])


class FakeOrchestrator:
    instances = []

    def __init__(self, config, build, **kwargs):
        self.config = config
        self.build = build
        self.kwargs = kwargs
        FakeOrchestrator.instances.append(self)

    def run(self):
        if getattr(self.build, "executable", None) == "missing":
            raise BuildError("client executable missing not found")
        return RunSummary(self.config.publisher_count, self.config.subscriber_count)


class TestRunnerCli:

    @pytest.fixture(autouse=True)
    def fake_orchestrator(self, monkeypatch):
        FakeOrchestrator.instances = []
        monkeypatch.setattr(runner_cli, "ProcessOrchestrator", FakeOrchestrator)

    def test_builds_config_from_positionals(self, capsys):
        code = runner_cli.main(["3", "2", "100", "5", "0.5", "--broker", "mq:1884",
                                "--topic", "bench", "--warmup", "1"])
        config = FakeOrchestrator.instances[0].config
        assert (config.publisher_count, config.subscriber_count, config.payload_size) == (3, 2, 100)
        assert (config.duration, config.interval) == (5.0, 0.5)
        assert str(config.broker) == "mq:1884"
        assert FakeOrchestrator.instances[0].kwargs["warmup"] == 1.0
        # no publisher succeeded in the fake summary
        assert code == 1
        assert "Load test summary" in capsys.readouterr().out

    def test_build_failure(self, capsys, tmp_path):
        results = tmp_path / "results.csv"
        code = runner_cli.main(["1", "1", "10", "1", "0.5", "--client-exe", "missing",
                                "--results-csv", str(results)])
        assert code == 1
        assert capsys.readouterr().out.strip() == "Build failed, test aborted."
        # header only: nothing was spawned
        assert len(results.read_text().splitlines()) == 1

    def test_zero_publishers_succeeds(self):
        assert runner_cli.main(["0", "2", "10", "1", "0.5"]) == 0

    def test_invalid_duration(self):
        with pytest.raises(SystemExit) as excinfo:
            runner_cli.main(["1", "1", "10", "0", "0.5"])
        assert excinfo.value.code == 2

    def test_build_cmd_needs_executable(self):
        with pytest.raises(SystemExit):
            runner_cli.main(["1", "1", "10", "1", "0.5", "--build-cmd", "make"])
