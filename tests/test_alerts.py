"""
Tests for disk and resource threshold alerts.
"""

import smtplib
from collections import namedtuple
from pathlib import Path

import pytest

from provision.adapters.mock import MockCommandRunner
from provision.core.config.settings import SmtpSettings
from provision.core.errors import ConfigError, NetworkError
from provision.core.models import CommandResult
from provision.core.services.alerts import (
    UNAVAILABLE,
    AlertReport,
    check_disk,
    check_resources,
    disk_usage_percent,
    send_alert,
    top_directories,
)

Usage = namedtuple("Usage", "total used free")


def _usage(used: int, free: int):
    return lambda mount: Usage(total=used + free, used=used, free=free)


def _write_proc(proc: Path, stat_lines: list[str], mem_total: int, mem_available: int) -> None:
    proc.mkdir(exist_ok=True)
    (proc / "stat").write_text(stat_lines.pop(0) + "\ncpu0 1 2 3 4\n")
    (proc / "meminfo").write_text(
        f"MemTotal:       {mem_total} kB\n"
        f"MemFree:        1000 kB\n"
        f"MemAvailable:   {mem_available} kB\n"
    )


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout):
        self.host, self.port, self.timeout = host, port, timeout
        self.calls: list[str] = []
        self.sent: list[tuple] = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(f"login:{user}")

    def sendmail(self, sender, recipients, message):
        self.calls.append("sendmail")
        self.sent.append((sender, recipients, message))


# ── Disk Tests ───────────────────────────────────────────────────────


class TestDisk:
    def test_usage_rounds_up(self):
        assert disk_usage_percent("/", _usage(used=801, free=199)) == 81
        assert disk_usage_percent("/", _usage(used=800, free=200)) == 80

    def test_below_threshold(self):
        report = check_disk("/", threshold=80, usage=_usage(used=10, free=90))

        assert not report.breached
        assert report.subject == ""
        assert report.metrics["usage_pct"] == 10

    def test_at_threshold_alerts(self):
        runner = MockCommandRunner()
        runner.set_response(("df",), CommandResult(stdout="Filesystem Size Used Avail Use% Mounted on\n/dev/sda1 10G 8G 2G 80% /\n"))
        runner.set_response(("du",), CommandResult(stdout="100\t/var\n5000\t/usr\n5100\t/\n"))

        report = check_disk("/", threshold=80, runner=runner, usage=_usage(used=80, free=20))

        assert report.breached
        assert report.subject == f"[ALERT] {report.host}: / at 80% used (threshold 80%)"
        assert "/dev/sda1" in report.body
        assert "/usr" in report.body
        assert runner.call_log[0] == ["df", "-hP", "/"]

    def test_failed_diagnostic_unavailable(self):
        runner = MockCommandRunner()
        runner.set_failure(("df",))
        runner.set_failure(("du",))

        report = check_disk("/", threshold=50, runner=runner, usage=_usage(used=90, free=10))

        assert report.body.count(UNAVAILABLE) == 2

    def test_top_directories_sorted(self):
        runner = MockCommandRunner()
        runner.set_response(("du",), CommandResult(stdout="2048\t/var\n1048576\t/usr\n12\t/tmp\n"))

        lines = top_directories(runner, "/").splitlines()

        assert lines[0].endswith("/usr")
        assert lines[-1].endswith("/tmp")

    def test_usage_error(self):
        def broken(mount):
            raise FileNotFoundError(mount)

        with pytest.raises(ConfigError):
            check_disk("/nope", usage=broken)


# ── Resource Tests ───────────────────────────────────────────────────


class TestResources:
    def _proc(self, tmp_path: Path, busy: bool, mem_available: int):
        proc = tmp_path / "proc"
        first = "cpu  100 0 100 800 0 0 0 0"
        # 1000 jiffies later: idle grew by 100 (busy) or 900 (quiet)
        second = "cpu  550 0 550 900 0 0 0 0" if busy else "cpu  150 0 100 1700 0 0 0 0"
        lines = [first, second]
        _write_proc(proc, lines, mem_total=1000, mem_available=mem_available)

        def sleep(_secs):
            (proc / "stat").write_text(lines.pop(0) + "\n")

        return proc, sleep

    def test_quiet_host(self, tmp_path: Path):
        proc, sleep = self._proc(tmp_path, busy=False, mem_available=800)

        report = check_resources(80, 80, proc=proc, sleep=sleep)

        assert not report.breached
        assert report.metrics["cpu_pct"] == 5
        assert report.metrics["mem_pct"] == 20

    def test_cpu_and_memory_breach(self, tmp_path: Path):
        proc, sleep = self._proc(tmp_path, busy=True, mem_available=100)

        report = check_resources(80, 80, proc=proc, sleep=sleep, runner=MockCommandRunner())

        assert report.reasons == ["CPU 90% >= 80%", "MEM 90% >= 80%"]
        assert report.subject == f"[ALERT] {report.host}: CPU 90% >= 80%; MEM 90% >= 80%"
        assert "Top processes by CPU" in report.body

    def test_unreadable_proc(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            check_resources(proc=tmp_path / "missing", sleep=lambda s: None)


# ── Delivery Tests ───────────────────────────────────────────────────


class TestSendAlert:
    def _report(self) -> AlertReport:
        return AlertReport(kind="disk", host="web-1", reasons=["/ at 91%"], subject="[ALERT] web-1", body="details")

    def test_starttls_login_send(self):
        FakeSMTP.instances.clear()
        smtp = SmtpSettings(user="ops@example.test", password="pw", to="oncall@example.test")

        send_alert(self._report(), smtp, smtp_factory=FakeSMTP)

        client = FakeSMTP.instances[0]
        assert (client.host, client.port) == ("smtp.gmail.com", 587)
        assert client.calls == ["ehlo", "starttls", "ehlo", "login:ops@example.test", "sendmail"]
        sender, recipients, message = client.sent[0]
        assert recipients == ["oncall@example.test"]
        assert "Subject: [ALERT] web-1" in message

    def test_missing_password(self):
        with pytest.raises(ConfigError):
            send_alert(self._report(), SmtpSettings(user="ops@example.test"), smtp_factory=FakeSMTP)

    def test_missing_user(self):
        with pytest.raises(ConfigError):
            send_alert(self._report(), SmtpSettings(password="pw"), smtp_factory=FakeSMTP)

    def test_relay_failure(self):
        def refusing(host, port, timeout):
            raise smtplib.SMTPConnectError(421, b"try later")

        with pytest.raises(NetworkError):
            send_alert(self._report(), SmtpSettings(user="u", password="p"), smtp_factory=refusing)
