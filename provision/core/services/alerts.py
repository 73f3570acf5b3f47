"""
Threshold alerts — disk usage and CPU/memory pressure, mailed via SMTP.

Checks build an ``AlertReport``; nothing is sent unless at least one
threshold is breached.  The mail body carries the same diagnostics an
operator would run by hand (``df -hP``, biggest directories, top
processes).  A diagnostic that fails is replaced by ``(unavailable)``
instead of failing the alert.
"""

from __future__ import annotations

import logging
import math
import shutil
import smtplib
import socket
import ssl
import time
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from typing import Any, Callable

from provision.adapters.shell.command import CommandRunner
from provision.core.config.settings import SmtpSettings
from provision.core.errors import ConfigError, NetworkError

logger = logging.getLogger(__name__)

UNAVAILABLE = "(unavailable)"
DIAG_TIMEOUT = 60
TOP_N = 10

DISK_NEXT_STEPS = (
    "- Clean old logs, caches, temp files.\n"
    "- Archive/compress large cold data.\n"
    "- Expand the volume or add storage."
)
RESOURCE_NEXT_STEPS = (
    "- Investigate top offenders (apps/services).\n"
    "- Check cron jobs, runaway processes, memory leaks.\n"
    "- Consider scaling resources or tuning services."
)


@dataclass
class AlertReport:
    """Outcome of one threshold check."""

    kind: str                                  # "disk" | "resources"
    host: str
    reasons: list[str] = field(default_factory=list)
    subject: str = ""
    body: str = ""
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def breached(self) -> bool:
        return bool(self.reasons)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "host": self.host,
            "breached": self.breached,
            "reasons": self.reasons,
            "subject": self.subject,
            "metrics": self.metrics,
        }


def _hostname() -> str:
    return socket.getfqdn() or socket.gethostname()


def _now() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def _diagnostic(runner: CommandRunner | None, argv: list[str]) -> str:
    if runner is None:
        return UNAVAILABLE
    result = runner.run(argv, timeout=DIAG_TIMEOUT)
    if not result.ok or not result.stdout.strip():
        return UNAVAILABLE
    return result.stdout.rstrip()


def _human_kb(kb: int) -> str:
    size = float(kb)
    for unit in ("K", "M", "G", "T"):
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}P"


def top_directories(runner: CommandRunner | None, mount: str, limit: int = TOP_N) -> str:
    """Largest first-level directories under ``mount`` (same filesystem)."""
    raw = _diagnostic(runner, ["du", "-xkd1", mount])
    if raw == UNAVAILABLE:
        return raw
    rows: list[tuple[int, str]] = []
    for line in raw.splitlines():
        size, _, path = line.partition("\t")
        if size.strip().isdigit():
            rows.append((int(size), path))
    rows.sort(reverse=True)
    return "\n".join(f"{_human_kb(kb):>8}  {path}" for kb, path in rows[:limit]) or UNAVAILABLE


def top_processes(runner: CommandRunner | None, sort_by: str, limit: int = TOP_N) -> str:
    """``ps`` table sorted by ``%cpu`` or ``%mem``, header plus ``limit`` rows."""
    raw = _diagnostic(runner, ["ps", "-eo", "pid,comm,%cpu,%mem", f"--sort=-{sort_by}"])
    if raw == UNAVAILABLE:
        return raw
    return "\n".join(raw.splitlines()[: limit + 1])


# ── Disk ────────────────────────────────────────────────────────


def disk_usage_percent(mount: str, usage: Callable = shutil.disk_usage) -> int:
    """Used percentage as ``df`` reports it (used / (used + avail), rounded up)."""
    du = usage(mount)
    denominator = du.used + du.free
    if denominator <= 0:
        return 0
    return math.ceil(du.used * 100 / denominator)


def check_disk(
    mount: str = "/",
    threshold: int = 80,
    runner: CommandRunner | None = None,
    usage: Callable = shutil.disk_usage,
) -> AlertReport:
    """Compare disk usage on ``mount`` with ``threshold`` percent."""
    try:
        pct = disk_usage_percent(mount, usage)
    except OSError as e:
        raise ConfigError(f"Could not determine disk usage for {mount}: {e}") from e

    host = _hostname()
    report = AlertReport(kind="disk", host=host, metrics={"mount": mount, "usage_pct": pct, "threshold": threshold})
    logger.info("Disk usage on %s: %d%% (threshold %d%%)", mount, pct, threshold)
    if pct < threshold:
        return report

    report.reasons.append(f"{mount} at {pct}% used (threshold {threshold}%)")
    report.subject = f"[ALERT] {host}: {mount} at {pct}% used (threshold {threshold}%)"
    report.body = (
        f"Disk space alert on {host}\n\n"
        f"Time: {_now()}\n"
        f"Mount: {mount}\n"
        f"Usage: {pct}% (threshold {threshold}%)\n\n"
        f"Filesystem usage:\n{_diagnostic(runner, ['df', '-hP', mount])}\n\n"
        f"Top {TOP_N} space consumers under {mount}:\n{top_directories(runner, mount)}\n\n"
        f"Suggested next steps:\n{DISK_NEXT_STEPS}\n"
    )
    return report


# ── CPU / memory ────────────────────────────────────────────────


def read_cpu_times(proc: Path = Path("/proc")) -> tuple[int, int]:
    """(total, idle) jiffies from the aggregate ``cpu`` line of /proc/stat."""
    with open(proc / "stat", encoding="utf-8") as f:
        fields = f.readline().split()
    # user nice system idle iowait irq softirq steal
    values = [int(v) for v in fields[1:9]]
    values += [0] * (8 - len(values))
    return sum(values), values[3]


def cpu_usage_percent(
    sample_secs: float = 2,
    proc: Path = Path("/proc"),
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    total1, idle1 = read_cpu_times(proc)
    sleep(sample_secs)
    total2, idle2 = read_cpu_times(proc)
    total_delta = total2 - total1
    idle_delta = idle2 - idle1
    if total_delta <= 0:
        return 0
    return (100 * (total_delta - idle_delta)) // total_delta


def memory_usage_percent(proc: Path = Path("/proc")) -> int:
    """Used memory percentage based on ``MemAvailable``."""
    info: dict[str, int] = {}
    with open(proc / "meminfo", encoding="utf-8") as f:
        for line in f:
            key, _, rest = line.partition(":")
            parts = rest.split()
            if parts and parts[0].isdigit():
                info[key.strip()] = int(parts[0])
    total = info.get("MemTotal", 0)
    avail = info.get("MemAvailable")
    if total <= 0 or avail is None:
        return 0
    return (100 * (total - avail)) // total


def check_resources(
    cpu_threshold: int = 80,
    mem_threshold: int = 80,
    sample_secs: float = 2,
    runner: CommandRunner | None = None,
    proc: Path = Path("/proc"),
    sleep: Callable[[float], None] = time.sleep,
) -> AlertReport:
    """Sample CPU over ``sample_secs`` and read memory pressure."""
    try:
        cpu = cpu_usage_percent(sample_secs, proc, sleep)
        mem = memory_usage_percent(proc)
    except (OSError, ValueError, IndexError) as e:
        raise ConfigError(f"Cannot read CPU/memory statistics from {proc}: {e}") from e

    host = _hostname()
    report = AlertReport(
        kind="resources",
        host=host,
        metrics={
            "cpu_pct": cpu,
            "mem_pct": mem,
            "cpu_threshold": cpu_threshold,
            "mem_threshold": mem_threshold,
        },
    )
    logger.info("CPU %d%% (threshold %d%%), memory %d%% (threshold %d%%)", cpu, cpu_threshold, mem, mem_threshold)

    if cpu >= cpu_threshold:
        report.reasons.append(f"CPU {cpu}% >= {cpu_threshold}%")
    if mem >= mem_threshold:
        report.reasons.append(f"MEM {mem}% >= {mem_threshold}%")
    if not report.breached:
        return report

    report.subject = f"[ALERT] {host}: {'; '.join(report.reasons)}"
    report.body = (
        f"Resource alert on {host}\n\n"
        f"Time: {_now()}\n\n"
        f"Thresholds:\n"
        f"- CPU threshold: {cpu_threshold}%\n"
        f"- Memory threshold: {mem_threshold}%\n\n"
        f"Current:\n"
        f"- CPU used: {cpu}%\n"
        f"- Memory used: {mem}%\n\n"
        f"free -h:\n{_diagnostic(runner, ['free', '-h'])}\n\n"
        f"Top processes by CPU:\n{top_processes(runner, '%cpu')}\n\n"
        f"Top processes by MEM:\n{top_processes(runner, '%mem')}\n\n"
        f"Suggested next steps:\n{RESOURCE_NEXT_STEPS}\n"
    )
    return report


# ── Delivery ────────────────────────────────────────────────────


def build_message(report: AlertReport, smtp: SmtpSettings) -> MIMEText:
    msg = MIMEText(report.body, _charset="utf-8")
    msg["Subject"] = report.subject
    msg["From"] = formataddr((smtp.from_name, smtp.user))
    msg["To"] = smtp.to or smtp.user
    return msg


def send_alert(
    report: AlertReport,
    smtp: SmtpSettings,
    smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
) -> None:
    """Mail ``report`` over SMTP with STARTTLS and login.

    Raises:
        ConfigError: user or password missing.
        NetworkError: the relay refused or could not be reached.
    """
    if not smtp.user:
        raise ConfigError("SMTP_USER is not set")
    if not smtp.password:
        raise ConfigError("SMTP password missing: set SMTP_PASSWORD or SMTP_PASSWORD_FILE")

    msg = build_message(report, smtp)
    recipient = smtp.to or smtp.user
    logger.info("Sending alert to %s via %s:%d", recipient, smtp.host, smtp.port)
    try:
        with smtp_factory(smtp.host, smtp.port, timeout=smtp.timeout) as s:
            s.ehlo()
            s.starttls(context=ssl.create_default_context())
            s.ehlo()
            s.login(smtp.user, smtp.password)
            s.sendmail(smtp.user, [recipient], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise NetworkError(f"Failed to send alert email via {smtp.host}: {e}") from e
