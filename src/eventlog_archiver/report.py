"""
Run report rendering.

Turns the ordered HostOutcome list into summary log lines and an HTML table
(one row per host, failing cells highlighted) that can be written to disk
and handed to mail delivery.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from jinja2 import Template

from .models import ClearStatus, HostOutcome, StepStatus, now_utc

logger = logging.getLogger(__name__)


REPORT_COLUMNS = ["ComputerName", "Log", "EventLogPath", "Result", "RegistryReset", "Rebooted"]

# Inline styles; many mail clients drop <style> blocks
CELL_STYLES = {
    "ok": "",
    "fail": "background-color: #f8d7da; color: #721c24; font-weight: bold;",
    "warn": "background-color: #fff3cd; color: #856404;",
    "skip": "color: #6c757d;",
}

REPORT_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
</head>
<body style="font-family: 'Segoe UI', Tahoma, Arial, sans-serif; font-size: 10pt; color: #333;">
    <h2 style="color: #1a365d;">{{ title }}</h2>
    <p>
        Started {{ started_at }} &middot; {{ total }} host(s) &middot;
        {{ succeeded }} succeeded &middot; {{ failed }} with failures
    </p>
    <table cellpadding="4" cellspacing="0" border="1" style="border-collapse: collapse; border-color: #dee2e6;">
        <thead>
            <tr style="background-color: #1a365d; color: #ffffff;">
                {% for column in columns %}
                <th>{{ column }}</th>
                {% endfor %}
            </tr>
        </thead>
        <tbody>
            {% for row in rows %}
            <tr>
                {% for cell in row %}
                <td style="{{ cell.style }}">{{ cell.text }}</td>
                {% endfor %}
            </tr>
            {% endfor %}
        </tbody>
    </table>
</body>
</html>
"""


class ReportDelivery(Protocol):
    """Anything that can send an HTML body to a recipient."""

    def deliver(self, body: str, subject: str, recipient: str) -> bool:
        ...


STEP_LABELS = {
    StepStatus.APPLIED: ("Yes", "ok"),
    StepStatus.SKIPPED: ("Skipped", "skip"),
    StepStatus.FAILED: ("Failed", "fail"),
    StepStatus.NOT_ATTEMPTED: ("Not attempted", "warn"),
}


def result_label(outcome: HostOutcome) -> str:
    """Human-readable archive result for one host."""
    result = outcome.clear_result
    if result.status == ClearStatus.SUCCESS:
        return "Success"
    if result.status == ClearStatus.PERMISSION_DENIED:
        suffix = f" ({result.return_code})" if result.return_code is not None else ""
        return f"Permission denied{suffix}"
    if result.status == ClearStatus.INVALID_PARAMETER:
        return f"Invalid parameter ({result.return_code})"
    if result.status == ClearStatus.NOT_ATTEMPTED:
        return f"Not attempted: {outcome.error or result.message or 'unknown error'}"
    if result.return_code is not None:
        return f"Failed (code {result.return_code})"
    return f"Failed: {result.message or 'unknown error'}"


def _cell(text: str, kind: str) -> Dict[str, str]:
    return {"text": text, "style": CELL_STYLES[kind]}


def build_rows(outcomes: Sequence[HostOutcome]) -> List[List[Dict[str, str]]]:
    rows = []
    for outcome in outcomes:
        result_kind = "ok" if outcome.clear_result.success else "fail"
        registry_text, registry_kind = STEP_LABELS[outcome.registry_reset]
        reboot_text, reboot_kind = STEP_LABELS[outcome.rebooted]
        if outcome.rebooted == StepStatus.SKIPPED:
            reboot_text = "No"
        rows.append([
            _cell(outcome.host, "ok"),
            _cell(outcome.log_type.value, "ok"),
            _cell(outcome.backup_path.full_path if outcome.backup_path else "-", "ok"),
            _cell(result_label(outcome), result_kind),
            _cell(registry_text, registry_kind),
            _cell(reboot_text, reboot_kind),
        ])
    return rows


class RunReporter:
    """Render and publish the report for one run."""

    def __init__(self, title: str = "Event Log Archive Report", started_at: Optional[datetime] = None):
        self.title = title
        self.started_at = started_at or now_utc()

    def log_summary(self, outcomes: Sequence[HostOutcome]) -> None:
        """Emit one log line per host plus a totals line."""
        for outcome in outcomes:
            line = (
                f"{outcome.host}: {outcome.log_type.value} -> "
                f"{outcome.backup_path or '-'} | {result_label(outcome)} | "
                f"registry={outcome.registry_reset.value} | reboot={outcome.rebooted.value}"
            )
            if outcome.failed:
                logger.warning(line)
            else:
                logger.info(line)

        failed = sum(1 for o in outcomes if o.failed)
        logger.info(f"Run complete: {len(outcomes)} host(s), {failed} with failures")

    def render_html(self, outcomes: Sequence[HostOutcome]) -> str:
        template = Template(REPORT_TEMPLATE, autoescape=True)
        failed = sum(1 for o in outcomes if o.failed)
        return template.render(
            title=self.title,
            started_at=self.started_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
            total=len(outcomes),
            succeeded=len(outcomes) - failed,
            failed=failed,
            columns=REPORT_COLUMNS,
            rows=build_rows(outcomes),
        )

    def write_html(self, outcomes: Sequence[HostOutcome], path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render_html(outcomes), encoding="utf-8")
        logger.info(f"HTML report written to {path}")
        return path

    def publish(
        self,
        outcomes: Sequence[HostOutcome],
        report_path: Optional[Path] = None,
        delivery: Optional[ReportDelivery] = None,
        recipient: Optional[str] = None,
        subject: str = "Event log archive report",
    ) -> bool:
        """
        Log the summary, then write and/or mail the HTML report.

        Returns:
            False if mail delivery was requested and failed, True otherwise
        """
        self.log_summary(outcomes)

        if report_path:
            self.write_html(outcomes, report_path)

        if delivery is None:
            logger.info("Mail delivery disabled - report not sent")
            return True
        if not recipient:
            logger.warning("No report recipient configured - skipping report email")
            return True

        return delivery.deliver(self.render_html(outcomes), subject, recipient)
