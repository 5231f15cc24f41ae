"""
Report Builder

Renders the plain-text troubleshooting report offered for copy and export.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .matcher import PlaybookMatch

REPORT_TITLE = "AI Troubleshooting Agent Report"
GENERAL_TRIAGE_LINE = (
    "No strong playbook match found. "
    "Use general triage: reproduce → scope → isolate → remediate → verify."
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ReportInput:
    category: Optional[str] = ""
    device: Optional[str] = ""
    context: Optional[str] = ""
    description: Optional[str] = ""
    match: Optional[PlaybookMatch] = None


def _text(value: Optional[str]) -> str:
    return "" if value is None else str(value)


def build_report(report: ReportInput, generated_at: Optional[datetime] = None) -> str:
    """
    Render a report for a match result.

    Args:
        report: User-supplied fields plus the match (None for no match)
        generated_at: Timestamp for the Date line, defaults to now

    Returns:
        Newline-separated report text
    """
    generated_at = generated_at or datetime.now()
    device = _text(report.device)

    lines: List[str] = [
        REPORT_TITLE,
        f"Date: {generated_at.strftime(DATE_FORMAT)}",
        f"Category: {_text(report.category)}",
        f"Device/OS: {device}",
        f"Context: {_text(report.context)}",
        "",
        "Problem Description:",
        _text(report.description) or "(none provided)",
        "",
    ]

    if report.match is None:
        lines.append(GENERAL_TRIAGE_LINE)
        return "\n".join(lines)

    record = report.match.record
    lines.append(f"Best Match Playbook: {record.name}")
    lines.append("")
    lines.append("Clarifying Questions:")
    lines.extend(f"{i}. {question}" for i, question in enumerate(record.questions, start=1))
    lines.append("")
    lines.append("Recommended Steps:")
    lines.extend(f"{i}. {step}" for i, step in enumerate(record.steps, start=1))
    lines.append("")
    lines.append(f"Suggested Commands ({device}):")

    commands = record.commands_for(report.device)
    if not commands:
        lines.append("(none)")
    lines.extend(f"- {command}" for command in commands)

    return "\n".join(lines)
