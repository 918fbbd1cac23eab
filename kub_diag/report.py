# SPDX-License-Identifier: MIT

"""Aggregation of per-item results and deterministic text rendering."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from kub_diag.models import DiagnosticVerdict, ResourceRef, Scope, Status


def all_hold(values: Iterable[bool | None]) -> bool:
    """Logical AND where an unknown (None) value never passes."""
    return all(v is True for v in values)


def worst_status(statuses: Iterable[Status]) -> Status:
    return min(statuses, key=lambda s: s.sort_order, default=Status.OK)


def tally(verdicts: Iterable[DiagnosticVerdict]) -> dict[str, int]:
    counts = {s.value: 0 for s in Status}
    for v in verdicts:
        counts[v.status.value] += 1
    return counts


def combine(
    operation: str,
    scope: Scope,
    summary: str,
    parts: list[DiagnosticVerdict],
    subject: ResourceRef | None = None,
) -> DiagnosticVerdict:
    """Merge per-item verdicts into one; the worst status wins and details keep input order."""
    details: list[str] = []
    data: dict[str, int] = {}
    for part in parts:
        details.extend(part.details)
        for key, value in part.data.items():
            if isinstance(value, int) and not isinstance(value, bool):
                data[key] = data.get(key, 0) + value
    return DiagnosticVerdict(
        operation=operation,
        scope=scope,
        status=worst_status(p.status for p in parts),
        summary=summary,
        details=details,
        subject=subject,
        data=data,
    )


def render_verdict(verdict: DiagnosticVerdict) -> str:
    lines = [verdict.summary]
    lines.extend(f"- {d}" for d in verdict.details)
    return "\n".join(lines)


def render_report(
    verdicts: list[DiagnosticVerdict],
    title: str = "Kubernetes Diagnostics",
    timestamp: datetime | None = None,
) -> str:
    counts = tally(verdicts)
    lines = [f"# {title}"]
    if timestamp is not None:
        lines.append(f"Timestamp: {timestamp.isoformat()}")
    lines.append("")
    lines.append(
        f"## Summary: {len(verdicts)} diagnostics ("
        + ", ".join(f"{counts[s.value]} {s.value}" for s in Status)
        + ")"
    )
    for v in verdicts:
        header = f"\n### {v.operation} [{v.status.value.upper()}]"
        if v.subject:
            header += f" {v.subject}"
        lines.append(header)
        lines.append(render_verdict(v))
    return "\n".join(lines)
