# SPDX-License-Identifier: MIT

"""Event listing and recurrence detection.

Events are ordered by their last-seen time. Events that carry no timestamp
at all sort after every timestamped event and never fall inside a window.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone

from kub_diag.checks.common import not_found, positive_int
from kub_diag.context import DiagnosticContext
from kub_diag.models import DiagnosticVerdict, EventRecord, ResourceRef, Scope, Status

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _records(ctx: DiagnosticContext, namespace: str | None = None) -> list[EventRecord]:
    return [EventRecord.from_object(e) for e in ctx.accessor.list("Event", namespace=namespace)]


def _newest_first(records: list[EventRecord]) -> list[EventRecord]:
    # stable sort keeps API order among equal timestamps
    return sorted(
        records,
        key=lambda r: (r.last_seen_at is not None, r.last_seen_at or _EPOCH),
        reverse=True,
    )


def recent_events(ctx: DiagnosticContext, limit: int | None = None) -> DiagnosticVerdict:
    limit = positive_int("limit", ctx.settings.recent_events_limit if limit is None else limit)
    records = _newest_first(_records(ctx))[:limit]
    if not records:
        return DiagnosticVerdict(
            operation="recent_events", scope=Scope.CLUSTER, status=Status.OK,
            summary="No recent events in the cluster.", data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="recent_events",
        scope=Scope.CLUSTER,
        status=Status.OK,
        summary="Recent events:",
        details=[f"{r.reason} ({r.involved_kind}/{r.involved_name})" for r in records],
        data={"count": len(records)},
    )


def pod_events(ctx: DiagnosticContext, namespace: str, pod_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    records = [
        r for r in _newest_first(_records(ctx, namespace))
        if r.involved_kind == "Pod" and r.involved_name == pod_name
    ]
    if not records:
        pod = ctx.accessor.get("Pod", pod_name, namespace).require()
        if not pod.is_found:
            return not_found("pod_events", ref, f"Pod {pod_name} not found in namespace {namespace}")
        return DiagnosticVerdict(
            operation="pod_events", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"No events found for pod {pod_name}", subject=ref, data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="pod_events",
        scope=Scope.RESOURCE,
        status=Status.OK,
        summary=f"Events for pod {pod_name}:",
        details=[f"{r.reason} - {r.message}" for r in records],
        subject=ref,
        data={"count": len(records)},
    )


def recurring_events(ctx: DiagnosticContext, minutes: int) -> DiagnosticVerdict:
    """Event reasons seen more than once within the last ``minutes`` minutes."""
    minutes = positive_int("minutes", minutes)
    end = ctx.now()
    start = end - timedelta(minutes=minutes)
    counts = Counter(r.reason for r in _records(ctx) if r.seen_between(start, end))
    recurring = {reason: n for reason, n in counts.items() if n > 1}
    if not recurring:
        return DiagnosticVerdict(
            operation="recurring_events", scope=Scope.CLUSTER, status=Status.OK,
            summary=f"No recurring events in the last {minutes} minutes.", data={"recurring": {}},
        )
    return DiagnosticVerdict(
        operation="recurring_events",
        scope=Scope.CLUSTER,
        status=Status.ISSUE,
        summary=f"Recurring events in the last {minutes} minutes:",
        details=[f"{reason} occurred {n} times" for reason, n in recurring.items()],
        data={"recurring": recurring},
    )
