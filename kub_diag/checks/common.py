# SPDX-License-Identifier: MIT

from __future__ import annotations

from typing import Any

from kub_diag.exceptions import ParameterError
from kub_diag.models import DiagnosticVerdict, ResourceRef, Scope, Status, conditions_of


def not_found(operation: str, ref: ResourceRef, message: str) -> DiagnosticVerdict:
    return DiagnosticVerdict(
        operation=operation, scope=Scope.RESOURCE, status=Status.UNKNOWN,
        summary=message, subject=ref, data={"outcome": "not_found"},
    )


def not_available(operation: str, scope: Scope, message: str, ref: ResourceRef | None = None) -> DiagnosticVerdict:
    return DiagnosticVerdict(
        operation=operation, scope=scope, status=Status.UNKNOWN,
        summary=message, subject=ref, data={"outcome": "not_available"},
    )


def phase_of(obj: Any) -> str:
    status = getattr(obj, "status", None)
    return (getattr(status, "phase", None) or "") if status else ""


def pending_reason(pod: Any) -> str:
    """Why a pod is pending: its own status reason, then the PodScheduled condition, else 'Pending'."""
    if pod.status and pod.status.reason:
        return pod.status.reason
    for cond in conditions_of(pod):
        if cond.type == "PodScheduled" and cond.status == "False" and cond.reason:
            return cond.reason
    return "Pending"


def restart_count(pod: Any) -> int:
    statuses = (pod.status.container_statuses if pod.status else None) or []
    return sum(cs.restart_count or 0 for cs in statuses)


def positive_int(name: str, value: Any) -> int:
    """Coerce a request parameter to a positive int; templated module params arrive as strings."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ParameterError(f"{name} must be a whole number, got {value!r}") from None
    if number < 1:
        raise ParameterError(f"{name} must be positive, got {number}")
    return number
