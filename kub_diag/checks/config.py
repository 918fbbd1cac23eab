# SPDX-License-Identifier: MIT

"""ConfigMap and Secret key checks, and RBAC self access review.

Secret values are never read or reported; only key names are.
"""

from __future__ import annotations

from kub_diag.checks.common import not_available, not_found
from kub_diag.context import DiagnosticContext
from kub_diag.exceptions import ParameterError
from kub_diag.models import SELF_SUBJECT_ACCESS_REVIEW, DiagnosticVerdict, ResourceRef, Scope, Status


def config_map_keys(ctx: DiagnosticContext, namespace: str, name: str) -> DiagnosticVerdict:
    ref = ResourceRef("ConfigMap", name, namespace)
    lookup = ctx.accessor.get("ConfigMap", name, namespace).require()
    if not lookup.is_found:
        return not_found("config_map_keys", ref, f"ConfigMap '{name}' not found in namespace '{namespace}'")

    cm = lookup.value
    keys = list(cm.data or {}) + list(cm.binary_data or {})
    summary = f"ConfigMap '{name}' keys: {', '.join(keys)}" if keys else f"ConfigMap '{name}' has no keys."
    return DiagnosticVerdict(
        operation="config_map_keys", scope=Scope.RESOURCE, status=Status.OK,
        summary=summary, subject=ref, data={"keys": keys},
    )


def secret_keys(ctx: DiagnosticContext, namespace: str, name: str, expected_keys: list[str]) -> DiagnosticVerdict:
    if isinstance(expected_keys, str):
        expected_keys = [expected_keys]
    if not expected_keys:
        raise ParameterError("expected_keys must name at least one key")
    ref = ResourceRef("Secret", name, namespace)
    lookup = ctx.accessor.get("Secret", name, namespace).require()
    if not lookup.is_found:
        return not_found("secret_keys", ref, f"Secret '{name}' not found in namespace '{namespace}'")

    present = set(lookup.value.data or {}) | set(lookup.value.string_data or {})
    missing = [k for k in expected_keys if k not in present]
    if missing:
        return DiagnosticVerdict(
            operation="secret_keys", scope=Scope.RESOURCE, status=Status.ISSUE,
            summary=f"Secret '{name}' is missing keys: {', '.join(missing)}",
            details=[f"Present keys: {', '.join(sorted(present)) or 'none'}"],
            subject=ref, data={"missing": missing},
        )
    return DiagnosticVerdict(
        operation="secret_keys", scope=Scope.RESOURCE, status=Status.OK,
        summary=f"Secret '{name}' contains all expected keys: {', '.join(expected_keys)}",
        subject=ref, data={"missing": []},
    )


def rbac_access(ctx: DiagnosticContext, namespace: str, verb: str, resource: str) -> DiagnosticVerdict:
    """Ask the API server whether the calling identity may ``verb`` ``resource`` in ``namespace``."""
    action = f"{verb} {resource} in namespace '{namespace}'"
    body = {
        "apiVersion": SELF_SUBJECT_ACCESS_REVIEW.api_version,
        "kind": SELF_SUBJECT_ACCESS_REVIEW.kind,
        "spec": {"resourceAttributes": {"namespace": namespace, "verb": verb, "resource": resource}},
    }
    lookup = ctx.accessor.create_dynamic(SELF_SUBJECT_ACCESS_REVIEW, body).require()
    if not lookup.is_found:
        return not_available("rbac_access", Scope.NAMESPACE, f"Access review API not available: {lookup.reason}")

    status = lookup.value.require_mapping("status") or {}
    allowed = status.get("allowed")
    reason = status.get("reason") or "unknown"
    if not isinstance(allowed, bool):
        return DiagnosticVerdict(
            operation="rbac_access", scope=Scope.NAMESPACE, status=Status.UNKNOWN,
            summary=f"Access review returned no decision for: {action}", data={"allowed": None},
        )
    if allowed:
        return DiagnosticVerdict(
            operation="rbac_access", scope=Scope.NAMESPACE, status=Status.OK,
            summary=f"Access allowed: {action}", data={"allowed": True, "reason": reason},
        )
    return DiagnosticVerdict(
        operation="rbac_access", scope=Scope.NAMESPACE, status=Status.ISSUE,
        summary=f"Access denied: {action} (reason: {reason})", data={"allowed": False, "reason": reason},
    )
