# SPDX-License-Identifier: MIT

"""Cluster-wide checks: version and membership, control plane, namespaces, scheduling."""

from __future__ import annotations

from kub_diag.checks.common import pending_reason, phase_of
from kub_diag.context import DiagnosticContext
from kub_diag.models import DiagnosticVerdict, Scope, Status, conditions_of, is_true, ready_status
from kub_diag.report import all_hold


def cluster_info(ctx: DiagnosticContext) -> DiagnosticVerdict:
    version = ctx.accessor.version()
    cluster_version = version.value if version.is_found else "unknown"
    nodes = ctx.accessor.list("Node")
    namespaces = ctx.accessor.list("Namespace")
    active = sum(1 for ns in namespaces if phase_of(ns).lower() == "active")
    return DiagnosticVerdict(
        operation="cluster_info",
        scope=Scope.CLUSTER,
        status=Status.OK if version.is_found else Status.UNKNOWN,
        summary=f"Cluster version: {cluster_version}",
        details=[f"Nodes: {len(nodes)}", f"Active namespaces: {active}"],
        data={"version": cluster_version, "node_count": len(nodes), "active_namespaces": active},
    )


def control_plane_health(ctx: DiagnosticContext) -> DiagnosticVerdict:
    version = ctx.accessor.version()
    if not version.is_found:
        return DiagnosticVerdict(
            operation="control_plane_health", scope=Scope.CLUSTER, status=Status.ERROR,
            summary="Control plane unreachable (cannot fetch version).",
            details=[version.reason] if version.reason else [],
            data={"reachable": False},
        )

    labels = ctx.settings.control_plane_labels
    members = [
        node for node in ctx.accessor.list("Node")
        if any(label in (node.metadata.labels or {}) for label in labels)
    ]
    if not members:
        return DiagnosticVerdict(
            operation="control_plane_health", scope=Scope.CLUSTER, status=Status.UNKNOWN,
            summary="No control-plane nodes found.",
            details=["Managed control planes do not register their nodes with the cluster."],
            data={"reachable": True, "nodes": {}},
        )

    statuses = {node.metadata.name: ready_status(conditions_of(node)) for node in members}
    healthy = all_hold(is_true(s) for s in statuses.values())
    return DiagnosticVerdict(
        operation="control_plane_health",
        scope=Scope.CLUSTER,
        status=Status.OK if healthy else Status.ISSUE,
        summary=f"Control plane nodes: {len(statuses)}. All healthy: {'YES' if healthy else 'NO'}",
        details=[f"{name}: Ready={status}" for name, status in statuses.items()],
        data={"reachable": True, "version": version.value, "nodes": statuses, "all_healthy": healthy},
    )


def namespace_health(ctx: DiagnosticContext) -> DiagnosticVerdict:
    namespaces = ctx.accessor.list("Namespace")
    if not namespaces:
        return DiagnosticVerdict(
            operation="namespace_health", scope=Scope.CLUSTER, status=Status.UNKNOWN,
            summary="No namespaces found in cluster.",
        )
    phases = {ns.metadata.name: phase_of(ns) or "Unknown" for ns in namespaces}
    all_active = all_hold(p.lower() == "active" for p in phases.values())
    return DiagnosticVerdict(
        operation="namespace_health",
        scope=Scope.CLUSTER,
        status=Status.OK if all_active else Status.ISSUE,
        summary=f"Namespaces: {len(phases)}. All Active: {'YES' if all_active else 'NO'}",
        details=[f"{name}: {phase}" for name, phase in phases.items()],
        data={"phases": phases, "all_active": all_active},
    )


def scheduling_issues(ctx: DiagnosticContext) -> DiagnosticVerdict:
    pods = ctx.accessor.list("Pod")
    if not pods:
        return DiagnosticVerdict(
            operation="scheduling_issues", scope=Scope.CLUSTER, status=Status.OK,
            summary="No pods found in cluster.", data={"pending": []},
        )

    pending = [
        {"namespace": pod.metadata.namespace, "name": pod.metadata.name, "reason": pending_reason(pod)}
        for pod in pods
        if phase_of(pod).lower() == "pending"
    ]
    if not pending:
        return DiagnosticVerdict(
            operation="scheduling_issues", scope=Scope.CLUSTER, status=Status.OK,
            summary="No scheduling issues detected (no pending pods).", data={"pending": []},
        )
    return DiagnosticVerdict(
        operation="scheduling_issues",
        scope=Scope.CLUSTER,
        status=Status.ISSUE,
        summary=f"Detected {len(pending)} pending pods:",
        details=[f"{p['namespace']}/{p['name']} ({p['reason']})" for p in pending],
        data={"pending": pending},
    )
