# SPDX-License-Identifier: MIT

from __future__ import annotations

from kub_diag.checks.common import not_available, not_found
from kub_diag.context import DiagnosticContext
from kub_diag.models import (
    NODE_METRICS,
    DiagnosticVerdict,
    ResourceRef,
    Scope,
    Status,
    conditions_of,
    is_true,
    ready_status,
)
from kub_diag.quantity import usage_of


def node_status(ctx: DiagnosticContext, node_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Node", node_name)
    lookup = ctx.accessor.get("Node", node_name).require()
    if not lookup.is_found:
        return not_found("node_status", ref, f"Node {node_name} not found.")

    conditions = conditions_of(lookup.value)
    if not conditions:
        return DiagnosticVerdict(
            operation="node_status", scope=Scope.RESOURCE, status=Status.UNKNOWN,
            summary=f"No conditions found for node {node_name}", subject=ref,
        )
    ready = is_true(ready_status(conditions))
    listing = ", ".join(f"{c.type}={c.status}" for c in conditions)
    return DiagnosticVerdict(
        operation="node_status",
        scope=Scope.RESOURCE,
        status=Status.OK if ready else Status.ISSUE,
        summary=f"Node {node_name} is {'Ready' if ready else 'NotReady'} ({listing})",
        subject=ref,
        data={"ready": ready, "conditions": {c.type: c.status for c in conditions}},
    )


def node_metrics(ctx: DiagnosticContext, node_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Node", node_name)
    lookup = ctx.accessor.get_dynamic(NODE_METRICS, node_name).require()
    if not lookup.is_found:
        return not_available(
            "node_metrics", Scope.RESOURCE,
            f"Metrics not available for node {node_name} "
            "(Metrics Server missing or API group metrics.k8s.io not reachable).",
            ref,
        )

    metrics = lookup.value
    usage = metrics.require_mapping("usage")
    if usage is None:
        return not_available(
            "node_metrics", Scope.RESOURCE, f"Metrics object found but usage field missing for {node_name}", ref,
        )
    cores, mib = usage_of(metrics.properties, f"Node {node_name}")
    return DiagnosticVerdict(
        operation="node_metrics",
        scope=Scope.RESOURCE,
        status=Status.OK,
        summary=f"Node {node_name} metrics: CPU {cores:.2f} cores, Memory {mib:.2f} Mi",
        details=[f"cpu={usage['cpu']}", f"memory={usage['memory']}"],
        subject=ref,
        data={"cpu_cores": cores, "memory_mib": mib},
    )


def pods_on_node(ctx: DiagnosticContext, node_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Node", node_name)
    pods = ctx.accessor.list("Pod", field_selector=f"spec.nodeName={node_name}")
    if not pods:
        return DiagnosticVerdict(
            operation="pods_on_node", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"No pods scheduled on node {node_name}", subject=ref, data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="pods_on_node",
        scope=Scope.RESOURCE,
        status=Status.OK,
        summary=f"Pods on node {node_name}:",
        details=[f"{p.metadata.namespace}/{p.metadata.name}" for p in pods],
        subject=ref,
        data={"count": len(pods)},
    )


def node_pressure(ctx: DiagnosticContext, node_name: str) -> DiagnosticVerdict:
    """Report the node's *Pressure conditions; any of them True is an issue."""
    ref = ResourceRef("Node", node_name)
    lookup = ctx.accessor.get("Node", node_name).require()
    if not lookup.is_found:
        return not_found("node_pressure", ref, f"Node {node_name} not found.")

    conditions = conditions_of(lookup.value)
    if not conditions:
        return DiagnosticVerdict(
            operation="node_pressure", scope=Scope.RESOURCE, status=Status.UNKNOWN,
            summary=f"No pressure conditions available for node {node_name}", subject=ref,
        )
    pressure = [c for c in conditions if c.type.endswith("Pressure")]
    if not pressure:
        return DiagnosticVerdict(
            operation="node_pressure", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"Node {node_name} reports no pressure issues.", subject=ref, data={"under_pressure": []},
        )
    under = [c.type for c in pressure if is_true(c.status)]
    return DiagnosticVerdict(
        operation="node_pressure",
        scope=Scope.RESOURCE,
        status=Status.ISSUE if under else Status.OK,
        summary=f"Node {node_name} pressure conditions: " + ", ".join(f"{c.type}={c.status}" for c in pressure),
        details=[f"{t} is active" for t in under],
        subject=ref,
        data={"under_pressure": under},
    )
