# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from typing import Any

from kub_diag.checks.common import not_found, phase_of, positive_int, restart_count
from kub_diag.context import DiagnosticContext
from kub_diag.models import (
    DiagnosticVerdict,
    ResourceRef,
    Scope,
    Status,
    conditions_of,
    is_true,
    ready_status,
)

logger = logging.getLogger(__name__)

_UNHEALTHY_PHASES = ("pending", "failed", "unknown")


def _container_state(cs: Any) -> tuple[str, bool]:
    """Return (description, waiting) for a container status."""
    state = cs.state
    if state is None:
        return "unknown", False
    if state.waiting:
        return f"waiting ({state.waiting.reason or 'no reason'})", True
    if state.terminated:
        term = state.terminated
        return f"terminated ({term.reason or 'exit code ' + str(term.exit_code)})", False
    if state.running:
        return "running", False
    return "unknown", False


def list_pods(ctx: DiagnosticContext, namespace: str) -> DiagnosticVerdict:
    pods = ctx.accessor.list("Pod", namespace=namespace)
    if not pods:
        return DiagnosticVerdict(
            operation="list_pods", scope=Scope.NAMESPACE, status=Status.OK,
            summary=f"No pods found in namespace {namespace}", data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="list_pods",
        scope=Scope.NAMESPACE,
        status=Status.OK,
        summary=f"Pods in namespace {namespace}:",
        details=[
            f"{p.metadata.name} - Status: {phase_of(p) or 'Unknown'} - Restarts: {restart_count(p)}"
            for p in pods
        ],
        data={"count": len(pods)},
    )


def pod_logs(ctx: DiagnosticContext, namespace: str, pod_name: str, tail_lines: int | None = None) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    tail = positive_int("tail_lines", ctx.settings.tail_lines if tail_lines is None else tail_lines)
    lookup = ctx.accessor.read_log(pod_name, namespace, tail).require()
    if not lookup.is_found:
        return not_found("pod_logs", ref, f"Pod {pod_name} not found in namespace {namespace}")

    lines = (lookup.value or "").splitlines()
    if not lines:
        return DiagnosticVerdict(
            operation="pod_logs", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"No log lines returned for pod {namespace}/{pod_name}", subject=ref, data={"lines": 0},
        )
    return DiagnosticVerdict(
        operation="pod_logs",
        scope=Scope.RESOURCE,
        status=Status.OK,
        summary=f"Last {len(lines)} log lines of pod {namespace}/{pod_name}:",
        details=lines,
        subject=ref,
        data={"lines": len(lines)},
    )


def describe_pod(ctx: DiagnosticContext, namespace: str, pod_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    lookup = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not lookup.is_found:
        return not_found("describe_pod", ref, f"Pod {pod_name} not found in namespace {namespace}")

    pod = lookup.value
    phase = phase_of(pod) or "Unknown"
    conditions = conditions_of(pod)
    details = [
        f"Phase: {phase}",
        f"Node: {(pod.spec.node_name if pod.spec else None) or '<unscheduled>'}",
        "Conditions: " + (", ".join(f"{c.type}={c.status}" for c in conditions) or "none reported"),
    ]
    waiting = False
    for cs in (pod.status.container_statuses if pod.status else None) or []:
        state, is_waiting = _container_state(cs)
        waiting = waiting or is_waiting
        details.append(f"Container {cs.name}: ready={cs.ready}, restarts={cs.restart_count or 0}, state={state}")

    healthy = phase.lower() not in _UNHEALTHY_PHASES and not waiting
    return DiagnosticVerdict(
        operation="describe_pod",
        scope=Scope.RESOURCE,
        status=Status.OK if healthy else Status.ISSUE,
        summary=f"Pod: {pod_name}",
        details=details,
        subject=ref,
        data={"phase": phase, "restarts": restart_count(pod)},
    )


def pod_placement(ctx: DiagnosticContext, namespace: str, pod_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    lookup = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not lookup.is_found:
        return not_found("pod_placement", ref, f"Pod {pod_name} not found in namespace {namespace}")

    node = lookup.value.spec.node_name if lookup.value.spec else None
    if not node:
        return DiagnosticVerdict(
            operation="pod_placement", scope=Scope.RESOURCE, status=Status.ISSUE,
            summary=f"Pod {pod_name} is not yet scheduled to any node.", subject=ref, data={"node": None},
        )
    node_lookup = ctx.accessor.get("Node", node)
    if node_lookup.is_found:
        node_ready = ready_status(conditions_of(node_lookup.value))
    else:
        logger.debug("Node %s of pod %s/%s unreadable: %s", node, namespace, pod_name, node_lookup.reason)
        node_ready = "Unknown"
    return DiagnosticVerdict(
        operation="pod_placement",
        scope=Scope.RESOURCE,
        status=Status.OK if is_true(node_ready) else Status.ISSUE,
        summary=f"Pod {pod_name} is running on node {node}",
        details=[f"Node {node} Ready={node_ready}"],
        subject=ref,
        data={"node": node, "node_ready": node_ready},
    )
