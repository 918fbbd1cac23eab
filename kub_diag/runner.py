# SPDX-License-Identifier: MIT

"""Operation registry and execution.

Maps diagnostic names to evaluators and turns errors raised while running
one into an ``error`` verdict, so a batch of diagnostics always yields one
verdict per request.
"""

from __future__ import annotations

import inspect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from kub_diag.checks import cluster, config, events, networking, nodes, pods, resources, security, storage
from kub_diag.context import DiagnosticContext
from kub_diag.exceptions import DiagnosticError
from kub_diag.models import DiagnosticVerdict, Scope, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    name: str
    func: Callable[..., DiagnosticVerdict]
    scope: Scope
    description: str

    @property
    def parameters(self) -> list[str]:
        return list(inspect.signature(self.func).parameters)[1:]


@dataclass(frozen=True)
class DiagnosticRequest:
    name: str
    params: dict[str, Any] = field(default_factory=dict)


_OPERATIONS = [
    # cluster
    Operation("cluster_info", cluster.cluster_info, Scope.CLUSTER,
              "Cluster version, node count and number of active namespaces."),
    Operation("control_plane_health", cluster.control_plane_health, Scope.CLUSTER,
              "Reachability of the API server and Ready state of control-plane nodes."),
    Operation("namespace_health", cluster.namespace_health, Scope.CLUSTER,
              "Phase of every namespace."),
    Operation("scheduling_issues", cluster.scheduling_issues, Scope.CLUSTER,
              "Pending pods and why they are not scheduled."),
    # nodes
    Operation("node_status", nodes.node_status, Scope.RESOURCE,
              "Ready state and conditions of a node."),
    Operation("node_metrics", nodes.node_metrics, Scope.RESOURCE,
              "CPU and memory usage of a node from the metrics API."),
    Operation("pods_on_node", nodes.pods_on_node, Scope.RESOURCE,
              "Pods scheduled on a node."),
    Operation("node_pressure", nodes.node_pressure, Scope.RESOURCE,
              "Memory, disk and PID pressure conditions of a node."),
    # pods
    Operation("list_pods", pods.list_pods, Scope.NAMESPACE,
              "Pods of a namespace with phase and restart count."),
    Operation("pod_logs", pods.pod_logs, Scope.RESOURCE,
              "Last log lines of a pod."),
    Operation("describe_pod", pods.describe_pod, Scope.RESOURCE,
              "Phase, conditions and container states of a pod."),
    Operation("pod_placement", pods.pod_placement, Scope.RESOURCE,
              "Node a pod runs on and that node's Ready state."),
    # events
    Operation("recent_events", events.recent_events, Scope.CLUSTER,
              "Newest events in the cluster."),
    Operation("pod_events", events.pod_events, Scope.RESOURCE,
              "Events about a pod."),
    Operation("recurring_events", events.recurring_events, Scope.CLUSTER,
              "Event reasons seen more than once within a time window."),
    # resources
    Operation("pod_metrics", resources.pod_metrics, Scope.RESOURCE,
              "Per-container CPU and memory usage of a pod."),
    Operation("namespace_usage", resources.namespace_usage, Scope.NAMESPACE,
              "Total CPU and memory usage of a namespace."),
    Operation("cluster_usage", resources.cluster_usage, Scope.CLUSTER,
              "Total CPU and memory usage of the cluster."),
    # security
    Operation("latest_image_tags", security.latest_image_tags, Scope.NAMESPACE,
              "Containers running ':latest' or untagged images."),
    Operation("expired_certificates", security.expired_certificates, Scope.CLUSTER,
              "Expired certificates in Ingress TLS and webhook secrets."),
    Operation("service_account_audit", security.service_account_audit, Scope.CLUSTER,
              "Service accounts whose name suggests admin privileges."),
    # config
    Operation("config_map_keys", config.config_map_keys, Scope.RESOURCE,
              "Keys of a ConfigMap."),
    Operation("secret_keys", config.secret_keys, Scope.RESOURCE,
              "Whether a Secret carries the expected keys."),
    Operation("rbac_access", config.rbac_access, Scope.NAMESPACE,
              "Whether the current identity may perform an action."),
    # storage
    Operation("list_pvcs", storage.list_pvcs, Scope.NAMESPACE,
              "PersistentVolumeClaims of a namespace with phase."),
    Operation("list_pvs", storage.list_pvs, Scope.CLUSTER,
              "PersistentVolumes with phase."),
    Operation("pvc_mount", storage.pvc_mount, Scope.RESOURCE,
              "Whether a pod mounts a PersistentVolumeClaim."),
    # networking
    Operation("service_endpoints", networking.service_endpoints, Scope.RESOURCE,
              "Ready and not-ready endpoints of a service."),
    Operation("ingress_connectivity", networking.ingress_connectivity, Scope.RESOURCE,
              "HTTP reachability of every host of an Ingress."),
    Operation("pod_connectivity", networking.pod_connectivity, Scope.RESOURCE,
              "TCP reachability of hosts from inside a pod."),
    Operation("cluster_dns", networking.cluster_dns, Scope.RESOURCE,
              "DNS resolution of a name from inside a pod."),
]

OPERATIONS: dict[str, Operation] = {op.name: op for op in _OPERATIONS}


def _error(name: str, scope: Scope, message: str) -> DiagnosticVerdict:
    return DiagnosticVerdict(operation=name, scope=scope, status=Status.ERROR, summary=message)


def run_diagnostic(name: str, ctx: DiagnosticContext, /, **params: Any) -> DiagnosticVerdict:
    op = OPERATIONS.get(name)
    if op is None:
        return _error(name, Scope.CLUSTER, f"Unknown diagnostic '{name}'")
    try:
        inspect.signature(op.func).bind(ctx, **params)
    except TypeError as exc:
        return _error(name, op.scope, f"Invalid parameters for {name}: {exc} (accepts: {', '.join(op.parameters) or 'none'})")

    logger.info("Running diagnostic %s %s", name, params)
    start = time.monotonic()
    try:
        verdict = op.func(ctx, **params)
    except DiagnosticError as exc:
        logger.error("Error running %s: %s", name, exc)
        return _error(name, op.scope, f"Error running {name}: {exc}")
    except Exception as exc:
        logger.exception("Diagnostic %s crashed", name)
        return _error(name, op.scope, f"Error running {name}: {type(exc).__name__}: {exc}")
    logger.debug("Diagnostic %s finished in %.0fms: %s", name, (time.monotonic() - start) * 1000, verdict.status.value)
    return verdict


def run_many(requests: list[DiagnosticRequest], ctx: DiagnosticContext) -> list[DiagnosticVerdict]:
    """Run requests concurrently; verdicts come back in request order."""
    if not requests:
        return []
    workers = min(ctx.settings.max_workers, len(requests))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run_diagnostic, r.name, ctx, **r.params) for r in requests]
        return [f.result() for f in futures]
