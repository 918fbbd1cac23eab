# SPDX-License-Identifier: MIT

"""CPU and memory usage from the metrics API.

Per-pod metrics are fetched on a bounded thread pool. A pod without metrics
(not yet scraped, or the metrics API is absent) is skipped; a pod whose
metrics are present but malformed is a failure line, and the totals are
then reported as partial.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from kub_diag.checks.common import not_available, not_found
from kub_diag.context import DiagnosticContext
from kub_diag.exceptions import ParseError
from kub_diag.models import (
    POD_METRICS,
    DiagnosticVerdict,
    DynamicResource,
    Lookup,
    Outcome,
    ResourceRef,
    Scope,
    Status,
)
from kub_diag.quantity import Quantity, usage_of

logger = logging.getLogger(__name__)


def _container_usage(metrics: DynamicResource) -> list[tuple[str, float, float]]:
    """Return (container, cores, MiB) for every container entry."""
    entries = metrics.require_list("containers")
    if entries is None:
        raise ParseError(f"{metrics.ref}: metrics entry lists no containers")
    usage = []
    for entry in entries:
        name = (entry.get("name") if isinstance(entry, dict) else None) or "?"
        cores, mib = usage_of(entry, f"{metrics.ref} container {name}")
        usage.append((name, cores, mib))
    return usage


def _fetch_all(ctx: DiagnosticContext, pods: list[Any]) -> list[tuple[str, Lookup]]:
    def fetch(pod: Any) -> tuple[str, Lookup]:
        meta = pod.metadata
        return f"{meta.namespace}/{meta.name}", ctx.accessor.get_dynamic(POD_METRICS, meta.name, meta.namespace)

    if not pods:
        return []
    with ThreadPoolExecutor(max_workers=min(ctx.settings.max_workers, len(pods))) as pool:
        return list(pool.map(fetch, pods))


def _aggregate(ctx: DiagnosticContext, operation: str, scope: Scope, label: str, pods: list[Any]) -> DiagnosticVerdict:
    lookups = _fetch_all(ctx, pods)
    if lookups and all(lk.outcome == Outcome.NOT_AVAILABLE for _, lk in lookups):
        return not_available(
            operation, scope, f"Metrics not available for {label} ({lookups[0][1].reason}).",
        )

    total_cpu = 0.0
    total_mem = 0.0
    measured = 0
    skipped: list[str] = []
    failures: list[str] = []
    malformed = False
    for key, lookup in lookups:
        if lookup.is_absent:
            logger.debug("No metrics for pod %s: %s", key, lookup.reason)
            skipped.append(key)
            continue
        if lookup.outcome == Outcome.FAILED:
            logger.warning("Metrics lookup for pod %s failed: %s", key, lookup.reason)
            failures.append(f"{key}: metrics lookup failed, skipped ({lookup.reason})")
            continue
        try:
            usage = _container_usage(lookup.value)
        except ParseError as exc:
            logger.warning("Malformed metrics for pod %s: %s", key, exc)
            failures.append(f"{key}: malformed metrics ({exc})")
            malformed = True
            continue
        total_cpu += sum(cores for _, cores, _ in usage)
        total_mem += sum(mib for _, _, mib in usage)
        measured += 1

    if malformed:
        status = Status.ERROR
    elif failures or not measured:
        status = Status.UNKNOWN
    else:
        status = Status.OK
    if not measured:
        # zero totals would read as a measurement
        summary = f"{label}: no pod reported metrics, usage not measured"
        total_cpu = total_mem = None
    else:
        summary = f"{label} total usage: CPU {total_cpu:.2f} cores, Memory {total_mem:.2f} Mi"
        if failures:
            summary += " (partial)"
    return DiagnosticVerdict(
        operation=operation,
        scope=scope,
        status=status,
        summary=summary,
        details=[f"Pods measured: {measured} of {len(pods)}", *failures],
        data={
            "cpu_cores": total_cpu,
            "memory_mib": total_mem,
            "pods": len(pods),
            "measured": measured,
            "skipped": skipped,
            "partial": bool(failures),
        },
    )


def pod_metrics(ctx: DiagnosticContext, namespace: str, pod_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    pod = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not pod.is_found:
        return not_found("pod_metrics", ref, f"Pod '{pod_name}' not found in namespace '{namespace}'")
    lookup = ctx.accessor.get_dynamic(POD_METRICS, pod_name, namespace).require()
    if not lookup.is_found:
        return not_available("pod_metrics", Scope.RESOURCE, f"Metrics not available for pod '{pod_name}'", ref)

    usage = _container_usage(lookup.value)
    return DiagnosticVerdict(
        operation="pod_metrics",
        scope=Scope.RESOURCE,
        status=Status.OK,
        summary=f"Pod '{pod_name}' metrics:",
        details=[
            f"{name} -> CPU: {Quantity(cores, 'cores')}, Memory: {Quantity(mib, 'MiB')}"
            for name, cores, mib in usage
        ],
        subject=ref,
        data={
            "cpu_cores": sum(cores for _, cores, _ in usage),
            "memory_mib": sum(mib for _, _, mib in usage),
            "containers": len(usage),
        },
    )


def namespace_usage(ctx: DiagnosticContext, namespace: str) -> DiagnosticVerdict:
    pods = list(ctx.accessor.list("Pod", namespace=namespace))
    if not pods:
        return DiagnosticVerdict(
            operation="namespace_usage", scope=Scope.NAMESPACE, status=Status.OK,
            summary=f"No pods found in namespace '{namespace}'",
            data={"cpu_cores": 0.0, "memory_mib": 0.0, "pods": 0, "measured": 0},
        )
    return _aggregate(ctx, "namespace_usage", Scope.NAMESPACE, f"Namespace '{namespace}'", pods)


def cluster_usage(ctx: DiagnosticContext) -> DiagnosticVerdict:
    pods = list(ctx.accessor.list("Pod"))
    if not pods:
        return DiagnosticVerdict(
            operation="cluster_usage", scope=Scope.CLUSTER, status=Status.OK,
            summary="No pods found in cluster.",
            data={"cpu_cores": 0.0, "memory_mib": 0.0, "pods": 0, "measured": 0},
        )
    return _aggregate(ctx, "cluster_usage", Scope.CLUSTER, "Cluster", pods)
