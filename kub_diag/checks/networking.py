# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from functools import partial

from kub_diag.checks.common import not_found
from kub_diag.context import DiagnosticContext
from kub_diag.exceptions import ParameterError
from kub_diag.models import DiagnosticVerdict, ResourceRef, Scope, Status
from kub_diag.probes import dns_probe, http_probe, probe_all, tcp_probe

logger = logging.getLogger(__name__)


def service_endpoints(ctx: DiagnosticContext, namespace: str, service_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Service", service_name, namespace)
    lookup = ctx.accessor.get("Endpoints", service_name, namespace).require()
    if not lookup.is_found:
        return not_found("service_endpoints", ref, f"Service '{service_name}' not found in namespace '{namespace}'")
    subsets = lookup.value.subsets or []
    ready = sum(len(s.addresses or []) for s in subsets)
    not_ready = sum(len(s.not_ready_addresses or []) for s in subsets)
    details = [f"{not_ready} endpoint(s) not ready"] if not_ready else []
    if not ready:
        return DiagnosticVerdict(
            operation="service_endpoints", scope=Scope.RESOURCE, status=Status.ISSUE,
            summary=f"Service '{service_name}' has no active endpoints.",
            details=details, subject=ref, data={"ready": 0, "not_ready": not_ready},
        )
    return DiagnosticVerdict(
        operation="service_endpoints", scope=Scope.RESOURCE, status=Status.OK,
        summary=f"Service '{service_name}' has {ready} active endpoints.",
        details=details, subject=ref, data={"ready": ready, "not_ready": not_ready},
    )


def ingress_connectivity(ctx: DiagnosticContext, namespace: str, ingress_name: str) -> DiagnosticVerdict:
    """HTTP GET every rule host of the ingress; each host is probed independently."""
    ref = ResourceRef("Ingress", ingress_name, namespace)
    lookup = ctx.accessor.get("Ingress", ingress_name, namespace).require()
    if not lookup.is_found:
        return not_found("ingress_connectivity", ref, f"Ingress '{ingress_name}' not found in namespace '{namespace}'")

    rules = (lookup.value.spec.rules if lookup.value.spec else None) or []
    hosts = [r.host for r in rules if r.host]
    if len(hosts) < len(rules):
        logger.debug("Ingress %s/%s: %d rule(s) without host skipped", namespace, ingress_name, len(rules) - len(hosts))
    if not hosts:
        return DiagnosticVerdict(
            operation="ingress_connectivity", scope=Scope.RESOURCE, status=Status.UNKNOWN,
            summary=f"Ingress '{ingress_name}' has no host rules to probe.", subject=ref,
        )

    results = probe_all(partial(http_probe, timeout=ctx.settings.http_timeout), hosts, ctx.settings.max_workers)
    reachable = sum(1 for r in results if r.ok)
    return DiagnosticVerdict(
        operation="ingress_connectivity",
        scope=Scope.RESOURCE,
        status=Status.OK if reachable == len(results) else Status.ISSUE,
        summary=f"Ingress '{ingress_name}' connectivity: {reachable}/{len(results)} hosts responding",
        details=[f"Ingress host {r.target} {r.detail}" for r in results],
        subject=ref,
        data={"reachable": reachable, "unreachable": len(results) - reachable},
    )


def pod_connectivity(
    ctx: DiagnosticContext, namespace: str, pod_name: str, hosts: list[str], port: int,
) -> DiagnosticVerdict:
    """TCP-connect from inside the pod to each host on ``port``."""
    if isinstance(hosts, str):
        hosts = [hosts]
    if not hosts:
        raise ParameterError("hosts must name at least one host")
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ParameterError(f"port must be a number, got {port!r}") from None
    if not 0 < port < 65536:
        raise ParameterError(f"port must be between 1 and 65535, got {port}")
    ref = ResourceRef("Pod", pod_name, namespace)
    pod = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not pod.is_found:
        return not_found("pod_connectivity", ref, f"Pod '{pod_name}' not found in namespace '{namespace}'")

    probe = partial(
        tcp_probe, ctx.accessor, namespace, pod_name, port=port, budget=ctx.settings.exec_wait_budget,
    )
    results = probe_all(probe, hosts, ctx.settings.max_workers)
    reachable = sum(1 for r in results if r.ok)
    return DiagnosticVerdict(
        operation="pod_connectivity",
        scope=Scope.RESOURCE,
        status=Status.OK if reachable == len(results) else Status.ISSUE,
        summary=f"TCP checks from pod {namespace}/{pod_name}: {reachable}/{len(results)} reachable",
        details=[f"{r.target} {r.detail}" if not r.timed_out else r.detail for r in results],
        subject=ref,
        data={
            "reachable": reachable,
            "unreachable": len(results) - reachable,
            "timed_out": sum(1 for r in results if r.timed_out),
        },
    )


def cluster_dns(ctx: DiagnosticContext, namespace: str, pod_name: str, service_name: str) -> DiagnosticVerdict:
    ref = ResourceRef("Pod", pod_name, namespace)
    pod = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not pod.is_found:
        return not_found("cluster_dns", ref, f"Pod '{pod_name}' not found in namespace '{namespace}'")

    result = dns_probe(ctx.accessor, namespace, pod_name, service_name, ctx.settings.exec_wait_budget)
    if result.ok:
        return DiagnosticVerdict(
            operation="cluster_dns", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"DNS resolution of '{service_name}' succeeded:",
            details=result.detail.splitlines(), subject=ref, data={"resolved": True},
        )
    return DiagnosticVerdict(
        operation="cluster_dns", scope=Scope.RESOURCE, status=Status.ISSUE,
        summary=f"DNS resolution of '{service_name}' failed:",
        details=result.detail.splitlines(), subject=ref,
        data={"resolved": False, "timed_out": result.timed_out},
    )
