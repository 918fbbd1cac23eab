# SPDX-License-Identifier: MIT

from __future__ import annotations

from kub_diag.checks.common import not_found, phase_of
from kub_diag.context import DiagnosticContext
from kub_diag.models import DiagnosticVerdict, ResourceRef, Scope, Status

_PVC_SETTLED = ("bound",)
_PV_SETTLED = ("bound", "available")


def list_pvcs(ctx: DiagnosticContext, namespace: str) -> DiagnosticVerdict:
    claims = ctx.accessor.list("PersistentVolumeClaim", namespace=namespace)
    if not claims:
        return DiagnosticVerdict(
            operation="list_pvcs", scope=Scope.NAMESPACE, status=Status.OK,
            summary=f"No PVCs found in namespace {namespace}", data={"count": 0, "unbound": []},
        )
    unbound = [c.metadata.name for c in claims if phase_of(c).lower() not in _PVC_SETTLED]
    return DiagnosticVerdict(
        operation="list_pvcs",
        scope=Scope.NAMESPACE,
        status=Status.ISSUE if unbound else Status.OK,
        summary=f"PVCs in namespace {namespace}:",
        details=[
            f"{c.metadata.name} - Status: {phase_of(c) or 'Unknown'}"
            + (f" - Volume: {c.spec.volume_name}" if c.spec and c.spec.volume_name else "")
            for c in claims
        ],
        data={"count": len(claims), "unbound": unbound},
    )


def list_pvs(ctx: DiagnosticContext) -> DiagnosticVerdict:
    volumes = ctx.accessor.list("PersistentVolume")
    if not volumes:
        return DiagnosticVerdict(
            operation="list_pvs", scope=Scope.CLUSTER, status=Status.OK,
            summary="No Persistent Volumes found.", data={"count": 0, "unsettled": []},
        )
    unsettled = [v.metadata.name for v in volumes if phase_of(v).lower() not in _PV_SETTLED]
    return DiagnosticVerdict(
        operation="list_pvs",
        scope=Scope.CLUSTER,
        status=Status.ISSUE if unsettled else Status.OK,
        summary="Persistent Volumes:",
        details=[f"{v.metadata.name} - Status: {phase_of(v) or 'Unknown'}" for v in volumes],
        data={"count": len(volumes), "unsettled": unsettled},
    )


def pvc_mount(ctx: DiagnosticContext, namespace: str, pod_name: str, pvc_name: str) -> DiagnosticVerdict:
    """Whether the pod declares a volume backed by the named claim."""
    ref = ResourceRef("Pod", pod_name, namespace)
    lookup = ctx.accessor.get("Pod", pod_name, namespace).require()
    if not lookup.is_found:
        return not_found("pvc_mount", ref, f"Pod '{pod_name}' not found in namespace '{namespace}'")

    volumes = (lookup.value.spec.volumes if lookup.value.spec else None) or []
    mounted = [
        v.name for v in volumes
        if v.persistent_volume_claim and v.persistent_volume_claim.claim_name == pvc_name
    ]
    if mounted:
        return DiagnosticVerdict(
            operation="pvc_mount", scope=Scope.RESOURCE, status=Status.OK,
            summary=f"PVC '{pvc_name}' is mounted in pod '{pod_name}'",
            details=[f"volume {name}" for name in mounted], subject=ref, data={"mounted": True},
        )
    return DiagnosticVerdict(
        operation="pvc_mount", scope=Scope.RESOURCE, status=Status.ISSUE,
        summary=f"PVC '{pvc_name}' is NOT mounted in pod '{pod_name}'", subject=ref, data={"mounted": False},
    )
