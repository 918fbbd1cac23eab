# SPDX-License-Identifier: MIT

from __future__ import annotations

from typing import Any, Protocol

from kub_diag.models import ExecResult, GroupVersionKind, Lookup, Snapshot

CLUSTER_SCOPED_KINDS = frozenset({"Node", "Namespace", "PersistentVolume"})
TYPED_KINDS = frozenset({
    "Node", "Namespace", "Pod", "Event", "Service", "Endpoints", "Ingress",
    "PersistentVolume", "PersistentVolumeClaim", "Secret", "ConfigMap", "ServiceAccount",
})


def check_kind(kind: str) -> None:
    if kind not in TYPED_KINDS:
        raise ValueError(f"unsupported resource kind: {kind}")


class SnapshotAccessor(Protocol):
    """Read interface over the control plane.

    ``list`` raises AccessError when the control plane cannot answer. The
    singular reads return a Lookup so that a missing object or an
    uninstalled API group is an outcome the caller handles, not a crash.
    """

    def version(self) -> Lookup: ...

    def list(self, kind: str, namespace: str | None = None, field_selector: str | None = None) -> Snapshot: ...

    def get(self, kind: str, name: str, namespace: str | None = None) -> Lookup: ...

    def list_dynamic(self, gvk: GroupVersionKind, namespace: str | None = None) -> Lookup: ...

    def get_dynamic(self, gvk: GroupVersionKind, name: str, namespace: str | None = None) -> Lookup: ...

    def create_dynamic(self, gvk: GroupVersionKind, body: dict[str, Any], namespace: str | None = None) -> Lookup: ...

    def read_log(self, name: str, namespace: str, tail_lines: int) -> Lookup: ...

    def exec(self, name: str, namespace: str, command: list[str], wait_budget: float) -> ExecResult: ...
