# SPDX-License-Identifier: MIT

"""Snapshot accessor over in-memory objects.

Holds typed objects (``kubernetes.client`` models or anything shaped like
them) keyed by kind, and dynamic payloads keyed by (gvk, namespace, name).
Used for tests and for evaluating saved snapshots offline.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from kub_diag.collector.base import CLUSTER_SCOPED_KINDS, check_kind
from kub_diag.exceptions import AccessError
from kub_diag.models import DynamicResource, ExecResult, GroupVersionKind, Lookup, Snapshot

DynamicKey = tuple[GroupVersionKind, str, str]
ExecHandler = Callable[[str, str, list[str], float], ExecResult]


def _meta(obj: Any) -> tuple[str, str]:
    meta = obj.metadata
    return meta.name or "", meta.namespace or ""


class InMemoryAccessor:
    def __init__(
        self,
        objects: dict[str, Iterable[Any]] | None = None,
        dynamic: dict[DynamicKey, Any] | None = None,
        *,
        version: str | None = "1.30",
        unavailable: Iterable[GroupVersionKind] = (),
        logs: dict[tuple[str, str], str] | None = None,
        access_review: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
        exec_handler: ExecHandler | None = None,
        reachable: bool = True,
    ):
        self.objects = {kind: list(items) for kind, items in (objects or {}).items()}
        for kind in self.objects:
            check_kind(kind)
        self.dynamic = dict(dynamic or {})
        self._version = version
        self.unavailable = set(unavailable)
        self.logs = dict(logs or {})
        self.access_review = access_review
        self.exec_handler = exec_handler
        self.reachable = reachable

    def _ensure_reachable(self, what: str) -> None:
        if not self.reachable:
            raise AccessError(f"{what}: connection refused")

    def version(self) -> Lookup:
        if not self.reachable or self._version is None:
            return Lookup.failed(AccessError("cluster version: connection refused"))
        return Lookup.found(self._version)

    def list(self, kind: str, namespace: str | None = None, field_selector: str | None = None) -> Snapshot:
        check_kind(kind)
        self._ensure_reachable(f"list {kind}")
        items = self.objects.get(kind, [])
        if namespace and kind not in CLUSTER_SCOPED_KINDS:
            items = [o for o in items if _meta(o)[1] == namespace]
        if field_selector:
            field_name, _, value = field_selector.partition("=")
            if field_name != "spec.nodeName":
                raise ValueError(f"unsupported field selector: {field_selector}")
            items = [o for o in items if (o.spec.node_name or "") == value]
        return Snapshot(kind, tuple(items))

    def get(self, kind: str, name: str, namespace: str | None = None) -> Lookup:
        check_kind(kind)
        if not self.reachable:
            return Lookup.failed(AccessError(f"get {kind} {name}: connection refused"))
        wanted_ns = "" if kind in CLUSTER_SCOPED_KINDS else (namespace or "default")
        for obj in self.objects.get(kind, []):
            obj_name, obj_ns = _meta(obj)
            if obj_name == name and (kind in CLUSTER_SCOPED_KINDS or obj_ns == wanted_ns):
                return Lookup.found(obj)
        return Lookup.not_found(f"{kind} {name} not found")

    def read_log(self, name: str, namespace: str, tail_lines: int) -> Lookup:
        if not self.reachable:
            return Lookup.failed(AccessError(f"logs of {namespace}/{name}: connection refused"))
        if (namespace, name) not in self.logs:
            return Lookup.not_found(f"Pod {name} not found")
        lines = self.logs[(namespace, name)].splitlines()
        return Lookup.found("\n".join(lines[-tail_lines:]) if tail_lines else "")

    def _resource(self, gvk: GroupVersionKind, namespace: str, name: str, payload: Any) -> Lookup:
        if isinstance(payload, AccessError):
            return Lookup.failed(payload)
        return Lookup.found(DynamicResource(
            gvk=gvk, name=name, namespace=namespace,
            properties={k: v for k, v in payload.items() if k not in ("apiVersion", "kind", "metadata")},
        ))

    def list_dynamic(self, gvk: GroupVersionKind, namespace: str | None = None) -> Lookup:
        if gvk in self.unavailable:
            return Lookup.not_available(f"API {gvk.api_version} ({gvk.plural}) is not served by this cluster")
        if not self.reachable:
            return Lookup.failed(AccessError(f"list {gvk.plural}: connection refused"))
        items = []
        for (key_gvk, key_ns, key_name), payload in self.dynamic.items():
            if key_gvk != gvk or (namespace and gvk.namespaced and key_ns != namespace):
                continue
            lookup = self._resource(gvk, key_ns, key_name, payload)
            if lookup.is_found:
                items.append(lookup.value)
        return Lookup.found(Snapshot(gvk.kind, tuple(items)))

    def get_dynamic(self, gvk: GroupVersionKind, name: str, namespace: str | None = None) -> Lookup:
        if gvk in self.unavailable:
            return Lookup.not_available(f"API {gvk.api_version} ({gvk.plural}) is not served by this cluster")
        if not self.reachable:
            return Lookup.failed(AccessError(f"get {gvk.kind} {name}: connection refused"))
        key_ns = (namespace or "default") if gvk.namespaced else ""
        payload = self.dynamic.get((gvk, key_ns, name))
        if payload is None:
            return Lookup.not_found(f"{gvk.kind} {name} not found")
        return self._resource(gvk, key_ns, name, payload)

    def create_dynamic(self, gvk: GroupVersionKind, body: dict[str, Any], namespace: str | None = None) -> Lookup:
        if gvk in self.unavailable or self.access_review is None:
            return Lookup.not_available(f"API {gvk.api_version} ({gvk.plural}) is not served by this cluster")
        if not self.reachable:
            return Lookup.failed(AccessError(f"create {gvk.kind}: connection refused"))
        response = self.access_review(body)
        return self._resource(gvk, namespace or "", "", response)

    def exec(self, name: str, namespace: str, command: list[str], wait_budget: float) -> ExecResult:
        self._ensure_reachable(f"exec in {namespace}/{name}")
        if self.exec_handler is None:
            return ExecResult()
        return self.exec_handler(namespace, name, command, wait_budget)
