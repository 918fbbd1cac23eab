# SPDX-License-Identifier: MIT

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Iterator

from kub_diag.exceptions import AccessError, DiagnosticError, ParseError


# =====================================================================
# Resource identity and snapshots
# =====================================================================

@dataclass(frozen=True)
class ResourceRef:
    kind: str
    name: str
    namespace: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class Snapshot:
    kind: str
    items: tuple[Any, ...] = ()
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)


# =====================================================================
# Dynamic (schema-less) resources
# =====================================================================

@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.plural}.{self.version}.{self.group}"


POD_METRICS = GroupVersionKind("metrics.k8s.io", "v1beta1", "PodMetrics", "pods")
NODE_METRICS = GroupVersionKind("metrics.k8s.io", "v1beta1", "NodeMetrics", "nodes", namespaced=False)
SELF_SUBJECT_ACCESS_REVIEW = GroupVersionKind(
    "authorization.k8s.io", "v1", "SelfSubjectAccessReview", "selfsubjectaccessreviews", namespaced=False,
)


@dataclass(frozen=True)
class DynamicResource:
    """An extension resource whose payload is an open property tree.

    Any level of ``properties`` may be missing. Missing is a normal state
    (the feature is not populated), so ``lookup`` returns None instead of
    raising. A value that is present but of the wrong shape is a ParseError.
    """

    gvk: GroupVersionKind
    name: str
    namespace: str = ""
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_object(cls, gvk: GroupVersionKind, obj: dict[str, Any]) -> DynamicResource:
        if not isinstance(obj, dict):
            raise ParseError(f"{gvk.kind} payload is {type(obj).__name__}, expected an object")
        meta = obj.get("metadata") or {}
        return cls(
            gvk=gvk,
            name=meta.get("name", ""),
            namespace=meta.get("namespace", "") or "",
            properties={k: v for k, v in obj.items() if k not in ("apiVersion", "kind", "metadata")},
        )

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.gvk.kind, self.name, self.namespace)

    def lookup(self, *path: str) -> Any:
        node: Any = self.properties
        for key in path:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
            if node is None:
                return None
        return node

    def require_mapping(self, *path: str) -> dict[str, Any] | None:
        value = self.lookup(*path)
        if value is not None and not isinstance(value, dict):
            raise ParseError(f"{self.ref}: '{'.'.join(path)}' is {type(value).__name__}, expected an object")
        return value

    def require_list(self, *path: str) -> list[Any] | None:
        value = self.lookup(*path)
        if value is not None and not isinstance(value, list):
            raise ParseError(f"{self.ref}: '{'.'.join(path)}' is {type(value).__name__}, expected a list")
        return value


# =====================================================================
# Lookup results
# =====================================================================

class Outcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_AVAILABLE = "not_available"
    FAILED = "failed"


@dataclass(frozen=True)
class Lookup:
    """Result of a singular read. Absence is an outcome, not an exception."""

    outcome: Outcome
    value: Any = None
    reason: str = ""
    error: DiagnosticError | None = None

    @classmethod
    def found(cls, value: Any) -> Lookup:
        return cls(Outcome.FOUND, value=value)

    @classmethod
    def not_found(cls, reason: str = "") -> Lookup:
        return cls(Outcome.NOT_FOUND, reason=reason)

    @classmethod
    def not_available(cls, reason: str = "") -> Lookup:
        return cls(Outcome.NOT_AVAILABLE, reason=reason)

    @classmethod
    def failed(cls, error: DiagnosticError) -> Lookup:
        return cls(Outcome.FAILED, reason=str(error), error=error)

    @property
    def is_found(self) -> bool:
        return self.outcome == Outcome.FOUND

    @property
    def is_absent(self) -> bool:
        return self.outcome in (Outcome.NOT_FOUND, Outcome.NOT_AVAILABLE)

    def require(self) -> Lookup:
        if self.outcome == Outcome.FAILED:
            raise self.error or AccessError(self.reason)
        return self


# =====================================================================
# Conditions and events
# =====================================================================

@dataclass(frozen=True)
class Condition:
    type: str
    status: str
    reason: str = ""

    @classmethod
    def from_object(cls, cond: Any) -> Condition:
        return cls(type=cond.type or "", status=cond.status or "Unknown", reason=cond.reason or "")


def conditions_of(obj: Any) -> list[Condition]:
    status = getattr(obj, "status", None)
    return [Condition.from_object(c) for c in (getattr(status, "conditions", None) or [])]


def condition_status(conditions: Iterable[Condition], cond_type: str, default: str = "Unknown") -> str:
    for cond in conditions:
        if cond.type == cond_type:
            return cond.status
    return default


def ready_status(conditions: Iterable[Condition]) -> str:
    return condition_status(conditions, "Ready")


def is_true(status: str | None) -> bool:
    return (status or "").lower() == "true"


@dataclass(frozen=True)
class EventRecord:
    reason: str
    message: str
    last_seen_at: datetime | None
    involved_kind: str
    involved_name: str
    namespace: str = ""

    @classmethod
    def from_object(cls, event: Any) -> EventRecord:
        obj = event.involved_object
        meta = event.metadata
        return cls(
            reason=event.reason or "",
            message=event.message or "",
            last_seen_at=event.last_timestamp or getattr(event, "event_time", None),
            involved_kind=(obj.kind if obj else "") or "",
            involved_name=(obj.name if obj else "") or "",
            namespace=(meta.namespace if meta else "") or "",
        )

    def seen_between(self, start: datetime, end: datetime) -> bool:
        return self.last_seen_at is not None and start <= self.last_seen_at <= end


# =====================================================================
# Verdicts
# =====================================================================

class Scope(str, Enum):
    RESOURCE = "resource"
    NAMESPACE = "namespace"
    CLUSTER = "cluster"


class Status(str, Enum):
    OK = "ok"
    ISSUE = "issue"
    UNKNOWN = "unknown"
    ERROR = "error"

    @property
    def sort_order(self) -> int:
        return {Status.ERROR: 0, Status.ISSUE: 1, Status.UNKNOWN: 2, Status.OK: 3}[self]


@dataclass
class DiagnosticVerdict:
    operation: str
    scope: Scope
    status: Status
    summary: str
    details: list[str] = field(default_factory=list)
    subject: ResourceRef | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "scope": self.scope.value,
            "status": self.status.value,
            "summary": self.summary,
            "details": list(self.details),
            "subject": str(self.subject) if self.subject else None,
            "data": dict(self.data),
        }


@dataclass(frozen=True)
class ExecResult:
    stdout: str = ""
    stderr: str = ""
    completed: bool = True
