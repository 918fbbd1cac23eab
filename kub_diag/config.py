# SPDX-License-Identifier: MIT

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

DEFAULT_KUBECONFIG = "~/.kube/config"
CONTROL_PLANE_LABELS = ("node-role.kubernetes.io/control-plane", "node-role.kubernetes.io/master")


def _default_kubeconfig() -> str:
    return os.environ.get("KUBECONFIG") or DEFAULT_KUBECONFIG


@dataclass(frozen=True)
class DiagnosticSettings:
    kubeconfig: str = ""
    context: str | None = None
    http_timeout: float = 3.0
    exec_wait_budget: float = 5.0
    tail_lines: int = 100
    recent_events_limit: int = 10
    max_workers: int = 8
    control_plane_labels: tuple[str, ...] = CONTROL_PLANE_LABELS

    def __post_init__(self):
        if not self.kubeconfig:
            object.__setattr__(self, "kubeconfig", _default_kubeconfig())
        for name in ("http_timeout", "exec_wait_budget"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> DiagnosticSettings:
        """Build settings from module parameters; unset (None) values keep their defaults."""
        known = {f.name for f in fields(cls)}
        overrides = {k: v for k, v in params.items() if k in known and v is not None}
        if "control_plane_labels" in overrides:
            overrides["control_plane_labels"] = tuple(overrides["control_plane_labels"])
        return cls(**overrides)
