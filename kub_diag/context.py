# SPDX-License-Identifier: MIT

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from kub_diag.collector.base import SnapshotAccessor
from kub_diag.config import DiagnosticSettings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DiagnosticContext:
    """Everything an evaluator may touch: the cluster handle, settings, and the clock.

    Built once by the caller and passed explicitly to every evaluator.
    """

    accessor: SnapshotAccessor
    settings: DiagnosticSettings = field(default_factory=DiagnosticSettings)
    clock: Callable[[], datetime] = utc_now

    def now(self) -> datetime:
        return self.clock()
