# SPDX-License-Identifier: MIT

from kub_diag.collector.base import CLUSTER_SCOPED_KINDS, TYPED_KINDS, SnapshotAccessor
from kub_diag.collector.memory import InMemoryAccessor

__all__ = ["CLUSTER_SCOPED_KINDS", "TYPED_KINDS", "SnapshotAccessor", "InMemoryAccessor"]
