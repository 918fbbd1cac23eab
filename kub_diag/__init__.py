# SPDX-License-Identifier: MIT

"""Read-only Kubernetes diagnostics.

Pulls a point-in-time snapshot from the control plane and turns typed and
schema-less resources into normalized verdicts. All API calls are list, get,
log, exec, or a self access review. Nothing is written to the cluster.
"""

__version__ = "1.0.0"
