# SPDX-License-Identifier: MIT

"""Connectivity probes: HTTP from the caller, TCP and DNS from inside a pod.

Every probe has an explicit timeout and reports its outcome as a
ProbeResult; a failed or timed-out target never raises, so one bad target
does not stop the others.
"""

from __future__ import annotations

import logging
import shlex
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable

import requests

from kub_diag.collector.base import SnapshotAccessor
from kub_diag.exceptions import AccessError, ProbeTimeout

logger = logging.getLogger(__name__)

_DNS_FAILURE_MARKERS = ("can't find", "NXDOMAIN", "connection timed out")


@dataclass(frozen=True)
class ProbeResult:
    target: str
    ok: bool
    detail: str
    timed_out: bool = False


def _timeout_result(target: str, budget: float) -> ProbeResult:
    return ProbeResult(target, False, str(ProbeTimeout(target, budget)), timed_out=True)


def http_probe(host: str, timeout: float) -> ProbeResult:
    url = f"http://{host}"
    try:
        response = requests.get(url, timeout=timeout, allow_redirects=False)
    except requests.exceptions.Timeout:
        logger.debug("HTTP probe of %s timed out after %ss", url, timeout)
        return _timeout_result(host, timeout)
    except requests.exceptions.RequestException as exc:
        logger.debug("HTTP probe of %s failed: %s", url, exc)
        return ProbeResult(host, False, f"is NOT reachable ({exc})")
    code = response.status_code
    return ProbeResult(host, code < 500, f"responds with HTTP {code}")


def tcp_probe(accessor: SnapshotAccessor, namespace: str, pod: str, host: str, port: int, budget: float) -> ProbeResult:
    """Run ``nc -z`` inside the pod against host:port."""
    target = f"{host}:{port}"
    # nc -w takes whole seconds and must expire before the exec wait does
    connect_timeout = max(1, int(budget) - 1)
    wait = max(budget, connect_timeout + 1.0)
    script = f"nc -z -w {connect_timeout} {shlex.quote(host)} {int(port)} && echo open || echo closed"
    try:
        result = accessor.exec(pod, namespace, ["sh", "-c", script], wait)
    except AccessError as exc:
        return ProbeResult(target, False, f"exec failed ({exc})")
    if not result.completed:
        return _timeout_result(target, wait)

    lines = result.stdout.strip().splitlines()
    verdict = lines[-1].strip() if lines else ""
    if verdict == "open":
        return ProbeResult(target, True, "is reachable")
    err = result.stderr.strip()
    if verdict == "closed":
        return ProbeResult(target, False, "is NOT reachable" + (f" ({err})" if err else ""))
    return ProbeResult(target, False, f"gave no answer ({err or 'empty output'})")


def dns_probe(accessor: SnapshotAccessor, namespace: str, pod: str, name: str, budget: float) -> ProbeResult:
    """Resolve ``name`` with ``nslookup`` inside the pod."""
    try:
        result = accessor.exec(pod, namespace, ["nslookup", name], budget)
    except AccessError as exc:
        return ProbeResult(name, False, f"exec failed ({exc})")
    if not result.completed:
        return _timeout_result(name, budget)

    err = result.stderr.strip()
    out = result.stdout.strip()
    if err or any(marker in out for marker in _DNS_FAILURE_MARKERS):
        return ProbeResult(name, False, err or out)
    if not out:
        return ProbeResult(name, False, "nslookup produced no output")
    return ProbeResult(name, True, out)


def probe_all(probe: Callable[[str], ProbeResult], targets: Iterable[str], max_workers: int) -> list[ProbeResult]:
    """Probe targets concurrently; results keep target order."""
    targets = list(targets)
    if not targets:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(targets))) as pool:
        return list(pool.map(probe, targets))
