#!/usr/bin/python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: MIT

"""Ansible module running kub_diag diagnostics against a Kubernetes cluster.

The module connects to the K8s API from the Ansible control node, runs the
requested diagnostics, and returns one normalized verdict per request.
Nothing is installed on any remote server and nothing is written to the
cluster.
"""

from __future__ import annotations

DOCUMENTATION = r"""
---
module: kub_diag_check
short_description: Run Kubernetes diagnostics against a cluster
version_added: "1.0.0"
description:
  - Connects to a Kubernetes cluster via kubeconfig (or the in-cluster
    service account) and runs the requested diagnostics covering the
    control plane, nodes, pods, events, resource usage, security, config,
    storage and networking.
  - Every diagnostic yields a verdict with status ok, issue, unknown or
    error, a summary line, detail lines and structured data.
  - Read-only. API calls are list, get, pod log, pod exec (for in-pod
    connectivity and DNS probes) and SelfSubjectAccessReview.
options:
  kubeconfig:
    description: Path to the kubeconfig file. Defaults to $KUBECONFIG, then ~/.kube/config.
    type: path
  context:
    description: Kubeconfig context to use. Defaults to current context.
    type: str
  diagnostics:
    description: Diagnostics to run, in order.
    type: list
    elements: dict
    required: true
    suboptions:
      name:
        description: Diagnostic name, for example C(control_plane_health) or C(pod_logs).
        type: str
        required: true
      params:
        description: Keyword parameters of the diagnostic.
        type: dict
        default: {}
  http_timeout:
    description: Timeout in seconds of each HTTP probe against an Ingress host.
    type: float
  exec_wait_budget:
    description: Seconds an in-pod probe may run before it is reported as timed out.
    type: float
  max_workers:
    description: Upper bound of concurrent diagnostics and per-pod metrics lookups.
    type: int
  tail_lines:
    description: Default number of log lines returned by C(pod_logs).
    type: int
  fail_on_error:
    description: Fail the task when any verdict has status error.
    type: bool
    default: true
requirements:
  - kubernetes
  - kub_diag (this project, installed on the control node)
author:
  - kub-diag contributors
"""

EXAMPLES = r"""
- name: Check control plane and scheduling
  kub_diag_check:
    diagnostics:
      - name: control_plane_health
      - name: scheduling_issues
  register: diag

- name: Inspect a crashing pod in a specific context
  kub_diag_check:
    kubeconfig: /etc/kubernetes/admin.conf
    context: prod-cluster
    diagnostics:
      - name: describe_pod
        params: {namespace: shop, pod_name: checkout-7d9f}
      - name: pod_logs
        params: {namespace: shop, pod_name: checkout-7d9f, tail_lines: 50}
      - name: pod_events
        params: {namespace: shop, pod_name: checkout-7d9f}

- name: Probe connectivity from inside a pod
  kub_diag_check:
    exec_wait_budget: 8
    diagnostics:
      - name: pod_connectivity
        params: {namespace: shop, pod_name: checkout-7d9f, hosts: [db, cache], port: 5432}
      - name: cluster_dns
        params: {namespace: shop, pod_name: checkout-7d9f, service_name: db.shop.svc.cluster.local}

- name: Report issues without failing the play
  kub_diag_check:
    fail_on_error: false
    diagnostics:
      - name: expired_certificates
      - name: recurring_events
        params: {minutes: 30}
  register: diag
  failed_when: diag.summary.issue > 0
"""

RETURN = r"""
verdicts:
  description: One verdict per requested diagnostic, in request order.
  type: list
  returned: always
  elements: dict
  sample:
    - operation: "control_plane_health"
      scope: "cluster"
      status: "ok"
      summary: "Control plane nodes: 3. All healthy: YES"
      details: ["cp-1: Ready=True", "cp-2: Ready=True", "cp-3: Ready=True"]
      subject: null
      data: {reachable: true, all_healthy: true}
summary:
  description: Number of verdicts per status plus the overall (worst) status.
  type: dict
  returned: always
  sample:
    overall: "issue"
    total: 4
    ok: 2
    issue: 1
    unknown: 1
    error: 0
report_text:
  description: Human-readable text report.
  type: str
  returned: always
"""

def run_module():
    from ansible.module_utils.basic import AnsibleModule

    module = AnsibleModule(
        argument_spec=dict(
            kubeconfig=dict(type="path", default=None),
            context=dict(type="str", default=None),
            diagnostics=dict(
                type="list", elements="dict", required=True,
                options=dict(
                    name=dict(type="str", required=True),
                    params=dict(type="dict", default={}),
                ),
            ),
            http_timeout=dict(type="float", default=None),
            exec_wait_budget=dict(type="float", default=None),
            max_workers=dict(type="int", default=None),
            tail_lines=dict(type="int", default=None),
            fail_on_error=dict(type="bool", default=True),
        ),
        supports_check_mode=True,
    )

    # Verify kubernetes and kub_diag are available
    try:
        import kubernetes  # noqa: F401
    except ImportError:
        module.fail_json(msg="The 'kubernetes' Python package is required. Install with: pip install kubernetes")
        return
    try:
        from kub_diag.collector.accessor import KubernetesAccessor
        from kub_diag.config import DiagnosticSettings
        from kub_diag.context import DiagnosticContext
        from kub_diag.exceptions import AccessError
        from kub_diag.report import render_report, tally, worst_status
        from kub_diag.runner import OPERATIONS, DiagnosticRequest, run_many
    except ImportError as e:
        module.fail_json(msg=f"The 'kub_diag' package is required on the control node: {e}")
        return

    requests = [
        DiagnosticRequest(name=d["name"], params=d.get("params") or {})
        for d in module.params["diagnostics"]
    ]
    unknown = sorted({r.name for r in requests if r.name not in OPERATIONS})
    if unknown:
        module.fail_json(
            msg=f"Unknown diagnostics: {', '.join(unknown)}",
            available=sorted(OPERATIONS),
        )
        return

    try:
        settings = DiagnosticSettings.from_params(module.params)
    except ValueError as e:
        module.fail_json(msg=f"Invalid settings: {e}")
        return

    # Connect to cluster
    try:
        accessor = KubernetesAccessor.from_settings(settings)
    except AccessError as e:
        module.fail_json(msg=f"Failed to connect to Kubernetes cluster: {e}")
        return

    ctx = DiagnosticContext(accessor=accessor, settings=settings)
    verdicts = run_many(requests, ctx)

    counts = tally(verdicts)
    overall = worst_status(v.status for v in verdicts)
    summary = {"overall": overall.value, "total": len(verdicts), **counts}
    report_text = render_report(verdicts, timestamp=ctx.now())

    result = dict(
        changed=False,
        verdicts=[v.to_dict() for v in verdicts],
        summary=summary,
        report_text=report_text,
    )
    if module.params["fail_on_error"] and counts["error"]:
        failed = [v.operation for v in verdicts if v.status.value == "error"]
        module.fail_json(msg=f"Diagnostics failed: {', '.join(failed)}", **result)
        return
    module.exit_json(**result)


def main():
    run_module()


if __name__ == "__main__":
    main()
