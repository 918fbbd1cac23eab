# SPDX-License-Identifier: MIT

"""Tests for the operation registry and runner."""

from unittest.mock import patch

from factories import make_ctx, node, pod

from kub_diag.collector import InMemoryAccessor
from kub_diag.exceptions import AccessError, ParseError
from kub_diag.models import Scope, Status
from kub_diag.runner import OPERATIONS, DiagnosticRequest, run_diagnostic, run_many


class TestRegistry:
    def test_every_area_registered(self):
        expected = {
            "cluster_info", "control_plane_health", "namespace_health", "scheduling_issues",
            "node_status", "node_metrics", "pods_on_node", "node_pressure",
            "list_pods", "pod_logs", "describe_pod", "pod_placement",
            "recent_events", "pod_events", "recurring_events",
            "pod_metrics", "namespace_usage", "cluster_usage",
            "latest_image_tags", "expired_certificates", "service_account_audit",
            "config_map_keys", "secret_keys", "rbac_access",
            "list_pvcs", "list_pvs", "pvc_mount",
            "service_endpoints", "ingress_connectivity", "pod_connectivity", "cluster_dns",
        }
        assert set(OPERATIONS) == expected

    def test_parameters(self):
        assert OPERATIONS["pod_logs"].parameters == ["namespace", "pod_name", "tail_lines"]
        assert OPERATIONS["cluster_info"].parameters == []
        assert OPERATIONS["namespace_usage"].scope == Scope.NAMESPACE


class TestRunDiagnostic:
    def test_runs_evaluator(self):
        ctx = make_ctx(InMemoryAccessor({"Node": [node("w1")]}))
        verdict = run_diagnostic("node_status", ctx, node_name="w1")
        assert verdict.status == Status.OK

    def test_parameter_named_name(self):
        accessor = InMemoryAccessor({})
        verdict = run_diagnostic("config_map_keys", make_ctx(accessor), namespace="shop", name="app")
        assert verdict.status == Status.UNKNOWN

    def test_unknown_operation(self):
        verdict = run_diagnostic("explode", make_ctx(InMemoryAccessor({})))
        assert verdict.status == Status.ERROR
        assert verdict.summary == "Unknown diagnostic 'explode'"

    def test_missing_parameter(self):
        verdict = run_diagnostic("node_status", make_ctx(InMemoryAccessor({})))
        assert verdict.status == Status.ERROR
        assert verdict.summary.startswith("Invalid parameters for node_status")
        assert "accepts: node_name" in verdict.summary

    def test_access_error_becomes_error_verdict(self):
        verdict = run_diagnostic("namespace_health", make_ctx(InMemoryAccessor({}, reachable=False)))
        assert verdict.status == Status.ERROR
        assert verdict.summary == "Error running namespace_health: list Namespace: connection refused"

    def test_parse_error_becomes_error_verdict(self):
        ctx = make_ctx(InMemoryAccessor({"Pod": [pod("web")]}))
        with patch("kub_diag.checks.pods.restart_count", side_effect=ParseError("bad restart count")):
            verdict = run_diagnostic("list_pods", ctx, namespace="default")
        assert verdict.status == Status.ERROR
        assert verdict.summary == "Error running list_pods: bad restart count"

    def test_parameter_error_becomes_error_verdict(self):
        verdict = run_diagnostic("recurring_events", make_ctx(InMemoryAccessor({})), minutes=-1)
        assert verdict.status == Status.ERROR

    def test_unexpected_exception_becomes_error_verdict(self):
        ctx = make_ctx(InMemoryAccessor({"Pod": [pod("web")]}))
        with patch("kub_diag.checks.pods.restart_count", side_effect=AttributeError("'NoneType' has no attribute 'name'")):
            verdict = run_diagnostic("list_pods", ctx, namespace="default")
        assert verdict.status == Status.ERROR
        assert verdict.summary == "Error running list_pods: AttributeError: 'NoneType' has no attribute 'name'"


class TestRunMany:
    def test_results_in_request_order(self):
        ctx = make_ctx(InMemoryAccessor({"Node": [node("w1"), node("w2", "False")]}), max_workers=4)
        verdicts = run_many([
            DiagnosticRequest("node_status", {"node_name": "w2"}),
            DiagnosticRequest("cluster_info"),
            DiagnosticRequest("node_status", {"node_name": "w1"}),
            DiagnosticRequest("nope"),
        ], ctx)
        assert [v.operation for v in verdicts] == ["node_status", "cluster_info", "node_status", "nope"]
        assert [v.status for v in verdicts] == [Status.ISSUE, Status.OK, Status.OK, Status.ERROR]

    def test_one_failure_does_not_stop_others(self):
        with patch.object(InMemoryAccessor, "version", side_effect=AccessError("boom")):
            ctx = make_ctx(InMemoryAccessor({"Namespace": []}))
            verdicts = run_many([DiagnosticRequest("cluster_info"), DiagnosticRequest("namespace_health")], ctx)
        assert verdicts[0].status == Status.ERROR
        assert verdicts[1].status == Status.UNKNOWN

    def test_string_window_from_templated_params(self):
        ctx = make_ctx(InMemoryAccessor({"Node": [node("w1")], "Namespace": [], "Event": []}))
        verdicts = run_many([
            DiagnosticRequest("cluster_info"),
            DiagnosticRequest("recurring_events", {"minutes": "30"}),
            DiagnosticRequest("recurring_events", {"minutes": "soon"}),
        ], ctx)
        assert [v.status for v in verdicts] == [Status.OK, Status.OK, Status.ERROR]
        assert verdicts[1].summary == "No recurring events in the last 30 minutes."

    def test_crash_does_not_drop_sibling_verdicts(self):
        ctx = make_ctx(InMemoryAccessor({"Node": [node("w1")], "Pod": [pod("web")]}), max_workers=2)
        with patch("kub_diag.checks.pods.restart_count", side_effect=KeyError("containers")):
            verdicts = run_many([
                DiagnosticRequest("list_pods", {"namespace": "default"}),
                DiagnosticRequest("node_status", {"node_name": "w1"}),
            ], ctx)
        assert [v.status for v in verdicts] == [Status.ERROR, Status.OK]

    def test_empty(self):
        assert run_many([], make_ctx(InMemoryAccessor({}))) == []
