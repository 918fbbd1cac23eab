# SPDX-License-Identifier: MIT

"""Tests for metrics aggregation."""

import pytest
from factories import make_ctx, pod, pod_metrics_payload

from kub_diag.checks.resources import cluster_usage, namespace_usage, pod_metrics
from kub_diag.collector import InMemoryAccessor
from kub_diag.exceptions import AccessError, ParseError
from kub_diag.models import POD_METRICS, Status


def metrics_key(name, ns="shop"):
    return (POD_METRICS, ns, name)


class TestNamespaceUsage:
    def test_pod_without_metrics_is_skipped(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("new", "shop"), pod("web", "shop")]},
            {metrics_key("web"): pod_metrics_payload(("app", "100m", "128Mi"))},
        )
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.OK
        assert verdict.data["cpu_cores"] == pytest.approx(0.1)
        assert verdict.data["memory_mib"] == pytest.approx(128.0)
        assert verdict.data["skipped"] == ["shop/new"]
        assert verdict.summary == "Namespace 'shop' total usage: CPU 0.10 cores, Memory 128.00 Mi"

    def test_sums_containers_and_pods(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("a", "shop"), pod("b", "shop")]},
            {
                metrics_key("a"): pod_metrics_payload(("app", "250m", "1Gi"), ("proxy", "250000000n", "2048Ki")),
                metrics_key("b"): pod_metrics_payload(("app", "1", "512")),
            },
        )
        verdict = namespace_usage(make_ctx(accessor, max_workers=2), namespace="shop")
        assert verdict.data["cpu_cores"] == pytest.approx(1.5)
        assert verdict.data["memory_mib"] == pytest.approx(1024 + 2 + 512)
        assert verdict.data["measured"] == 2

    def test_malformed_entry_is_failure_line(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("bad", "shop"), pod("good", "shop")]},
            {
                metrics_key("bad"): {"containers": [{"name": "app", "usage": {"cpu": "5x", "memory": "1Mi"}}]},
                metrics_key("good"): pod_metrics_payload(("app", "200m", "64Mi")),
            },
        )
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.ERROR
        assert verdict.summary.endswith("(partial)")
        assert verdict.data["cpu_cores"] == pytest.approx(0.2)
        assert any(line.startswith("shop/bad: malformed metrics") for line in verdict.details)

    def test_container_without_usage_is_malformed(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("bad", "shop")]},
            {metrics_key("bad"): {"containers": [{"name": "app"}]}},
        )
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.ERROR

    def test_failed_lookup_is_annotated_skip(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("flaky", "shop"), pod("good", "shop")]},
            {
                metrics_key("flaky"): AccessError("HTTP 500 Internal Server Error"),
                metrics_key("good"): pod_metrics_payload(("app", "200m", "64Mi")),
            },
        )
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.UNKNOWN
        assert verdict.data["partial"] is True
        assert "shop/flaky: metrics lookup failed" in verdict.details[1]

    def test_no_pod_measured_is_not_zero_usage(self):
        accessor = InMemoryAccessor({"Pod": [pod("new", "shop"), pod("newer", "shop")]})
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.UNKNOWN
        assert verdict.summary == "Namespace 'shop': no pod reported metrics, usage not measured"
        assert verdict.data["cpu_cores"] is None
        assert verdict.data["memory_mib"] is None
        assert verdict.data["skipped"] == ["shop/new", "shop/newer"]

    def test_metrics_api_missing(self):
        accessor = InMemoryAccessor({"Pod": [pod("a", "shop")]}, unavailable=[POD_METRICS])
        verdict = namespace_usage(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.UNKNOWN
        assert verdict.data["outcome"] == "not_available"

    def test_empty_namespace(self):
        verdict = namespace_usage(make_ctx(InMemoryAccessor({})), namespace="shop")
        assert verdict.summary == "No pods found in namespace 'shop'"


class TestClusterUsage:
    def test_across_namespaces(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("a", "shop"), pod("b", "ops")]},
            {
                metrics_key("a"): pod_metrics_payload(("app", "100m", "100Mi")),
                metrics_key("b", "ops"): pod_metrics_payload(("app", "300m", "28Mi")),
            },
        )
        verdict = cluster_usage(make_ctx(accessor))
        assert verdict.summary == "Cluster total usage: CPU 0.40 cores, Memory 128.00 Mi"


class TestPodMetrics:
    def test_per_container_lines(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("web", "shop")]},
            {metrics_key("web"): pod_metrics_payload(("app", "1500m", "1Gi"))},
        )
        verdict = pod_metrics(make_ctx(accessor), namespace="shop", pod_name="web")
        assert verdict.details == ["app -> CPU: 1.50 cores, Memory: 1024.00 Mi"]

    def test_pod_not_found(self):
        verdict = pod_metrics(make_ctx(InMemoryAccessor({})), namespace="shop", pod_name="web")
        assert verdict.status == Status.UNKNOWN
        assert verdict.data["outcome"] == "not_found"

    def test_metrics_not_yet_available(self):
        accessor = InMemoryAccessor({"Pod": [pod("web", "shop")]})
        verdict = pod_metrics(make_ctx(accessor), namespace="shop", pod_name="web")
        assert verdict.data["outcome"] == "not_available"

    def test_malformed_raises(self):
        accessor = InMemoryAccessor(
            {"Pod": [pod("web", "shop")]},
            {metrics_key("web"): {"containers": "oops"}},
        )
        with pytest.raises(ParseError):
            pod_metrics(make_ctx(accessor), namespace="shop", pod_name="web")
