# SPDX-License-Identifier: MIT

"""Tests for event checks."""

from datetime import timedelta

import pytest
from factories import NOW, event, make_ctx, pod

from kub_diag.checks.events import pod_events, recent_events, recurring_events
from kub_diag.collector import InMemoryAccessor
from kub_diag.exceptions import ParameterError
from kub_diag.models import Status


def ago(minutes):
    return NOW - timedelta(minutes=minutes)


class TestRecurringEvents:
    def test_counts_reasons_inside_window(self):
        accessor = InMemoryAccessor({"Event": [
            event("BackOff", ago(1)),
            event("BackOff", ago(2)),
            event("Scheduled", ago(3)),
        ]})
        verdict = recurring_events(make_ctx(accessor), minutes=5)
        assert verdict.status == Status.ISSUE
        assert verdict.details == ["BackOff occurred 2 times"]

    def test_window_bounds_are_inclusive(self):
        accessor = InMemoryAccessor({"Event": [
            event("Failed", ago(5)),
            event("Failed", NOW),
            event("Failed", ago(6)),
            event("Failed", None),
        ]})
        verdict = recurring_events(make_ctx(accessor), minutes=5)
        assert verdict.data["recurring"] == {"Failed": 2}

    def test_ordered_by_first_appearance(self):
        accessor = InMemoryAccessor({"Event": [
            event("Unhealthy", ago(1)), event("BackOff", ago(1)), event("BackOff", ago(1)), event("Unhealthy", ago(1)),
        ]})
        verdict = recurring_events(make_ctx(accessor), minutes=5)
        assert verdict.details == ["Unhealthy occurred 2 times", "BackOff occurred 2 times"]

    def test_nothing_recurring(self):
        accessor = InMemoryAccessor({"Event": [event("BackOff", ago(1)), event("BackOff", ago(30))]})
        verdict = recurring_events(make_ctx(accessor), minutes=5)
        assert verdict.status == Status.OK
        assert verdict.summary == "No recurring events in the last 5 minutes."

    def test_event_time_used_without_last_timestamp(self):
        accessor = InMemoryAccessor({"Event": [
            event("Pulled", None, event_time=ago(1)), event("Pulled", None, event_time=ago(2)),
        ]})
        assert recurring_events(make_ctx(accessor), minutes=5).data["recurring"] == {"Pulled": 2}

    def test_rejects_non_positive_window(self):
        with pytest.raises(ParameterError):
            recurring_events(make_ctx(InMemoryAccessor({})), minutes=0)

    def test_window_given_as_string(self):
        accessor = InMemoryAccessor({"Event": [
            event("BackOff", None, event_time=ago(1)), event("BackOff", None, event_time=ago(2)),
        ]})
        verdict = recurring_events(make_ctx(accessor), minutes="5")
        assert verdict.summary == "Recurring events in the last 5 minutes:"
        assert verdict.data["recurring"] == {"BackOff": 2}

    def test_rejects_non_numeric_window(self):
        with pytest.raises(ParameterError, match="whole number"):
            recurring_events(make_ctx(InMemoryAccessor({})), minutes="half an hour")


class TestRecentEvents:
    def test_newest_first_and_limited(self):
        accessor = InMemoryAccessor({"Event": [
            event("Old", ago(30), name="a"),
            event("Undated", None, name="b"),
            event("Newest", ago(1), name="c"),
            event("Middle", ago(10), kind="Node", name="w1"),
        ]})
        verdict = recent_events(make_ctx(accessor), limit=3)
        assert verdict.details == ["Newest (Pod/c)", "Middle (Node/w1)", "Old (Pod/a)"]

    def test_default_limit(self):
        accessor = InMemoryAccessor({"Event": [event(f"R{i}", ago(i)) for i in range(15)]})
        verdict = recent_events(make_ctx(accessor))
        assert len(verdict.details) == 10

    def test_no_events(self):
        assert recent_events(make_ctx(InMemoryAccessor({}))).summary == "No recent events in the cluster."


class TestPodEvents:
    def test_filters_by_pod(self):
        accessor = InMemoryAccessor({"Event": [
            event("BackOff", ago(1), name="web-1", message="Back-off restarting"),
            event("Pulled", ago(2), name="web-2"),
        ]})
        verdict = pod_events(make_ctx(accessor), namespace="default", pod_name="web-1")
        assert verdict.details == ["BackOff - Back-off restarting"]

    def test_no_events_for_existing_pod(self):
        accessor = InMemoryAccessor({"Pod": [pod("web-1")]})
        verdict = pod_events(make_ctx(accessor), namespace="default", pod_name="web-1")
        assert verdict.status == Status.OK
        assert verdict.summary == "No events found for pod web-1"

    def test_missing_pod(self):
        verdict = pod_events(make_ctx(InMemoryAccessor({})), namespace="default", pod_name="ghost")
        assert verdict.status == Status.UNKNOWN
