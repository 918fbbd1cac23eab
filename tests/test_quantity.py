# SPDX-License-Identifier: MIT

"""Tests for CPU and memory quantity parsing."""

import pytest

from kub_diag.exceptions import ParseError
from kub_diag.quantity import Quantity, format_cpu, format_memory, parse_cpu, parse_memory, usage_of


class TestParseCpu:
    @pytest.mark.parametrize("text,cores", [
        ("500m", 0.5),
        ("250000000n", 0.25),
        ("2", 2.0),
        ("1.5", 1.5),
        (3, 3.0),
    ])
    def test_known_encodings(self, text, cores):
        assert parse_cpu(text) == pytest.approx(cores)

    @pytest.mark.parametrize("text", ["1u", "5k", "abc", "", None, True])
    def test_rejects_unknown_or_missing(self, text):
        with pytest.raises(ParseError):
            parse_cpu(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_cpu("12x")


class TestParseMemory:
    @pytest.mark.parametrize("text,mib", [
        ("2048Ki", 2.0),
        ("1Gi", 1024.0),
        ("128Mi", 128.0),
        ("64", 64.0),
    ])
    def test_known_encodings(self, text, mib):
        assert parse_memory(text) == pytest.approx(mib)

    @pytest.mark.parametrize("text", ["1Ti", "100M", "1e3", "Mi"])
    def test_rejects_unsupported(self, text):
        with pytest.raises(ParseError):
            parse_memory(text)


class TestFormatting:
    def test_cpu_format_parses_back(self):
        assert parse_cpu(format_cpu(0.125, "m")) == pytest.approx(0.125)
        assert parse_cpu(format_cpu(0.000002, "n")) == pytest.approx(0.000002)
        assert format_cpu(0.5) == "500m"

    def test_memory_format_parses_back(self):
        assert parse_memory(format_memory(3.5, "Ki")) == pytest.approx(3.5)
        assert format_memory(2048.0, "Gi") == "2Gi"

    def test_format_rejects_unknown_suffix(self):
        with pytest.raises(ParseError):
            format_memory(1.0, "Ti")

    def test_quantity_str(self):
        assert str(Quantity.cpu("1500m")) == "1.50 cores"
        assert str(Quantity.memory("1Gi")) == "1024.00 Mi"


class TestUsageOf:
    def test_parses_usage_block(self):
        assert usage_of({"usage": {"cpu": "100m", "memory": "128Mi"}}, "pod") == pytest.approx((0.1, 128.0))

    def test_missing_usage_is_malformed(self):
        with pytest.raises(ParseError, match="no usage block"):
            usage_of({"name": "app"}, "pod")

    def test_missing_field_is_malformed(self):
        with pytest.raises(ParseError, match="missing cpu or memory"):
            usage_of({"usage": {"cpu": "1"}}, "pod")
