# SPDX-License-Identifier: MIT

"""CPU and memory quantity parsing.

Only the encodings the metrics API emits are accepted. CPU: plain cores,
``m`` (millicores), ``n`` (nanocores). Memory: plain MiB, ``Ki``, ``Mi``,
``Gi``. Anything else is a ParseError; nothing is silently read as zero.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from kub_diag.exceptions import ParseError

CPU_DIVISORS = {"n": 1_000_000_000, "m": 1000, "": 1}
MEMORY_FACTORS = {"Ki": 1 / 1024, "Mi": 1.0, "Gi": 1024.0, "": 1.0}

_QUANTITY_RE = re.compile(r"^(?P<number>[+-]?(?:\d+(?:\.\d*)?|\.\d+))(?P<suffix>[A-Za-z]*)$")


def _split(val: str | int | float | None, what: str) -> tuple[float, str]:
    if val is None or isinstance(val, bool):
        raise ParseError(f"{what} quantity is missing")
    if isinstance(val, (int, float)):
        return float(val), ""
    m = _QUANTITY_RE.match(str(val).strip())
    if not m:
        raise ParseError(f"invalid {what} quantity: {val!r}")
    return float(m.group("number")), m.group("suffix")


def parse_cpu(val: str | int | float | None) -> float:
    """Return the quantity in cores."""
    number, suffix = _split(val, "cpu")
    if suffix not in CPU_DIVISORS:
        raise ParseError(f"unknown cpu suffix {suffix!r} in {val!r}")
    return number / CPU_DIVISORS[suffix]


def parse_memory(val: str | int | float | None) -> float:
    """Return the quantity in mebibytes."""
    number, suffix = _split(val, "memory")
    if suffix not in MEMORY_FACTORS:
        raise ParseError(f"unknown memory suffix {suffix!r} in {val!r}")
    return number * MEMORY_FACTORS[suffix]


def _plain(number: float) -> str:
    text = f"{number:.9f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-", "-0") else "0"


def format_cpu(cores: float, suffix: str = "m") -> str:
    if suffix not in CPU_DIVISORS:
        raise ParseError(f"unknown cpu suffix {suffix!r}")
    return f"{_plain(cores * CPU_DIVISORS[suffix])}{suffix}"


def format_memory(mib: float, suffix: str = "Mi") -> str:
    if suffix not in MEMORY_FACTORS:
        raise ParseError(f"unknown memory suffix {suffix!r}")
    return f"{_plain(mib / MEMORY_FACTORS[suffix])}{suffix}"


@dataclass(frozen=True)
class Quantity:
    value: float
    unit: str

    @classmethod
    def cpu(cls, val: str | int | float | None) -> Quantity:
        return cls(parse_cpu(val), "cores")

    @classmethod
    def memory(cls, val: str | int | float | None) -> Quantity:
        return cls(parse_memory(val), "MiB")

    def __str__(self) -> str:
        if self.unit == "cores":
            return f"{self.value:.2f} cores"
        return f"{self.value:.2f} Mi"


def usage_of(entry: dict, owner: str) -> tuple[float, float]:
    """Parse the ``usage`` block of a metrics entry into (cores, MiB).

    The entry itself exists, so a missing usage block or a missing field is
    malformed data, not absence.
    """
    usage = entry.get("usage") if isinstance(entry, dict) else None
    if not isinstance(usage, dict):
        raise ParseError(f"{owner}: metrics entry has no usage block")
    if "cpu" not in usage or "memory" not in usage:
        raise ParseError(f"{owner}: usage is missing cpu or memory")
    return parse_cpu(usage["cpu"]), parse_memory(usage["memory"])
