# SPDX-License-Identifier: MIT

from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for every error raised by kub_diag."""


class ParseError(DiagnosticError, ValueError):
    """Malformed quantity, property tree, or certificate where data was expected."""


class AccessError(DiagnosticError):
    """The control plane could not be reached or returned an unusable response."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProbeTimeout(DiagnosticError):
    """A connectivity or exec probe ran past its wait budget."""

    def __init__(self, target: str, budget: float):
        super().__init__(f"{target}: no answer within {budget:g}s")
        self.target = target
        self.budget = budget


class ParameterError(DiagnosticError, ValueError):
    """A diagnostic was requested with a parameter value it cannot use."""
