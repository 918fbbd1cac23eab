# SPDX-License-Identifier: MIT

"""Diagnostic evaluators, one module per area.

Every evaluator takes a DiagnosticContext plus its own keyword parameters
and returns a DiagnosticVerdict.
"""
