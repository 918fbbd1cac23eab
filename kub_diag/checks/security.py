# SPDX-License-Identifier: MIT

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from typing import Any

from cryptography import x509

from kub_diag.context import DiagnosticContext
from kub_diag.exceptions import ParseError
from kub_diag.models import DiagnosticVerdict, Outcome, Scope, Status
from kub_diag.report import combine

logger = logging.getLogger(__name__)

CERT_KEY = "tls.crt"
WEBHOOK_MARKER = "webhook"
ADMIN_MARKER = "admin"


# =====================================================================
# Image tags
# =====================================================================

def _latest_kind(image: str) -> str | None:
    """'explicit' for ``:latest``, 'implicit' for an untagged image, else None."""
    if "@" in image:
        return None
    last = image.rsplit("/", 1)[-1]
    if ":" not in last:
        return "implicit"
    if last.endswith(":latest"):
        return "explicit"
    return None


def latest_image_tags(ctx: DiagnosticContext, namespace: str) -> DiagnosticVerdict:
    findings = []
    for pod in ctx.accessor.list("Pod", namespace=namespace):
        containers = (pod.spec.containers if pod.spec else None) or []
        for container in containers:
            kind = _latest_kind(container.image or "")
            if kind:
                findings.append((pod.metadata.name, container.name, container.image, kind))
    if not findings:
        return DiagnosticVerdict(
            operation="latest_image_tags", scope=Scope.NAMESPACE, status=Status.OK,
            summary=f"No containers using ':latest' tag in namespace {namespace}", data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="latest_image_tags",
        scope=Scope.NAMESPACE,
        status=Status.ISSUE,
        summary=f"Containers using ':latest' tag in namespace {namespace}:",
        details=[
            f"{pod} -> {name} ({image})" + (" [no tag, defaults to latest]" if kind == "implicit" else "")
            for pod, name, image, kind in findings
        ],
        data={"count": len(findings)},
    )


# =====================================================================
# Certificates
# =====================================================================

def certificate_not_after(encoded: str) -> datetime:
    """Decode base64 secret data holding a PEM or DER certificate and return its notAfter (UTC)."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"certificate data is not valid base64: {exc}") from exc
    try:
        if b"-----BEGIN" in raw:
            cert = x509.load_pem_x509_certificate(raw)
        else:
            cert = x509.load_der_x509_certificate(raw)
    except ValueError as exc:
        raise ParseError(f"certificate cannot be decoded: {exc}") from exc
    return cert.not_valid_after_utc


def _inspect_secret(label: str, secret: Any, now: datetime) -> DiagnosticVerdict:
    """Check one secret's tls.crt; absence of the certificate is a silent skip."""
    encoded = (secret.data or {}).get(CERT_KEY)
    if not encoded:
        logger.debug("%s: secret %s carries no %s", label, secret.metadata.name, CERT_KEY)
        return DiagnosticVerdict("expired_certificates", Scope.CLUSTER, Status.OK, "", data={"checked": 0})
    try:
        not_after = certificate_not_after(encoded)
    except ParseError as exc:
        logger.warning("%s: unreadable certificate: %s", label, exc)
        return DiagnosticVerdict(
            "expired_certificates", Scope.CLUSTER, Status.ERROR, "",
            details=[f"{label}: unreadable certificate ({exc})"],
            data={"checked": 1, "unreadable": 1},
        )
    if not_after < now:
        return DiagnosticVerdict(
            "expired_certificates", Scope.CLUSTER, Status.ISSUE, "",
            details=[f"{label}: certificate expired on {not_after.isoformat()}"],
            data={"checked": 1, "expired": 1},
        )
    return DiagnosticVerdict("expired_certificates", Scope.CLUSTER, Status.OK, "", data={"checked": 1})


def _ingress_parts(ctx: DiagnosticContext, now: datetime) -> list[DiagnosticVerdict]:
    parts = []
    for ingress in ctx.accessor.list("Ingress"):
        meta = ingress.metadata
        for tls in (ingress.spec.tls if ingress.spec else None) or []:
            if not tls.secret_name:
                continue
            label = f"Ingress {meta.namespace}/{meta.name} (secret {tls.secret_name})"
            lookup = ctx.accessor.get("Secret", tls.secret_name, meta.namespace)
            if lookup.outcome == Outcome.FAILED:
                logger.warning("%s: secret lookup failed: %s", label, lookup.reason)
                parts.append(DiagnosticVerdict(
                    "expired_certificates", Scope.CLUSTER, Status.ERROR, "",
                    details=[f"{label}: secret lookup failed ({lookup.reason})"],
                    data={"unreadable": 1},
                ))
            elif not lookup.is_found:
                logger.debug("%s: secret not found, skipped", label)
            else:
                parts.append(_inspect_secret(label, lookup.value, now))
    return parts


def _webhook_parts(ctx: DiagnosticContext, now: datetime) -> list[DiagnosticVerdict]:
    return [
        _inspect_secret(f"Webhook secret {s.metadata.namespace}/{s.metadata.name}", s, now)
        for s in ctx.accessor.list("Secret")
        if WEBHOOK_MARKER in (s.metadata.name or "")
    ]


def expired_certificates(ctx: DiagnosticContext) -> DiagnosticVerdict:
    """Flag expired certificates in Ingress TLS secrets and webhook secrets."""
    now = ctx.now()
    parts = _ingress_parts(ctx, now) + _webhook_parts(ctx, now)
    merged = combine("expired_certificates", Scope.CLUSTER, "", parts)
    for key in ("checked", "expired", "unreadable"):
        merged.data.setdefault(key, 0)

    if not merged.details:
        merged.summary = "All TLS certificates in Ingresses and Webhook secrets are valid."
    else:
        merged.summary = f"{merged.data['expired']} expired certificate(s) found"
        if merged.data["unreadable"]:
            merged.summary += f", {merged.data['unreadable']} unreadable"
        merged.summary += ":"
    return merged


# =====================================================================
# Service accounts
# =====================================================================

def service_account_audit(ctx: DiagnosticContext) -> DiagnosticVerdict:
    """Name-based heuristic: service accounts whose name contains 'admin'."""
    flagged = [
        f"{sa.metadata.namespace}/{sa.metadata.name}"
        for sa in ctx.accessor.list("ServiceAccount")
        if ADMIN_MARKER in (sa.metadata.name or "")
    ]
    if not flagged:
        return DiagnosticVerdict(
            operation="service_account_audit", scope=Scope.CLUSTER, status=Status.OK,
            summary="No ServiceAccounts with unnecessary elevated privileges found.", data={"count": 0},
        )
    return DiagnosticVerdict(
        operation="service_account_audit",
        scope=Scope.CLUSTER,
        status=Status.ISSUE,
        summary="ServiceAccounts with potential elevated privileges (name heuristic, review manually):",
        details=flagged,
        data={"count": len(flagged)},
    )
