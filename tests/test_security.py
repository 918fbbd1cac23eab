# SPDX-License-Identifier: MIT

"""Tests for security checks: image tags, certificates, service accounts."""

import base64
from datetime import timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from factories import NOW, ingress, make_ctx, meta, pod, secret
from kubernetes import client

from kub_diag.checks.security import (
    certificate_not_after,
    expired_certificates,
    latest_image_tags,
    service_account_audit,
)
from kub_diag.collector import InMemoryAccessor
from kub_diag.exceptions import ParseError
from kub_diag.models import Status


def make_cert(not_after, encoding=serialization.Encoding.PEM):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "test.local")])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=365))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return base64.b64encode(cert.public_bytes(encoding)).decode()


@pytest.fixture(scope="module")
def expired_pem():
    return make_cert(NOW - timedelta(days=1))


@pytest.fixture(scope="module")
def valid_pem():
    return make_cert(NOW + timedelta(days=90))


class TestCertificateNotAfter:
    def test_pem(self):
        not_after = NOW + timedelta(days=3)
        assert certificate_not_after(make_cert(not_after)) == not_after

    def test_der(self):
        not_after = NOW + timedelta(days=3)
        assert certificate_not_after(make_cert(not_after, serialization.Encoding.DER)) == not_after

    def test_garbage(self):
        with pytest.raises(ParseError):
            certificate_not_after(base64.b64encode(b"not a certificate").decode())

    def test_not_base64(self):
        with pytest.raises(ParseError):
            certificate_not_after("%%%")


class TestExpiredCertificates:
    def test_expired_flagged_valid_not_missing_skipped(self, expired_pem, valid_pem):
        accessor = InMemoryAccessor({
            "Ingress": [ingress("shop", "web", tls_secrets=["old-tls", "new-tls", "gone-tls"])],
            "Secret": [
                secret("old-tls", "web", {"tls.crt": expired_pem}),
                secret("new-tls", "web", {"tls.crt": valid_pem}),
            ],
        })
        verdict = expired_certificates(make_ctx(accessor))
        assert verdict.status == Status.ISSUE
        assert len(verdict.details) == 1
        assert verdict.details[0].startswith("Ingress web/shop (secret old-tls): certificate expired on")
        assert verdict.data["expired"] == 1
        assert verdict.data["checked"] == 2

    def test_webhook_secrets_scanned(self, expired_pem):
        accessor = InMemoryAccessor({"Secret": [
            secret("admission-webhook-certs", "infra", {"tls.crt": expired_pem}),
            secret("db-creds", "infra", {"password": "c2VjcmV0"}),
            secret("webhook-config", "infra", {"config": "e30="}),
        ]})
        verdict = expired_certificates(make_ctx(accessor))
        assert verdict.details[0].startswith("Webhook secret infra/admission-webhook-certs")
        assert verdict.data["checked"] == 1

    def test_ingress_lines_come_first(self, expired_pem):
        accessor = InMemoryAccessor({
            "Ingress": [ingress("shop", tls_secrets=["tls"])],
            "Secret": [secret("tls", data={"tls.crt": expired_pem}),
                       secret("my-webhook", data={"tls.crt": expired_pem})],
        })
        verdict = expired_certificates(make_ctx(accessor))
        assert [d.split(" ")[0] for d in verdict.details] == ["Ingress", "Webhook"]

    def test_unreadable_certificate_is_error_line(self, valid_pem):
        accessor = InMemoryAccessor({"Secret": [
            secret("bad-webhook", data={"tls.crt": base64.b64encode(b"junk").decode()}),
            secret("good-webhook", data={"tls.crt": valid_pem}),
        ]})
        verdict = expired_certificates(make_ctx(accessor))
        assert verdict.status == Status.ERROR
        assert verdict.data["unreadable"] == 1
        assert "unreadable certificate" in verdict.details[0]

    def test_all_valid(self, valid_pem):
        accessor = InMemoryAccessor({"Secret": [secret("webhook-tls", data={"tls.crt": valid_pem})]})
        verdict = expired_certificates(make_ctx(accessor))
        assert verdict.status == Status.OK
        assert verdict.summary == "All TLS certificates in Ingresses and Webhook secrets are valid."


class TestLatestImageTags:
    def test_explicit_and_implicit_latest(self):
        accessor = InMemoryAccessor({"Pod": [pod("web", "shop", images={
            "app": "nginx:latest",
            "sidecar": "registry:5000/envoy",
            "pinned": "redis:7.2",
            "digest": "busybox@sha256:abc",
        })]})
        verdict = latest_image_tags(make_ctx(accessor), namespace="shop")
        assert verdict.status == Status.ISSUE
        assert verdict.details == [
            "web -> app (nginx:latest)",
            "web -> sidecar (registry:5000/envoy) [no tag, defaults to latest]",
        ]

    def test_none_found(self):
        accessor = InMemoryAccessor({"Pod": [pod("web", "shop")]})
        assert latest_image_tags(make_ctx(accessor), namespace="shop").status == Status.OK


class TestServiceAccountAudit:
    def test_name_heuristic(self):
        accessor = InMemoryAccessor({"ServiceAccount": [
            client.V1ServiceAccount(metadata=meta("cluster-admin-sa", "ops")),
            client.V1ServiceAccount(metadata=meta("default", "ops")),
            client.V1ServiceAccount(metadata=meta("Admin-bot", "ops")),
        ]})
        verdict = service_account_audit(make_ctx(accessor))
        assert verdict.status == Status.ISSUE
        assert verdict.details == ["ops/cluster-admin-sa"]

    def test_nothing_flagged(self):
        verdict = service_account_audit(make_ctx(InMemoryAccessor({})))
        assert verdict.summary == "No ServiceAccounts with unnecessary elevated privileges found."
