# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Unit tests for certificate issuance.

Tests:
- Self-signed and chained issuance
- Extensions
- Request validation
- Issuer checks
"""

import datetime

import pytest
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID, NameOID

from certtrust.certificates import (
    CertificateBundle,
    CertificateRequest,
    fingerprint,
    is_self_issued,
    issue_device_certificate,
    verify_signature,
)
from certtrust.certificates.parser import ocsp_urls, crl_urls
from certtrust.crypto import generate_key_pair
from certtrust.errors import ExpiredIssuer, InvalidRequest, SigningFailure


def _now():
    return datetime.datetime.now(datetime.timezone.utc)


class TestSelfSigned:
    """Test self-signed issuance."""

    def test_root_ca_is_self_signed(self, root_ca):
        cert = root_ca.certificate

        assert is_self_issued(cert)
        assert verify_signature(cert, cert.public_key())
        assert root_ca.chain == ()
        assert root_ca.has_private_key

        constraints = cert.extensions.get_extension_for_oid(ExtensionOID.BASIC_CONSTRAINTS)
        assert constraints.critical
        assert constraints.value.ca is True
        assert constraints.value.path_length == 1

        usage = cert.extensions.get_extension_for_class(x509.KeyUsage).value
        assert usage.key_cert_sign and usage.crl_sign

    def test_self_signed_leaf(self, builder):
        key_pair = generate_key_pair("ed25519")
        request = CertificateRequest(subject="CN=standalone,O=Acme", key_pair=key_pair)

        bundle = builder.issue(request, key_pair)

        assert bundle.certificate.issuer == bundle.certificate.subject
        assert verify_signature(bundle.certificate, key_pair.public_key)
        with pytest.raises(x509.ExtensionNotFound):
            bundle.certificate.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)

    def test_self_signed_key_mismatch(self, builder):
        request = CertificateRequest(subject="mismatch", key_pair=generate_key_pair())

        with pytest.raises(SigningFailure):
            builder.issue(request, generate_key_pair())

    def test_rsa_self_signed(self, builder):
        key_pair = generate_key_pair("rsa", 2048)
        request = CertificateRequest(subject="rsa-device", key_pair=key_pair, hash_algorithm="sha384")

        cert = builder.issue(request, key_pair).certificate

        assert cert.signature_hash_algorithm.name == "sha384"
        usage = cert.extensions.get_extension_for_class(x509.KeyUsage).value
        assert usage.key_encipherment


class TestChainedIssuance:
    """Test certificates signed by a CA."""

    def test_chain_ordering(self, root_ca, intermediate_ca, device):
        assert intermediate_ca.chain == (root_ca.certificate,)
        assert device.chain == (intermediate_ca.certificate, root_ca.certificate)
        assert device.certificate.issuer == intermediate_ca.certificate.subject
        assert verify_signature(device.certificate, intermediate_ca.certificate.public_key())

    def test_device_extensions(self, device):
        cert = device.certificate

        cn = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        assert cn == "device-01"

        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        assert san.get_values_for_type(x509.DNSName) == ["device-01"]

        eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
        assert ExtendedKeyUsageOID.CLIENT_AUTH in eku

        cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
        cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)

    def test_device_does_not_outlive_issuer(self, device, intermediate_ca):
        assert device.certificate.not_valid_after_utc <= intermediate_ca.certificate.not_valid_after_utc

    def test_revocation_urls(self, builder, intermediate_ca):
        bundle = issue_device_certificate(
            builder,
            intermediate_ca,
            generate_key_pair(),
            "device-ocsp",
            ocsp_url="http://ocsp.example.com",
            crl_url="http://crl.example.com/ca.crl",
        )

        assert ocsp_urls(bundle.certificate) == ["http://ocsp.example.com"]
        assert crl_urls(bundle.certificate) == ["http://crl.example.com/ca.crl"]

    def test_serials_unique_per_issuer(self, builder, intermediate_ca):
        serials = {
            issue_device_certificate(builder, intermediate_ca, generate_key_pair(), f"dev-{i}").certificate.serial_number
            for i in range(20)
        }
        assert len(serials) == 20
        assert all(0 < serial < 2 ** 159 for serial in serials)

    def test_timestamps_truncated_to_seconds(self, builder, root_ca):
        start = _now().replace(microsecond=123456)
        request = CertificateRequest(
            subject="truncated",
            key_pair=generate_key_pair(),
            not_before=start,
            not_after=start + datetime.timedelta(days=1),
        )

        cert = builder.issue(request, root_ca.key_pair, root_ca.certificate).certificate

        assert cert.not_valid_before_utc == start.replace(microsecond=0)

    def test_public_key_only_request(self, builder, root_ca):
        key_pair = generate_key_pair()
        request = CertificateRequest(subject="remote-key", public_key=key_pair.public_key)

        bundle = builder.issue(request, root_ca.key_pair, root_ca.certificate)

        assert bundle.key_pair is None
        assert not bundle.has_private_key
        assert key_pair.matches(bundle.certificate.public_key())


class TestIssuerChecks:
    """Test issuer validation."""

    def test_issuer_key_mismatch(self, builder, root_ca):
        request = CertificateRequest(subject="leaf", key_pair=generate_key_pair())

        with pytest.raises(SigningFailure):
            builder.issue(request, generate_key_pair(), root_ca.certificate)

    def test_non_ca_issuer(self, builder, device):
        request = CertificateRequest(subject="leaf", key_pair=generate_key_pair())

        with pytest.raises(InvalidRequest):
            builder.issue(request, device.key_pair, device.certificate)

    def test_expired_issuer(self, builder, root_ca):
        request = CertificateRequest(subject="leaf", key_pair=generate_key_pair())
        later = root_ca.certificate.not_valid_after_utc + datetime.timedelta(days=1)

        with pytest.raises(ExpiredIssuer):
            builder.issue(request, root_ca.key_pair, root_ca.certificate, issued_at=later)

    def test_request_outlives_issuer(self, builder, root_ca):
        request = CertificateRequest(
            subject="leaf",
            key_pair=generate_key_pair(),
            not_after=root_ca.certificate.not_valid_after_utc + datetime.timedelta(days=1),
        )

        with pytest.raises(InvalidRequest):
            builder.issue(request, root_ca.key_pair, root_ca.certificate)

    def test_disposed_issuer_key(self, builder, root_ca):
        request = CertificateRequest(subject="leaf", key_pair=generate_key_pair())
        root_ca.key_pair.dispose()

        with pytest.raises(SigningFailure):
            builder.issue(request, root_ca.key_pair, root_ca.certificate)


class TestRequestValidation:
    """Test CertificateRequest construction."""

    def test_start_after_end(self):
        now = _now()
        with pytest.raises(InvalidRequest):
            CertificateRequest(
                subject="bad",
                key_pair=generate_key_pair(),
                not_before=now,
                not_after=now - datetime.timedelta(seconds=1),
            )

    @pytest.mark.parametrize("subject", ["", "   ", x509.Name([])])
    def test_empty_subject(self, subject):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject=subject, key_pair=generate_key_pair())

    def test_malformed_rfc4514_subject(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="CN=ok,FOO=bar", key_pair=generate_key_pair())

    def test_missing_key(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="no-key")

    def test_path_length_requires_ca(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="leaf", key_pair=generate_key_pair(), path_length=0)

    def test_unknown_key_usage(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="leaf", key_pair=generate_key_pair(), key_usage={"fly"})

    def test_invalid_alt_name(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="leaf", key_pair=generate_key_pair(), subject_alt_names=("bad name!",))

    def test_ip_alt_name(self):
        request = CertificateRequest(
            subject="leaf",
            key_pair=generate_key_pair(),
            subject_alt_names=("10.0.0.7", "Device.Example.com"),
        )
        values = [name.value for name in request.general_names]
        assert str(values[0]) == "10.0.0.7"
        assert values[1] == "device.example.com"

    def test_unknown_hash(self):
        with pytest.raises(InvalidRequest):
            CertificateRequest(subject="leaf", key_pair=generate_key_pair(), hash_algorithm="md5")


class TestBundle:
    """Test CertificateBundle behavior."""

    def test_key_must_match_certificate(self, device):
        with pytest.raises(InvalidRequest):
            CertificateBundle(certificate=device.certificate, key_pair=generate_key_pair())

    def test_public_only(self, device):
        public = device.public_only()

        assert public.key_pair is None
        assert public.chain == device.chain
        assert public.fingerprint == fingerprint(device.certificate)
        assert device.has_private_key

    def test_dispose(self, device):
        device.dispose()
        assert not device.has_private_key
