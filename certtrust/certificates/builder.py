# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Certificate issuance: self-signed roots, intermediate CAs and device leaves.
"""

import datetime
import logging
import threading
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa
from cryptography.x509.oid import AuthorityInformationAccessOID

from ..config import settings
from ..crypto.keys import KeyPair
from ..errors import ExpiredIssuer, InvalidRequest, KeyDisposedError, SigningFailure
from .bundle import CertificateBundle
from .parser import as_utc, describe, is_ca, is_within_validity, key_usage
from .request import EXTENDED_KEY_USAGES, CertificateRequest

logger = logging.getLogger(__name__)

SERIAL_RETRIES = 8


class CertificateBuilder:
    """
    Issue X.509 certificates from CertificateRequests.

    Serial numbers are random 159-bit integers. The builder remembers every
    serial it issued per issuer and never hands out the same one twice.
    """

    def __init__(self):
        self._issued_serials: dict[bytes, set[int]] = {}
        self._lock = threading.Lock()

    def issue(
        self,
        request: CertificateRequest,
        issuer_key_pair: KeyPair,
        issuer_certificate: Optional[x509.Certificate] = None,
        *,
        issuer_chain: tuple = (),
        issued_at: Optional[datetime.datetime] = None,
    ) -> CertificateBundle:
        """
        Issue a certificate.

        Args:
            request: Certificate request (subject, key, validity, extensions)
            issuer_key_pair: Key pair that signs the certificate
            issuer_certificate: Issuer certificate, or None for self-signed
            issuer_chain: Issuer's own chain, appended to the bundle chain
            issued_at: Issuance time used for issuer checks (default: now)

        Returns:
            CertificateBundle with the new certificate, the request's key pair
            (if any) and the issuer chain

        Raises:
            InvalidRequest: Malformed request or issuer not allowed to sign it
            ExpiredIssuer: Issuer certificate not valid at issuance time
            SigningFailure: Issuer key does not match or cannot sign
        """
        issued_at = as_utc(issued_at or datetime.datetime.now(datetime.timezone.utc))

        if issuer_key_pair is None:
            raise SigningFailure("An issuer key pair is required to sign")
        try:
            issuer_private_key = issuer_key_pair.private_key
        except KeyDisposedError as e:
            raise SigningFailure("Issuer private key has been disposed") from e

        if issuer_certificate is None:
            # Self-signed: the request key must be the signing key
            if not issuer_key_pair.matches(request.public_key):
                raise SigningFailure("Self-signed request key does not match the signing key")
            issuer_name = request.subject
            issuer_public_key = issuer_key_pair.public_key
        else:
            self._check_issuer(request, issuer_key_pair, issuer_certificate, issued_at)
            issuer_name = issuer_certificate.subject
            issuer_public_key = issuer_certificate.public_key()

        serial = self._next_serial(issuer_name, issuer_key_pair)

        builder = (
            x509.CertificateBuilder()
            .subject_name(request.subject)
            .issuer_name(issuer_name)
            .public_key(request.public_key)
            .serial_number(serial)
            .not_valid_before(request.not_before)
            .not_valid_after(request.not_after)
        )
        builder = self._add_extensions(builder, request, issuer_public_key)

        if isinstance(issuer_private_key, ed25519.Ed25519PrivateKey):
            algorithm = None
        else:
            algorithm = request.signature_hash

        try:
            certificate = builder.sign(issuer_private_key, algorithm)
        except (TypeError, ValueError) as e:
            raise SigningFailure(f"Signing failed: {e}") from e

        logger.info(
            f"Issued certificate: subject={describe(certificate)}, "
            f"issuer={certificate.issuer.rfc4514_string()}, serial={serial:x}, ca={request.is_ca}"
        )

        chain = ()
        if issuer_certificate is not None:
            chain = (issuer_certificate,) + tuple(issuer_chain)

        return CertificateBundle(certificate=certificate, key_pair=request.key_pair, chain=chain)

    def _check_issuer(
        self,
        request: CertificateRequest,
        issuer_key_pair: KeyPair,
        issuer_certificate: x509.Certificate,
        issued_at: datetime.datetime,
    ) -> None:
        """Validate the issuer against the request."""
        if not issuer_key_pair.matches(issuer_certificate.public_key()):
            raise SigningFailure(
                f"Issuer key does not match certificate {describe(issuer_certificate)}"
            )

        if not is_within_validity(issuer_certificate, issued_at):
            raise ExpiredIssuer(
                f"Issuer {describe(issuer_certificate)} is not valid at {issued_at} "
                f"(valid {issuer_certificate.not_valid_before_utc} to "
                f"{issuer_certificate.not_valid_after_utc})"
            )

        if not is_ca(issuer_certificate):
            raise InvalidRequest(f"Issuer {describe(issuer_certificate)} is not a CA")

        usage = key_usage(issuer_certificate)
        if usage is not None and not usage.key_cert_sign:
            raise InvalidRequest(f"Issuer {describe(issuer_certificate)} may not sign certificates")

        if request.not_after > issuer_certificate.not_valid_after_utc:
            raise InvalidRequest(
                f"Requested end {request.not_after} exceeds issuer validity "
                f"{issuer_certificate.not_valid_after_utc}"
            )
        if request.not_before < issuer_certificate.not_valid_before_utc:
            raise InvalidRequest(
                f"Requested start {request.not_before} precedes issuer validity "
                f"{issuer_certificate.not_valid_before_utc}"
            )

    def _next_serial(self, issuer_name: x509.Name, issuer_key_pair: KeyPair) -> int:
        """Draw a random serial that this issuer has not used yet."""
        issuer_id = issuer_name.public_bytes() + issuer_key_pair.public_key_bytes
        with self._lock:
            used = self._issued_serials.setdefault(issuer_id, set())
            for _ in range(SERIAL_RETRIES):
                serial = x509.random_serial_number()
                if serial not in used:
                    used.add(serial)
                    return serial
        raise SigningFailure("Could not allocate a unique serial number")

    def _add_extensions(
        self,
        builder: x509.CertificateBuilder,
        request: CertificateRequest,
        issuer_public_key,
    ) -> x509.CertificateBuilder:
        """Add standard extensions to builder."""
        builder = builder.add_extension(
            x509.BasicConstraints(ca=request.is_ca, path_length=request.path_length),
            critical=True,
        )

        builder = builder.add_extension(self._key_usage(request), critical=True)

        builder = builder.add_extension(
            x509.SubjectKeyIdentifier.from_public_key(request.public_key),
            critical=False,
        )

        if not self._same_key(issuer_public_key, request.public_key):
            builder = builder.add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key),
                critical=False,
            )

        if request.general_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName(list(request.general_names)),
                critical=False,
            )

        if request.extended_key_usage:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage([EXTENDED_KEY_USAGES[name] for name in request.extended_key_usage]),
                critical=False,
            )

        if request.ocsp_url:
            builder = builder.add_extension(
                x509.AuthorityInformationAccess([
                    x509.AccessDescription(
                        AuthorityInformationAccessOID.OCSP,
                        x509.UniformResourceIdentifier(request.ocsp_url),
                    )
                ]),
                critical=False,
            )

        if request.crl_url:
            builder = builder.add_extension(
                x509.CRLDistributionPoints([
                    x509.DistributionPoint(
                        full_name=[x509.UniformResourceIdentifier(request.crl_url)],
                        relative_name=None,
                        reasons=None,
                        crl_issuer=None,
                    )
                ]),
                critical=False,
            )

        return builder

    @staticmethod
    def _key_usage(request: CertificateRequest) -> x509.KeyUsage:
        if request.key_usage is not None:
            flags = request.key_usage
        elif request.is_ca:
            flags = {"digital_signature", "key_cert_sign", "crl_sign"}
        elif isinstance(request.public_key, rsa.RSAPublicKey):
            flags = {"digital_signature", "key_encipherment"}
        else:
            flags = {"digital_signature"}

        return x509.KeyUsage(
            digital_signature="digital_signature" in flags,
            content_commitment="content_commitment" in flags,
            key_encipherment="key_encipherment" in flags,
            data_encipherment="data_encipherment" in flags,
            key_agreement="key_agreement" in flags,
            key_cert_sign="key_cert_sign" in flags,
            crl_sign="crl_sign" in flags,
            encipher_only=False,
            decipher_only=False,
        )

    @staticmethod
    def _same_key(first, second) -> bool:
        spki = serialization.PublicFormat.SubjectPublicKeyInfo
        der = serialization.Encoding.DER
        return first.public_bytes(der, spki) == second.public_bytes(der, spki)


def issue_root_ca(
    builder: CertificateBuilder,
    key_pair: KeyPair,
    common_name: str = "certtrust Root CA",
    *,
    path_length: Optional[int] = None,
    validity_days: Optional[int] = None,
) -> CertificateBundle:
    """Issue a self-signed root CA certificate."""
    not_after = None
    if validity_days is not None:
        not_after = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=validity_days)
    request = CertificateRequest(
        subject=common_name,
        key_pair=key_pair,
        is_ca=True,
        path_length=path_length,
        not_after=not_after,
    )
    return builder.issue(request, key_pair)


def issue_intermediate_ca(
    builder: CertificateBuilder,
    issuer: CertificateBundle,
    key_pair: KeyPair,
    common_name: str = "certtrust Intermediate CA",
    *,
    path_length: Optional[int] = 0,
    validity_days: Optional[int] = None,
) -> CertificateBundle:
    """Issue an intermediate CA signed by issuer (which must carry its key)."""
    issuer_end = issuer.certificate.not_valid_after_utc
    if validity_days is None:
        not_after = issuer_end
    else:
        not_after = min(
            issuer_end,
            datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=validity_days),
        )
    request = CertificateRequest(
        subject=common_name,
        key_pair=key_pair,
        is_ca=True,
        path_length=path_length,
        not_after=not_after,
    )
    return builder.issue(request, issuer.key_pair, issuer.certificate, issuer_chain=issuer.chain)


def issue_device_certificate(
    builder: CertificateBuilder,
    issuer: CertificateBundle,
    key_pair: KeyPair,
    device_id: str,
    *,
    subject_alt_names: tuple = (),
    extended_key_usage: tuple = ("client_auth",),
    validity_days: Optional[int] = None,
    ocsp_url: Optional[str] = None,
    crl_url: Optional[str] = None,
) -> CertificateBundle:
    """
    Issue a device (leaf) certificate for enrollment.

    The device id becomes the common name and, unless other names are given,
    the single DNS subject alternative name.
    """
    days = settings.default_validity_days if validity_days is None else validity_days
    # Never outlive the issuer
    not_after = min(
        issuer.certificate.not_valid_after_utc,
        datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=days),
    )
    request = CertificateRequest(
        subject=device_id,
        key_pair=key_pair,
        subject_alt_names=subject_alt_names or (device_id,),
        extended_key_usage=extended_key_usage,
        not_after=not_after,
        ocsp_url=ocsp_url,
        crl_url=crl_url,
    )
    return builder.issue(request, issuer.key_pair, issuer.certificate, issuer_chain=issuer.chain)
