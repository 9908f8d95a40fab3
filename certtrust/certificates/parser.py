# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Certificate parsing and inspection helpers.
"""

import datetime
import ipaddress
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID, NameOID

from ..errors import MalformedEncoding

PEM_MARKER = b"-----BEGIN CERTIFICATE-----"


def load_certificate(data: bytes) -> x509.Certificate:
    """
    Load a DER- or PEM-encoded certificate.

    Raises:
        MalformedEncoding: If the bytes are not a certificate
    """
    if not isinstance(data, (bytes, bytearray)) or not data:
        raise MalformedEncoding("Certificate data must be non-empty bytes")
    try:
        if PEM_MARKER in data:
            return x509.load_pem_x509_certificate(bytes(data))
        return x509.load_der_x509_certificate(bytes(data))
    except ValueError as e:
        raise MalformedEncoding(f"Failed to parse certificate: {e}") from e


def fingerprint(cert: x509.Certificate) -> str:
    """SHA-256 fingerprint of the DER encoding, lowercase hex."""
    return cert.fingerprint(hashes.SHA256()).hex()


def to_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def to_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def describe(cert: x509.Certificate) -> str:
    """Short human-readable identity for logs and reasons."""
    return cert.subject.rfc4514_string() or f"serial={cert.serial_number:x}"


def as_utc(moment: datetime.datetime) -> datetime.datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc)


def is_within_validity(cert: x509.Certificate, moment: datetime.datetime) -> bool:
    """Inclusive check of the validity window."""
    moment = as_utc(moment)
    return cert.not_valid_before_utc <= moment <= cert.not_valid_after_utc


def is_self_issued(cert: x509.Certificate) -> bool:
    return cert.issuer == cert.subject


def verify_signature(cert: x509.Certificate, issuer_public_key) -> bool:
    """
    Verify that issuer_public_key signed cert.

    Args:
        cert: Certificate whose signature is checked
        issuer_public_key: Candidate issuer's public key

    Returns:
        True if signature is valid
    """
    try:
        if isinstance(issuer_public_key, rsa.RSAPublicKey):
            issuer_public_key.verify(
                cert.signature,
                cert.tbs_certificate_bytes,
                cert.signature_algorithm_parameters,
                cert.signature_hash_algorithm,
            )
        elif isinstance(issuer_public_key, ec.EllipticCurvePublicKey):
            issuer_public_key.verify(
                cert.signature,
                cert.tbs_certificate_bytes,
                ec.ECDSA(cert.signature_hash_algorithm),
            )
        elif isinstance(issuer_public_key, ed25519.Ed25519PublicKey):
            issuer_public_key.verify(cert.signature, cert.tbs_certificate_bytes)
        else:
            # Unsupported key type
            return False
        return True
    except InvalidSignature:
        return False
    except (TypeError, ValueError, UnsupportedAlgorithm):
        # Key type does not match the signature algorithm
        return False


def basic_constraints(cert: x509.Certificate) -> Optional[x509.BasicConstraints]:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return None


def is_ca(cert: x509.Certificate) -> bool:
    constraints = basic_constraints(cert)
    return constraints is not None and constraints.ca


def key_usage(cert: x509.Certificate) -> Optional[x509.KeyUsage]:
    try:
        return cert.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return None


def common_names(cert: x509.Certificate) -> list[str]:
    return [str(attr.value) for attr in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)]


def subject_alt_names(cert: x509.Certificate) -> Optional[x509.SubjectAlternativeName]:
    try:
        return cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME).value
    except x509.ExtensionNotFound:
        return None


def dns_names(cert: x509.Certificate) -> list[str]:
    san = subject_alt_names(cert)
    return san.get_values_for_type(x509.DNSName) if san else []


def ip_addresses(cert: x509.Certificate) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    san = subject_alt_names(cert)
    return san.get_values_for_type(x509.IPAddress) if san else []


def ocsp_urls(cert: x509.Certificate) -> list[str]:
    """Extract OCSP responder URLs from AuthorityInformationAccess."""
    try:
        aia = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_INFORMATION_ACCESS).value
    except x509.ExtensionNotFound:
        return []
    return [
        desc.access_location.value
        for desc in aia
        if desc.access_method == AuthorityInformationAccessOID.OCSP
        and isinstance(desc.access_location, x509.UniformResourceIdentifier)
    ]


def crl_urls(cert: x509.Certificate) -> list[str]:
    """Extract URLs from CRLDistributionPoints."""
    try:
        cdp = cert.extensions.get_extension_for_oid(ExtensionOID.CRL_DISTRIBUTION_POINTS).value
    except x509.ExtensionNotFound:
        return []
    urls = []
    for point in cdp:
        for name in point.full_name or []:
            if isinstance(name, x509.UniformResourceIdentifier):
                urls.append(name.value)
    return urls
