# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Import/export of certificates and bundles.

Formats:
    DER / PEM: certificate only, never key bytes
    PKCS#12: certificate + chain + private key encrypted under a passphrase
"""

import logging
from typing import Literal, Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..certificates.bundle import CertificateBundle
from ..certificates.parser import load_certificate, to_der, to_pem
from ..crypto.keys import KeyPair
from ..errors import (
    DecryptionFailure,
    EmptyPassphrase,
    MalformedEncoding,
    UnsupportedAlgorithm,
)

logger = logging.getLogger(__name__)

Passphrase = Union[str, bytes]


def _passphrase_bytes(passphrase: Optional[Passphrase]) -> bytes:
    if passphrase is None:
        raise EmptyPassphrase("A passphrase is required")
    data = passphrase.encode("utf-8") if isinstance(passphrase, str) else bytes(passphrase)
    if not data:
        raise EmptyPassphrase("Passphrase must not be empty")
    return data


def export_public(bundle: CertificateBundle, encoding: Literal["der", "pem"] = "der") -> bytes:
    """
    Encode the bundle's certificate only.

    Args:
        bundle: Bundle to export (its key, if any, is ignored)
        encoding: "der" (default) or "pem"

    Returns:
        Encoded certificate bytes
    """
    if encoding == "der":
        return to_der(bundle.certificate)
    if encoding == "pem":
        return to_pem(bundle.certificate)
    raise MalformedEncoding(f"Unsupported encoding: {encoding}")


def export_pem_chain(bundle: CertificateBundle) -> bytes:
    """PEM leaf followed by the chain. No key material."""
    return b"".join(to_pem(cert) for cert in (bundle.certificate,) + bundle.chain)


def export_bundle(
    bundle: CertificateBundle,
    passphrase: Passphrase,
    *,
    friendly_name: Optional[str] = None,
) -> bytes:
    """
    Encode certificate, chain and encrypted private key as PKCS#12.

    Raises:
        EmptyPassphrase: If passphrase is empty
    """
    password = _passphrase_bytes(passphrase)
    key = bundle.key_pair.private_key if bundle.has_private_key else None
    name = friendly_name.encode("utf-8") if friendly_name else None

    return pkcs12.serialize_key_and_certificates(
        name=name,
        key=key,
        cert=bundle.certificate,
        cas=list(bundle.chain) or None,
        encryption_algorithm=serialization.BestAvailableEncryption(password),
    )


def import_public(data: bytes) -> x509.Certificate:
    """
    Decode a DER or PEM certificate.

    Raises:
        MalformedEncoding: On corrupt input
    """
    return load_certificate(data)


def import_pem_chain(data: bytes) -> list[x509.Certificate]:
    """Decode every certificate in a PEM blob, in order."""
    try:
        certificates = x509.load_pem_x509_certificates(bytes(data))
    except ValueError as e:
        raise MalformedEncoding(f"Failed to parse PEM chain: {e}") from e
    return certificates


def import_bundle(data: bytes, passphrase: Passphrase) -> CertificateBundle:
    """
    Decode a PKCS#12 archive.

    Raises:
        MalformedEncoding: If data is not a PKCS#12 archive
        DecryptionFailure: If the passphrase is wrong
        EmptyPassphrase: If passphrase is empty
    """
    password = _passphrase_bytes(passphrase)
    if not _looks_like_pkcs12(data):
        raise MalformedEncoding("Data is not a PKCS#12 archive")

    try:
        key, certificate, additional = pkcs12.load_key_and_certificates(bytes(data), password)
    except ValueError as e:
        # Structure was sane, so a failure here is the MAC / key decryption
        raise DecryptionFailure("Could not decrypt archive (wrong passphrase?)") from e

    if certificate is None:
        raise MalformedEncoding("Archive does not contain a certificate")

    key_pair = None
    if key is not None:
        try:
            key_pair = KeyPair.from_private_key(key)
        except UnsupportedAlgorithm as e:
            raise MalformedEncoding(f"Archive key type is not supported: {e}") from e

    logger.debug(f"Imported bundle with {len(additional)} chain certificate(s)")
    return CertificateBundle(certificate=certificate, key_pair=key_pair, chain=tuple(additional))


def _looks_like_pkcs12(data: bytes) -> bool:
    """
    Check the outer DER structure: SEQUENCE spanning the whole input,
    starting with INTEGER version 3.
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) < 8 or data[0] != 0x30:
        return False

    length_byte = data[1]
    offset = 2
    if length_byte & 0x80:
        count = length_byte & 0x7F
        if count == 0 or count > 4 or len(data) < 2 + count:
            return False
        length = int.from_bytes(data[2:2 + count], "big")
        offset += count
    else:
        length = length_byte

    if offset + length != len(data):
        return False
    return data[offset:offset + 3] == b"\x02\x01\x03"
