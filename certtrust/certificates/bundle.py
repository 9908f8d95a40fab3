# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
CertificateBundle: the exportable unit of identity material.
"""

from dataclasses import dataclass, replace
from typing import Optional

from cryptography import x509

from ..crypto.keys import KeyPair
from ..errors import InvalidRequest
from .parser import fingerprint


@dataclass(frozen=True)
class CertificateBundle:
    """
    Certificate plus optional private key and intermediate chain.

    Attributes:
        certificate: Leaf certificate
        key_pair: Owned key pair (None for public-only bundles)
        chain: Issuer certificates ordered from the leaf's issuer upwards
    """

    certificate: x509.Certificate
    key_pair: Optional[KeyPair] = None
    chain: tuple = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "chain", tuple(self.chain))
        if self.key_pair is not None and not self.key_pair.matches(self.certificate.public_key()):
            raise InvalidRequest("Bundle key pair does not match the certificate public key")

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.certificate)

    @property
    def has_private_key(self) -> bool:
        return self.key_pair is not None and not self.key_pair.disposed

    def public_only(self) -> "CertificateBundle":
        """Copy of this bundle without the private key."""
        return replace(self, key_pair=None)

    def dispose(self) -> None:
        if self.key_pair is not None:
            self.key_pair.dispose()
