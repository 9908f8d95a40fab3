# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Certificate request type consumed by CertificateBuilder.
"""

import datetime
import ipaddress
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..config import settings
from ..crypto.keys import KeyPair, PublicKey
from ..errors import InvalidRequest
from .parser import as_utc

KEY_USAGE_FLAGS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
)

EXTENDED_KEY_USAGES = {
    "server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "code_signing": ExtendedKeyUsageOID.CODE_SIGNING,
    "email_protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "time_stamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "ocsp_signing": ExtendedKeyUsageOID.OCSP_SIGNING,
}

HASH_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

# DNS label characters plus a leading wildcard label
DNS_NAME_PATTERN = re.compile(r"^(\*\.)?[A-Za-z0-9_]([A-Za-z0-9_-]{0,62})(\.[A-Za-z0-9_-]{1,63})*\.?$")


def _utc_seconds(moment: datetime.datetime) -> datetime.datetime:
    # X.509 times carry whole seconds only
    return as_utc(moment).replace(microsecond=0)


@dataclass(frozen=True)
class CertificateRequest:
    """
    Immutable request for a new certificate.

    Attributes:
        subject: x509.Name, an RFC 4514 string ("CN=device-01,O=Acme") or a
            bare common name
        key_pair: Subject key pair (packaged into the issued bundle)
        public_key: Subject public key when the private key stays elsewhere
        not_before: Validity start (default: now)
        not_after: Validity end (default: start + validity days from settings)
        is_ca: BasicConstraints CA flag
        path_length: BasicConstraints path length (CA only)
        key_usage: KeyUsage flag names (defaults depend on is_ca and key type)
        extended_key_usage: EKU names ("server_auth", "client_auth", ...)
        subject_alt_names: DNS names and IP addresses
        ocsp_url: OCSP responder for AuthorityInformationAccess
        crl_url: CRL distribution point
        hash_algorithm: "sha256", "sha384" or "sha512" (ignored for Ed25519)
    """

    subject: Union[x509.Name, str]
    key_pair: Optional[KeyPair] = None
    public_key: Optional[PublicKey] = None
    not_before: Optional[datetime.datetime] = None
    not_after: Optional[datetime.datetime] = None
    is_ca: bool = False
    path_length: Optional[int] = None
    key_usage: Optional[frozenset] = None
    extended_key_usage: tuple = ()
    subject_alt_names: tuple = ()
    ocsp_url: Optional[str] = None
    crl_url: Optional[str] = None
    hash_algorithm: str = "sha256"
    _alt_names: tuple = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        set_ = object.__setattr__

        set_(self, "subject", self._parse_subject(self.subject))

        # Public key reference
        if self.key_pair is None and self.public_key is None:
            raise InvalidRequest("Request needs a key_pair or a public_key")
        if self.key_pair is not None:
            if self.public_key is not None and not self.key_pair.matches(self.public_key):
                raise InvalidRequest("public_key does not belong to key_pair")
            set_(self, "public_key", self.key_pair.public_key)

        # Validity window
        not_before = _utc_seconds(self.not_before or datetime.datetime.now(datetime.timezone.utc))
        if self.not_after is None:
            days = settings.ca_validity_days if self.is_ca else settings.default_validity_days
            not_after = not_before + datetime.timedelta(days=days)
        else:
            not_after = _utc_seconds(self.not_after)
        if not_before >= not_after:
            raise InvalidRequest(f"Validity start {not_before} must precede end {not_after}")
        set_(self, "not_before", not_before)
        set_(self, "not_after", not_after)

        # Basic constraints
        if self.path_length is not None:
            if not self.is_ca:
                raise InvalidRequest("path_length is only allowed on CA requests")
            if self.path_length < 0:
                raise InvalidRequest(f"Invalid path_length: {self.path_length}")

        # Key usage
        if self.key_usage is not None:
            usage = frozenset(self.key_usage)
            unknown = sorted(usage - set(KEY_USAGE_FLAGS))
            if unknown:
                raise InvalidRequest(f"Unknown key usage flags: {unknown}")
            if not usage:
                raise InvalidRequest("key_usage must name at least one flag")
            set_(self, "key_usage", usage)

        eku = tuple(self.extended_key_usage)
        unknown = [name for name in eku if name not in EXTENDED_KEY_USAGES]
        if unknown:
            raise InvalidRequest(f"Unknown extended key usages: {unknown}")
        set_(self, "extended_key_usage", eku)

        set_(self, "subject_alt_names", tuple(self.subject_alt_names))
        set_(self, "_alt_names", tuple(self._parse_alt_name(n) for n in self.subject_alt_names))

        for url in (self.ocsp_url, self.crl_url):
            if url is not None and not url.startswith(("http://", "https://")):
                raise InvalidRequest(f"Invalid URL: {url}")

        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise InvalidRequest(f"Unsupported hash algorithm: {self.hash_algorithm}")

    @staticmethod
    def _parse_subject(subject: Union[x509.Name, str]) -> x509.Name:
        if isinstance(subject, str):
            text = subject.strip()
            if not text:
                raise InvalidRequest("Subject name is empty")
            if "=" in text:
                try:
                    subject = x509.Name.from_rfc4514_string(text)
                except ValueError as e:
                    raise InvalidRequest(f"Malformed subject '{text}': {e}") from e
            else:
                try:
                    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, text)])
                except ValueError as e:
                    raise InvalidRequest(f"Malformed common name '{text}': {e}") from e

        if not isinstance(subject, x509.Name):
            raise InvalidRequest(f"Subject must be a name, got {type(subject).__name__}")
        if len(subject) == 0:
            raise InvalidRequest("Subject name is empty")
        for attribute in subject:
            if isinstance(attribute.value, str) and not attribute.value.strip():
                raise InvalidRequest(f"Subject attribute {attribute.oid.dotted_string} is blank")
        return subject

    @staticmethod
    def _parse_alt_name(name: str) -> x509.GeneralName:
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequest(f"Invalid subject alternative name: {name!r}")
        try:
            return x509.IPAddress(ipaddress.ip_address(name))
        except ValueError:
            pass
        if not DNS_NAME_PATTERN.match(name):
            raise InvalidRequest(f"Invalid DNS subject alternative name: {name!r}")
        return x509.DNSName(name.lower())

    @property
    def general_names(self) -> tuple:
        """Subject alternative names as x509 GeneralName values."""
        return self._alt_names

    @property
    def signature_hash(self) -> hashes.HashAlgorithm:
        return HASH_ALGORITHMS[self.hash_algorithm]()
