# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Exception hierarchy for certtrust.

Failures fall into four families:
    InputError: malformed requests, encodings or parameters. Never retried.
    CryptoFailure: signing, decryption or key lifecycle failures.
    TransientIOError: network lookups (revocation) that may succeed on retry.
    NotFound: store lookups for unknown aliases.

Chain validation problems are NOT exceptions. They are reported as
violations on a ChainValidationResult (see certtrust.trust.validator).
"""


class CertTrustError(Exception):
    """Base class for all certtrust errors."""


class InputError(CertTrustError, ValueError):
    """Malformed request, parameter or encoding."""


class UnsupportedAlgorithm(InputError):
    """Key algorithm or strength parameter is not recognized."""


class WeakParameter(InputError):
    """Key strength is below the configured minimum."""


class InvalidRequest(InputError):
    """Certificate request is malformed or inconsistent with its issuer."""


class ExpiredIssuer(InputError):
    """Issuer certificate is not valid at issuance time."""


class MalformedEncoding(InputError):
    """Encoded certificate or archive could not be parsed."""


class EmptyPassphrase(InputError):
    """A passphrase is required to protect private key material."""


class InvalidAlias(InputError):
    """Store alias is empty or contains unsupported characters."""


class NotFound(CertTrustError, KeyError):
    """No entry stored under the requested alias."""

    def __init__(self, alias: str):
        super().__init__(alias)
        self.alias = alias

    def __str__(self) -> str:
        return f"No certificate stored under alias '{self.alias}'"


class CryptoFailure(CertTrustError):
    """A cryptographic operation failed."""


class SigningFailure(CryptoFailure):
    """Issuer key cannot sign the certificate (key or algorithm mismatch)."""


class DecryptionFailure(CryptoFailure):
    """Encrypted key material could not be decrypted with the passphrase."""


class KeyDisposedError(CryptoFailure):
    """Private key material was used after dispose()."""


class TransientIOError(CertTrustError):
    """External lookup failed in a way that may succeed on retry."""


class RevocationLookupError(TransientIOError):
    """OCSP/CRL endpoint could not be reached or returned garbage."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url
