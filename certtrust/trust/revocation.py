# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Revocation collaborators (OCSP and CRL).

A revocation checker answers check(certificate, issuer, timeout) with
GOOD, REVOKED or UNKNOWN. Network failures are retried with exponential
backoff inside the timeout and then raised as RevocationLookupError; the
validator decides what that means under soft-fail or hard-fail policy.
"""

import datetime
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol

import httpx
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.x509 import ocsp
from cryptography.x509.oid import ExtendedKeyUsageOID, SignatureAlgorithmOID

from ..certificates.parser import crl_urls, describe, is_within_validity, ocsp_urls, verify_signature
from ..config import settings
from ..errors import RevocationLookupError

logger = logging.getLogger(__name__)


class RevocationStatus(str, Enum):
    """Revocation state of a certificate."""

    GOOD = "good"
    REVOKED = "revoked"
    UNKNOWN = "unknown"


class RevocationChecker(Protocol):
    """Capability consulted by ChainValidator for each non-anchor certificate."""

    def check(
        self,
        certificate: x509.Certificate,
        issuer: Optional[x509.Certificate],
        timeout: float,
    ) -> RevocationStatus:
        ...


class StaticRevocationList:
    """
    In-memory revocation list keyed by (issuer name, serial).

    Useful offline and for pinning known-bad device certificates.
    """

    def __init__(self):
        self._revoked: set[tuple[bytes, int]] = set()
        self._lock = threading.Lock()

    def revoke(self, certificate: x509.Certificate) -> None:
        with self._lock:
            self._revoked = self._revoked | {(certificate.issuer.public_bytes(), certificate.serial_number)}
        logger.info(f"Revoked locally: {describe(certificate)} serial={certificate.serial_number:x}")

    def check(
        self,
        certificate: x509.Certificate,
        issuer: Optional[x509.Certificate],
        timeout: float,
    ) -> RevocationStatus:
        key = (certificate.issuer.public_bytes(), certificate.serial_number)
        return RevocationStatus.REVOKED if key in self._revoked else RevocationStatus.GOOD


class _HttpRevocationChecker:
    """Shared HTTP fetch with bounded retry/backoff."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize checker.

        Args:
            client: httpx client (a private one is created when omitted)
            max_retries: Retries after the first attempt (defaults to config)
            backoff_seconds: First backoff delay, doubled per retry (defaults to config)
            sleep: Sleep function (injectable for tests)
        """
        self._client = client or httpx.Client(follow_redirects=True)
        self._owns_client = client is None
        self.max_retries = settings.revocation_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.revocation_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fetch(self, method: str, url: str, timeout: float, **kwargs) -> bytes:
        """
        Fetch url, retrying transient failures until retries or time run out.

        Raises:
            RevocationLookupError: If no successful response was obtained
        """
        deadline = time.monotonic() + timeout
        attempt = 0

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RevocationLookupError(f"Revocation lookup timed out after {timeout}s", url)

            try:
                response = self._client.request(method, url, timeout=remaining, **kwargs)
                response.raise_for_status()
                return response.content

            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    raise RevocationLookupError(
                        f"Revocation endpoint returned HTTP {e.response.status_code}", url
                    ) from e
                error = e

            except httpx.TransportError as e:
                error = e

            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise RevocationLookupError(f"Revocation lookup failed: {e}", url) from e

            attempt += 1
            if attempt > self.max_retries:
                raise RevocationLookupError(
                    f"Revocation lookup failed after {attempt} attempt(s): {error}", url
                ) from error

            delay = min(self.backoff_seconds * 2 ** (attempt - 1), deadline - time.monotonic())
            logger.warning(f"Revocation lookup to {url} failed ({error}); retry {attempt} in {delay:.2f}s")
            if delay > 0:
                self._sleep(delay)


class OCSPRevocationChecker(_HttpRevocationChecker):
    """Query the OCSP responder named in the certificate's AIA extension."""

    def check(
        self,
        certificate: x509.Certificate,
        issuer: Optional[x509.Certificate],
        timeout: float,
    ) -> RevocationStatus:
        urls = ocsp_urls(certificate)
        if not urls:
            logger.debug(f"No OCSP responder for {describe(certificate)}")
            return RevocationStatus.UNKNOWN
        if issuer is None:
            return RevocationStatus.UNKNOWN

        request = (
            ocsp.OCSPRequestBuilder()
            .add_certificate(certificate, issuer, hashes.SHA1())
            .build()
        )

        body = self._fetch(
            "POST",
            urls[0],
            timeout,
            content=request.public_bytes(serialization.Encoding.DER),
            headers={"Content-Type": "application/ocsp-request"},
        )

        try:
            response = ocsp.load_der_ocsp_response(body)
        except ValueError as e:
            raise RevocationLookupError(f"Malformed OCSP response: {e}", urls[0]) from e

        if response.response_status != ocsp.OCSPResponseStatus.SUCCESSFUL:
            logger.warning(f"OCSP responder status {response.response_status.name} for {describe(certificate)}")
            return RevocationStatus.UNKNOWN

        try:
            serial_number = response.serial_number
        except ValueError as e:
            logger.warning(f"Unusable OCSP response for {describe(certificate)}: {e}")
            return RevocationStatus.UNKNOWN

        if serial_number != certificate.serial_number:
            logger.warning(f"OCSP response serial mismatch for {describe(certificate)}")
            return RevocationStatus.UNKNOWN

        if not self._verify_response(response, issuer):
            logger.warning(f"OCSP response signature invalid for {describe(certificate)}")
            return RevocationStatus.UNKNOWN

        next_update = response.next_update_utc
        if next_update is not None and next_update < datetime.datetime.now(datetime.timezone.utc):
            logger.warning(f"Stale OCSP response for {describe(certificate)}")
            return RevocationStatus.UNKNOWN

        if response.certificate_status == ocsp.OCSPCertStatus.GOOD:
            return RevocationStatus.GOOD
        if response.certificate_status == ocsp.OCSPCertStatus.REVOKED:
            logger.info(f"OCSP reports {describe(certificate)} revoked at {response.revocation_time_utc}")
            return RevocationStatus.REVOKED
        return RevocationStatus.UNKNOWN

    def _verify_response(self, response: ocsp.OCSPResponse, issuer: x509.Certificate) -> bool:
        """Verify the response was signed by the issuer or its delegated responder."""
        now = datetime.datetime.now(datetime.timezone.utc)
        responder = issuer
        for candidate in response.certificates:
            if candidate == issuer:
                continue
            if not is_within_validity(candidate, now):
                logger.debug(f"Skipping OCSP delegate outside its validity window: {describe(candidate)}")
                continue
            if candidate.issuer != issuer.subject or not verify_signature(candidate, issuer.public_key()):
                continue
            try:
                eku = candidate.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
            except x509.ExtensionNotFound:
                continue
            if ExtendedKeyUsageOID.OCSP_SIGNING in eku:
                responder = candidate
                break

        return _verify_raw(
            responder.public_key(),
            response.signature,
            response.tbs_response_bytes,
            response.signature_hash_algorithm,
            response.signature_algorithm_oid,
        )


class CRLRevocationChecker(_HttpRevocationChecker):
    """Download and cache CRLs from the certificate's distribution points."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._cache: dict[str, x509.CertificateRevocationList] = {}
        self._cache_lock = threading.Lock()

    def check(
        self,
        certificate: x509.Certificate,
        issuer: Optional[x509.Certificate],
        timeout: float,
    ) -> RevocationStatus:
        urls = crl_urls(certificate)
        if not urls:
            logger.debug(f"No CRL distribution point for {describe(certificate)}")
            return RevocationStatus.UNKNOWN
        if issuer is None:
            return RevocationStatus.UNKNOWN

        crl = self._get_crl(urls[0], issuer, timeout)
        if crl is None:
            return RevocationStatus.UNKNOWN

        if crl.get_revoked_certificate_by_serial_number(certificate.serial_number) is not None:
            logger.info(f"CRL lists {describe(certificate)} as revoked")
            return RevocationStatus.REVOKED
        return RevocationStatus.GOOD

    def _get_crl(
        self,
        url: str,
        issuer: x509.Certificate,
        timeout: float,
    ) -> Optional[x509.CertificateRevocationList]:
        now = datetime.datetime.now(datetime.timezone.utc)

        with self._cache_lock:
            cached = self._cache.get(url)
        if cached is not None and cached.next_update_utc is not None and cached.next_update_utc > now:
            return cached

        data = self._fetch("GET", url, timeout)
        try:
            if b"-----BEGIN X509 CRL-----" in data:
                crl = x509.load_pem_x509_crl(data)
            else:
                crl = x509.load_der_x509_crl(data)
        except ValueError as e:
            raise RevocationLookupError(f"Malformed CRL: {e}", url) from e

        if crl.issuer != issuer.subject or not crl.is_signature_valid(issuer.public_key()):
            logger.warning(f"CRL from {url} is not signed by {describe(issuer)}")
            return None

        if crl.next_update_utc is not None and crl.next_update_utc < now:
            logger.warning(f"CRL from {url} is stale (next update {crl.next_update_utc})")
            return None

        with self._cache_lock:
            self._cache[url] = crl
        return crl


def _verify_raw(public_key, signature: bytes, data: bytes, hash_algorithm, signature_algorithm_oid=None) -> bool:
    """Verify a detached signature made by public_key."""
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            if signature_algorithm_oid == SignatureAlgorithmOID.RSASSA_PSS:
                rsa_padding = padding.PSS(mgf=padding.MGF1(hash_algorithm), salt_length=padding.PSS.AUTO)
            else:
                rsa_padding = padding.PKCS1v15()
            public_key.verify(signature, data, rsa_padding, hash_algorithm)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, data, ec.ECDSA(hash_algorithm))
        elif isinstance(public_key, ed25519.Ed25519PublicKey):
            public_key.verify(signature, data)
        else:
            return False
        return True
    except InvalidSignature:
        return False
    except (TypeError, ValueError):
        return False
