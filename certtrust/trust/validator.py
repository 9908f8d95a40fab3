# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Certificate chain validation.

Builds a path from a leaf certificate to a trust anchor and checks every
link against the trust policy:
- Issuer name chaining and signatures
- Validity windows (inclusive bounds)
- CA basic constraints, key usage and path length
- Expected hostname or IP address
- Revocation status (optional, soft or hard fail)

Policy failures are reported as data on the result, never raised.
"""

import datetime
import ipaddress
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from cryptography import x509

from ..certificates.parser import (
    as_utc,
    basic_constraints,
    common_names,
    describe,
    dns_names,
    fingerprint,
    ip_addresses,
    is_self_issued,
    is_within_validity,
    key_usage,
    subject_alt_names,
    verify_signature,
)
from ..errors import TransientIOError
from .policy import HostnameMatchMode, RevocationMode, TrustPolicy
from .revocation import RevocationChecker, RevocationStatus

logger = logging.getLogger(__name__)


class ViolationCode(str, Enum):
    """Reasons a chain is not trusted."""

    NO_TRUSTED_ANCHOR = "NoTrustedAnchor"
    TIME_INVALID = "TimeInvalid"
    INVALID_BASIC_CONSTRAINTS = "InvalidBasicConstraints"
    HOSTNAME_MISMATCH = "HostnameMismatch"
    REVOKED = "Revoked"
    REVOCATION_UNKNOWN = "RevocationUnknown"
    CHAIN_TOO_LONG = "ChainTooLong"
    CHAIN_CYCLE = "ChainCycle"
    INVALID_SIGNATURE = "InvalidSignature"


class ValidationOutcome(str, Enum):
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"


@dataclass(frozen=True)
class PolicyViolation:
    """A single policy failure, tied to the certificate it concerns."""

    code: ViolationCode
    message: str
    subject: str = ""


@dataclass(frozen=True)
class ChainValidationResult:
    """
    Outcome of one validate() call.

    Attributes:
        outcome: trusted or untrusted
        chain: Certificates from leaf towards the anchor
        violations: Policy failures (empty when trusted)
        warnings: Notes on relaxations applied (expired allowed, soft-fail, ...)
    """

    outcome: ValidationOutcome
    chain: tuple[x509.Certificate, ...]
    violations: tuple[PolicyViolation, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def trusted(self) -> bool:
        return self.outcome == ValidationOutcome.TRUSTED

    @property
    def codes(self) -> set[ViolationCode]:
        return {violation.code for violation in self.violations}

    def has_violation(self, code: ViolationCode) -> bool:
        return code in self.codes


class ChainValidator:
    """
    Validates certificate chains against a TrustPolicy.

    Stateless between calls: the only collaborator is the optional
    revocation checker, consulted when the policy enables revocation.
    """

    def __init__(self, revocation_checker: Optional[RevocationChecker] = None):
        self.revocation_checker = revocation_checker

    def validate(
        self,
        leaf: x509.Certificate,
        presented_intermediates: Iterable[x509.Certificate],
        policy: TrustPolicy,
        reference_time: Optional[datetime.datetime] = None,
        expected_hostname: Optional[str] = None,
        *,
        deadline: Optional[float] = None,
    ) -> ChainValidationResult:
        """
        Validate leaf and the presented intermediates against policy.

        Args:
            leaf: End-entity certificate
            presented_intermediates: Candidate issuers, in any order
            policy: Trust policy to apply
            reference_time: Moment of validation (default: now, naive = UTC)
            expected_hostname: DNS name or IP address the leaf must carry
            deadline: time.monotonic() value bounding revocation lookups

        Returns:
            ChainValidationResult
        """
        moment = as_utc(reference_time) if reference_time else datetime.datetime.now(datetime.timezone.utc)
        intermediates = list(presented_intermediates)
        violations: list[PolicyViolation] = []
        warnings: list[str] = []

        chain, anchored = self._build_chain(leaf, intermediates, policy, violations)

        if not anchored:
            if (
                len(chain) == 1
                and is_self_issued(leaf)
                and policy.allow_self_signed_leaf
                and verify_signature(leaf, leaf.public_key())
            ):
                anchored = True
                message = f"Self-signed leaf accepted by policy: {describe(leaf)}"
                logger.warning(message)
                warnings.append(message)
            else:
                violations.append(
                    PolicyViolation(
                        ViolationCode.NO_TRUSTED_ANCHOR,
                        "Chain does not terminate at a trust anchor",
                        describe(chain[-1]),
                    )
                )

        self._check_validity(chain, moment, policy, violations, warnings)
        self._check_issuers(chain, violations)

        if expected_hostname is not None and not hostname_matches(leaf, expected_hostname, policy.hostname_mode):
            violations.append(
                PolicyViolation(
                    ViolationCode.HOSTNAME_MISMATCH,
                    f"Certificate is not valid for '{expected_hostname}'",
                    describe(leaf),
                )
            )

        if anchored and policy.revocation_mode != RevocationMode.NONE:
            self._check_revocation(chain, policy, deadline, violations, warnings)

        outcome = ValidationOutcome.TRUSTED if anchored and not violations else ValidationOutcome.UNTRUSTED
        result = ChainValidationResult(
            outcome=outcome,
            chain=tuple(chain),
            violations=tuple(violations),
            warnings=tuple(warnings),
        )

        if result.trusted:
            logger.info(f"Chain trusted: {describe(leaf)} ({len(chain)} certificate(s))")
        else:
            codes = ", ".join(v.code.value for v in violations)
            logger.warning(f"Chain untrusted: {describe(leaf)} [{codes}]")

        return result

    def _build_chain(
        self,
        leaf: x509.Certificate,
        intermediates: list[x509.Certificate],
        policy: TrustPolicy,
        violations: list[PolicyViolation],
    ) -> tuple[list[x509.Certificate], bool]:
        """Walk issuer links from leaf. Returns (chain, anchor reached)."""
        chain = [leaf]
        seen = {fingerprint(leaf)}

        if policy.is_anchor(leaf):
            return chain, True

        current = leaf
        while True:
            if is_self_issued(current) and verify_signature(current, current.public_key()):
                # Self-signed but not an anchor: nowhere further to go
                return chain, False

            candidates = [
                cert for cert in list(policy.anchors) + intermediates
                if cert.subject == current.issuer
            ]
            if not candidates:
                return chain, False

            fresh = [cert for cert in candidates if fingerprint(cert) not in seen]
            if not fresh:
                violations.append(
                    PolicyViolation(
                        ViolationCode.CHAIN_CYCLE,
                        "Issuer already appears in the chain",
                        describe(current),
                    )
                )
                return chain, False

            issuer = next((cert for cert in fresh if verify_signature(current, cert.public_key())), None)
            if issuer is None:
                violations.append(
                    PolicyViolation(
                        ViolationCode.INVALID_SIGNATURE,
                        f"Signature does not verify against any issuer named {current.issuer.rfc4514_string()}",
                        describe(current),
                    )
                )
                return chain, False

            if len(chain) >= policy.max_chain_depth:
                violations.append(
                    PolicyViolation(
                        ViolationCode.CHAIN_TOO_LONG,
                        f"Chain exceeds {policy.max_chain_depth} certificate(s)",
                        describe(current),
                    )
                )
                return chain, False

            chain.append(issuer)
            seen.add(fingerprint(issuer))

            if policy.is_anchor(issuer):
                return chain, True
            current = issuer

    def _check_validity(
        self,
        chain: list[x509.Certificate],
        moment: datetime.datetime,
        policy: TrustPolicy,
        violations: list[PolicyViolation],
        warnings: list[str],
    ) -> None:
        for cert in chain:
            if is_within_validity(cert, moment):
                continue
            message = (
                f"Outside validity window {cert.not_valid_before_utc.isoformat()} .. "
                f"{cert.not_valid_after_utc.isoformat()} at {moment.isoformat()}"
            )
            if policy.allow_expired:
                warnings.append(f"{describe(cert)}: {message}")
            else:
                violations.append(PolicyViolation(ViolationCode.TIME_INVALID, message, describe(cert)))

    def _check_issuers(self, chain: list[x509.Certificate], violations: list[PolicyViolation]) -> None:
        for index, cert in enumerate(chain[1:], start=1):
            constraints = basic_constraints(cert)
            if constraints is None or not constraints.ca:
                violations.append(
                    PolicyViolation(
                        ViolationCode.INVALID_BASIC_CONSTRAINTS,
                        "Issuer is not a CA",
                        describe(cert),
                    )
                )
                continue

            usage = key_usage(cert)
            if usage is not None and not usage.key_cert_sign:
                violations.append(
                    PolicyViolation(
                        ViolationCode.INVALID_BASIC_CONSTRAINTS,
                        "Issuer key usage lacks keyCertSign",
                        describe(cert),
                    )
                )

            # Non-self-issued CA certificates between this one and the leaf
            below = sum(1 for c in chain[1:index] if not is_self_issued(c))
            if constraints.path_length is not None and below > constraints.path_length:
                violations.append(
                    PolicyViolation(
                        ViolationCode.INVALID_BASIC_CONSTRAINTS,
                        f"Path length {constraints.path_length} exceeded ({below} intermediate(s) below)",
                        describe(cert),
                    )
                )

        terminal = chain[-1]
        if is_self_issued(terminal) and not verify_signature(terminal, terminal.public_key()):
            violations.append(
                PolicyViolation(
                    ViolationCode.INVALID_SIGNATURE,
                    "Self-signed certificate does not verify against its own key",
                    describe(terminal),
                )
            )

    def _check_revocation(
        self,
        chain: list[x509.Certificate],
        policy: TrustPolicy,
        deadline: Optional[float],
        violations: list[PolicyViolation],
        warnings: list[str],
    ) -> None:
        for index, cert in enumerate(chain):
            if policy.is_anchor(cert):
                continue
            issuer = chain[index + 1] if index + 1 < len(chain) else cert

            status, problem = self._lookup(cert, issuer, policy, deadline)

            if status == RevocationStatus.REVOKED:
                violations.append(
                    PolicyViolation(ViolationCode.REVOKED, "Certificate has been revoked", describe(cert))
                )
            elif status == RevocationStatus.UNKNOWN:
                message = f"Revocation status unknown: {problem or 'no definitive answer'}"
                if policy.revocation_mode == RevocationMode.HARD_FAIL:
                    violations.append(
                        PolicyViolation(ViolationCode.REVOCATION_UNKNOWN, message, describe(cert))
                    )
                else:
                    warnings.append(f"{describe(cert)}: {message}")

    def _lookup(
        self,
        cert: x509.Certificate,
        issuer: x509.Certificate,
        policy: TrustPolicy,
        deadline: Optional[float],
    ) -> tuple[RevocationStatus, Optional[str]]:
        if self.revocation_checker is None:
            return RevocationStatus.UNKNOWN, "no revocation checker configured"

        timeout = policy.revocation_timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return RevocationStatus.UNKNOWN, "deadline expired before lookup"
            timeout = min(timeout, remaining)

        try:
            return self.revocation_checker.check(cert, issuer, timeout), None
        except TransientIOError as e:
            logger.warning(f"Revocation lookup failed for {describe(cert)}: {e}")
            return RevocationStatus.UNKNOWN, str(e)
        except ValueError as e:
            logger.warning(f"Unusable revocation data for {describe(cert)}: {e}")
            return RevocationStatus.UNKNOWN, str(e)


def hostname_matches(
    cert: x509.Certificate,
    hostname: str,
    mode: HostnameMatchMode = HostnameMatchMode.STRICT,
) -> bool:
    """
    Check hostname (or IP literal) against the certificate's names.

    SAN entries are authoritative; the subject CN is consulted only when the
    certificate has no SubjectAlternativeName extension.
    """
    has_san = subject_alt_names(cert) is not None

    try:
        address = ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        address = None

    if address is not None:
        if has_san:
            return address in ip_addresses(cert)
        return any(name == str(address) for name in common_names(cert))

    host = hostname.rstrip(".").lower()
    if not host:
        return False

    names = dns_names(cert) if has_san else common_names(cert)
    for name in names:
        name = name.rstrip(".").lower()
        if name == host:
            return True
        if mode == HostnameMatchMode.WILDCARD and _wildcard_matches(name, host):
            return True
    return False


def _wildcard_matches(pattern: str, host: str) -> bool:
    """RFC 6125: '*' only as the whole left-most label, matching one label."""
    if not pattern.startswith("*."):
        return False
    suffix = pattern[2:]
    if "*" in suffix or suffix.count(".") < 1:
        return False
    label, _, rest = host.partition(".")
    return bool(label) and rest == suffix
