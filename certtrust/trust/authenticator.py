# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Handshake-time peer authentication for mutual-TLS sessions.

The transport (MQTT client, HTTPS endpoint) hands the peer's certificate
chain to SecureSessionAuthenticator and proceeds only on an accepted
decision. There is no trust-on-first-use: an unknown peer is rejected.
"""

import datetime
import logging
import ssl
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from cryptography import x509

from ..certificates.parser import describe, load_certificate
from ..errors import MalformedEncoding
from .policy import TrustPolicy
from .validator import ChainValidationResult, ChainValidator

logger = logging.getLogger(__name__)

CertificateInput = Union[x509.Certificate, bytes, bytearray]


@dataclass(frozen=True)
class AuthenticationDecision:
    """
    Verdict handed back to the transport.

    Attributes:
        accepted: True if the session may proceed
        reason: Human-readable explanation
        result: Full validation result (None if the input could not be decoded)
    """

    accepted: bool
    reason: str
    result: Optional[ChainValidationResult] = None

    def __bool__(self) -> bool:
        return self.accepted


class SecureSessionAuthenticator:
    """Decides whether a peer presenting a certificate chain is trusted."""

    def __init__(self, policy: TrustPolicy, validator: Optional[ChainValidator] = None):
        """
        Initialize authenticator.

        Args:
            policy: Active trust policy
            validator: Chain validator (default: one without revocation checker)
        """
        self._policy = policy
        self._policy_lock = threading.Lock()
        self.validator = validator or ChainValidator()

    @property
    def policy(self) -> TrustPolicy:
        return self._policy

    def replace_policy(self, policy: TrustPolicy) -> None:
        """Swap the active policy. In-flight decisions keep the old one."""
        with self._policy_lock:
            self._policy = policy
        logger.info(f"Trust policy replaced ({len(policy.anchors)} anchor(s))")

    def authenticate(
        self,
        presented_leaf: CertificateInput,
        presented_chain: Iterable[CertificateInput] = (),
        expected_identity: Optional[str] = None,
        reference_time: Optional[datetime.datetime] = None,
    ) -> AuthenticationDecision:
        """
        Validate the peer's chain and decide.

        Never raises for bad peer input; undecodable certificates produce a
        rejected decision.

        Args:
            presented_leaf: Peer certificate (object, DER or PEM)
            presented_chain: Intermediates sent by the peer
            expected_identity: Hostname or device identity the leaf must carry
            reference_time: Validation time (default: now)

        Returns:
            AuthenticationDecision
        """
        try:
            leaf = _decode(presented_leaf)
            chain = [_decode(cert) for cert in presented_chain]
        except MalformedEncoding as e:
            logger.warning(f"Rejected peer: undecodable certificate ({e})")
            return AuthenticationDecision(False, f"Malformed peer certificate: {e}")

        policy = self._policy
        result = self.validator.validate(
            leaf,
            chain,
            policy,
            reference_time=reference_time,
            expected_hostname=expected_identity,
        )

        if not result.trusted:
            reason = "; ".join(f"{v.code.value}: {v.message}" for v in result.violations)
            logger.warning(f"Rejected peer {describe(leaf)}: {reason}")
            return AuthenticationDecision(False, reason, result)

        if len(result.chain) == 1 and not policy.is_anchor(leaf):
            logger.warning(f"Accepted self-signed peer {describe(leaf)} via allow_self_signed_leaf")
            return AuthenticationDecision(True, "Accepted self-signed leaf (policy bypass)", result)

        logger.info(f"Accepted peer {describe(leaf)}")
        return AuthenticationDecision(True, "Chain trusted", result)

    def handshake_callback(
        self,
        expected_identity: Optional[str] = None,
    ) -> Callable[..., AuthenticationDecision]:
        """
        Build a synchronous hook for transport configuration.

        Returns:
            Function (leaf, chain) -> AuthenticationDecision
        """

        def callback(leaf: CertificateInput, chain: Iterable[CertificateInput] = ()) -> AuthenticationDecision:
            return self.authenticate(leaf, chain, expected_identity)

        return callback

    def authenticate_ssl_object(
        self,
        ssl_obj: Union[ssl.SSLObject, ssl.SSLSocket],
        expected_identity: Optional[str] = None,
    ) -> AuthenticationDecision:
        """
        Authenticate the peer of an established TLS connection.

        Uses the full unverified peer chain where the interpreter exposes it
        (Python 3.13+), else only the peer certificate.
        """
        get_chain = getattr(ssl_obj, "get_unverified_chain", None)
        if get_chain is not None:
            presented = list(get_chain() or [])
        else:
            peer = ssl_obj.getpeercert(True)
            presented = [peer] if peer else []

        if not presented:
            logger.warning("Rejected peer: no certificate presented")
            return AuthenticationDecision(False, "Peer presented no certificate")

        return self.authenticate(presented[0], presented[1:], expected_identity)


def _decode(cert: CertificateInput) -> x509.Certificate:
    if isinstance(cert, x509.Certificate):
        return cert
    return load_certificate(cert)
