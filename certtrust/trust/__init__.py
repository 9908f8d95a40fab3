# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
certtrust Trust Evaluation

Trust policy, chain validation, revocation checking and handshake-time
peer authentication.
"""

from .policy import (
    HostnameMatchMode,
    RevocationMode,
    TrustAnchorSet,
    TrustPolicy,
    load_anchors,
)

from .revocation import (
    CRLRevocationChecker,
    OCSPRevocationChecker,
    RevocationChecker,
    RevocationStatus,
    StaticRevocationList,
)

from .validator import (
    ChainValidationResult,
    ChainValidator,
    PolicyViolation,
    ValidationOutcome,
    ViolationCode,
    hostname_matches,
)

from .authenticator import AuthenticationDecision, SecureSessionAuthenticator

__all__ = [
    # Policy
    "HostnameMatchMode",
    "RevocationMode",
    "TrustAnchorSet",
    "TrustPolicy",
    "load_anchors",
    # Revocation
    "RevocationChecker",
    "RevocationStatus",
    "OCSPRevocationChecker",
    "CRLRevocationChecker",
    "StaticRevocationList",
    # Validation
    "ChainValidator",
    "ChainValidationResult",
    "PolicyViolation",
    "ValidationOutcome",
    "ViolationCode",
    "hostname_matches",
    # Sessions
    "AuthenticationDecision",
    "SecureSessionAuthenticator",
]
