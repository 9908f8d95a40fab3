# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
certtrust Certificate Utilities

X.509 certificate requests, issuance, bundling and inspection.
"""

from .bundle import CertificateBundle

from .request import CertificateRequest

from .builder import (
    CertificateBuilder,
    issue_device_certificate,
    issue_intermediate_ca,
    issue_root_ca,
)

from .parser import (
    fingerprint,
    is_self_issued,
    load_certificate,
    verify_signature,
)

__all__ = [
    # Types
    "CertificateBundle",
    "CertificateRequest",
    # Issuance
    "CertificateBuilder",
    "issue_root_ca",
    "issue_intermediate_ca",
    "issue_device_certificate",
    # Inspection
    "fingerprint",
    "is_self_issued",
    "load_certificate",
    "verify_signature",
]
