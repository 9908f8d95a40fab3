# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
certtrust - Certificate Trust Engine

Issues device certificates, stores identity material, validates peer
certificate chains against a trust policy and authenticates mutual-TLS
sessions at handshake time.

Modules:
    crypto: Key pair generation and disposal
    certificates: Certificate requests, issuance and inspection
    store: Certificate stores and DER/PEM/PKCS#12 encodings
    trust: Trust policy, chain validation, revocation, session authentication

Example:
    >>> from certtrust.certificates import CertificateBuilder, issue_root_ca, issue_device_certificate
    >>> from certtrust.crypto import generate_key_pair
    >>> from certtrust.trust import SecureSessionAuthenticator, TrustPolicy
    >>>
    >>> builder = CertificateBuilder()
    >>> root = issue_root_ca(builder, generate_key_pair())
    >>> device = issue_device_certificate(builder, root, generate_key_pair(), "device-01")
    >>> authenticator = SecureSessionAuthenticator(TrustPolicy(anchors=[root.certificate]))
    >>> authenticator.authenticate(device.certificate, [], "device-01").accepted
    True
"""

__version__ = "0.1.0"
__author__ = "The certtrust Authors"

__all__ = [
    "crypto",
    "certificates",
    "store",
    "trust",
]
