# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
certtrust - Key Material

Key pair generation (RSA, EC, Ed25519) with explicit disposal of private
key material.

Example Usage:
    >>> from certtrust.crypto import generate_key_pair
    >>>
    >>> with generate_key_pair("ec", "P-256") as key_pair:
    ...     spki = key_pair.public_key_bytes
"""

from .keys import (
    KeyPair,
    PrivateKey,
    PublicKey,
    generate_key_pair,
)

__all__ = [
    "KeyPair",
    "PrivateKey",
    "PublicKey",
    "generate_key_pair",
]
