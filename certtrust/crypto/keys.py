# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Asymmetric key pair generation and lifecycle.

Supported algorithms:
    rsa: modulus size in bits (minimum from settings.min_rsa_key_size)
    ec: NIST curves P-256, P-384, P-521
    ed25519: no parameter

Private keys live only inside a KeyPair. dispose() drops the key object and
zeroizes every private-key buffer the pair has handed out.
"""

import logging
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from ..config import settings
from ..errors import KeyDisposedError, UnsupportedAlgorithm, WeakParameter

logger = logging.getLogger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]
PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey, ed25519.Ed25519PublicKey]

MAX_RSA_KEY_SIZE = 16384

# Curve aliases -> canonical curve class
EC_CURVES = {
    "secp256r1": ec.SECP256R1,
    "prime256v1": ec.SECP256R1,
    "p-256": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "p-384": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
    "p-521": ec.SECP521R1,
}

WEAK_EC_CURVES = {"secp192r1", "prime192v1", "p-192", "secp224r1", "p-224"}


class KeyPair:
    """An asymmetric key pair that exclusively owns its private key."""

    def __init__(self, private_key: PrivateKey, algorithm: str, parameter: Optional[Union[int, str]]):
        self._private_key: Optional[PrivateKey] = private_key
        self._public_key: PublicKey = private_key.public_key()
        self.algorithm = algorithm
        self.parameter = parameter
        self._exported: list[bytearray] = []

    @classmethod
    def from_private_key(cls, private_key: PrivateKey) -> "KeyPair":
        """Wrap an existing private key (e.g. one loaded from an archive)."""
        if isinstance(private_key, rsa.RSAPrivateKey):
            return cls(private_key, "rsa", private_key.key_size)
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            return cls(private_key, "ec", private_key.curve.name)
        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            return cls(private_key, "ed25519", None)
        raise UnsupportedAlgorithm(f"Unsupported private key type: {type(private_key).__name__}")

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def public_key_bytes(self) -> bytes:
        """DER-encoded SubjectPublicKeyInfo."""
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @property
    def private_key(self) -> PrivateKey:
        if self._private_key is None:
            raise KeyDisposedError("Private key has been disposed")
        return self._private_key

    @property
    def disposed(self) -> bool:
        return self._private_key is None

    def private_key_bytes(self) -> bytearray:
        """
        Export the private key as unencrypted PKCS#8 DER.

        The returned buffer is owned by this pair and zeroized on dispose().
        """
        der = self.private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        buffer = bytearray(der)
        self._exported.append(buffer)
        return buffer

    def matches(self, public_key: PublicKey) -> bool:
        """Check whether public_key is this pair's public key."""
        try:
            other = public_key.public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        except (AttributeError, ValueError):
            return False
        return other == self.public_key_bytes

    def dispose(self) -> None:
        """Drop the private key and zeroize exported buffers."""
        for buffer in self._exported:
            for i in range(len(buffer)):
                buffer[i] = 0
        self._exported.clear()
        self._private_key = None

    def __enter__(self) -> "KeyPair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else "live"
        return f"KeyPair(algorithm={self.algorithm!r}, parameter={self.parameter!r}, {state})"


def generate_key_pair(
    algorithm: Optional[str] = None,
    parameter: Optional[Union[int, str]] = None,
    *,
    min_rsa_bits: Optional[int] = None,
) -> KeyPair:
    """
    Generate a new key pair.

    Args:
        algorithm: "rsa", "ec" or "ed25519" (default: settings.default_key_algorithm)
        parameter: RSA modulus bits or EC curve name (defaults from settings)
        min_rsa_bits: Override for the minimum accepted RSA modulus size

    Returns:
        New KeyPair

    Raises:
        UnsupportedAlgorithm: If algorithm or parameter is not recognized
        WeakParameter: If strength is below the configured minimum
    """
    algorithm = (algorithm or settings.default_key_algorithm).lower()

    if algorithm == "rsa":
        bits = settings.default_rsa_key_size if parameter is None else parameter
        if isinstance(bits, bool) or not isinstance(bits, int):
            raise UnsupportedAlgorithm(f"RSA key size must be an integer, got {bits!r}")
        minimum = settings.min_rsa_key_size if min_rsa_bits is None else min_rsa_bits
        if bits < minimum:
            raise WeakParameter(f"RSA key size {bits} is below minimum {minimum}")
        if bits > MAX_RSA_KEY_SIZE:
            raise UnsupportedAlgorithm(f"RSA key size {bits} exceeds {MAX_RSA_KEY_SIZE}")
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
        logger.debug(f"Generated RSA-{bits} key pair")
        return KeyPair(private_key, "rsa", bits)

    if algorithm == "ec":
        curve_name = str(settings.default_ec_curve if parameter is None else parameter).lower()
        if curve_name in WEAK_EC_CURVES:
            raise WeakParameter(f"EC curve {parameter} is too weak")
        curve_cls = EC_CURVES.get(curve_name)
        if curve_cls is None:
            raise UnsupportedAlgorithm(f"Unsupported EC curve: {parameter}")
        private_key = ec.generate_private_key(curve_cls())
        logger.debug(f"Generated EC {private_key.curve.name} key pair")
        return KeyPair(private_key, "ec", private_key.curve.name)

    if algorithm == "ed25519":
        if parameter is not None:
            raise UnsupportedAlgorithm("Ed25519 does not take a strength parameter")
        return KeyPair(ed25519.Ed25519PrivateKey.generate(), "ed25519", None)

    raise UnsupportedAlgorithm(f"Unsupported key algorithm: {algorithm}")
