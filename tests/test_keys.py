# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Unit tests for key material.

Tests:
- Generation per algorithm
- Weak and unsupported parameters
- Disposal and zeroization
"""

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from certtrust.crypto import KeyPair, generate_key_pair
from certtrust.errors import InputError, KeyDisposedError, UnsupportedAlgorithm, WeakParameter


class TestKeyGeneration:
    """Test key pair generation."""

    def test_default_is_ec_p256(self):
        key_pair = generate_key_pair()

        assert key_pair.algorithm == "ec"
        assert key_pair.parameter == "secp256r1"
        assert isinstance(key_pair.private_key, ec.EllipticCurvePrivateKey)

    @pytest.mark.parametrize("alias,canonical", [
        ("P-256", "secp256r1"),
        ("prime256v1", "secp256r1"),
        ("secp384r1", "secp384r1"),
        ("P-521", "secp521r1"),
    ])
    def test_ec_curve_aliases(self, alias, canonical):
        assert generate_key_pair("ec", alias).parameter == canonical

    def test_rsa_2048(self):
        key_pair = generate_key_pair("rsa", 2048)

        assert isinstance(key_pair.private_key, rsa.RSAPrivateKey)
        assert key_pair.private_key.key_size == 2048

    def test_ed25519(self):
        key_pair = generate_key_pair("ed25519")

        assert isinstance(key_pair.private_key, ed25519.Ed25519PrivateKey)
        assert key_pair.parameter is None

    def test_public_key_bytes_are_der_spki(self):
        key_pair = generate_key_pair("ec")

        # DER SEQUENCE
        assert key_pair.public_key_bytes[0] == 0x30
        assert key_pair.matches(key_pair.public_key)
        assert not key_pair.matches(generate_key_pair("ec").public_key)


class TestKeyParameterErrors:
    """Test rejection of weak or unknown parameters."""

    def test_rsa_below_minimum_is_weak(self):
        with pytest.raises(WeakParameter):
            generate_key_pair("rsa", 1024)

    def test_rsa_minimum_override(self):
        with pytest.raises(WeakParameter):
            generate_key_pair("rsa", 2048, min_rsa_bits=3072)

    def test_rsa_non_integer(self):
        with pytest.raises(UnsupportedAlgorithm):
            generate_key_pair("rsa", "big")

    def test_weak_curve(self):
        with pytest.raises(WeakParameter):
            generate_key_pair("ec", "P-192")

    def test_unknown_curve(self):
        with pytest.raises(UnsupportedAlgorithm):
            generate_key_pair("ec", "brainpoolP256r1")

    def test_unknown_algorithm(self):
        with pytest.raises(UnsupportedAlgorithm):
            generate_key_pair("dsa")

    def test_ed25519_rejects_parameter(self):
        with pytest.raises(UnsupportedAlgorithm):
            generate_key_pair("ed25519", 256)

    def test_errors_are_input_errors(self):
        with pytest.raises(ValueError):
            generate_key_pair("ec", "P-224")
        assert issubclass(WeakParameter, InputError)


class TestKeyDisposal:
    """Test private key lifecycle."""

    def test_dispose_zeroizes_exported_bytes(self):
        key_pair = generate_key_pair("ec")
        exported = key_pair.private_key_bytes()
        assert any(exported)

        key_pair.dispose()

        assert key_pair.disposed
        assert not any(exported)

    def test_use_after_dispose_raises(self):
        key_pair = generate_key_pair("ec")
        key_pair.dispose()

        with pytest.raises(KeyDisposedError):
            key_pair.private_key
        with pytest.raises(KeyDisposedError):
            key_pair.private_key_bytes()

    def test_public_key_survives_dispose(self):
        key_pair = generate_key_pair("ec")
        spki = key_pair.public_key_bytes
        key_pair.dispose()

        assert key_pair.public_key_bytes == spki

    def test_context_manager_disposes(self):
        with generate_key_pair("ed25519") as key_pair:
            assert not key_pair.disposed
        assert key_pair.disposed

    def test_from_private_key(self):
        private_key = ec.generate_private_key(ec.SECP384R1())
        key_pair = KeyPair.from_private_key(private_key)

        assert key_pair.algorithm == "ec"
        assert key_pair.parameter == "secp384r1"

    def test_repr_has_no_key_material(self):
        key_pair = generate_key_pair("ec")
        assert "live" in repr(key_pair)
        key_pair.dispose()
        assert "disposed" in repr(key_pair)
