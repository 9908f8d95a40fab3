# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""Pytest configuration and fixtures."""

import pytest

from certtrust.certificates import (
    CertificateBuilder,
    issue_device_certificate,
    issue_intermediate_ca,
    issue_root_ca,
)
from certtrust.crypto import generate_key_pair
from certtrust.trust import TrustPolicy


@pytest.fixture
def builder():
    """Fresh certificate builder."""
    return CertificateBuilder()


@pytest.fixture
def root_ca(builder):
    """Self-signed root CA bundle (EC P-256)."""
    return issue_root_ca(builder, generate_key_pair("ec", "P-256"), "Test Root CA", path_length=1)


@pytest.fixture
def intermediate_ca(builder, root_ca):
    """Intermediate CA issued by root_ca."""
    return issue_intermediate_ca(builder, root_ca, generate_key_pair("ec", "P-256"), "Test Intermediate CA")


@pytest.fixture
def device(builder, intermediate_ca):
    """Device leaf 'device-01' issued by intermediate_ca."""
    return issue_device_certificate(builder, intermediate_ca, generate_key_pair("ec", "P-256"), "device-01")


@pytest.fixture
def policy(root_ca):
    """Strict policy trusting only root_ca."""
    return TrustPolicy(anchors=[root_ca.certificate])
