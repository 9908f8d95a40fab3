# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Certificate storage with swappable backends and interoperable encodings.
"""

from .base import CertificateStore, FingerprintListing, validate_alias
from .memory import InMemoryCertificateStore
from .filesystem import FileSystemCertificateStore, StoreIndex, StoreIndexEntry
from .encoding import (
    export_bundle,
    export_pem_chain,
    export_public,
    import_bundle,
    import_pem_chain,
    import_public,
)

__all__ = [
    # Backends
    "CertificateStore",
    "FingerprintListing",
    "InMemoryCertificateStore",
    "FileSystemCertificateStore",
    "StoreIndex",
    "StoreIndexEntry",
    "validate_alias",
    # Encodings
    "export_public",
    "export_pem_chain",
    "export_bundle",
    "import_public",
    "import_pem_chain",
    "import_bundle",
]
