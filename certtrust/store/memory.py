# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""In-memory CertificateStore backend."""

import logging
import threading
from collections.abc import Mapping
from typing import Optional

from cryptography import x509

from ..certificates.bundle import CertificateBundle
from .base import CertificateStore, certificates_by_fingerprint

logger = logging.getLogger(__name__)


class InMemoryCertificateStore(CertificateStore):
    """
    Copy-on-write dict of alias -> bundle.

    Writers swap in a new dict under the commit lock; readers use whatever
    dict is current, so reads never block on writes.
    """

    def __init__(self):
        super().__init__()
        self._entries: dict[str, CertificateBundle] = {}
        self._commit_lock = threading.Lock()

    def aliases(self) -> list[str]:
        return sorted(self._entries)

    def _load(self, alias: str) -> Optional[CertificateBundle]:
        return self._entries.get(alias)

    def _save(self, alias: str, bundle: CertificateBundle) -> None:
        with self._commit_lock:
            entries = dict(self._entries)
            entries[alias] = bundle
            self._entries = entries
        logger.info(f"Stored '{alias}' ({bundle.fingerprint[:16]})")

    def _delete(self, alias: str) -> bool:
        with self._commit_lock:
            if alias not in self._entries:
                return False
            entries = dict(self._entries)
            del entries[alias]
            self._entries = entries
        logger.info(f"Removed '{alias}'")
        return True

    def _snapshot(self) -> Mapping[str, x509.Certificate]:
        return certificates_by_fingerprint(self._entries.values())
