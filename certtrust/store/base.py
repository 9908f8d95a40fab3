# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
CertificateStore capability interface.

Backends implement _load/_save/_delete/_snapshot; this base class provides
alias validation, per-alias write serialization and snapshot listing.
"""

import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Optional

from cryptography import x509

from ..certificates.bundle import CertificateBundle
from ..certificates.parser import fingerprint
from ..errors import InvalidAlias, NotFound

ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def validate_alias(alias: str) -> str:
    """Reject aliases that are empty, too long or not filesystem-safe."""
    if not isinstance(alias, str) or not ALIAS_PATTERN.match(alias) or alias in (".", ".."):
        raise InvalidAlias(f"Invalid alias: {alias!r}")
    return alias


class FingerprintListing:
    """
    Lazy, finite, restartable view of certificates ordered by fingerprint.

    Each iteration walks a fresh snapshot of the store.
    """

    def __init__(self, store: "CertificateStore"):
        self._store = store

    def __iter__(self) -> Iterator[x509.Certificate]:
        snapshot = self._store._snapshot()
        for fp in sorted(snapshot):
            yield snapshot[fp]


class CertificateStore(ABC):
    """Keyed collection of CertificateBundles addressable by alias or fingerprint."""

    def __init__(self):
        # alias -> [lock, holders]; entries live only while some writer holds or awaits them
        self._alias_locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _alias_lock(self, alias: str):
        with self._locks_guard:
            entry = self._alias_locks.setdefault(alias, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._alias_locks[alias]

    def put(self, alias: str, bundle: CertificateBundle) -> None:
        """Store bundle under alias, replacing any previous entry."""
        validate_alias(alias)
        with self._alias_lock(alias):
            self._save(alias, bundle)

    def get(self, alias: str) -> CertificateBundle:
        """
        Return the bundle stored under alias.

        Raises:
            NotFound: If nothing is stored under alias
        """
        validate_alias(alias)
        bundle = self._load(alias)
        if bundle is None:
            raise NotFound(alias)
        return bundle

    def remove(self, alias: str) -> None:
        """
        Delete the entry stored under alias.

        Raises:
            NotFound: If nothing is stored under alias
        """
        validate_alias(alias)
        with self._alias_lock(alias):
            if not self._delete(alias):
                raise NotFound(alias)

    def __contains__(self, alias: str) -> bool:
        try:
            return self._load(validate_alias(alias)) is not None
        except InvalidAlias:
            return False

    def list_by_fingerprint(self) -> FingerprintListing:
        """Certificates ordered by SHA-256 fingerprint."""
        return FingerprintListing(self)

    def find_by_fingerprint(self, fp: str) -> Optional[x509.Certificate]:
        return self._snapshot().get(fp.lower().replace(":", ""))

    @abstractmethod
    def aliases(self) -> list[str]:
        """Sorted list of stored aliases."""

    @abstractmethod
    def _load(self, alias: str) -> Optional[CertificateBundle]:
        ...

    @abstractmethod
    def _save(self, alias: str, bundle: CertificateBundle) -> None:
        ...

    @abstractmethod
    def _delete(self, alias: str) -> bool:
        ...

    @abstractmethod
    def _snapshot(self) -> Mapping[str, x509.Certificate]:
        """Point-in-time mapping of fingerprint -> certificate."""


def certificates_by_fingerprint(bundles) -> dict[str, x509.Certificate]:
    return {fingerprint(bundle.certificate): bundle.certificate for bundle in bundles}
