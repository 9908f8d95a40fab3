# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Directory-backed CertificateStore.

Layout:
    <root>/index.json      alias -> file, fingerprint, created_at
    <root>/<alias>.p12     bundles with a private key (passphrase required)
    <root>/<alias>.pem     public-only bundles (leaf followed by chain)
"""

import logging
import os
import threading
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cryptography import x509
from pydantic import BaseModel, Field

from ..certificates.bundle import CertificateBundle
from ..certificates.parser import load_certificate
from ..config import settings
from ..errors import EmptyPassphrase, InvalidRequest, MalformedEncoding
from .base import CertificateStore
from .encoding import (
    Passphrase,
    export_bundle,
    export_pem_chain,
    export_public,
    import_bundle,
    import_pem_chain,
)

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"


class StoreIndexEntry(BaseModel):
    """Metadata for one stored alias."""

    alias: str
    fingerprint: str = Field(..., min_length=64, max_length=64)
    filename: str
    has_private_key: bool = False
    certificate_pem: str
    created_at: datetime


class StoreIndex(BaseModel):
    """Contents of index.json."""

    entries: dict[str, StoreIndexEntry] = Field(default_factory=dict)


class FileSystemCertificateStore(CertificateStore):
    """CertificateStore persisted as files in a directory."""

    def __init__(self, root_path: str | Path, passphrase: Optional[Passphrase] = None):
        """
        Initialize store.

        Args:
            root_path: Directory holding the store (created if missing)
            passphrase: Passphrase protecting private keys at rest
        """
        super().__init__()
        self.root_path = Path(root_path)
        self.root_path.mkdir(parents=True, exist_ok=True)
        self._passphrase = passphrase
        self._index_path = self.root_path / INDEX_FILE
        self._commit_lock = threading.Lock()

    @classmethod
    def from_settings(cls, passphrase: Optional[Passphrase] = None) -> "FileSystemCertificateStore":
        if not settings.store_path:
            raise InvalidRequest("settings.store_path is not configured")
        return cls(settings.store_path, passphrase)

    def aliases(self) -> list[str]:
        return sorted(self._read_index().entries)

    def _read_index(self) -> StoreIndex:
        if not self._index_path.exists():
            return StoreIndex()
        try:
            return StoreIndex.model_validate_json(self._index_path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise MalformedEncoding(f"Corrupt store index {self._index_path}: {e}") from e

    def _write_index(self, index: StoreIndex) -> None:
        tmp_path = self._index_path.with_suffix(".json.tmp")
        tmp_path.write_text(index.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, self._index_path)

    def _load(self, alias: str) -> Optional[CertificateBundle]:
        while True:
            entry = self._read_index().entries.get(alias)
            if entry is None:
                return None
            try:
                data = (self.root_path / entry.filename).read_bytes()
                break
            except FileNotFoundError:
                # Removed or re-encoded by a concurrent writer after the index read
                if self._read_index().entries.get(alias) == entry:
                    raise

        if entry.has_private_key:
            return import_bundle(data, self._passphrase)

        certificates = import_pem_chain(data)
        if not certificates:
            raise MalformedEncoding(f"No certificates in {entry.filename}")
        return CertificateBundle(certificate=certificates[0], chain=tuple(certificates[1:]))

    def _save(self, alias: str, bundle: CertificateBundle) -> None:
        if bundle.has_private_key:
            if not self._passphrase:
                raise EmptyPassphrase("Store has no passphrase; refusing to write a private key")
            filename = f"{alias}.p12"
            data = export_bundle(bundle, self._passphrase, friendly_name=alias)
        else:
            filename = f"{alias}.pem"
            data = export_pem_chain(bundle)

        path = self.root_path / filename
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        if bundle.has_private_key:
            os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)

        with self._commit_lock:
            index = self._read_index()
            previous = index.entries.get(alias)
            index.entries[alias] = StoreIndexEntry(
                alias=alias,
                fingerprint=bundle.fingerprint,
                filename=filename,
                has_private_key=bundle.has_private_key,
                certificate_pem=export_public(bundle, "pem").decode("ascii"),
                created_at=datetime.now(timezone.utc),
            )
            self._write_index(index)

        if previous is not None and previous.filename != filename:
            (self.root_path / previous.filename).unlink(missing_ok=True)

        logger.info(f"Stored '{alias}' in {path} ({bundle.fingerprint[:16]})")

    def _delete(self, alias: str) -> bool:
        with self._commit_lock:
            index = self._read_index()
            entry = index.entries.pop(alias, None)
            if entry is None:
                return False
            self._write_index(index)

        (self.root_path / entry.filename).unlink(missing_ok=True)
        logger.info(f"Removed '{alias}' from {self.root_path}")
        return True

    def _snapshot(self) -> Mapping[str, x509.Certificate]:
        return {
            entry.fingerprint: load_certificate(entry.certificate_pem.encode("ascii"))
            for entry in self._read_index().entries.values()
        }
