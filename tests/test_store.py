# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Unit tests for certificate stores and encodings.

Tests:
- DER/PEM/PKCS#12 import and export
- In-memory and filesystem backends
- Alias rules and fingerprint listing
- Concurrent writers and snapshot readers
"""

import json
import stat
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from cryptography.hazmat.primitives import serialization

from certtrust.certificates import fingerprint
from certtrust.errors import (
    DecryptionFailure,
    EmptyPassphrase,
    InvalidAlias,
    MalformedEncoding,
    NotFound,
)
from certtrust.store import (
    FileSystemCertificateStore,
    InMemoryCertificateStore,
    StoreIndex,
    export_bundle,
    export_pem_chain,
    export_public,
    import_bundle,
    import_pem_chain,
    import_public,
)

PASSPHRASE = "correct horse battery staple"


class TestEncodings:
    """Test import/export functions."""

    def test_public_der_round_trip(self, device):
        data = export_public(device)

        assert import_public(data) == device.certificate

    def test_public_pem_has_no_key(self, device):
        data = export_public(device, "pem")

        assert data.startswith(b"-----BEGIN CERTIFICATE-----")
        assert b"PRIVATE KEY" not in data
        assert import_public(data) == device.certificate

    def test_pem_chain(self, device):
        certificates = import_pem_chain(export_pem_chain(device))

        assert certificates == [device.certificate] + list(device.chain)

    def test_pkcs12_round_trip(self, device):
        archive = export_bundle(device, PASSPHRASE, friendly_name="device-01")

        restored = import_bundle(archive, PASSPHRASE)

        assert restored.certificate == device.certificate
        assert restored.fingerprint == device.fingerprint
        assert set(restored.chain) == set(device.chain)
        assert restored.key_pair.public_key_bytes == device.key_pair.public_key_bytes

        original = device.key_pair.private_key.private_numbers()
        assert restored.key_pair.private_key.private_numbers() == original

    def test_pkcs12_bytes_passphrase(self, root_ca):
        archive = export_bundle(root_ca, b"bytes-secret")

        assert import_bundle(archive, b"bytes-secret").certificate == root_ca.certificate

    def test_pkcs12_wrong_passphrase(self, device):
        archive = export_bundle(device, PASSPHRASE)

        with pytest.raises(DecryptionFailure):
            import_bundle(archive, "wrong passphrase")

    def test_pkcs12_empty_passphrase(self, device):
        with pytest.raises(EmptyPassphrase):
            export_bundle(device, "")
        with pytest.raises(EmptyPassphrase):
            import_bundle(export_bundle(device, PASSPHRASE), b"")

    def test_pkcs12_malformed(self, device):
        with pytest.raises(MalformedEncoding):
            import_bundle(b"definitely not pkcs12", PASSPHRASE)
        with pytest.raises(MalformedEncoding):
            import_bundle(export_public(device), PASSPHRASE)

    def test_truncated_archive_is_malformed(self, device):
        archive = export_bundle(device, PASSPHRASE)

        with pytest.raises(MalformedEncoding):
            import_bundle(archive[:-10], PASSPHRASE)

    @pytest.mark.parametrize("data", [b"", b"garbage", b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"])
    def test_import_public_malformed(self, data):
        with pytest.raises(MalformedEncoding):
            import_public(data)

    def test_export_unknown_encoding(self, device):
        with pytest.raises(MalformedEncoding):
            export_public(device, "xml")


class StoreContract:
    """Behavior shared by every CertificateStore backend."""

    @pytest.fixture
    def store(self, tmp_path):
        raise NotImplementedError

    def test_put_get(self, store, device):
        store.put("device-01", device)

        assert store.get("device-01").certificate == device.certificate
        assert "device-01" in store
        assert store.aliases() == ["device-01"]

    def test_get_missing(self, store):
        with pytest.raises(NotFound) as exc_info:
            store.get("missing")
        assert isinstance(exc_info.value, KeyError)
        assert exc_info.value.alias == "missing"

    def test_remove(self, store, root_ca):
        store.put("root", root_ca.public_only())
        store.remove("root")

        assert "root" not in store
        with pytest.raises(NotFound):
            store.remove("root")

    def test_replace(self, store, root_ca, intermediate_ca):
        store.put("ca", root_ca.public_only())
        store.put("ca", intermediate_ca.public_only())

        assert store.get("ca").certificate == intermediate_ca.certificate
        assert len(list(store.list_by_fingerprint())) == 1

    @pytest.mark.parametrize("alias", ["", "a/b", "..", "x" * 129, "spaces here"])
    def test_invalid_alias(self, store, root_ca, alias):
        with pytest.raises(InvalidAlias):
            store.put(alias, root_ca.public_only())
        assert alias not in store

    def test_list_by_fingerprint_sorted_and_restartable(self, store, root_ca, intermediate_ca, device):
        store.put("root", root_ca.public_only())
        store.put("intermediate", intermediate_ca.public_only())
        store.put("device", device.public_only())

        listing = store.list_by_fingerprint()
        first = [fingerprint(cert) for cert in listing]
        second = [fingerprint(cert) for cert in listing]

        assert first == sorted(first)
        assert first == second
        assert len(first) == 3

    def test_listing_is_a_snapshot(self, store, root_ca, device):
        store.put("root", root_ca.public_only())
        iterator = iter(store.list_by_fingerprint())
        first = next(iterator)

        store.put("device", device.public_only())

        assert first == root_ca.certificate
        assert list(iterator) == []

    def test_find_by_fingerprint(self, store, root_ca):
        store.put("root", root_ca.public_only())

        assert store.find_by_fingerprint(root_ca.fingerprint.upper()) == root_ca.certificate
        assert store.find_by_fingerprint("00" * 32) is None

    def test_alias_locks_released(self, store, root_ca):
        store.put("root", root_ca.public_only())
        store.remove("root")
        with pytest.raises(NotFound):
            store.remove("root")

        assert store._alias_locks == {}

    def test_concurrent_writers_and_readers(self, store, root_ca, intermediate_ca, device):
        bundles = [root_ca.public_only(), intermediate_ca.public_only(), device.public_only()]
        known = {bundle.fingerprint: bundle.certificate for bundle in bundles}
        done = threading.Event()

        def writer(alias, offset):
            for i in range(self.rounds):
                store.put(alias, bundles[(i + offset) % len(bundles)])
                try:
                    store.remove(alias)
                except NotFound:
                    pass
            store.put(alias, bundles[offset % len(bundles)])

        def reader():
            passes = 0
            while not done.is_set() or passes == 0:
                listed = [fingerprint(cert) for cert in store.list_by_fingerprint()]
                assert listed == sorted(listed)
                assert set(listed) <= set(known)
                for alias in store.aliases():
                    try:
                        assert store.get(alias).fingerprint in known
                    except NotFound:
                        pass
                passes += 1
            return passes

        with ThreadPoolExecutor(max_workers=6) as pool:
            readers = [pool.submit(reader) for _ in range(2)]
            writers = [
                pool.submit(writer, alias, offset)
                for offset, alias in enumerate(["shared", "shared", "alpha", "beta"])
            ]
            try:
                for future in writers:
                    future.result()
            finally:
                done.set()
            for future in readers:
                assert future.result() >= 1

        assert store.aliases() == ["alpha", "beta", "shared"]
        stored = {store.get(alias).fingerprint for alias in store.aliases()}
        assert {fingerprint(cert) for cert in store.list_by_fingerprint()} == stored
        assert store._alias_locks == {}


class TestInMemoryStore(StoreContract):
    """Test the in-memory backend."""

    rounds = 200

    @pytest.fixture
    def store(self):
        return InMemoryCertificateStore()

    def test_keeps_private_key(self, store, device):
        store.put("device-01", device)

        assert store.get("device-01").has_private_key


class TestFileSystemStore(StoreContract):
    """Test the directory-backed backend."""

    rounds = 20

    @pytest.fixture
    def store(self, tmp_path):
        return FileSystemCertificateStore(tmp_path / "store", passphrase=PASSPHRASE)

    def test_private_bundle_written_as_pkcs12(self, store, device):
        store.put("device-01", device)

        path = store.root_path / "device-01.p12"
        assert path.exists()
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

        restored = import_bundle(path.read_bytes(), PASSPHRASE)
        assert restored.certificate == device.certificate
        assert store.get("device-01").has_private_key

    def test_public_bundle_written_as_pem(self, store, device):
        store.put("device-01", device.public_only())

        data = (store.root_path / "device-01.pem").read_bytes()
        assert b"PRIVATE KEY" not in data
        assert store.get("device-01").chain == device.chain

    def test_index_contents(self, store, root_ca):
        store.put("root", root_ca)

        index = StoreIndex.model_validate_json((store.root_path / "index.json").read_text())
        entry = index.entries["root"]
        assert entry.fingerprint == root_ca.fingerprint
        assert entry.filename == "root.p12"
        assert entry.has_private_key

        raw = json.loads((store.root_path / "index.json").read_text())
        assert "PRIVATE KEY" not in json.dumps(raw)

    def test_switching_format_removes_old_file(self, store, device):
        store.put("device-01", device)
        store.put("device-01", device.public_only())

        assert not (store.root_path / "device-01.p12").exists()
        assert (store.root_path / "device-01.pem").exists()

    def test_refuses_key_without_passphrase(self, tmp_path, device):
        store = FileSystemCertificateStore(tmp_path / "plain")

        with pytest.raises(EmptyPassphrase):
            store.put("device-01", device)
        assert store._alias_locks == {}
        store.put("device-01", device.public_only())

    def test_concurrent_format_switching_keeps_files_consistent(self, store, device):
        def writer(alias):
            for i in range(6):
                store.put(alias, device if i % 2 == 0 else device.public_only())
            return alias

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(writer, ["device-01", "device-01", "device-02", "device-03"]))

        index = StoreIndex.model_validate_json((store.root_path / "index.json").read_text())
        on_disk = sorted(path.name for path in store.root_path.iterdir() if path.name != "index.json")
        assert on_disk == sorted(entry.filename for entry in index.entries.values())
        assert all(entry.filename == f"{alias}.pem" for alias, entry in index.entries.items())
        assert store._alias_locks == {}

    def test_get_rereads_index_when_file_moved(self, store, device, monkeypatch):
        store.put("device-01", device)
        stale = store._read_index()
        store.put("device-01", device.public_only())
        current = store._read_index

        reads = []

        def read_index():
            reads.append(True)
            return stale if len(reads) == 1 else current()

        monkeypatch.setattr(store, "_read_index", read_index)

        bundle = store.get("device-01")

        assert not bundle.has_private_key
        assert bundle.certificate == device.certificate

    def test_reopen(self, store, device):
        store.put("device-01", device)

        reopened = FileSystemCertificateStore(store.root_path, passphrase=PASSPHRASE)

        assert reopened.aliases() == ["device-01"]
        assert reopened.get("device-01").certificate == device.certificate

    def test_reopen_wrong_passphrase(self, store, device):
        store.put("device-01", device)

        reopened = FileSystemCertificateStore(store.root_path, passphrase="nope")

        with pytest.raises(DecryptionFailure):
            reopened.get("device-01")
        # Listing reads public data from the index only
        assert list(reopened.list_by_fingerprint()) == [device.certificate]

    def test_corrupt_index(self, store):
        (store.root_path / "index.json").write_text("{not json")

        with pytest.raises(MalformedEncoding):
            store.aliases()


def test_private_key_export_is_encrypted(device):
    archive = export_bundle(device, PASSPHRASE)
    raw_key = device.key_pair.private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )

    assert raw_key not in archive
