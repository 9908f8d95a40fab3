# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""
Trust policy: accepted roots and the validation relaxations a caller allows.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from cryptography import x509

from ..certificates.parser import describe, fingerprint, load_certificate
from ..config import Settings, settings as default_settings
from ..errors import InputError, MalformedEncoding
from ..store.encoding import import_pem_chain

logger = logging.getLogger(__name__)

ANCHOR_FILE_SUFFIXES = {".pem", ".crt", ".cer", ".der"}


class HostnameMatchMode(str, Enum):
    """How expected hostnames are compared with leaf names."""

    STRICT = "strict"
    WILDCARD = "wildcard"


class RevocationMode(str, Enum):
    """Whether and how revocation is enforced."""

    NONE = "none"
    SOFT_FAIL = "soft_fail"
    HARD_FAIL = "hard_fail"


class TrustAnchorSet:
    """
    Trusted root certificates keyed by SHA-256 fingerprint.

    Append-only: anchors can be added during a session but never removed.
    Reloading trust means building a new set (see TrustPolicy.replace_anchors).
    """

    def __init__(self, anchors: Iterable[x509.Certificate] = ()):
        self._anchors: dict[str, x509.Certificate] = {}
        self._lock = threading.Lock()
        for anchor in anchors:
            self.add(anchor)

    def add(self, certificate: x509.Certificate) -> bool:
        """Add an anchor. Returns False if it was already present."""
        fp = fingerprint(certificate)
        with self._lock:
            if fp in self._anchors:
                return False
            anchors = dict(self._anchors)
            anchors[fp] = certificate
            self._anchors = anchors
        logger.info(f"Added trust anchor: {describe(certificate)} ({fp[:16]})")
        return True

    def __contains__(self, certificate: x509.Certificate) -> bool:
        return fingerprint(certificate) in self._anchors

    def __iter__(self) -> Iterator[x509.Certificate]:
        return iter(list(self._anchors.values()))

    def __len__(self) -> int:
        return len(self._anchors)

    def find_by_subject(self, name: x509.Name) -> list[x509.Certificate]:
        return [cert for cert in self._anchors.values() if cert.subject == name]


def load_anchors(path: Union[str, Path]) -> list[x509.Certificate]:
    """
    Load anchor certificates from a PEM/DER file or a directory of them.

    Raises:
        FileNotFoundError: If path does not exist
        MalformedEncoding: If a file cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trust anchor path not found: {path}")

    files = sorted(p for p in path.iterdir() if p.suffix.lower() in ANCHOR_FILE_SUFFIXES) if path.is_dir() else [path]

    anchors = []
    for file_path in files:
        data = file_path.read_bytes()
        if b"-----BEGIN CERTIFICATE-----" in data:
            anchors.extend(import_pem_chain(data))
        else:
            try:
                anchors.append(load_certificate(data))
            except MalformedEncoding as e:
                raise MalformedEncoding(f"{file_path}: {e}") from e

    logger.info(f"Loaded {len(anchors)} trust anchor(s) from {path}")
    return anchors


@dataclass(frozen=True)
class TrustPolicy:
    """
    Immutable validation policy.

    Attributes:
        anchors: Trusted roots
        max_chain_depth: Maximum certificates in a chain, leaf and anchor included
        allow_expired: Downgrade validity-window failures to warnings
        allow_self_signed_leaf: Accept a self-signed leaf that is not an anchor
        hostname_mode: strict (exact) or wildcard (RFC 6125 left-most label)
        revocation_mode: none, soft_fail or hard_fail
        revocation_timeout: Per-lookup timeout in seconds
    """

    anchors: TrustAnchorSet = field(default_factory=TrustAnchorSet)
    max_chain_depth: int = 10
    allow_expired: bool = False
    allow_self_signed_leaf: bool = False
    hostname_mode: HostnameMatchMode = HostnameMatchMode.STRICT
    revocation_mode: RevocationMode = RevocationMode.NONE
    revocation_timeout: float = 5.0

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        if not isinstance(self.anchors, TrustAnchorSet):
            object.__setattr__(self, "anchors", TrustAnchorSet(self.anchors))
        try:
            object.__setattr__(self, "hostname_mode", HostnameMatchMode(self.hostname_mode))
            object.__setattr__(self, "revocation_mode", RevocationMode(self.revocation_mode))
        except ValueError as e:
            raise InputError(f"Invalid trust policy mode: {e}") from e
        if self.max_chain_depth < 1:
            raise InputError(f"max_chain_depth must be >= 1, got {self.max_chain_depth}")
        if self.revocation_timeout <= 0:
            raise InputError(f"revocation_timeout must be positive, got {self.revocation_timeout}")
        if self.allow_self_signed_leaf:
            logger.warning("Trust policy allows self-signed leaf certificates")

    @classmethod
    def from_settings(
        cls,
        anchors: Optional[Iterable[x509.Certificate]] = None,
        config: Optional[Settings] = None,
    ) -> "TrustPolicy":
        """
        Build a policy from settings.

        Anchors default to settings.trust_anchors_path when not given.
        """
        config = config or default_settings
        if anchors is None:
            anchors = load_anchors(config.trust_anchors_path) if config.trust_anchors_path else ()
        return cls(
            anchors=TrustAnchorSet(anchors),
            max_chain_depth=config.max_chain_depth,
            allow_expired=config.allow_expired,
            allow_self_signed_leaf=config.allow_self_signed_leaf,
            hostname_mode=config.hostname_match_mode,
            revocation_mode=config.revocation_mode,
            revocation_timeout=config.revocation_timeout_seconds,
        )

    def is_anchor(self, certificate: x509.Certificate) -> bool:
        return certificate in self.anchors

    def replace_anchors(self, anchors: Iterable[x509.Certificate]) -> "TrustPolicy":
        """New policy with a wholesale-replaced anchor set."""
        return replace(self, anchors=TrustAnchorSet(anchors))
