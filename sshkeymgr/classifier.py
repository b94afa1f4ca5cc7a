"""
Key classification.

Decides, for each file in the source directory, whether it is a usable
private or public key and whether a private key is passphrase-protected.

ssh-keygen can only tell us whether loading a key with a given passphrase
works, so encryption status is inferred from a few targeted probes:

1. Empty passphrase. Success means the key loads without a passphrase.
2. If so, the sentinel and confirm passphrases. An unencrypted key accepts
   both. Accepting the sentinel but rejecting the confirm passphrase can only
   mean the key's passphrase is the sentinel.
3. If the empty passphrase fails, the sentinel alone. Success means the key
   is encrypted with exactly the sentinel. A wrong-passphrase failure means
   it is encrypted with something else; any other failure means the file is
   not a key.

Known limitation: a key whose real passphrase happens to be the sentinel is
reported with passphrase_hint set. Nothing stronger is possible without a
direct "is this encrypted" query.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .ssh_keygen import (
    CONFIRM_PASSPHRASE,
    PUBLIC_SUFFIX,
    SENTINEL_PASSPHRASE,
    KeyTool,
    is_wrong_passphrase,
)
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateFile:
    """A file found in the source directory."""
    path: Path
    size: int

    @property
    def is_public(self) -> bool:
        return self.path.name.endswith(PUBLIC_SUFFIX)

    @classmethod
    def from_path(cls, path) -> "CandidateFile":
        path = Path(path).absolute()
        return cls(path=path, size=path.stat().st_size)


class KeyStatus(Enum):
    EMPTY_INVALID = "empty"
    INVALID_PRIVATE = "invalid private key"
    INVALID_PUBLIC = "invalid public key"
    VALID_UNENCRYPTED_PRIVATE = "private key (unencrypted)"
    VALID_ENCRYPTED_PRIVATE = "private key (encrypted)"
    VALID_PUBLIC = "public key"


VALID_STATUSES = (
    KeyStatus.VALID_UNENCRYPTED_PRIVATE,
    KeyStatus.VALID_ENCRYPTED_PRIVATE,
    KeyStatus.VALID_PUBLIC,
)


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one candidate file."""
    path: Path
    status: KeyStatus
    fingerprint: Optional[str] = None
    passphrase_hint: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status in VALID_STATUSES

    @property
    def is_private(self) -> bool:
        return self.status in (
            KeyStatus.VALID_UNENCRYPTED_PRIVATE,
            KeyStatus.VALID_ENCRYPTED_PRIVATE,
        )

    @property
    def is_public(self) -> bool:
        return self.status is KeyStatus.VALID_PUBLIC

    @property
    def is_encrypted(self) -> bool:
        return self.status is KeyStatus.VALID_ENCRYPTED_PRIVATE

    def describe(self) -> str:
        if self.status is KeyStatus.VALID_ENCRYPTED_PRIVATE and self.passphrase_hint:
            return f"{self.status.value}, passphrase is '{self.passphrase_hint}'"
        if self.status is KeyStatus.VALID_PUBLIC:
            return f"{self.status.value} {self.fingerprint}"
        return self.status.value


def discover_candidates(source_dir) -> List[CandidateFile]:
    """All regular files under source_dir, in a stable order."""
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        logger.warning("Source directory does not exist: %s", source_dir)
        return []

    candidates = []
    for root, dirs, files in os.walk(source_dir):
        dirs.sort()
        for name in sorted(files):
            path = Path(root) / name
            if path.is_symlink() or not path.is_file():
                continue
            try:
                candidates.append(CandidateFile.from_path(path))
            except OSError as e:
                logger.warning("Skipping %s: %s", path, e)
    return candidates


class KeyClassifier:
    """Classifies candidate files using ssh-keygen probes."""

    def __init__(self, keytool: KeyTool, workspace: Workspace):
        self.keytool = keytool
        self.workspace = workspace

    def classify(self, candidate: CandidateFile) -> Classification:
        if candidate.size == 0:
            return Classification(candidate.path, KeyStatus.EMPTY_INVALID)

        if candidate.is_public:
            return self._classify_public(candidate)
        return self._classify_private(candidate)

    def classify_all(self, candidates: List[CandidateFile]) -> List[Classification]:
        return [self.classify(candidate) for candidate in candidates]

    def _classify_public(self, candidate: CandidateFile) -> Classification:
        result = self.keytool.list_fingerprint(str(candidate.path))
        if result.ok:
            return Classification(candidate.path, KeyStatus.VALID_PUBLIC, fingerprint=result.output)
        return Classification(candidate.path, KeyStatus.INVALID_PUBLIC)

    def _classify_private(self, candidate: CandidateFile) -> Classification:
        self.workspace.snapshot(candidate.path)
        try:
            probe_path = str(self.workspace.private_copy(candidate.path))
        except OSError as e:
            logger.debug("Cannot read %s: %s", candidate.path, e)
            return Classification(candidate.path, KeyStatus.INVALID_PRIVATE)

        if self.keytool.try_decrypt(probe_path, "").ok:
            sentinel = self.keytool.try_decrypt(probe_path, SENTINEL_PASSPHRASE)
            confirm = self.keytool.try_decrypt(probe_path, CONFIRM_PASSPHRASE)
            if sentinel.ok and not confirm.ok:
                return self._encrypted(candidate, SENTINEL_PASSPHRASE)
            return Classification(candidate.path, KeyStatus.VALID_UNENCRYPTED_PRIVATE)

        sentinel = self.keytool.try_decrypt(probe_path, SENTINEL_PASSPHRASE)
        if sentinel.ok:
            return self._encrypted(candidate, SENTINEL_PASSPHRASE)
        if is_wrong_passphrase(sentinel):
            return self._encrypted(candidate)

        logger.debug("%s rejected by ssh-keygen: %s", candidate.path, sentinel.error)
        return Classification(candidate.path, KeyStatus.INVALID_PRIVATE)

    @staticmethod
    def _encrypted(candidate: CandidateFile, hint: Optional[str] = None) -> Classification:
        return Classification(
            candidate.path,
            KeyStatus.VALID_ENCRYPTED_PRIVATE,
            passphrase_hint=hint
        )
