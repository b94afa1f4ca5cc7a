"""
Private/public key pairing.

A private key pairs with the public key at <private path>.pub. Encrypted
keys cannot be derived without the passphrase, so for them the expected
public file must simply exist and be valid. For unencrypted keys the public
form is derived and its fingerprint looked up among all valid public keys,
which catches public keys that were renamed or belong to another key.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .classifier import Classification
from .ssh_keygen import PUBLIC_SUFFIX, KeyTool
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPair:
    """A private key and its fingerprint-consistent public key."""
    private_path: Path
    public_path: Path
    fingerprint: str
    encrypted: bool


class PairingErrorKind(Enum):
    MISSING_PUBLIC = "missing public key"
    FINGERPRINT_MISMATCH = "fingerprint mismatch"
    FILENAME_MISMATCH = "filename mismatch"
    UNDERIVABLE = "cannot derive public key"


@dataclass(frozen=True)
class PairingError:
    kind: PairingErrorKind
    private_path: Path
    expected_public: Path
    actual_public: Optional[Path] = None

    def lines(self) -> List[str]:
        """Human-readable report, naming the files involved."""
        name = self.private_path.name
        if self.kind is PairingErrorKind.MISSING_PUBLIC:
            return [
                f"Missing public key for encrypted private key: '{name}'",
                "Possible filename mismatch",
                f"Expected: {self.expected_public.name}",
            ]
        if self.kind is PairingErrorKind.FILENAME_MISMATCH:
            return [
                "Key pair filename mismatch:",
                f"Private: {name}",
                f"Public: {self.actual_public.name if self.actual_public else '?'}",
                f"Expected: {self.expected_public.name}",
            ]
        if self.kind is PairingErrorKind.FINGERPRINT_MISMATCH:
            return [
                f"Fingerprint mismatch for key pair: '{name}'",
                f"'{self.expected_public.name}' belongs to a different key",
            ]
        return [f"Unable to derive public key or fingerprint from private key: '{name}'"]

    @property
    def invalid_paths(self) -> List[Path]:
        paths = [self.private_path]
        if self.actual_public is not None:
            paths.append(self.actual_public)
        elif self.kind is PairingErrorKind.FINGERPRINT_MISMATCH:
            paths.append(self.expected_public)
        elif self.kind is PairingErrorKind.MISSING_PUBLIC and self.expected_public.exists():
            # present but not a valid public key
            paths.append(self.expected_public)
        return paths


@dataclass
class PairingResult:
    pairs: List[KeyPair] = field(default_factory=list)
    errors: List[PairingError] = field(default_factory=list)
    orphans: List[Path] = field(default_factory=list)
    unencrypted: List[Path] = field(default_factory=list)

    @property
    def invalid_paths(self) -> List[Path]:
        paths: List[Path] = []
        for error in self.errors:
            paths.extend(p for p in error.invalid_paths if p not in paths)
        return paths


def expected_public_path(private_path: Path) -> Path:
    return private_path.with_name(private_path.name + PUBLIC_SUFFIX)


def build_fingerprint_index(classifications: Iterable[Classification]) -> Dict[str, List[Path]]:
    """Fingerprint -> valid public key files with that fingerprint, sorted."""
    index: Dict[str, List[Path]] = {}
    for c in classifications:
        if c.is_public and c.fingerprint:
            index.setdefault(c.fingerprint, []).append(c.path)
    for paths in index.values():
        paths.sort()
    return index


def pair_keys(
    classifications: Iterable[Classification],
    keytool: KeyTool,
    workspace: Workspace,
) -> PairingResult:
    """
    Pair every valid private key with its public key.

    Errors are collected rather than raised so that one run reports every
    problem in the source directory.
    """
    classifications = list(classifications)
    by_path = {c.path: c for c in classifications}
    index = build_fingerprint_index(classifications)
    result = PairingResult()

    privates = sorted((c for c in classifications if c.is_private), key=lambda c: c.path)
    for private in privates:
        expected = expected_public_path(private.path)

        if private.is_encrypted:
            public = by_path.get(expected)
            if public is not None and public.is_public:
                result.pairs.append(KeyPair(private.path, expected, public.fingerprint, True))
            else:
                result.errors.append(PairingError(PairingErrorKind.MISSING_PUBLIC, private.path, expected))
            continue

        result.unencrypted.append(private.path)
        fingerprint = _derive_fingerprint(private.path, keytool, workspace)
        if fingerprint is None:
            result.errors.append(PairingError(PairingErrorKind.UNDERIVABLE, private.path, expected))
            continue

        matches = index.get(fingerprint, [])
        if not matches:
            if expected.exists():
                result.errors.append(
                    PairingError(PairingErrorKind.FINGERPRINT_MISMATCH, private.path, expected)
                )
            else:
                logger.debug("No public key anywhere for %s", private.path)
                result.orphans.append(private.path)
        elif expected in matches:
            result.pairs.append(KeyPair(private.path, expected, fingerprint, False))
        else:
            result.errors.append(
                PairingError(PairingErrorKind.FILENAME_MISMATCH, private.path, expected, matches[0])
            )

    return result


def _derive_fingerprint(private_path: Path, keytool: KeyTool, workspace: Workspace) -> Optional[str]:
    probe_path = workspace.private_copy(private_path)
    derived = keytool.derive_public(str(probe_path), "")
    if not derived.ok:
        logger.debug("Cannot derive public key from %s: %s", private_path, derived.error)
        return None

    public_file = workspace.write_artifact(derived.output, suffix=PUBLIC_SUFFIX)
    listed = keytool.list_fingerprint(str(public_file))
    if not listed.ok:
        logger.debug("Cannot fingerprint derived key of %s: %s", private_path, listed.error)
        return None
    return listed.output
