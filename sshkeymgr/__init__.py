"""ssh-key-manager library."""

from .ssh_keygen import (
    KeyTool,
    ProbeResult,
    check_ssh_version,
    is_wrong_passphrase,
)

from .agent import SSHAgent

from .classifier import (
    CandidateFile,
    Classification,
    KeyClassifier,
    KeyStatus,
    discover_candidates,
)

from .pairing import (
    KeyPair,
    PairingError,
    PairingErrorKind,
    PairingResult,
    pair_keys,
)

from .conflicts import ConflictResolver, DeploymentDecision
from .workspace import Workspace

__version__ = "0.1.0"
__all__ = [
    "KeyTool",
    "ProbeResult",
    "check_ssh_version",
    "is_wrong_passphrase",
    "SSHAgent",
    "CandidateFile",
    "Classification",
    "KeyClassifier",
    "KeyStatus",
    "discover_candidates",
    "KeyPair",
    "PairingError",
    "PairingErrorKind",
    "PairingResult",
    "pair_keys",
    "ConflictResolver",
    "DeploymentDecision",
    "Workspace",
]
