"""
Exception classes for ssh-key-manager.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class KeyManagerError(Exception):
    """Base exception for all ssh-key-manager errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(KeyManagerError):
    """Missing or invalid settings; raised before any key operation begins"""
    pass


class InvalidKeysError(KeyManagerError):
    """Empty, corrupt or unreadable keys in the source directory"""
    pass


class PairingFailed(KeyManagerError):
    """One or more private/public keys could not be paired"""

    def __init__(self, errors: List[Any]):
        super().__init__(f"{len(errors)} key pairing error(s)")
        self.errors = errors


class GenerationError(KeyManagerError):
    """ssh-keygen failed to produce a key pair"""
    pass


class AgentError(KeyManagerError):
    """The SSH agent is unreachable or rejected an identity"""
    pass


class CancelScope(Enum):
    """How far an interrupt reaches."""
    FILE = "file"
    MENU = "menu"
    RUN = "run"

    @property
    def exit_code(self) -> int:
        return 0 if self is CancelScope.MENU else 1


class OperationCanceled(Exception):
    """The user backed out of a prompt (explicitly or with CTRL+C)."""

    def __init__(self, scope: CancelScope, message: str = "Operation canceled"):
        super().__init__(message)
        self.scope = scope
