"""
SSH agent access through ssh-add.
"""

import logging
import os
import stat
import subprocess
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

# ssh-add -l exit codes
LIST_OK = 0
LIST_EMPTY = 1


class SSHAgent:
    """Queries and loads identities into the agent named by SSH_AUTH_SOCK."""

    def __init__(self, env: Optional[Mapping[str, str]] = None, binary: str = "ssh-add", timeout: int = 10):
        self.env = os.environ if env is None else env
        self.binary = binary
        self.timeout = timeout

    @property
    def auth_sock(self) -> Optional[str]:
        return self.env.get("SSH_AUTH_SOCK") or None

    def describe(self) -> Dict[str, str]:
        """Agent environment, for status and error output."""
        return {
            "SSH_AUTH_SOCK": self.env.get("SSH_AUTH_SOCK") or "not set",
            "SSH_AGENT_PID": self.env.get("SSH_AGENT_PID") or "not set",
        }

    def _list(self) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                [self.binary, "-l"],
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                env=dict(self.env),
                timeout=self.timeout
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("ssh-add -l failed: %s", e)
            return None

    def is_reachable(self) -> bool:
        """True if an agent socket exists and answers ssh-add -l."""
        sock = self.auth_sock
        if not sock:
            return False
        try:
            if not stat.S_ISSOCK(os.stat(sock).st_mode):
                return False
        except OSError:
            return False

        result = self._list()
        return result is not None and result.returncode in (LIST_OK, LIST_EMPTY)

    def list_identities(self) -> List[str]:
        """Fingerprints of the identities currently loaded (may be empty)."""
        result = self._list()
        if result is None or result.returncode != LIST_OK:
            return []

        fingerprints = []
        # Lines: "256 SHA256:xxx comment (ED25519)"
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                fingerprints.append(parts[1])
        return fingerprints

    def add_identity(self, path: str, interactive: bool) -> bool:
        """
        Load a private key into the agent.

        Args:
            path: Private key file (must be mode 0600)
            interactive: Leave ssh-add attached to the terminal so it can
                ask for the passphrase of an encrypted key

        Returns:
            True if ssh-add accepted the key
        """
        cmd = [self.binary, str(path)]
        logger.debug("Running %s (interactive=%s)", " ".join(cmd), interactive)
        try:
            if interactive:
                result = subprocess.run(cmd, env=dict(self.env))
            else:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    env=dict(self.env),
                    timeout=self.timeout
                )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("ssh-add failed for %s: %s", path, e)
            return False

        if result.returncode != 0:
            logger.debug("ssh-add exited %d for %s", result.returncode, path)
        return result.returncode == 0
