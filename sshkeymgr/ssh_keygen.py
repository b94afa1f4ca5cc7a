#!/usr/bin/env python3
"""
Thin wrapper around the OpenSSH ssh-keygen binary.

ssh-keygen has no "is this key encrypted" query: everything the classifier
learns comes from trying an operation and looking at whether it succeeded.
The only text this module matches in ssh-keygen output is
WRONG_PASSPHRASE_MARKER.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Tuple

logger = logging.getLogger(__name__)

PUBLIC_SUFFIX = ".pub"

# Substring ssh-keygen prints when a key is well-formed but the passphrase is
# wrong, as opposed to "invalid format" or libcrypto errors for corrupt files.
WRONG_PASSPHRASE_MARKER = "incorrect passphrase"

# Probe passphrases. They only distinguish outcomes and are never secrets.
SENTINEL_PASSPHRASE = "keyisencrypted"
CONFIRM_PASSPHRASE = "arewesurekeyisencrypted"

KEY_TYPES = ("rsa", "ecdsa", "ed25519")

REQUIRED_TOOLS = ("ssh-keygen", "ssh-add")

DEFAULT_TIMEOUT = 30


@dataclass
class ProbeResult:
    """Result of one ssh-keygen invocation."""
    ok: bool
    output: str = ""
    error: str = ""


def is_wrong_passphrase(result: ProbeResult) -> bool:
    """True if a failed probe failed only because of the passphrase."""
    return not result.ok and WRONG_PASSPHRASE_MARKER in result.error.lower()


def check_ssh_version() -> Tuple[bool, str]:
    """
    Check that the OpenSSH tools this package drives are on PATH.

    Returns:
        (ok, the `ssh -V` banner or a description of what is missing)
    """
    missing = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
    if missing:
        return False, f"{', '.join(missing)} not found on PATH"
    try:
        banner = subprocess.run(["ssh", "-V"], capture_output=True, text=True).stderr.strip()
    except OSError:
        banner = ""
    return True, banner or "OpenSSH (version unknown)"


class KeyTool:
    """
    The four ssh-keygen capabilities the rest of the package relies on.

    Every method returns a ProbeResult; failures of the binary itself
    (missing executable, timeout) are reported as failed probes.
    """

    def __init__(self, binary: str = "ssh-keygen", timeout: int = DEFAULT_TIMEOUT):
        self.binary = binary
        self.timeout = timeout

    def _run(self, args: List[str]) -> ProbeResult:
        cmd = [self.binary] + args
        logger.debug("Running %s", " ".join(_redact(cmd)))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            return ProbeResult(ok=False, error=f"{self.binary} not found")
        except subprocess.TimeoutExpired:
            return ProbeResult(ok=False, error=f"{self.binary} timed out after {self.timeout}s")

        if result.returncode != 0:
            logger.debug("%s exited %d: %s", self.binary, result.returncode, result.stderr.strip())
        return ProbeResult(
            ok=result.returncode == 0,
            output=result.stdout.strip(),
            error=result.stderr.strip()
        )

    def try_decrypt(self, path: str, passphrase: str) -> ProbeResult:
        """Attempt to load a private key with the given passphrase."""
        return self._run(["-y", "-P", passphrase, "-f", str(path)])

    def derive_public(self, path: str, passphrase: str) -> ProbeResult:
        """Print the public key of a private key; output is the key line."""
        result = self._run(["-y", "-P", passphrase, "-f", str(path)])
        if result.ok and not result.output:
            return ProbeResult(ok=False, error="ssh-keygen printed no public key")
        return result

    def list_fingerprint(self, path: str) -> ProbeResult:
        """Get the SHA256 fingerprint of a key file."""
        result = self._run(["-l", "-f", str(path)])
        if not result.ok:
            return result
        # Output: "256 SHA256:xxx... comment (ED25519)"
        parts = result.output.split()
        if len(parts) >= 2:
            return ProbeResult(ok=True, output=parts[1])
        return ProbeResult(ok=False, error=f"Unexpected ssh-keygen output: {result.output}")

    def generate(
        self,
        key_type: str,
        bits: int,
        comment: str,
        out_path: str,
        passphrase: str = ""
    ) -> ProbeResult:
        """
        Generate a key pair at out_path and out_path.pub.

        Args:
            key_type: rsa, ecdsa or ed25519
            bits: Key size (ignored for ed25519)
            comment: Key comment
            out_path: Private key path; must not exist
            passphrase: Empty string stores the private key unencrypted
        """
        if key_type not in KEY_TYPES:
            return ProbeResult(ok=False, error=f"Unsupported key type: {key_type}")

        args = ["-t", key_type]
        if key_type != "ed25519":
            args += ["-b", str(bits)]
        args += ["-C", comment, "-N", passphrase, "-f", str(out_path)]
        return self._run(args)


def _redact(cmd: List[str]) -> List[str]:
    """Hide passphrase arguments from log output."""
    redacted = list(cmd)
    for i, arg in enumerate(redacted[:-1]):
        if arg in ("-P", "-N"):
            redacted[i + 1] = "***"
    return redacted


def command_line(key_type: str, bits: int, comment: str, out_path: str) -> str:
    """The generate command as shown to the user."""
    parts = ["ssh-keygen", "-t", key_type]
    if key_type != "ed25519":
        parts += ["-b", str(bits)]
    parts += ["-C", comment, "-f", str(out_path)]
    return " ".join(parts)

