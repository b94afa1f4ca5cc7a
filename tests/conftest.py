#!/usr/bin/env python3
"""
Shared fixtures: a fake ssh-keygen that understands toy key files.

Toy file formats:
    PRIVATE <id>                unencrypted private key
    ENCRYPTED <id> <passphrase> encrypted private key
    PUBLIC <id>                 public key, fingerprint SHA256:<id>
Anything else is treated as a corrupt key.
"""

from pathlib import Path

import pytest

from sshkeymgr.ssh_keygen import ProbeResult
from sshkeymgr.workspace import Workspace

WRONG_PASSPHRASE = 'Load key "{}": incorrect passphrase supplied to decrypt private key'
INVALID_FORMAT = 'Load key "{}": invalid format'


class FakeKeyTool:
    def __init__(self):
        self.calls = []

    def _read(self, path):
        return Path(path).read_text().rstrip("\n")

    def try_decrypt(self, path, passphrase):
        self.calls.append(("try_decrypt", str(path), passphrase))
        content = self._read(path)
        parts = content.split(" ", 2)
        if parts[0] == "PRIVATE" and len(parts) >= 2:
            return ProbeResult(ok=True, output=f"PUBLIC {parts[1]}")
        if parts[0] == "ENCRYPTED" and len(parts) >= 2:
            real = parts[2] if len(parts) == 3 else ""
            if passphrase == real:
                return ProbeResult(ok=True, output=f"PUBLIC {parts[1]}")
            return ProbeResult(ok=False, error=WRONG_PASSPHRASE.format(path))
        return ProbeResult(ok=False, error=INVALID_FORMAT.format(path))

    def derive_public(self, path, passphrase):
        self.calls.append(("derive_public", str(path), passphrase))
        return self.try_decrypt(path, passphrase)

    def list_fingerprint(self, path):
        self.calls.append(("list_fingerprint", str(path)))
        parts = self._read(path).split()
        if len(parts) == 2 and parts[0] == "PUBLIC":
            return ProbeResult(ok=True, output=f"SHA256:{parts[1]}")
        return ProbeResult(ok=False, error=f"{path} is not a public key file.")

    def generate(self, key_type, bits, comment, out_path, passphrase=""):
        self.calls.append(("generate", key_type, bits, comment, str(out_path)))
        key_id = Path(out_path).name
        if passphrase:
            Path(out_path).write_text(f"ENCRYPTED {key_id} {passphrase}\n")
        else:
            Path(out_path).write_text(f"PRIVATE {key_id}\n")
        Path(str(out_path) + ".pub").write_text(f"PUBLIC {key_id}\n")
        return ProbeResult(ok=True)


class FakeAgent:
    def __init__(self, reachable=True, accept=True):
        self.reachable = reachable
        self.accept = accept
        self.loaded = []
        self.added = []
        self.auth_sock = "/tmp/fake-agent.sock" if reachable else None

    def describe(self):
        return {"SSH_AUTH_SOCK": self.auth_sock or "not set", "SSH_AGENT_PID": "not set"}

    def is_reachable(self):
        return self.reachable

    def list_identities(self):
        return list(self.loaded)

    def add_identity(self, path, interactive):
        self.added.append((path, interactive))
        if not self.accept:
            return False
        content = Path(path).read_text().split()
        self.loaded.append(f"SHA256:{content[1]}")
        return True


class ScriptedInput:
    """input() replacement returning canned answers; raises on exhaustion."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, message=""):
        self.prompts.append(message)
        if not self.answers:
            raise EOFError
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


def write_key(directory, name, content):
    path = Path(directory) / name
    path.write_text(content + "\n" if content else "")
    return path


@pytest.fixture
def keytool():
    return FakeKeyTool()


@pytest.fixture
def workspace():
    ws = Workspace()
    yield ws
    ws.cleanup()
