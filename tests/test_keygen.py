#!/usr/bin/env python3
"""
Tests for the ssh-keygen wrapper.
"""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sshkeymgr.ssh_keygen import (
    KeyTool,
    ProbeResult,
    check_ssh_version,
    command_line,
    is_wrong_passphrase,
)

needs_openssh = pytest.mark.skipif(not check_ssh_version()[0], reason="OpenSSH required")


def completed(returncode, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


def test_check_ssh_version():
    ok, msg = check_ssh_version()

    assert isinstance(ok, bool)
    assert isinstance(msg, str)
    if ok:
        assert "OpenSSH" in msg


def test_check_ssh_version_reports_missing_tools(monkeypatch):
    def which(tool):
        return None if tool == "ssh-add" else f"/usr/bin/{tool}"

    monkeypatch.setattr("sshkeymgr.ssh_keygen.shutil.which", which)

    ok, msg = check_ssh_version()

    assert not ok
    assert msg == "ssh-add not found on PATH"


def test_is_wrong_passphrase():
    wrong = ProbeResult(ok=False, error='Load key "k": incorrect passphrase supplied to decrypt private key')
    corrupt = ProbeResult(ok=False, error='Load key "k": invalid format')

    assert is_wrong_passphrase(wrong)
    assert not is_wrong_passphrase(corrupt)
    assert not is_wrong_passphrase(ProbeResult(ok=True))


@patch('subprocess.run')
def test_try_decrypt_arguments(mock_run):
    mock_run.return_value = completed(0, "ssh-ed25519 AAAA test\n")

    result = KeyTool().try_decrypt("/tmp/key", "pw")

    assert result.ok
    assert result.output == "ssh-ed25519 AAAA test"
    assert mock_run.call_args[0][0] == ["ssh-keygen", "-y", "-P", "pw", "-f", "/tmp/key"]


@patch('subprocess.run')
def test_list_fingerprint_parses_output(mock_run):
    mock_run.return_value = completed(0, "256 SHA256:abcdef comment (ED25519)\n")

    result = KeyTool().list_fingerprint("/tmp/key.pub")

    assert result.ok
    assert result.output == "SHA256:abcdef"


@patch('subprocess.run')
def test_list_fingerprint_failure(mock_run):
    mock_run.return_value = completed(255, stderr="/tmp/key.pub is not a public key file.")

    result = KeyTool().list_fingerprint("/tmp/key.pub")

    assert not result.ok
    assert "not a public key" in result.error


@patch('subprocess.run')
def test_missing_binary_is_a_failed_probe(mock_run):
    mock_run.side_effect = FileNotFoundError()

    result = KeyTool().try_decrypt("/tmp/key", "")

    assert not result.ok
    assert "not found" in result.error


@patch('subprocess.run')
def test_timeout_is_a_failed_probe(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(["ssh-keygen"], 30)

    assert not KeyTool().list_fingerprint("/tmp/key.pub").ok


@patch('subprocess.run')
def test_generate_arguments(mock_run):
    mock_run.return_value = completed(0)
    tool = KeyTool()

    tool.generate("rsa", 4096, "me@example.com", "/tmp/id_rsa", "pw")
    assert mock_run.call_args[0][0] == [
        "ssh-keygen", "-t", "rsa", "-b", "4096", "-C", "me@example.com",
        "-N", "pw", "-f", "/tmp/id_rsa",
    ]

    tool.generate("ed25519", 4096, "me@example.com", "/tmp/id_ed25519")
    assert "-b" not in mock_run.call_args[0][0]


def test_generate_rejects_unknown_type():
    result = KeyTool().generate("dsa", 1024, "c", "/tmp/x")

    assert not result.ok
    assert "Unsupported key type" in result.error


def test_command_line_hides_passphrase():
    line = command_line("rsa", 4096, "me@example.com", "/src/id_rsa")

    assert line == "ssh-keygen -t rsa -b 4096 -C me@example.com -f /src/id_rsa"


@needs_openssh
def test_generate_and_probe(tmp_path):
    key_path = str(tmp_path / "test_key")
    tool = KeyTool()

    assert tool.generate("ed25519", 0, "test-comment", key_path, "hunter2").ok
    assert os.path.exists(key_path)
    assert os.path.exists(f"{key_path}.pub")

    assert tool.try_decrypt(key_path, "hunter2").ok
    wrong = tool.try_decrypt(key_path, "nope")
    assert is_wrong_passphrase(wrong)

    derived = tool.derive_public(key_path, "hunter2")
    assert derived.output.startswith("ssh-ed25519")

    fingerprint = tool.list_fingerprint(f"{key_path}.pub")
    assert fingerprint.output.startswith("SHA256:")


@needs_openssh
def test_generate_refuses_existing(tmp_path):
    key_path = tmp_path / "existing_key"
    key_path.write_text("keep me")

    result = KeyTool().generate("ed25519", 0, "test", str(key_path))

    assert not result.ok
    assert key_path.read_text() == "keep me"
