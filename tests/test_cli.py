#!/usr/bin/env python3
"""
CLI tests: argument handling in a subprocess, workflows in-process with
fake ssh-keygen and agent.
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from sshkeymgr import cli
from sshkeymgr.prompts import Prompter
from sshkeymgr.ssh_keygen import KeyTool, check_ssh_version

from conftest import FakeAgent, FakeKeyTool, ScriptedInput, write_key


def run_cli(*args, input_text=None):
    """
    Run the CLI module and return (stdout, stderr, returncode).
    """
    project_root = Path(__file__).parent.parent
    cmd = [sys.executable, "-m", "sshkeymgr"] + list(args)

    result = subprocess.run(
        cmd,
        cwd=project_root,
        input=input_text,
        text=True,
        capture_output=True
    )
    return result.stdout, result.stderr, result.returncode


@pytest.fixture
def dirs(tmp_path):
    source = tmp_path / "source"
    ssh_dir = tmp_path / ".ssh"
    source.mkdir()
    return source, ssh_dir


@pytest.fixture
def fakes(monkeypatch):
    """Swap the real adapters for fakes; returns a setter for prompt answers."""
    agent = FakeAgent()
    monkeypatch.setattr(cli, "check_ssh_version", lambda: (True, "OpenSSH_9.6p1"))
    monkeypatch.setattr(cli, "KeyTool", FakeKeyTool)
    monkeypatch.setattr(cli, "SSHAgent", lambda: agent)

    def answers(*values, passphrases=()):
        monkeypatch.setattr(
            cli,
            "Prompter",
            lambda: Prompter(input_func=ScriptedInput(*values), passphrase_func=ScriptedInput(*passphrases)),
        )
    answers()
    return answers


def base_args(tmp_path, source, ssh_dir):
    return [
        "--config", str(tmp_path / "missing.env"),
        "--source", str(source),
        "--dest", str(ssh_dir),
        "--comment", "user@example.com",
        "--key-type", "ed25519",
        "--bits", "256",
    ]


def test_cli_help():
    stdout, stderr, code = run_cli("--help")

    assert code == 0
    help_text = stdout + stderr
    assert "ssh-key-manager" in help_text
    assert "copy" in help_text
    assert "generate" in help_text
    assert "inspect" in help_text


def test_cli_version():
    stdout, stderr, code = run_cli("--version")

    assert code == 0
    assert "ssh-key-manager" in stdout + stderr


def test_missing_config_is_fatal(tmp_path, fakes, capsys):
    code = cli.main(["--config", str(tmp_path / "missing.env"), "copy"])

    assert code == 1
    assert "Configuration file (ssh_manager_config.env) not found" in capsys.readouterr().err


def test_menu_cancel_exits_cleanly(tmp_path, dirs, fakes, capsys):
    fakes("3")

    code = cli.main(base_args(tmp_path, *dirs))

    assert code == 0
    assert "Operation canceled" in capsys.readouterr().out


def test_menu_interrupt_exits_cleanly(tmp_path, dirs, fakes):
    fakes("bogus", KeyboardInterrupt())

    assert cli.main(base_args(tmp_path, *dirs)) == 0


def test_menu_copy(tmp_path, dirs, fakes, capsys):
    source, ssh_dir = dirs
    write_key(source, "id_rsa", "PRIVATE a")
    write_key(source, "id_rsa.pub", "PUBLIC a")
    fakes("COPY")

    code = cli.main(base_args(tmp_path, source, ssh_dir))

    assert code == 0
    out = capsys.readouterr().out
    assert "=== Summary ===" in out
    assert f"'{source / 'id_rsa'}' -> '{ssh_dir / 'id_rsa'}'" in out
    assert "SHA256:a" in out
    assert (ssh_dir / "id_rsa").exists()


def test_copy_pairing_errors_exit_nonzero(tmp_path, dirs, fakes, capsys):
    source, ssh_dir = dirs
    write_key(source, "mykey", "ENCRYPTED a hunter2")

    code = cli.main(base_args(tmp_path, source, ssh_dir) + ["copy"])

    assert code == 1
    err = capsys.readouterr().err
    assert "Missing public key for encrypted private key: 'mykey'" in err
    assert "Expected: mykey.pub" in err
    assert not (ssh_dir / "mykey").exists()


def test_copy_os_error_reported_cleanly(tmp_path, dirs, fakes, monkeypatch, capsys):
    source, ssh_dir = dirs
    write_key(source, "id_rsa", "PRIVATE a")
    write_key(source, "id_rsa.pub", "PUBLIC a")
    real_copyfile = shutil.copyfile

    def copyfile(src, dst, *args, **kwargs):
        if Path(dst).parent.name == ".ssh":
            raise OSError(28, "No space left on device", str(dst))
        return real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr("sshkeymgr.deploy.shutil.copyfile", copyfile)

    code = cli.main(base_args(tmp_path, source, ssh_dir) + ["copy"])

    assert code == 1
    assert "ERROR: [Errno 28] No space left on device" in capsys.readouterr().err


def test_generate_interrupt_exits_nonzero(tmp_path, dirs, fakes):
    fakes(KeyboardInterrupt())

    assert cli.main(base_args(tmp_path, *dirs) + ["generate"]) == 1


def test_generate_deploys_new_pair(tmp_path, dirs, fakes):
    source, ssh_dir = dirs
    fakes("work_key", passphrases=["", ""])

    code = cli.main(base_args(tmp_path, source, ssh_dir) + ["generate"])

    assert code == 0
    assert (source / "work_key").exists()
    assert (ssh_dir / "work_key").exists()
    assert (ssh_dir / "work_key.pub").exists()


def test_inspect_does_not_create_ssh_dir(tmp_path, dirs, fakes, capsys):
    source, ssh_dir = dirs
    write_key(source, "id_rsa", "PRIVATE a")
    write_key(source, "id_rsa.pub", "PUBLIC a")

    code = cli.main(base_args(tmp_path, source, ssh_dir) + ["inspect"])

    assert code == 0
    assert "id_rsa + id_rsa.pub [unencrypted] SHA256:a" in capsys.readouterr().out
    assert not ssh_dir.exists()


def test_nonstandard_ssh_dir_needs_confirmation(tmp_path, dirs, fakes):
    source, _ = dirs
    fakes("n")
    args = base_args(tmp_path, source, tmp_path / "keys") + ["copy"]

    assert cli.main(args) == 1
    assert not (tmp_path / "keys").exists()


@pytest.mark.skipif(not check_ssh_version()[0], reason="OpenSSH required")
def test_cli_inspect_real_keys(tmp_path):
    source = tmp_path / "source"
    source.mkdir()
    assert KeyTool().generate("ed25519", 0, "test", str(source / "id_ed25519"), "hunter2").ok
    (source / "empty").write_text("")

    stdout, stderr, code = run_cli(
        *base_args(tmp_path, source, tmp_path / ".ssh"), "inspect"
    )

    assert code == 0, stderr
    assert "Invalid empty" in stdout
    assert "id_ed25519 + id_ed25519.pub [encrypted]" in stdout
    assert not os.path.exists(tmp_path / ".ssh")
