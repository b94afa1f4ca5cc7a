#!/usr/bin/env python3
"""
CLI for ssh-key-manager: validate and deploy SSH key pairs.
"""

import argparse
import logging
import signal
import sys

from . import __version__
from .agent import SSHAgent
from .config import DEFAULT_CONFIG_FILE, ensure_ssh_dir, load_settings
from .deploy import Deployer, DeploymentReport
from .errors import CancelScope, KeyManagerError, OperationCanceled, PairingFailed
from .prompts import Prompter
from .ssh_keygen import KeyTool, check_ssh_version
from .workspace import Workspace

MENU_CHOICES = {
    "copy": ("1", "copy"),
    "generate": ("2", "generate"),
    "cancel": ("3", "cancel"),
}


def _terminate(signum, frame):
    # Turn SIGTERM into SystemExit so Workspace cleanup runs
    sys.exit(128 + signum)


def _print_error(message: str):
    lines = str(message).splitlines() or [""]
    print(f"ERROR: {lines[0]}", file=sys.stderr)
    for line in lines[1:]:
        print(f"       {line}", file=sys.stderr)


def _print_pairing_errors(errors):
    for error in errors:
        _print_error("\n".join(error.lines()))
    print("Aborting due to validation errors...", file=sys.stderr)


def _print_summary(report: DeploymentReport):
    print("\n=== Summary ===")
    print("Copied SSH Keys:")
    if not report.copied:
        print("  None")
    for deployed in report.copied:
        print(f"  '{deployed.source}' -> '{deployed.dest}'")
    if report.canceled:
        print("Skipped (canceled):")
        for source in report.canceled:
            print(f"  '{source}'")
    print("SSH-Agent Identities:")
    if not report.identities:
        print("  No keys loaded in agent")
    for fingerprint in report.identities:
        print(f"  {fingerprint}")


def _load(args, prompter: Prompter):
    settings = load_settings(args.config, {
        "SRC_DIR": args.source,
        "SSH_DIR": args.dest,
        "KEY_COMMENT": args.comment,
        "KEY_TYPE": args.key_type,
        "KEY_BITS": str(args.bits) if args.bits else None,
    })
    if settings.nonstandard_ssh_dir:
        print(f"WARNING: SSH_DIR does not end with '.ssh' - Found: '{settings.ssh_dir}'")
        print("         This is not a standard SSH directory name")
        if not prompter.confirm("Would you like to continue anyway? [y/n]: ", CancelScope.RUN):
            raise OperationCanceled(CancelScope.RUN)
    return settings


def _run(args, workflow: str) -> int:
    """Shared driver for copy, generate and inspect."""
    prompter = Prompter()
    try:
        settings = _load(args, prompter)
        if workflow != "inspect":
            ensure_ssh_dir(settings)

        print("=== SSH Key Management ===")
        print(f"Configuration file: '{settings.config_path}'")
        print(f"SSH Key source directory set to: '{settings.source_dir}'")
        print(f"SSH Key destination directory set to: '{settings.ssh_dir}'\n")

        with Workspace() as workspace:
            deployer = Deployer(
                settings,
                KeyTool(),
                SSHAgent(),
                prompter,
                workspace,
                interactive=sys.stdin.isatty(),
            )

            if workflow == "menu":
                workflow = _menu(prompter, settings)

            if workflow == "inspect":
                result = deployer.inspect()
                print(f"\nKey pairs ({len(result.pairs)}):")
                for pair in result.pairs:
                    state = "encrypted" if pair.encrypted else "unencrypted"
                    print(f"  {pair.private_path.name} + {pair.public_path.name} [{state}] {pair.fingerprint}")
                if result.errors:
                    _print_pairing_errors(result.errors)
                    return 1
                return 0

            if workflow == "copy":
                report = deployer.run_copy()
            else:
                report = deployer.run_generate()
            _print_summary(report)
            return 0

    except OperationCanceled as e:
        print(str(e))
        return e.scope.exit_code
    except KeyboardInterrupt:
        print("\nOperation canceled")
        return CancelScope.RUN.exit_code
    except PairingFailed as e:
        _print_pairing_errors(e.errors)
        return 1
    except KeyManagerError as e:
        _print_error(str(e))
        return 1
    except OSError as e:
        _print_error(str(e))
        return 1


def _menu(prompter: Prompter, settings) -> str:
    print("Please choose an option:")
    print(f"  1. \"Copy\" existing SSH keys from '{settings.source_dir}'")
    print("  2. \"Generate\" new SSH keys")
    print("  3. \"Cancel\" (or CTRL+C)")
    choice = prompter.choose(
        "  Enter your choice (1, 2, or 3): ",
        MENU_CHOICES,
        CancelScope.MENU,
        "  Invalid choice - Please enter 1, 2, or 3 (CTRL+C to cancel)",
    )
    if choice == "cancel":
        raise OperationCanceled(CancelScope.MENU)
    return choice


def cmd_menu(args):
    """Interactive: choose copy, generate or cancel."""
    return _run(args, "menu")


def cmd_copy(args):
    """Validate keys in the source directory and deploy them."""
    return _run(args, "copy")


def cmd_generate(args):
    """Generate a new key pair in the source directory and deploy it."""
    return _run(args, "generate")


def cmd_inspect(args):
    """Classify and pair keys in the source directory without deploying."""
    return _run(args, "inspect")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="ssh-key-manager",
        description="Validate SSH key pairs and deploy them to an SSH directory"
    )
    parser.add_argument('--version', action='version', version=f'ssh-key-manager {__version__}')
    parser.add_argument('--config', help=f'Path to settings file (default: {DEFAULT_CONFIG_FILE})')
    parser.add_argument('--source', help='Source directory (overrides SRC_DIR)')
    parser.add_argument('--dest', help='Destination SSH directory (overrides SSH_DIR)')
    parser.add_argument('--comment', help='Comment for generated keys (overrides KEY_COMMENT)')
    parser.add_argument('--key-type', choices=['rsa', 'ecdsa', 'ed25519'], help='Type of generated keys (overrides KEY_TYPE)')
    parser.add_argument('--bits', type=int, help='Size of generated keys (overrides KEY_BITS)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug output')
    parser.set_defaults(func=cmd_menu)

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    copy_parser = subparsers.add_parser('copy', help='Deploy existing keys from the source directory')
    copy_parser.set_defaults(func=cmd_copy)

    generate_parser = subparsers.add_parser('generate', help='Generate and deploy a new key pair')
    generate_parser.set_defaults(func=cmd_generate)

    inspect_parser = subparsers.add_parser('inspect', help='Classify and pair keys without deploying')
    inspect_parser.set_defaults(func=cmd_inspect)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    ok, msg = check_ssh_version()
    if not ok:
        print(f"Error: {msg}", file=sys.stderr)
        print("ssh-key-manager requires OpenSSH (ssh-keygen and ssh-add)", file=sys.stderr)
        return 1

    signal.signal(signal.SIGTERM, _terminate)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
