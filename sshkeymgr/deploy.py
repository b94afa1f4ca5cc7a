"""
Deployment workflow.

classify -> pair -> resolve conflicts and copy -> set permissions -> load
into the agent. The Workspace passed in owns every temporary file and the
original permissions of touched files; the caller is expected to use it as
a context manager so cleanup happens on every exit path.
"""

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .agent import SSHAgent
from .classifier import CandidateFile, Classification, KeyClassifier, discover_candidates
from .config import Settings
from .conflicts import ConflictResolver
from .errors import AgentError, CancelScope, GenerationError, InvalidKeysError, PairingFailed
from .pairing import KeyPair, PairingResult, pair_keys
from .prompts import Prompter
from .ssh_keygen import PUBLIC_SUFFIX, KeyTool, command_line
from .validators import filename_validators
from .workspace import Workspace

logger = logging.getLogger(__name__)

PRIVATE_KEY_PERMISSIONS = 0o600
PUBLIC_KEY_PERMISSIONS = 0o644
SOURCE_DIR_PERMISSIONS = 0o700
DEFAULT_KEY_NAME = "id_rsa"


@dataclass
class DeployedFile:
    source: Path
    dest: Path
    is_public: bool
    pair: KeyPair


@dataclass
class DeploymentReport:
    copied: List[DeployedFile] = field(default_factory=list)
    canceled: List[Path] = field(default_factory=list)
    identities: List[str] = field(default_factory=list)


class Deployer:
    """Runs one copy or generate workflow."""

    def __init__(
        self,
        settings: Settings,
        keytool: KeyTool,
        agent: SSHAgent,
        prompter: Prompter,
        workspace: Workspace,
        interactive: bool = True,
    ):
        self.settings = settings
        self.keytool = keytool
        self.agent = agent
        self.prompter = prompter
        self.workspace = workspace
        self.interactive = interactive
        self.classifier = KeyClassifier(keytool, workspace)
        self.resolver = ConflictResolver(settings.ssh_dir, prompter)
        self.report = DeploymentReport()

    # Classification and pairing

    def classify_source(self) -> List[Classification]:
        print(f"Validating keys in '{self.settings.source_dir}'")
        results = []
        for candidate in discover_candidates(self.settings.source_dir):
            classification = self.classifier.classify(candidate)
            label = "Valid" if classification.is_valid else "Invalid"
            print(f"  {label} {classification.describe()}: '{candidate.path}'")
            results.append(classification)
        return results

    def pair(self, classifications: List[Classification]) -> PairingResult:
        result = pair_keys(
            [c for c in classifications if c.is_valid],
            self.keytool,
            self.workspace,
        )
        for path in result.unencrypted:
            print(f"WARNING: Private key '{path.name}' has no passphrase (unencrypted)")
            print("         This is not recommended for security!")
            print("         To add a passphrase manually, use:")
            print(f"           ssh-keygen -p -f '{path}'")
        for path in result.orphans:
            print(f"WARNING: No public key found for '{path.name}' - Skipping")
        return result

    def inspect(self) -> PairingResult:
        """Classify and pair without deploying anything."""
        return self.pair(self.classify_source())

    def _pairs_or_fail(self, classifications: List[Classification]) -> List[KeyPair]:
        result = self.pair(classifications)
        if result.errors:
            raise PairingFailed(result.errors)
        return result.pairs

    # Workflows

    def run_copy(self) -> DeploymentReport:
        classifications = self.classify_source()
        invalid = [c for c in classifications if not c.is_valid]
        valid = [c for c in classifications if c.is_valid]

        if invalid:
            print("ERROR: Invalid keys detected:")
            for c in invalid:
                print(f"  {c.path} ({c.status.value})")
            valid += self._offer_generation(
                InvalidKeysError(
                    "Invalid keys detected",
                    details={"invalid": [str(c.path) for c in invalid]}
                )
            )

        pairs = self._pairs_or_fail(valid)
        if not pairs:
            print("ERROR: No valid key pairs found")
            pairs = self._pairs_or_fail(
                self._offer_generation(InvalidKeysError("No valid key pairs found"))
            )
        return self.deploy(pairs)

    def run_generate(self) -> DeploymentReport:
        return self.deploy(self._pairs_or_fail(self.generate_pair()))

    def _offer_generation(self, refusal: Exception) -> List[Classification]:
        if not self.prompter.confirm(
            "Generate new SSH keys (key pair)? [y/n] (CTRL+C to cancel): ",
            CancelScope.RUN,
        ):
            raise refusal
        return self.generate_pair()

    def generate_pair(self) -> List[Classification]:
        """Prompt for a name and passphrase, generate, and classify the result."""
        source_dir = self.settings.source_dir
        source_dir.mkdir(mode=SOURCE_DIR_PERMISSIONS, exist_ok=True)

        validators = filename_validators(source_dir, public=False)
        validators.append(_public_half_free(source_dir))
        name = self.prompter.ask_filename(
            f"Enter new private key name (default: {DEFAULT_KEY_NAME}) (CTRL+C to cancel): ",
            validators,
            CancelScope.RUN,
            default=DEFAULT_KEY_NAME,
        )
        key_path = source_dir / name
        s = self.settings

        print(f"Generating new key pair:\n  '{key_path}'\n  '{key_path}{PUBLIC_SUFFIX}'")
        print(f"  >{command_line(s.key_type, s.key_bits, s.key_comment, str(key_path))}")
        print("  **If you provide an empty passphrase, the private key is saved in plaintext (unencrypted)")
        print("  **Entering an empty passphrase is not recommended!")
        print("  **Don't forget your passphrase! A forgotten passphrase cannot be recovered")
        passphrase = self.prompter.ask_new_passphrase(CancelScope.RUN)

        result = self.keytool.generate(s.key_type, s.key_bits, s.key_comment, str(key_path), passphrase)
        if not result.ok:
            raise GenerationError(f"Key generation failed: {result.error or 'ssh-keygen failed'}")
        logger.debug("Generated %s", key_path)

        public_path = key_path.with_name(name + PUBLIC_SUFFIX)
        return [
            self.classifier.classify(CandidateFile.from_path(path))
            for path in (key_path, public_path)
        ]

    # Deployment

    def deploy(self, pairs: List[KeyPair]) -> DeploymentReport:
        queue = [(p.private_path, False, p) for p in pairs]
        queue += [(p.public_path, True, p) for p in pairs]

        processed = set()
        for source, is_public, pair in queue:
            default_dest = self.settings.ssh_dir / source.name
            if default_dest in processed:
                continue
            processed.add(default_dest)

            decision = self.resolver.resolve(source, is_public)
            if decision.canceled:
                self.report.canceled.append(source)
                continue

            if decision.dest.exists():
                self.workspace.snapshot(decision.dest)
            shutil.copyfile(source, decision.dest)
            if not is_public:
                os.chmod(decision.dest, PRIVATE_KEY_PERMISSIONS)
            print(f"  '{source}' -> '{decision.dest}'")
            self.report.copied.append(DeployedFile(source, decision.dest, is_public, pair))

        self.apply_permissions()
        self.report.identities = self.register_with_agent()
        return self.report

    def apply_permissions(self) -> None:
        for deployed in self.report.copied:
            mode = PUBLIC_KEY_PERMISSIONS if deployed.is_public else PRIVATE_KEY_PERMISSIONS
            os.chmod(deployed.dest, mode)
            print(f"Set permissions {mode:o} for: {deployed.dest.name}")
        self.workspace.mark_permissions_applied()

    def register_with_agent(self) -> List[str]:
        env = self.agent.describe()
        print("\n=== SSH Agent Status Check ===")
        print(f"Current SSH_AUTH_SOCK: {env['SSH_AUTH_SOCK']}")
        print(f"Current SSH_AGENT_PID: {env['SSH_AGENT_PID']}")

        if not self.agent.is_reachable():
            message = [
                "SSH Agent is not running or not accessible",
                "To start an SSH Agent manually, run the following command in your terminal:",
                "  eval \"$(ssh-agent -s)\"",
                "Then re-run this command",
            ]
            if self.agent.auth_sock:
                message.append("Note: SSH_AUTH_SOCK is set but agent is not responding")
                message.append("      You may need to kill existing agents with: pkill ssh-agent")
            raise AgentError("\n".join(message), details=env)

        loaded = set(self.agent.list_identities())
        print("Currently loaded keys in agent:")
        _print_identities(loaded)

        for deployed in self.report.copied:
            if deployed.is_public:
                continue
            name = deployed.dest.name
            if deployed.pair.fingerprint in loaded:
                print(f"Key identity already loaded in SSH-Agent: '{name}'")
                continue

            print(f"Attempting to add key identity to SSH-Agent: '{name}'")
            if deployed.pair.encrypted:
                if not self.interactive:
                    raise AgentError(
                        f"Cannot add encrypted key identity '{name}' in non-interactive mode\n"
                        "Passphrase required for encrypted key"
                    )
                print(f"  >ssh-add {deployed.dest}")
                print("Passphrase required...")
            if not self.agent.add_identity(str(deployed.dest), interactive=deployed.pair.encrypted):
                kind = "encrypted" if deployed.pair.encrypted else "unencrypted"
                raise AgentError(
                    f"Failed to add {kind} key identity to SSH-Agent: '{name}'\n"
                    "Check passphrase and permissions\n"
                    f"Expected: Permissions 0{PRIVATE_KEY_PERMISSIONS:o}\n"
                    f"Current Permissions: 0{_mode(deployed.dest):o}\n"
                    f"SSH_AUTH_SOCK: {env['SSH_AUTH_SOCK']}",
                    details={"path": str(deployed.dest)}
                )
            print("Successfully added key identity to SSH-Agent")

        return self.agent.list_identities()


def _public_half_free(directory: Path):
    def check(name: str):
        if (directory / (name + PUBLIC_SUFFIX)).exists():
            return f"Filename '{name}{PUBLIC_SUFFIX}' already exists in '{directory}'"
        return None
    return check


def _mode(path: Path) -> int:
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except OSError:
        return 0


def _print_identities(fingerprints) -> None:
    if not fingerprints:
        print("  No keys currently loaded")
    for fingerprint in sorted(fingerprints):
        print(f"  {fingerprint}")
