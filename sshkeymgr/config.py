"""
Settings for ssh-key-manager.

Read from a KEY=VALUE env file, with command-line overrides on top.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import ConfigError
from .ssh_keygen import KEY_TYPES

DEFAULT_CONFIG_DIR = os.path.expanduser("~/.config/ssh-key-manager")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_CONFIG_DIR, "ssh_manager_config.env")

REQUIRED_KEYS = ("SRC_DIR", "SSH_DIR", "KEY_COMMENT", "KEY_TYPE", "KEY_BITS")

CONFIG_EXAMPLES = """Examples:
  SRC_DIR=/path/to/source_directory/.ssh
  SSH_DIR=/path/to/ssh_directory/.ssh
  KEY_COMMENT=user@example.com
  KEY_TYPE=rsa
  KEY_BITS=4096"""

ECDSA_BITS = (256, 384, 521)
MIN_RSA_BITS = 1024
SSH_DIR_PERMISSIONS = 0o700


@dataclass
class Settings:
    """Validated settings for one run."""
    source_dir: Path
    ssh_dir: Path
    key_comment: str
    key_type: str
    key_bits: int
    config_path: Optional[str] = None

    @property
    def nonstandard_ssh_dir(self) -> bool:
        return self.ssh_dir.name != ".ssh"


def parse_env_line(line: str) -> Optional[tuple]:
    """
    Parse one KEY=VALUE line.

    Returns (key, value) or None for blank lines, comments and lines with
    an empty key or value. Surrounding whitespace and quotes are stripped.
    """
    line = line.strip()
    if not line or line.startswith('#') or '=' not in line:
        return None

    key, value = line.split('=', 1)
    key = key.strip()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1].strip()

    if not key or not value:
        return None
    return key, value


def read_env_file(path: str) -> Dict[str, str]:
    values = {}
    with open(path, 'r') as f:
        for line in f:
            parsed = parse_env_line(line)
            if parsed:
                values[parsed[0]] = parsed[1]
    return values


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Optional[str]]] = None
) -> Settings:
    """
    Load and validate settings.

    Args:
        config_path: env file (default: DEFAULT_CONFIG_FILE)
        overrides: KEY -> value from the command line; None values are ignored

    Raises:
        ConfigError: with remediation text when anything is missing or invalid
    """
    config_path = os.path.expanduser(config_path or DEFAULT_CONFIG_FILE)
    overrides = {k: v for k, v in (overrides or {}).items() if v not in (None, "")}

    values: Dict[str, str] = {}
    if os.path.exists(config_path):
        values.update(read_env_file(config_path))
    elif not all(key in overrides for key in REQUIRED_KEYS):
        raise ConfigError(
            f"Configuration file (ssh_manager_config.env) not found\n"
            f"Expected: '{config_path}'\n"
            f"Please create it with the required variables\n"
            f"{CONFIG_EXAMPLES}",
            details={"config_path": config_path}
        )
    values.update(overrides)

    for key in REQUIRED_KEYS:
        if not values.get(key):
            raise ConfigError(
                f"Required variable '{key}' is not set\n"
                f"Configuration file: '{config_path}'\n"
                f"{CONFIG_EXAMPLES}",
                details={"variable": key}
            )

    key_type = values["KEY_TYPE"].lower()
    if key_type not in KEY_TYPES:
        raise ConfigError(
            f"KEY_TYPE must be 'rsa', 'ecdsa', or 'ed25519' - Found: '{values['KEY_TYPE']}'\n"
            f"Configuration file: '{config_path}'\n"
            f"Example:\n  KEY_TYPE=rsa"
        )

    key_bits = _validate_bits(values["KEY_BITS"], key_type, config_path)

    source_dir = Path(os.path.expanduser(values["SRC_DIR"])).absolute()
    ssh_dir = Path(os.path.expanduser(values["SSH_DIR"])).absolute()
    for name, directory in (("source", source_dir), ("SSH", ssh_dir)):
        if not directory.parent.is_dir():
            raise ConfigError(
                f"Configured {name} directory does not exist: '{directory.parent}'\n"
                f"Configuration file: '{config_path}'\n"
                f"{CONFIG_EXAMPLES}"
            )

    return Settings(
        source_dir=source_dir,
        ssh_dir=ssh_dir,
        key_comment=values["KEY_COMMENT"],
        key_type=key_type,
        key_bits=key_bits,
        config_path=config_path,
    )


def _validate_bits(raw: str, key_type: str, config_path: str) -> int:
    if not raw.isdigit():
        raise ConfigError(
            f"KEY_BITS must be a number - Found: '{raw}'\n"
            f"Configuration file: '{config_path}'\n"
            f"Example:\n  KEY_BITS=4096"
        )
    bits = int(raw)
    if key_type == "rsa" and bits < MIN_RSA_BITS:
        raise ConfigError(
            f"KEY_BITS must be greater than or equal to {MIN_RSA_BITS} for rsa keys - Found: '{raw}'\n"
            f"Configuration file: '{config_path}'\n"
            f"Example:\n  KEY_BITS=4096"
        )
    if key_type == "ecdsa" and bits not in ECDSA_BITS:
        raise ConfigError(
            f"KEY_BITS must be 256, 384 or 521 for ecdsa keys - Found: '{raw}'\n"
            f"Configuration file: '{config_path}'"
        )
    return bits


def ensure_ssh_dir(settings: Settings) -> None:
    """Create the destination directory (mode 0700) if it is missing."""
    if settings.ssh_dir.is_dir():
        return
    try:
        settings.ssh_dir.mkdir(mode=SSH_DIR_PERMISSIONS)
        os.chmod(settings.ssh_dir, SSH_DIR_PERMISSIONS)
    except OSError as e:
        raise ConfigError(f"Failed to create SSH_DIR: '{settings.ssh_dir}' ({e})")
