"""
Filename checks for the rename and key generation prompts.

Each validator takes the candidate name and returns an error message, or
None if the name passes. Validators run in order; the first failure wins.
"""

import re
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .ssh_keygen import PUBLIC_SUFFIX

Validator = Callable[[str], Optional[str]]

MAX_FILENAME_BYTES = 255
ALLOWED_FILENAME = re.compile(r"^[A-Za-z0-9._-]+$")


def not_empty(name: str) -> Optional[str]:
    if not name:
        return "Filename cannot be empty"
    return None


def no_path_separator(name: str) -> Optional[str]:
    if "/" in name or "\\" in name:
        return "Filename cannot contain path separators"
    return None


def within_length(name: str) -> Optional[str]:
    if len(name.encode("utf-8")) > MAX_FILENAME_BYTES:
        return f"Exceeded character limit (max {MAX_FILENAME_BYTES} bytes)"
    return None


def allowed_characters(name: str) -> Optional[str]:
    if not ALLOWED_FILENAME.match(name):
        return ("Disallowed characters in filename\n"
                "Allowed characters: letters, numbers, dots, underscores, hyphens")
    return None


def public_suffix(required: bool) -> Validator:
    """Public keys must end in .pub; private keys must not."""
    def check(name: str) -> Optional[str]:
        if required and not name.endswith(PUBLIC_SUFFIX):
            return f"Requires '{PUBLIC_SUFFIX}' extension for public key"
        if not required and name.endswith(PUBLIC_SUFFIX):
            return f"Not a public key - Filename must not end with '{PUBLIC_SUFFIX}'"
        return None
    return check


def not_existing_in(directory) -> Validator:
    directory = Path(directory)

    def check(name: str) -> Optional[str]:
        if (directory / name).exists() or (directory / name).is_symlink():
            return f"Filename already exists in '{directory}'"
        return None
    return check


def first_failure(name: str, validators: Sequence[Validator]) -> Optional[str]:
    for validator in validators:
        error = validator(name)
        if error:
            return error
    return None


def filename_validators(directory, public: bool) -> List[Validator]:
    """The full pipeline for a new key filename in directory."""
    return [
        not_empty,
        no_path_separator,
        within_length,
        allowed_characters,
        public_suffix(public),
        not_existing_in(directory),
    ]
