"""
Destination filename conflicts.

For each file being deployed: if nothing of that name exists in the
destination directory it is simply copied. Otherwise the user chooses to
overwrite, rename the incoming file, or cancel. Canceling (or CTRL+C)
drops only this file, never the whole run.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import CancelScope, OperationCanceled
from .prompts import Prompter
from .validators import filename_validators

logger = logging.getLogger(__name__)

CHOICES = {
    "overwrite": ("1", "overwrite"),
    "rename": ("2", "rename"),
    "cancel": ("3", "cancel"),
}


class Action(Enum):
    OVERWRITE = "overwrite"
    RENAME = "rename"
    CANCEL = "cancel"


class State(Enum):
    CHECK_EXISTENCE = "check existence"
    AWAIT_CHOICE = "await choice"
    AWAIT_FILENAME = "await filename"


@dataclass(frozen=True)
class DeploymentDecision:
    """What to do with one file. conflict is False for a plain copy."""
    action: Action
    dest: Optional[Path] = None
    conflict: bool = False

    @property
    def canceled(self) -> bool:
        return self.action is Action.CANCEL


class ConflictResolver:
    """Decides where each deployed file goes in dest_dir."""

    def __init__(self, dest_dir, prompter: Prompter):
        self.dest_dir = Path(dest_dir)
        self.prompter = prompter

    def resolve(self, source: Path, is_public: bool) -> DeploymentDecision:
        source = Path(source)
        dest = self.dest_dir / source.name
        try:
            return self._run(source, dest, is_public)
        except OperationCanceled as e:
            if e.scope is not CancelScope.FILE:
                raise
            print(f"Operation canceled for '{source.name}'")
            return DeploymentDecision(Action.CANCEL, conflict=True)

    def _run(self, source: Path, dest: Path, is_public: bool) -> DeploymentDecision:
        state = State.CHECK_EXISTENCE
        while True:
            logger.debug("%s: %s", source.name, state.value)

            if state is State.CHECK_EXISTENCE:
                print(f"Checking existence of: '{dest}'")
                if not dest.exists():
                    print("No conflict detected")
                    return DeploymentDecision(Action.OVERWRITE, dest)
                print(f"Conflict detected: '{source.name}' already exists in '{self.dest_dir}'")
                state = State.AWAIT_CHOICE

            elif state is State.AWAIT_CHOICE:
                print(f"Conflict resolution actions for '{source.name}':")
                print(f"  1. \"Overwrite\" existing file ('{dest}')")
                print(f"  2. \"Rename\" file to be copied ('{source}')")
                print("  3. \"Cancel\" (or CTRL+C)")
                choice = self.prompter.choose(
                    f"  Choose action for '{source.name}': ",
                    CHOICES,
                    CancelScope.FILE,
                    "Invalid choice - Please choose option 1, 2, or 3",
                )
                if choice == "overwrite":
                    return DeploymentDecision(Action.OVERWRITE, dest, conflict=True)
                if choice == "cancel":
                    raise OperationCanceled(CancelScope.FILE)
                state = State.AWAIT_FILENAME

            elif state is State.AWAIT_FILENAME:
                name = self.prompter.ask_filename(
                    "  Enter new filename (CTRL+C to cancel): ",
                    filename_validators(self.dest_dir, public=is_public),
                    CancelScope.FILE,
                )
                return DeploymentDecision(Action.RENAME, self.dest_dir / name, conflict=True)
