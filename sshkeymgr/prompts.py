"""
Blocking terminal prompts.

Every prompt takes a CancelScope. CTRL+C or end-of-input raises
OperationCanceled carrying that scope, and the caller bound to the scope
decides what is abandoned: one file, or the whole run.
"""

import getpass
from typing import Callable, Dict, Optional, Sequence

from .errors import CancelScope, OperationCanceled
from .validators import Validator, first_failure

YES = ("y", "yes")
NO = ("n", "no")


class Prompter:
    """Reads answers from the terminal (or any input function)."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        passphrase_func: Callable[[str], str] = getpass.getpass,
    ):
        self._input = input_func
        self._passphrase = passphrase_func

    def ask(self, message: str, scope: CancelScope) -> str:
        try:
            return self._input(message)
        except (KeyboardInterrupt, EOFError):
            print()
            raise OperationCanceled(scope)

    def choose(
        self,
        message: str,
        options: Dict[str, Sequence[str]],
        scope: CancelScope,
        invalid_message: str,
    ) -> str:
        """
        Ask until the answer matches one of the options.

        Args:
            options: Option name -> accepted answers (compared lowercased)

        Returns:
            The option name
        """
        while True:
            answer = self.ask(message, scope).strip().lower()
            for name, accepted in options.items():
                if answer in accepted:
                    return name
            print(invalid_message)

    def confirm(self, message: str, scope: CancelScope) -> bool:
        choice = self.choose(
            message,
            {"yes": YES, "no": NO},
            scope,
            "Invalid input - Please enter yes or no (y/n)",
        )
        return choice == "yes"

    def ask_filename(
        self,
        message: str,
        validators: Sequence[Validator],
        scope: CancelScope,
        default: Optional[str] = None,
    ) -> str:
        """Ask until the name passes every validator."""
        while True:
            name = self.ask(message, scope).strip()
            if not name and default:
                name = default
            error = first_failure(name, validators)
            if error is None:
                return name
            lines = error.splitlines()
            print(f"ERROR: {lines[0]}")
            for line in lines[1:]:
                print(f"       {line}")

    def ask_passphrase(self, message: str, scope: CancelScope) -> str:
        try:
            return self._passphrase(message)
        except (KeyboardInterrupt, EOFError):
            print()
            raise OperationCanceled(scope)

    def ask_new_passphrase(self, scope: CancelScope) -> str:
        """A new passphrase, entered twice. May be empty."""
        while True:
            first = self.ask_passphrase("  Enter passphrase (empty for no passphrase): ", scope)
            second = self.ask_passphrase("  Enter same passphrase again: ", scope)
            if first == second:
                return first
            print("ERROR: Passphrases do not match - Try again")
