from typing import Any, Sequence

from inft_deployment.constants import ZERO_ADDRESS
from inft_deployment.exceptions import DeploymentAborted


def _continue(message: str = "Continue") -> None:
    """Asks the operator to continue; anything but N/n proceeds."""
    answer = input(f"{message} Y/N? ")
    if answer.lower().strip() == "n":
        raise DeploymentAborted("Aborted by operator.")


def _confirm_zero_address() -> None:
    _continue("Zero Address detected in transaction arguments; Continue?")


def _is_zero_address(value: Any) -> bool:
    return isinstance(value, str) and value.lower() == ZERO_ADDRESS


def _confirm_transaction(description: str, args: Sequence[Any]) -> None:
    """Shows a transaction about to be signed and asks for confirmation."""
    if args:
        pretty_args = "\n\t".join(str(arg) for arg in args)
        print(f"\n{description} with arguments:\n\t{pretty_args}")
    else:
        print(f"\n{description} with no arguments")
    _continue()
    if any(_is_zero_address(arg) for arg in args):
        _confirm_zero_address()
