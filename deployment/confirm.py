import typing
from typing import Any

from web3.constants import ADDRESS_ZERO


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _confirm_step(step_name: str) -> None:
    """Asks the user to confirm a single deployment step."""
    answer = input(f"{step_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for deployment parameter; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _contains_zero_address(value: Any) -> bool:
    if isinstance(value, list):
        return any(_contains_zero_address(v) for v in value)
    return isinstance(value, str) and value.lower() == ADDRESS_ZERO


def _confirm_resolution(resolved_params: typing.Sequence[Any], step_name: str) -> None:
    """Asks the user to confirm the resolved parameters for a single step."""
    if len(resolved_params) == 0:
        print(f"\n(i) No parameters for {step_name}")
        _confirm_step(step_name)
        return

    print(f"\nParameters for {step_name}")
    for position, resolved_value in enumerate(resolved_params):
        print(f"\t[{position}] {resolved_value}")
    _confirm_step(step_name)
    if _contains_zero_address(list(resolved_params)):
        _confirm_zero_address()
