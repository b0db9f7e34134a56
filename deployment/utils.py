import json
from pathlib import Path
from typing import Union

import yaml
from eth_utils import keccak, to_bytes


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not value:
        return b""
    return to_bytes(hexstr=value)


def hash_calldata(data: Union[str, bytes]) -> str:
    """Returns the 0x-prefixed keccak256 of encoded call data."""
    return "0x" + keccak(_to_bytes(data)).hex()


def address_from_slot(slot_value: Union[str, bytes]) -> str:
    """Extracts the right-aligned 20 byte address stored in a 32 byte storage slot."""
    raw = _to_bytes(slot_value)
    return "0x" + raw[-20:].hex()


def is_empty_slot(slot_value: Union[str, bytes]) -> bool:
    return not any(_to_bytes(slot_value))
