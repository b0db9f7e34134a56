import typing
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, NamedTuple, Sequence

from eth_utils import function_signature_to_4byte_selector
from eth_utils.abi import collapse_if_tuple
from web3.auto import w3

from deployment.constants import DELEGATECALL, PUSH1, PUSH32, SELFDESTRUCT
from deployment.exceptions import (
    ArgumentMismatchError,
    DeploymentConfigError,
    UnsafeOperationError,
)
from deployment.utils import _load_json, _to_bytes

ABI = List[Dict[str, Any]]


class UnsafeAllow(Enum):
    """Opcodes a caller may explicitly accept in proxied logic contracts."""

    DELEGATECALL = "delegatecall"
    SELFDESTRUCT = "selfdestruct"

    @classmethod
    def from_names(cls, names: Iterable[str]) -> FrozenSet["UnsafeAllow"]:
        allowed = set()
        for name in names:
            try:
                allowed.add(cls(name.lower().strip()))
            except ValueError:
                raise DeploymentConfigError(
                    f"Unknown unsafe-allow flag '{name}'; "
                    f"expected one of {', '.join(f.value for f in cls)}"
                )
        return frozenset(allowed)


_OPCODE_FLAGS = {
    DELEGATECALL: UnsafeAllow.DELEGATECALL,
    SELFDESTRUCT: UnsafeAllow.SELFDESTRUCT,
}


def _strip_metadata(code: bytes) -> bytes:
    """Removes the CBOR metadata trailer solc appends to bytecode, if present."""
    if len(code) < 2:
        return code
    metadata_length = int.from_bytes(code[-2:], "big")
    start = len(code) - 2 - metadata_length
    # CBOR map header with 1-5 entries
    if start >= 0 and 0xA1 <= code[start] <= 0xA5:
        return code[:start]
    return code


def find_unsafe_opcodes(bytecode: typing.Union[str, bytes]) -> FrozenSet[UnsafeAllow]:
    """Returns the unsafe opcodes executed by bytecode, skipping PUSH immediates."""
    code = _strip_metadata(_to_bytes(bytecode))
    found = set()
    position = 0
    while position < len(code):
        opcode = code[position]
        if PUSH1 <= opcode <= PUSH32:
            position += opcode - PUSH1 + 1
        elif opcode in _OPCODE_FLAGS:
            found.add(_OPCODE_FLAGS[opcode])
        position += 1
    return frozenset(found)


def _abi_types(inputs: Sequence[Dict[str, Any]]) -> List[str]:
    return [collapse_if_tuple(dict(abi_input)) for abi_input in inputs]


class ContractArtifact(NamedTuple):
    """Compiled contract as supplied by the build step."""

    name: str
    bytecode: str
    abi: ABI
    constructor_arg_types: List[str]

    @classmethod
    def from_abi(cls, name: str, bytecode: str, abi: ABI) -> "ContractArtifact":
        constructor_arg_types = list()
        for entry in abi:
            if entry.get("type") == "constructor":
                constructor_arg_types = _abi_types(entry.get("inputs", []))
                break
        return cls(
            name=name, bytecode=bytecode, abi=list(abi), constructor_arg_types=constructor_arg_types
        )

    def method_abis(self, method_name: str) -> ABI:
        return [
            entry
            for entry in self.abi
            if entry.get("type") == "function" and entry.get("name") == method_name
        ]

    def validate_constructor_args(self, args: Sequence[Any]) -> None:
        """Validates constructor arguments against the constructor ABI."""
        validate_args(
            name=f"{self.name} constructor",
            arg_types=self.constructor_arg_types,
            args=args,
        )

    def encode_deployment(self, args: Sequence[Any]) -> bytes:
        """Returns the creation code with ABI encoded constructor arguments appended."""
        self.validate_constructor_args(args)
        code = _to_bytes(self.bytecode)
        if not code:
            raise DeploymentConfigError(f"Artifact {self.name} has no deployment bytecode.")
        if not self.constructor_arg_types:
            return code
        return code + w3.codec.encode(self.constructor_arg_types, list(args))

    def encode_call(self, method_name: str, args: Sequence[Any]) -> bytes:
        """Returns selector plus ABI encoded arguments for a method of this contract."""
        method_abis = self.method_abis(method_name)
        if not method_abis:
            raise ArgumentMismatchError(
                f"{self.name} has no method named '{method_name}'",
                inputs={"method": method_name, "args": list(args)},
            )
        arg_types = _select_method_types(method_abis, args)
        signature = f"{method_name}({','.join(arg_types)})"
        return encode_signature_call(signature, arg_types, args)

    def check_input_names(self, names: Sequence[str], method_name: str = None) -> None:
        """
        Named parameters must follow the ABI input order, checked name by name.
        Without `method_name` the constructor inputs are used.
        """
        if method_name is None:
            candidates = [e for e in self.abi if e.get("type") == "constructor"] or [{}]
            label = f"{self.name} constructor"
        else:
            candidates = self.method_abis(method_name)
            label = f"{self.name}.{method_name}"

        expected_names = [
            [abi_input.get("name", "") for abi_input in candidate.get("inputs", [])]
            for candidate in candidates
        ]
        expected_names = [e for e in expected_names if len(e) == len(names)]
        if not expected_names:
            raise ArgumentMismatchError(
                f"Arguments length mismatch - no {label} inputs take "
                f"{len(names)} named parameter(s).",
                inputs={"names": list(names)},
            )
        if list(names) in expected_names:
            return

        for position, (name, abi_name) in enumerate(zip(names, expected_names[0])):
            if name != abi_name:
                raise ArgumentMismatchError(
                    f"{label} parameter '{name}' at position {position} does not "
                    f"match the expected ABI name '{abi_name}'.",
                    inputs={"names": list(names), "expected": expected_names[0]},
                )

    def check_unsafe_opcodes(self, allowed: FrozenSet[UnsafeAllow]) -> None:
        """Rejects logic bytecode that uses opcodes the caller did not opt into."""
        disallowed = find_unsafe_opcodes(self.bytecode) - set(allowed)
        if disallowed:
            names = ", ".join(sorted(flag.value for flag in disallowed))
            raise UnsafeOperationError(
                f"{self.name} uses {names}; pass an explicit unsafe-allow for "
                f"{names} to deploy it behind a proxy",
                inputs={"contract": self.name, "found": names},
            )


def validate_args(name: str, arg_types: Sequence[str], args: Sequence[Any]) -> None:
    if len(args) != len(arg_types):
        raise ArgumentMismatchError(
            f"Arguments length mismatch - {name} requires {len(arg_types)}, got {len(args)}.",
            inputs={"args": list(args), "types": list(arg_types)},
        )
    for position, (arg_type, value) in enumerate(zip(arg_types, args)):
        if not w3.is_encodable(arg_type, value):
            raise ArgumentMismatchError(
                f"{name} argument at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{arg_type}'",
                inputs={"args": list(args), "types": list(arg_types)},
            )


def _select_method_types(method_abis: ABI, args: Sequence[Any]) -> List[str]:
    """Returns the input types of the overload that accepts the given arguments."""
    for abi in method_abis:
        arg_types = _abi_types(abi.get("inputs", []))
        if len(arg_types) != len(args):
            continue
        if all(w3.is_encodable(t, v) for t, v in zip(arg_types, args)):
            return arg_types
    raise ArgumentMismatchError(
        f"Could not find ABI for '{method_abis[0]['name']}' with {len(args)} arg(s) and given type(s)",
        inputs={"args": list(args)},
    )


def encode_signature_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> bytes:
    selector = function_signature_to_4byte_selector(signature)
    return selector + w3.codec.encode(list(arg_types), list(args))


class ArtifactSource:
    """Named set of compiled artifacts."""

    def __init__(self, artifacts: Iterable[ContractArtifact]):
        self._artifacts = {artifact.name: artifact for artifact in artifacts}

    def get(self, name: str) -> ContractArtifact:
        try:
            return self._artifacts[name]
        except KeyError:
            raise DeploymentConfigError(f"No artifact found with name '{name}'.")

    def __contains__(self, name: str) -> bool:
        return name in self._artifacts

    @property
    def names(self) -> List[str]:
        return list(self._artifacts)

    @classmethod
    def from_hardhat_dir(cls, directory: Path) -> "ArtifactSource":
        """Loads hardhat style artifacts (artifacts/contracts/**/<Name>.json)."""
        artifacts = list()
        for filepath in sorted(Path(directory).rglob("*.json")):
            if filepath.name.endswith(".dbg.json"):
                continue
            data = _load_json(filepath)
            if "contractName" not in data or "abi" not in data:
                continue
            artifacts.append(
                ContractArtifact.from_abi(
                    name=data["contractName"],
                    bytecode=data.get("bytecode", "0x"),
                    abi=data["abi"],
                )
            )
        if not artifacts:
            raise DeploymentConfigError(f"No contract artifacts found in {directory}.")
        return cls(artifacts)
