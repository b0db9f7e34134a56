import typing
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from deployment.constants import NETWORK_TABLE
from deployment.exceptions import (
    DeploymentConfigError,
    UnknownNetworkError,
    UnresolvedDependencyError,
)
from deployment.utils import _load_yaml


class GasPolicy(NamedTuple):
    """Injected fee settings; None means the submitter decides."""

    gas_price: Optional[int] = None
    max_fee: Optional[int] = None
    max_priority_fee: Optional[int] = None
    gas_limit: Optional[int] = None

    @classmethod
    def from_config(cls, config: Optional[typing.Dict[str, Any]]) -> "GasPolicy":
        config = config or dict()
        unknown = set(config) - set(cls._fields)
        if unknown:
            raise DeploymentConfigError(f"Unknown gas policy field(s): {', '.join(sorted(unknown))}")
        return cls(**{k: int(v) for k, v in config.items() if v is not None})

    def as_kwargs(self) -> typing.Dict[str, int]:
        return {k: v for k, v in self._asdict().items() if v is not None}


class NetworkProfile(NamedTuple):
    network_id: str
    chain_id: int
    dependency_addresses: Mapping[str, str]
    gas_policy: GasPolicy

    def dependency(self, name: str) -> ChecksumAddress:
        """
        Returns the address of a named dependency. Empty entries are placeholders
        for contracts that are not deployed on this network yet.
        """
        try:
            address = self.dependency_addresses[name]
        except KeyError:
            raise UnresolvedDependencyError(
                f"Dependency '{name}' is not configured for network '{self.network_id}'"
            )
        if not address:
            raise UnresolvedDependencyError(
                f"Dependency '{name}' has no address on network '{self.network_id}'"
            )
        return to_checksum_address(address)

    def has_dependency(self, name: str) -> bool:
        return name in self.dependency_addresses


def _profile_from_config(network_id: str, config: typing.Dict[str, Any]) -> NetworkProfile:
    try:
        chain_id = int(config["chain_id"])
    except (KeyError, TypeError, ValueError):
        raise DeploymentConfigError(f"chain_id is not set for network '{network_id}'.")

    dependencies = dict()
    for name, address in (config.get("dependencies") or {}).items():
        if address and not is_address(address):
            raise DeploymentConfigError(
                f"Dependency '{name}' for network '{network_id}' is not an address: {address}"
            )
        dependencies[name] = to_checksum_address(address) if address else ""

    return NetworkProfile(
        network_id=network_id,
        chain_id=chain_id,
        dependency_addresses=MappingProxyType(dependencies),
        gas_policy=GasPolicy.from_config(config.get("gas")),
    )


class NetworkTable:
    """Read-only map of network identifier to profile, built once per process."""

    def __init__(self, table: typing.Dict[str, typing.Dict[str, Any]]):
        profiles = dict()
        for network_id, config in table.items():
            profiles[network_id] = _profile_from_config(network_id, config)
        self._profiles = MappingProxyType(profiles)

    @classmethod
    def from_yaml(cls, filepath: Path) -> "NetworkTable":
        config = _load_yaml(filepath)
        networks = (config or {}).get("networks")
        if not networks:
            raise DeploymentConfigError(f"No 'networks' found in {filepath}.")
        return cls(networks)

    @property
    def supported(self) -> typing.List[str]:
        return list(self._profiles)

    def resolve(self, network_id: str) -> NetworkProfile:
        try:
            return self._profiles[network_id]
        except KeyError:
            raise UnknownNetworkError(
                f"Unknown network '{network_id}'; supported: {', '.join(self.supported)}",
                inputs={"network_id": network_id},
            )

    def __contains__(self, network_id: str) -> bool:
        return network_id in self._profiles


DEFAULT_NETWORK_TABLE = NetworkTable(NETWORK_TABLE)


def resolve(network_id: str, table: NetworkTable = DEFAULT_NETWORK_TABLE) -> NetworkProfile:
    return table.resolve(network_id)
