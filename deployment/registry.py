import json
import typing
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from tabulate import tabulate

from deployment.artifacts import ABI, ArtifactSource
from deployment.constants import PROXY_NAME
from deployment.deployer import DeployedContract
from deployment.proxy import ProxyRecord
from deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class SummaryEntry(NamedTuple):
    contract_name: ContractName
    address: ChecksumAddress
    tx_hash: str
    block_number: Optional[int]
    logic_address: Optional[ChecksumAddress] = None

    @property
    def is_proxy(self) -> bool:
        return self.logic_address is not None


class DeploymentSummary(NamedTuple):
    """Every address a run produced, in deployment order."""

    entries: List[SummaryEntry]
    proxy: Optional[ProxyRecord] = None
    network_id: Optional[str] = None
    chain_id: Optional[ChainId] = None

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "network": self.network_id,
            "chain_id": self.chain_id,
            "contracts": [
                {
                    "contract_name": entry.contract_name,
                    "address": entry.address,
                    "tx_hash": entry.tx_hash,
                    "block_number": entry.block_number,
                }
                for entry in self.entries
            ],
        }
        if self.proxy is not None:
            data["proxy"] = {
                "proxy_address": self.proxy.proxy_address,
                "logic_address": self.proxy.current_logic_address,
                "initializer_args_hash": self.proxy.initializer_args_hash,
            }
        return data

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), **STANDARD_REGISTRY_JSON_FORMAT)

    def as_table(self) -> str:
        rows = [
            [entry.contract_name, entry.address, entry.tx_hash, entry.logic_address or ""]
            for entry in self.entries
        ]
        return tabulate(rows, headers=["Contract", "Address", "Tx Hash", "Logic"], tablefmt="simple")


def report(
    deployed_contracts: typing.Sequence[DeployedContract],
    proxy_record: Optional[ProxyRecord] = None,
    proxy_name: str = PROXY_NAME,
    network_id: Optional[str] = None,
    chain_id: Optional[ChainId] = None,
) -> DeploymentSummary:
    entries = [
        SummaryEntry(
            contract_name=deployed.artifact_name,
            address=deployed.address,
            tx_hash=deployed.deployment_tx_hash,
            block_number=deployed.block_confirmed,
        )
        for deployed in deployed_contracts
    ]
    if proxy_record is not None:
        entries.append(
            SummaryEntry(
                contract_name=proxy_name,
                address=proxy_record.proxy_address,
                tx_hash=proxy_record.tx_hash,
                block_number=proxy_record.block_confirmed,
                logic_address=proxy_record.current_logic_address,
            )
        )
    return DeploymentSummary(
        entries=entries, proxy=proxy_record, network_id=network_id, chain_id=chain_id
    )


class RegistryEntry(NamedTuple):
    """Represents a single entry in a contract registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_entries(
    summary: DeploymentSummary,
    artifacts: ArtifactSource,
    deployer: ChecksumAddress,
) -> List[RegistryEntry]:
    """
    A proxied contract is registered under its logic name at the proxy address
    with the logic ABI; its implementation is not registered separately.
    """
    logic_names = {e.address: e.contract_name for e in summary.entries if not e.is_proxy}
    proxied_logic = {e.logic_address for e in summary.entries if e.is_proxy}

    entries = list()
    for entry in summary.entries:
        if entry.is_proxy:
            name = logic_names.get(entry.logic_address, entry.contract_name)
        elif entry.address in proxied_logic:
            continue
        else:
            name = entry.contract_name
        abi = artifacts.get(name).abi if name in artifacts else list()
        entries.append(
            RegistryEntry(
                chain_id=summary.chain_id,
                name=name,
                address=entry.address,
                abi=abi,
                tx_hash=entry.tx_hash,
                block_number=entry.block_number,
                deployer=deployer,
            )
        )
    return entries


def read_registry(filepath: Path) -> List[RegistryEntry]:
    with open(filepath, "r") as file:
        data = json.load(file)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """Writes a contract registry to a file."""

    if not entries:
        print("No entries provided.")
        return filepath

    # Sort registry entries to enforce common order
    entries.sort(key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # If the file already exists, attempt to merge the data, if not create a new file
    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                print(
                    "Cannot merge registries with overlapping chain IDs.\n"
                    f"Writing to {filepath} to avoid overwriting existing data."
                )
        else:
            existing_data.update(data)
            data = existing_data
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_summary(
    summary: DeploymentSummary,
    artifacts: ArtifactSource,
    deployer: ChecksumAddress,
    output_filepath: Path,
) -> Path:
    """Creates a contract registry from the summary of a deployment run."""
    entries = _get_entries(summary=summary, artifacts=artifacts, deployer=deployer)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath
