import typing
from typing import Optional

from ape import networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer
from ape.exceptions import ContractLogicError as ApeContractLogicError
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_hex
from web3.exceptions import ContractLogicError, TransactionNotFound

from deployment.artifacts import ArtifactSource, ContractArtifact
from deployment.exceptions import DeploymentConfigError
from deployment.submitter import (
    SubmissionReverted,
    TransactionOutcome,
    TransactionRequest,
    TransactionSubmitter,
)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise DeploymentConfigError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise DeploymentConfigError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def artifact_from_container(container: ContractContainer) -> ContractArtifact:
    contract_type = container.contract_type
    abi = [
        entry.model_dump(mode="json", by_alias=True, exclude_none=True)
        for entry in contract_type.abi
    ]
    bytecode = None
    if contract_type.deployment_bytecode:
        bytecode = contract_type.deployment_bytecode.bytecode
    return ContractArtifact.from_abi(name=contract_type.name, bytecode=bytecode or "0x", abi=abi)


def artifacts_from_ape_project(contract_names: typing.Iterable[str]) -> ArtifactSource:
    """Loads compiled contracts from the ape project and its dependencies."""
    return ArtifactSource(
        artifact_from_container(get_contract_container(name)) for name in contract_names
    )


class ApeTransactionSubmitter(TransactionSubmitter):
    """
    Signs with an ape account and talks to the connected provider's web3
    instance. A transaction counts as final once it has `required_confirmations`.
    """

    def __init__(
        self,
        account: AccountAPI,
        autosign: bool = False,
        required_confirmations: Optional[int] = None,
    ):
        self._account = account
        if autosign and hasattr(account, "set_autosign"):
            account.set_autosign(autosign)
        self._provider = networks.provider
        self._web3 = self._provider.web3
        if required_confirmations is None:
            required_confirmations = self._provider.network.required_confirmations
        self.required_confirmations = max(int(required_confirmations), 1)

    @property
    def sender(self) -> ChecksumAddress:
        return to_checksum_address(self._account.address)

    @property
    def chain_id(self) -> int:
        return self._provider.chain_id

    def submit(self, request: TransactionRequest) -> str:
        txn = self._provider.network.ecosystem.create_transaction(
            sender=self.sender,
            receiver=request.target,
            data=request.data,
            value=request.value,
            chain_id=self.chain_id,
            **request.gas_policy.as_kwargs(),
        )
        try:
            # gas estimation executes the transaction
            txn = self._account.prepare_transaction(txn)
        except (ApeContractLogicError, ContractLogicError) as e:
            raise SubmissionReverted(str(e)) from e
        signed = self._account.sign_transaction(txn)
        if signed is None:
            raise DeploymentConfigError(f"Account {self.sender} declined to sign the transaction")
        tx_hash = self._web3.eth.send_raw_transaction(signed.serialize_transaction())
        return to_hex(tx_hash)

    def poll(self, tx_hash: str) -> Optional[TransactionOutcome]:
        try:
            receipt = self._web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

        confirmations = self._web3.eth.block_number - receipt["blockNumber"] + 1
        if confirmations < self.required_confirmations:
            return None

        confirmed = receipt["status"] == 1
        contract_address = receipt.get("contractAddress")
        return TransactionOutcome(
            tx_hash=tx_hash,
            confirmed=confirmed,
            block_number=receipt["blockNumber"],
            contract_address=to_checksum_address(contract_address) if contract_address else None,
            revert_reason=None if confirmed else self._revert_reason(tx_hash, receipt),
        )

    def _revert_reason(self, tx_hash: str, receipt) -> Optional[str]:
        """Replays a reverted transaction against the previous block to recover its reason."""
        txn = self._web3.eth.get_transaction(tx_hash)
        call = {"from": txn["from"], "data": txn["input"], "value": txn["value"]}
        if txn.get("to"):
            call["to"] = txn["to"]
        try:
            self._web3.eth.call(call, receipt["blockNumber"] - 1)
        except ContractLogicError as e:
            return str(e)
        return None

    def get_storage_at(self, address: ChecksumAddress, slot: int) -> bytes:
        return bytes(self._web3.eth.get_storage_at(address, slot))

