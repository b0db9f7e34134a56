from enum import Enum
from typing import Any, FrozenSet, NamedTuple, Optional, Sequence, Union

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from deployment.artifacts import ContractArtifact, UnsafeAllow, encode_signature_call
from deployment.constants import (
    DEFAULT_INITIALIZER,
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    UPGRADE_AND_CALL_SIGNATURE,
)
from deployment.deployer import DeployedContract, Transactor
from deployment.exceptions import (
    DeploymentConfigError,
    DeploymentFailedError,
    InitializationFailedError,
    NotAProxyError,
)
from deployment.networks import GasPolicy
from deployment.submitter import TransactionRequest
from deployment.utils import address_from_slot, hash_calldata, is_empty_slot


class ProxyRecord(NamedTuple):
    proxy_address: ChecksumAddress
    current_logic_address: ChecksumAddress
    initializer_args_hash: str
    tx_hash: str
    block_confirmed: int


class ProxyState(Enum):
    UNDEPLOYED = "undeployed"
    DEPLOYED = "deployed"


def _address(value: Union[str, DeployedContract], name: str) -> ChecksumAddress:
    if isinstance(value, DeployedContract):
        value = value.address
    if not value or not is_address(value):
        raise DeploymentConfigError(f"{name} is not a valid address: '{value}'")
    return to_checksum_address(value)


class ProxyDeployer(Transactor):
    """
    Deploys an EIP-1967 transparent proxy in front of a logic contract and
    retargets it on upgrade. The proxy address never changes; the logic does.

    Storage layout compatibility between old and new logic is not checked
    here; an upgrade to an incompatible layout corrupts proxy storage.
    """

    def __init__(self, proxy_artifact: Optional[ContractArtifact], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.proxy_artifact = proxy_artifact
        self.record: Optional[ProxyRecord] = None

    @property
    def state(self) -> ProxyState:
        return ProxyState.UNDEPLOYED if self.record is None else ProxyState.DEPLOYED

    def deploy_proxy(
        self,
        logic_address: Union[str, DeployedContract],
        initializer_args: Sequence[Any],
        logic_artifact: ContractArtifact,
        initializer: Optional[str] = DEFAULT_INITIALIZER,
        unsafe_allow: FrozenSet[UnsafeAllow] = frozenset(),
        initial_owner: Optional[str] = None,
        gas_policy: GasPolicy = GasPolicy(),
    ) -> ProxyRecord:
        """
        Deploys a proxy whose creation transaction also runs the initializer,
        so the proxy is never live without being initialized. Nothing is
        recorded when the creation reverts.
        """
        if self.state is not ProxyState.UNDEPLOYED:
            raise DeploymentConfigError(
                f"A proxy was already deployed at {self.record.proxy_address}; upgrade it instead"
            )

        if self.proxy_artifact is None:
            raise DeploymentConfigError("No proxy artifact was given; cannot deploy a proxy")

        logic_address = _address(logic_address, "Logic address")
        initializer_args = list(initializer_args)
        step = f"Deploy {self.proxy_artifact.name} for {logic_artifact.name}"
        inputs = {
            "logic_address": logic_address,
            "initializer": initializer,
            "initializer_args": initializer_args,
        }

        logic_artifact.check_unsafe_opcodes(unsafe_allow)
        if initializer:
            init_data = logic_artifact.encode_call(initializer, initializer_args)
        elif initializer_args:
            raise DeploymentConfigError("Initializer arguments given without an initializer")
        else:
            init_data = b""

        owner = _address(initial_owner or self.submitter.sender, "Initial owner")
        deployment_code = self.proxy_artifact.encode_deployment([logic_address, owner, init_data])

        print(
            f"\nDeploying {self.proxy_artifact.name} contract to proxy {logic_artifact.name} "
            f"at {logic_address}."
        )
        outcome = self.send(
            TransactionRequest(data=deployment_code, gas_policy=gas_policy),
            step=step,
            inputs=inputs,
            revert_error=InitializationFailedError if init_data else DeploymentFailedError,
        )
        if not outcome.confirmed:
            reason = outcome.revert_reason or "no reason"
            if init_data:
                raise InitializationFailedError(
                    f"{logic_artifact.name}.{initializer} reverted during proxy creation: {reason}",
                    step=step,
                    inputs=inputs,
                )
            raise DeploymentFailedError(
                f"Proxy creation reverted: {reason}", step=step, inputs=inputs
            )
        if not outcome.contract_address:
            raise DeploymentFailedError(
                "Proxy creation confirmed without a contract address", step=step, inputs=inputs
            )

        self.record = ProxyRecord(
            proxy_address=to_checksum_address(outcome.contract_address),
            current_logic_address=logic_address,
            initializer_args_hash=hash_calldata(init_data),
            tx_hash=outcome.tx_hash,
            block_confirmed=outcome.block_number,
        )
        print(
            f"Wrapping {logic_artifact.name} into {self.proxy_artifact.name} "
            f"at {self.record.proxy_address}."
        )
        return self.record

    def _read_slot(self, proxy_address: ChecksumAddress, slot: int, step: Optional[str]) -> bytes:
        try:
            return self.submitter.get_storage_at(proxy_address, slot)
        except Exception as e:
            raise DeploymentFailedError(
                f"Reading storage slot {hex(slot)} of {proxy_address} failed: {e}",
                step=step,
                inputs={"proxy_address": proxy_address, "slot": slot},
            ) from e

    def get_admin(self, proxy_address: ChecksumAddress, step: str = None) -> ChecksumAddress:
        admin_slot = self._read_slot(proxy_address, EIP1967_ADMIN_SLOT, step)
        if is_empty_slot(admin_slot):
            raise NotAProxyError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?",
                step=step,
                inputs={"proxy_address": proxy_address},
            )
        return to_checksum_address(address_from_slot(admin_slot))

    def get_implementation(
        self, proxy_address: ChecksumAddress, step: str = None
    ) -> ChecksumAddress:
        slot = self._read_slot(proxy_address, EIP1967_IMPLEMENTATION_SLOT, step)
        return to_checksum_address(address_from_slot(slot))

    def upgrade_proxy(
        self,
        existing_proxy_address: str,
        new_logic_address: Union[str, DeployedContract],
        logic_artifact: Optional[ContractArtifact] = None,
        data: bytes = b"",
        unsafe_allow: FrozenSet[UnsafeAllow] = frozenset(),
        gas_policy: GasPolicy = GasPolicy(),
    ) -> ProxyRecord:
        """
        Points an existing proxy at new logic through its ProxyAdmin. Upgrade
        authority is enforced on chain; a sender without it gets a revert.
        """
        proxy_address = _address(existing_proxy_address, "Proxy address")
        new_logic_address = _address(new_logic_address, "Logic address")
        step = f"Upgrade proxy {proxy_address}"
        inputs = {"proxy_address": proxy_address, "new_logic_address": new_logic_address}

        if logic_artifact is not None:
            logic_artifact.check_unsafe_opcodes(unsafe_allow)

        admin_address = self.get_admin(proxy_address, step=step)
        calldata = encode_signature_call(
            UPGRADE_AND_CALL_SIGNATURE,
            ["address", "address", "bytes"],
            [proxy_address, new_logic_address, data],
        )

        print(f"\nUpgrading proxy {proxy_address} to {new_logic_address} via {admin_address}.")
        outcome = self.send(
            TransactionRequest(data=calldata, target=admin_address, gas_policy=gas_policy),
            step=step,
            inputs=inputs,
        )
        if not outcome.confirmed:
            raise DeploymentFailedError(
                f"Upgrade reverted: {outcome.revert_reason or 'no reason'}",
                step=step,
                inputs=inputs,
            )

        implementation = self.get_implementation(proxy_address, step=step)
        if implementation != new_logic_address:
            raise DeploymentFailedError(
                f"Proxy implementation is {implementation} after upgrade, "
                f"expected {new_logic_address}",
                step=step,
                inputs=inputs,
            )

        self.record = ProxyRecord(
            proxy_address=proxy_address,
            current_logic_address=new_logic_address,
            initializer_args_hash=hash_calldata(data),
            tx_hash=outcome.tx_hash,
            block_confirmed=outcome.block_number,
        )
        return self.record
