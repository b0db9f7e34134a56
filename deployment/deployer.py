import typing
from typing import Any, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from web3.exceptions import ContractLogicError

from deployment.artifacts import ContractArtifact
from deployment.exceptions import (
    ConfirmationTimeoutError,
    DeploymentError,
    DeploymentFailedError,
)
from deployment.networks import GasPolicy
from deployment.submitter import (
    CancelToken,
    SubmissionReverted,
    TransactionOutcome,
    TransactionRequest,
    TransactionSubmitter,
    await_confirmation,
)


def _is_revert(error: Exception) -> bool:
    if isinstance(error, (SubmissionReverted, ContractLogicError)):
        return True
    return "execution reverted" in str(error).lower()


class DeployedContract(NamedTuple):
    artifact_name: str
    address: ChecksumAddress
    deployment_tx_hash: str
    block_confirmed: int


class Transactor:
    """
    Submits requests through a TransactionSubmitter and waits for each one
    to confirm before returning.
    """

    def __init__(
        self,
        submitter: TransactionSubmitter,
        timeout: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
        poll_interval: Optional[float] = None,
    ):
        self.submitter = submitter
        self.timeout = timeout
        self.cancel = cancel
        self._wait_kwargs = dict()
        if poll_interval is not None:
            self._wait_kwargs["poll_interval"] = poll_interval

    def send(
        self,
        request: TransactionRequest,
        step: str,
        inputs: typing.Dict[str, Any],
        revert_error: typing.Type[DeploymentFailedError] = DeploymentFailedError,
    ) -> TransactionOutcome:
        """
        A submission the node rejects because execution reverts raises
        `revert_error`; any other submission failure a DeploymentFailedError.
        """
        try:
            tx_hash = self.submitter.submit(request)
        except DeploymentError:
            raise
        except Exception as e:
            if _is_revert(e):
                raise revert_error(
                    f"Submission reverted: {e}", step=step, inputs=inputs
                ) from e
            raise DeploymentFailedError(
                f"Submission failed: {e}", step=step, inputs=inputs
            ) from e

        print(f"(i) {step} submitted in {tx_hash}; awaiting confirmation...")
        try:
            return await_confirmation(
                self.submitter,
                tx_hash,
                timeout=self.timeout,
                cancel=self.cancel,
                **self._wait_kwargs,
            )
        except ConfirmationTimeoutError as e:
            e.step, e.inputs = step, inputs
            raise
        except Exception as e:
            raise DeploymentFailedError(
                f"Confirmation of {tx_hash} failed: {e}; its outcome is unknown",
                step=step,
                inputs=inputs,
                tx_hash=tx_hash,
            ) from e


class ArtifactDeployer(Transactor):
    """Deploys immutable contracts from compiled artifacts."""

    def deploy(
        self,
        artifact: ContractArtifact,
        constructor_args: Sequence[Any],
        gas_policy: GasPolicy = GasPolicy(),
    ) -> DeployedContract:
        constructor_args = list(constructor_args)
        step = f"Deploy {artifact.name}"
        inputs = {"artifact": artifact.name, "constructor_args": constructor_args}

        # fails before anything is submitted
        deployment_code = artifact.encode_deployment(constructor_args)

        print(f"\nDeploying {artifact.name}...")
        request = TransactionRequest(data=deployment_code, gas_policy=gas_policy)
        outcome = self.send(request, step=step, inputs=inputs)

        if not outcome.confirmed:
            raise DeploymentFailedError(
                f"Creation of {artifact.name} reverted: {outcome.revert_reason or 'no reason'}",
                step=step,
                inputs=inputs,
            )
        if not outcome.contract_address:
            raise DeploymentFailedError(
                f"Creation of {artifact.name} confirmed without a contract address",
                step=step,
                inputs=inputs,
            )

        deployed = DeployedContract(
            artifact_name=artifact.name,
            address=to_checksum_address(outcome.contract_address),
            deployment_tx_hash=outcome.tx_hash,
            block_confirmed=outcome.block_number,
        )
        print(f"'{artifact.name}' deployed to: {deployed.address}")
        return deployed
