from pathlib import Path
from typing import List, Optional

from deployment.artifacts import ArtifactSource
from deployment.confirm import _confirm_resolution, _continue
from deployment.constants import PROXY_NAME
from deployment.deployer import ArtifactDeployer, DeployedContract
from deployment.exceptions import DeploymentError, DeploymentFailedError
from deployment.params import ResolutionContext
from deployment.plan import DeploymentPlan, DeploymentStep, StepKind
from deployment.proxy import ProxyDeployer, ProxyRecord
from deployment.registry import DeploymentSummary, registry_from_summary, report
from deployment.submitter import CancelToken, TransactionSubmitter


class Deployer:
    """
    Runs a DeploymentPlan step by step through one submitter. Each step waits
    for its confirmation before the next one is resolved; the first failure
    aborts the rest of the plan.

    Runs sharing an account must be serialized by the caller; concurrent runs
    collide on the account nonce.
    """

    def __init__(
        self,
        plan: DeploymentPlan,
        artifacts: ArtifactSource,
        submitter: TransactionSubmitter,
        proxy_artifact_name: str = PROXY_NAME,
        autosign: bool = False,
        timeout: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
        poll_interval: Optional[float] = None,
        registry_filepath: Optional[Path] = None,
    ):
        self.plan = plan
        self.artifacts = artifacts
        self.submitter = submitter
        self.proxy_artifact_name = proxy_artifact_name
        self.registry_filepath = registry_filepath
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign

        transactor_kwargs = dict(
            submitter=submitter, timeout=timeout, cancel=cancel, poll_interval=poll_interval
        )
        self.artifact_deployer = ArtifactDeployer(**transactor_kwargs)
        self.proxy_deployer = None
        if any(step.kind is StepKind.PROXY for step in plan.steps):
            self.proxy_deployer = ProxyDeployer(
                artifacts.get(proxy_artifact_name), **transactor_kwargs
            )
        elif any(step.kind is StepKind.UPGRADE for step in plan.steps):
            # upgrades never create a proxy, so no proxy artifact is needed
            self.proxy_deployer = ProxyDeployer(None, **transactor_kwargs)

        self.deployments: List[DeployedContract] = list()
        self.proxy_record: Optional[ProxyRecord] = None
        self._proxy_name: Optional[str] = None
        self._context = ResolutionContext(addresses=dict(), deployer=submitter.sender)

    @property
    def gas_policy(self):
        return self.plan.profile.gas_policy

    def run(self) -> DeploymentSummary:
        self.plan.validate(self.artifacts, self.proxy_artifact_name)
        self._print_deployment_info()
        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

        for step in self.plan.steps:
            try:
                self._execute(step)
            except DeploymentError as e:
                e.step = e.step or step.name
                self._print_aborted(step)
                raise
            except Exception as e:
                self._print_aborted(step)
                raise DeploymentFailedError(f"{type(e).__name__}: {e}", step=step.name) from e

        summary = self.summary()
        print(f"\n{summary.as_table()}")
        if self.registry_filepath:
            registry_from_summary(
                summary=summary,
                artifacts=self.artifacts,
                deployer=self.submitter.sender,
                output_filepath=self.registry_filepath,
            )
        return summary

    def summary(self) -> DeploymentSummary:
        return report(
            self.deployments,
            self.proxy_record,
            proxy_name=self._proxy_name or PROXY_NAME,
            network_id=self.plan.profile.network_id,
            chain_id=self.plan.profile.chain_id,
        )

    def _execute(self, step: DeploymentStep) -> None:
        artifact = self.artifacts.get(step.contract_name)
        addresses = self._context.addresses

        if step.kind is StepKind.DEPLOY:
            args = self.plan.resolve_args(step, self._context)
            if not self._autosign:
                _confirm_resolution(args, step.name)
            deployed = self.artifact_deployer.deploy(artifact, args, self.gas_policy)
            self.deployments.append(deployed)
            addresses[step.contract_name] = deployed.address

        elif step.kind is StepKind.PROXY:
            args = self.plan.resolve_args(step, self._context)
            initial_owner = self.plan.resolve_address(step.initial_owner, self._context)
            if not self._autosign:
                _confirm_resolution(args, step.name)
            self.proxy_record = self.proxy_deployer.deploy_proxy(
                logic_address=addresses[step.contract_name],
                initializer_args=args,
                logic_artifact=artifact,
                initializer=step.initializer,
                unsafe_allow=step.unsafe_allow,
                initial_owner=initial_owner,
                gas_policy=self.gas_policy,
            )
            self._proxy_name = f"{step.contract_name} Proxy"
            addresses[step.contract_name] = self.proxy_record.proxy_address

        else:
            proxy_address = self.plan.resolve_address(step.proxy_address, self._context)
            new_logic_address = addresses[step.contract_name]
            if not self._autosign:
                _confirm_resolution([proxy_address, new_logic_address], step.name)
            self.proxy_record = self.proxy_deployer.upgrade_proxy(
                existing_proxy_address=proxy_address,
                new_logic_address=new_logic_address,
                logic_artifact=artifact,
                unsafe_allow=step.unsafe_allow,
                gas_policy=self.gas_policy,
            )
            self._proxy_name = f"{step.contract_name} Proxy"
            addresses[step.contract_name] = self.proxy_record.proxy_address

    def _print_aborted(self, step: DeploymentStep) -> None:
        print(f"\n(!) Deployment aborted at step '{step.name}'.")
        if self.deployments or self.proxy_record:
            print("Steps completed before the failure:")
            print(self.summary().as_table())

    def _print_deployment_info(self):
        profile = self.plan.profile
        print(
            f"Account: {self.submitter.sender}",
            f"Network: {profile.network_id}",
            f"Chain ID: {profile.chain_id}",
            f"Mode: {self.plan.mode.value}",
            f"Steps: {', '.join(step.name for step in self.plan.steps)}",
            f"Registry: {self.registry_filepath}",
            f"Gas Policy: {profile.gas_policy.as_kwargs() or 'provider default'}",
            sep="\n",
        )
