from pathlib import Path
from typing import Iterable, Optional

import click
from ape.api import AccountAPI

from deployment.artifacts import ArtifactSource, UnsafeAllow
from deployment.constants import PROXY_NAME
from deployment.networks import NetworkProfile, resolve
from deployment.orchestrator import Deployer
from deployment.plan import DeploymentPlan, StepKind
from deployment.provider import ApeTransactionSubmitter, artifacts_from_ape_project
from deployment.registry import DeploymentSummary


def load_artifacts(
    plan: DeploymentPlan,
    proxy_contract: str = PROXY_NAME,
    hardhat_artifacts: Optional[Path] = None,
) -> ArtifactSource:
    if hardhat_artifacts:
        return ArtifactSource.from_hardhat_dir(hardhat_artifacts)
    names = plan.contract_names
    if any(step.kind is StepKind.PROXY for step in plan.steps):
        names.append(proxy_contract)
    return artifacts_from_ape_project(names)


def check_chain(profile: NetworkProfile, submitter: ApeTransactionSubmitter) -> None:
    if profile.chain_id != submitter.chain_id:
        raise click.BadParameter(
            f"Network profile '{profile.network_id}' is for chain {profile.chain_id}, "
            f"but the connected chain is {submitter.chain_id}.",
            param_hint="--network-id",
        )


def run_plan(
    plan: DeploymentPlan,
    account: AccountAPI,
    autosign: bool,
    unsafe_allow: Iterable[str],
    timeout: float,
    confirmations: Optional[int],
    registry_filepath: Optional[Path],
    proxy_contract: str = PROXY_NAME,
    hardhat_artifacts: Optional[Path] = None,
) -> DeploymentSummary:
    allowed = UnsafeAllow.from_names(unsafe_allow)
    if allowed:
        click.echo(
            "WARNING: allowing "
            f"{', '.join(sorted(flag.value for flag in allowed))} in proxied logic contracts."
        )
        plan = plan.with_unsafe_allow(allowed)

    submitter = ApeTransactionSubmitter(
        account=account, autosign=autosign, required_confirmations=confirmations
    )
    check_chain(plan.profile, submitter)

    deployer = Deployer(
        plan=plan,
        artifacts=load_artifacts(plan, proxy_contract, hardhat_artifacts),
        submitter=submitter,
        proxy_artifact_name=proxy_contract,
        autosign=autosign,
        timeout=timeout,
        registry_filepath=registry_filepath,
    )
    summary = deployer.run()
    click.echo(summary.to_json())
    return summary


def plan_from_params(
    network_id: str, params_file: Path, constants: Optional[dict] = None
) -> DeploymentPlan:
    profile = resolve(network_id)
    return DeploymentPlan.from_yaml(params_file, profile=profile, constants=constants)
