#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.cli import run_plan
from deployment.networks import resolve
from deployment.options import (
    autosign_option,
    confirmations_option,
    hardhat_artifacts_option,
    network_id_option,
    registry_filepath_option,
    timeout_option,
)
from deployment.plan import DeploymentPlan, deploy_step


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@network_id_option
@click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Logic contract to deploy; repeat to deploy several in order",
    type=click.STRING,
    required=True,
    multiple=True,
)
@registry_filepath_option
@autosign_option
@timeout_option
@confirmations_option
@hardhat_artifacts_option
def cli(
    network,
    account,
    network_id,
    contract_names,
    registry_filepath,
    autosign,
    timeout,
    confirmations,
    hardhat_artifacts,
):
    """
    Deploy standalone logic contracts without constructor arguments
    (e.g. SwapV2, SwapV3) so a later SwapX deployment can reference them.
    """
    plan = DeploymentPlan(
        steps=[deploy_step(name) for name in contract_names],
        profile=resolve(network_id),
    )
    run_plan(
        plan=plan,
        account=account,
        autosign=autosign,
        unsafe_allow=(),
        timeout=timeout,
        confirmations=confirmations,
        registry_filepath=registry_filepath,
        hardhat_artifacts=hardhat_artifacts,
    )
