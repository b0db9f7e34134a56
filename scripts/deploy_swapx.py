#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.cli import plan_from_params, run_plan
from deployment.options import (
    autosign_option,
    confirmations_option,
    hardhat_artifacts_option,
    network_id_option,
    params_file_option,
    proxy_contract_option,
    registry_filepath_option,
    timeout_option,
    unsafe_allow_option,
)
from deployment.plan import RunMode


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@network_id_option
@params_file_option
@registry_filepath_option
@autosign_option
@unsafe_allow_option
@timeout_option
@confirmations_option
@proxy_contract_option
@hardhat_artifacts_option
def cli(
    network,
    account,
    network_id,
    params_file,
    registry_filepath,
    autosign,
    unsafe_allow,
    timeout,
    confirmations,
    proxy_contract,
    hardhat_artifacts,
):
    """
    Deploy the SwapX logic contracts and a freshly initialized SwapX proxy.

    ape run deploy_swapx --network ethereum:sepolia:infura -n sepolia -p deployment/constructor_params/sepolia/swapx.yml
    """
    plan = plan_from_params(network_id=network_id, params_file=params_file)
    if plan.mode is not RunMode.FRESH:
        raise click.BadParameter(
            f"{params_file} upgrades an existing proxy; use upgrade_swapx instead.",
            param_hint="--params-file",
        )
    run_plan(
        plan=plan,
        account=account,
        autosign=autosign,
        unsafe_allow=unsafe_allow,
        timeout=timeout,
        confirmations=confirmations,
        registry_filepath=registry_filepath,
        proxy_contract=proxy_contract,
        hardhat_artifacts=hardhat_artifacts,
    )
