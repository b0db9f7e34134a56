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
    registry_filepath_option,
    timeout_option,
    unsafe_allow_option,
)
from deployment.plan import RunMode
from deployment.types import ChecksumAddress


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@network_id_option
@params_file_option
@click.option(
    "--proxy-address",
    help="Existing proxy; available to the params file as $PROXY_ADDRESS",
    type=ChecksumAddress(),
    required=False,
)
@registry_filepath_option
@autosign_option
@unsafe_allow_option
@timeout_option
@confirmations_option
@hardhat_artifacts_option
def cli(
    network,
    account,
    network_id,
    params_file,
    proxy_address,
    registry_filepath,
    autosign,
    unsafe_allow,
    timeout,
    confirmations,
    hardhat_artifacts,
):
    """
    Deploy new SwapX logic and point the existing SwapX proxy at it.

    The new logic must keep the storage layout of the current one; this is
    not checked.
    """
    constants = {"PROXY_ADDRESS": proxy_address} if proxy_address else None
    plan = plan_from_params(network_id=network_id, params_file=params_file, constants=constants)
    if plan.mode is not RunMode.UPGRADE:
        raise click.BadParameter(
            f"{params_file} has no upgrade step; use deploy_swapx instead.",
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
        hardhat_artifacts=hardhat_artifacts,
    )
