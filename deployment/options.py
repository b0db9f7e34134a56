from pathlib import Path

import click

from deployment.artifacts import UnsafeAllow
from deployment.constants import DEFAULT_CONFIRMATION_TIMEOUT, PROXY_NAME, SUPPORTED_NETWORKS
from deployment.types import MinInt, Seconds

network_id_option = click.option(
    "--network-id",
    "-n",
    help="Deployment network profile",
    type=click.Choice(SUPPORTED_NETWORKS),
    required=True,
)

params_file_option = click.option(
    "--params-file",
    "-p",
    help="Deployment parameters YAML",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-f",
    help="Registry to write the deployed addresses to",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign and send every transaction without asking",
    is_flag=True,
    default=False,
)

unsafe_allow_option = click.option(
    "--unsafe-allow",
    "-u",
    "unsafe_allow",
    help="Allow the logic contract to use this opcode; it may mutate proxy storage arbitrarily",
    type=click.Choice([flag.value for flag in UnsafeAllow]),
    multiple=True,
)

timeout_option = click.option(
    "--timeout",
    "-t",
    help="Seconds to wait for each confirmation before giving up",
    type=Seconds(),
    default=DEFAULT_CONFIRMATION_TIMEOUT,
    show_default=True,
)

confirmations_option = click.option(
    "--confirmations",
    help="Blocks required before a transaction counts as confirmed",
    type=MinInt(1),
    default=None,
)

proxy_contract_option = click.option(
    "--proxy-contract",
    help="Name of the proxy contract artifact",
    type=click.STRING,
    default=PROXY_NAME,
    show_default=True,
)

hardhat_artifacts_option = click.option(
    "--hardhat-artifacts",
    help="Load artifacts from a hardhat artifacts directory instead of the ape project",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    required=False,
)
