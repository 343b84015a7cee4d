from pathlib import Path

import click

from inft_deployment.constants import (
    ARTIFACTS_DIR,
    CONTRACTS,
    DEPLOYMENTS_DIR,
    SUPPORTED_NETWORKS,
    VERIFY_DELAY,
)

network_argument = click.argument("network", required=False)

network_option = click.option(
    "--network",
    "-n",
    "network_flag",
    help="Network name; the positional argument and INFT_NETWORK take precedence.",
    type=click.Choice(SUPPORTED_NETWORKS),
    required=False,
)

contract_option = click.option(
    "--contract",
    "-c",
    "contract_names",
    help="Contract to act on; may be repeated.",
    type=click.Choice(list(CONTRACTS)),
    multiple=True,
)

tags_option = click.option(
    "--tags",
    "-t",
    help="Deploy contracts carrying this tag; may be repeated.",
    type=click.STRING,
    multiple=True,
)

autosign_option = click.option(
    "--autosign",
    help="Automatically sign transactions.",
    is_flag=True,
)

params_option = click.option(
    "--params",
    "params_filepath",
    help="YAML file whose 'constants' override initializer settings.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Compiled contract artifacts (hardhat layout).",
    envvar="ARTIFACTS_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    default=ARTIFACTS_DIR,
    show_default=True,
)

deployments_dir_option = click.option(
    "--deployments-dir",
    help="Root directory of the per-network deployment records.",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEPLOYMENTS_DIR,
    show_default=True,
)

skip_safety_checks_option = click.option(
    "--skip-safety-checks",
    help="Do not check for deployed code before submitting upgrades.",
    is_flag=True,
)

delay_option = click.option(
    "--delay",
    help="Seconds to wait between verifications within a group.",
    type=click.FLOAT,
    default=VERIFY_DELAY,
    show_default=True,
)
