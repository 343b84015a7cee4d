"""
# Setup
Create a .env file in the project root directory, for example:
```
ZG_TESTNET_RPC_URL=<your_provider_url>
ZG_TESTNET_PRIVATE_KEY=<your_private_key>
ZG_TESTNET_DEPLOYMENTS_PATH=deployments/zgTestnet
UPGRADE_AGENT_NFT=true
VERIFY_AGENT_NFT=true
```

# Usage
```
inft deploy zgTestnet --tags core
inft upgrade zgTestnet --contract AgentNFT
inft verify zgTestnet
inft show zgTestnet
inft mint zgTestnet
```
"""

from typing import Optional

import click

from inft_deployment.artifacts import ArtifactStore
from inft_deployment.chain import connect
from inft_deployment.config import (
    UpgradeConfig,
    VerificationConfig,
    load_environment,
    network_settings,
    resolve_network_name,
)
from inft_deployment.constants import AGENT_NFT, NETWORK_ENVVAR, SUPPORTED_NETWORKS
from inft_deployment.deployer import DeploymentPipeline, IdempotentDeployer
from inft_deployment.exceptions import DeploymentError
from inft_deployment.graph import select
from inft_deployment.mint import (
    DEFAULT_DATA,
    DEFAULT_DATA_DESCRIPTION,
    IntelligentData,
)
from inft_deployment.mint import mint as mint_inft
from inft_deployment.options import (
    artifacts_dir_option,
    autosign_option,
    contract_option,
    delay_option,
    deployments_dir_option,
    network_argument,
    network_option,
    params_option,
    skip_safety_checks_option,
    tags_option,
)
from inft_deployment.params import InitializerParameters
from inft_deployment.records import DeploymentRecordStore
from inft_deployment.reporting import ConsoleReporter
from inft_deployment.upgrade import UpgradeOrchestrator, all_succeeded
from inft_deployment.verify import VerificationDispatcher


def _usage(ctx: click.Context, hint: str) -> None:
    click.echo(ctx.get_usage())
    click.echo(hint)
    click.echo(f"Supported networks: {', '.join(SUPPORTED_NETWORKS)}")
    ctx.exit(1)


def _require_network(ctx: click.Context, network: Optional[str], option: Optional[str]) -> str:
    name = resolve_network_name(ctx.obj, positional=network, option=option)
    if not name:
        _usage(ctx, f"Provide a network as an argument, with --network or via {NETWORK_ENVVAR}.")
    return name


@click.group()
@click.pass_context
def cli(ctx):
    """Deploy, upgrade and verify the Agent NFT contracts."""
    ctx.obj = load_environment()


@cli.command()
@network_argument
@network_option
@contract_option
@tags_option
@params_option
@artifacts_dir_option
@deployments_dir_option
@autosign_option
@click.pass_context
def deploy(
    ctx,
    network,
    network_flag,
    contract_names,
    tags,
    params_filepath,
    artifacts_dir,
    deployments_dir,
    autosign,
):
    """Deploy the selected contracts (and their dependencies) behind beacon proxies."""
    environ = ctx.obj
    name = _require_network(ctx, network, network_flag)
    reporter = ConsoleReporter()
    try:
        settings = network_settings(name)
        contracts = select(names=contract_names, tags=tags)
        params = InitializerParameters.from_config(environ, params_filepath)
        chain = connect(
            settings, environ, ArtifactStore(artifacts_dir), autosign=autosign, reporter=reporter
        )
        store = DeploymentRecordStore(deployments_dir, environ=environ, reporter=reporter)
        deployer = IdempotentDeployer(chain, store, name, params, reporter=reporter)
        results = DeploymentPipeline(deployer, reporter=reporter).run(contracts)
    except DeploymentError as e:
        reporter.error(f"Deployment failed: {e}")
        ctx.exit(1)

    ctx.exit(0 if all(result.success for result in results) else 1)


@cli.command()
@network_argument
@network_option
@contract_option
@skip_safety_checks_option
@artifacts_dir_option
@deployments_dir_option
@autosign_option
@click.pass_context
def upgrade(
    ctx,
    network,
    network_flag,
    contract_names,
    skip_safety_checks,
    artifacts_dir,
    deployments_dir,
    autosign,
):
    """Upgrade the enabled contracts to freshly deployed implementations."""
    environ = ctx.obj
    name = _require_network(ctx, network, network_flag)
    reporter = ConsoleReporter()
    try:
        settings = network_settings(name)
        config = UpgradeConfig.from_environment(
            name,
            environ,
            contracts=contract_names,
            perform_safety_checks=not skip_safety_checks,
        )
        chain = connect(
            settings, environ, ArtifactStore(artifacts_dir), autosign=autosign, reporter=reporter
        )
        store = DeploymentRecordStore(deployments_dir, environ=environ, reporter=reporter)
        results = UpgradeOrchestrator(chain, store, config, reporter=reporter).run()
    except DeploymentError as e:
        reporter.error(f"Upgrade process failed: {e}")
        ctx.exit(1)

    ctx.exit(0 if all_succeeded(results) else 1)


@cli.command()
@network_argument
@deployments_dir_option
@delay_option
@click.pass_context
def verify(ctx, network, deployments_dir, delay):
    """Verify the recorded contracts of the enabled VERIFY_* groups."""
    if not network:
        _usage(ctx, "Provide the network whose deployments should be verified.")
    environ = ctx.obj
    reporter = ConsoleReporter()
    try:
        network_settings(network)
        config = VerificationConfig.from_environment(network, environ)._replace(delay=delay)
        store = DeploymentRecordStore(deployments_dir, environ=environ, reporter=reporter)
        summary = VerificationDispatcher(store, config, reporter=reporter).run()
    except DeploymentError as e:
        reporter.error(f"Verification failed: {e}")
        ctx.exit(1)

    ctx.exit(0 if summary.success else 1)


@cli.command()
@network_argument
@network_option
@click.option(
    "--description",
    help="Data description of the minted token.",
    default=DEFAULT_DATA_DESCRIPTION,
    show_default=True,
)
@click.option(
    "--data",
    help="Text whose EIP-191 message hash becomes the data hash.",
    default=DEFAULT_DATA,
    show_default=True,
)
@click.option("--to", "recipient", help="Recipient of the token; defaults to the signer.")
@artifacts_dir_option
@deployments_dir_option
@autosign_option
@click.pass_context
def mint(
    ctx,
    network,
    network_flag,
    description,
    data,
    recipient,
    artifacts_dir,
    deployments_dir,
    autosign,
):
    """Mint one iNFT from the recorded AgentNFT proxy."""
    environ = ctx.obj
    name = _require_network(ctx, network, network_flag)
    reporter = ConsoleReporter()
    try:
        settings = network_settings(name)
        store = DeploymentRecordStore(deployments_dir, environ=environ, reporter=reporter)
        # nothing to mint from before AgentNFT is deployed
        store.get(name, AGENT_NFT)
        chain = connect(
            settings, environ, ArtifactStore(artifacts_dir), autosign=autosign, reporter=reporter
        )
        datas = [IntelligentData.from_text(description, data)]
        mint_inft(chain, store, name, datas, recipient=recipient, reporter=reporter)
    except DeploymentError as e:
        reporter.error(f"Mint failed: {e}")
        ctx.exit(1)


@cli.command()
@network_argument
@deployments_dir_option
@click.pass_context
def show(ctx, network, deployments_dir):
    """List the recorded contracts. Optionally filter by network."""
    environ = ctx.obj
    store = DeploymentRecordStore(deployments_dir, environ=environ, reporter=ConsoleReporter())
    networks = [network] if network else SUPPORTED_NETWORKS
    for network_name in networks:
        try:
            network_settings(network_name)
        except DeploymentError as e:
            click.secho(str(e), fg="red", err=True)
            ctx.exit(1)

        records = store.list(network_name)
        if not records:
            continue
        click.secho(f"\n{network_name}", fg="green")
        for index, (name, record) in enumerate(records.items(), start=1):
            click.secho(f"    {index}. {name} {record.address}", fg="cyan")
            if record.implementation:
                click.echo(f"        implementation: {record.implementation}")
            if record.last_upgrade:
                click.echo(
                    f"        last upgrade: {record.last_upgrade.timestamp} "
                    f"({record.last_upgrade.transaction_hash})"
                )


if __name__ == "__main__":
    cli()
