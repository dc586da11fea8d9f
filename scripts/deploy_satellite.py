#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from comet_deployment.assets import AssetRegistry
from comet_deployment.context import DeploymentManagerContext, Transactor
from comet_deployment.options import autosign_option, deployment_option, force_option, verify_option
from comet_deployment.orchestrator import deploy
from comet_deployment.params import DeploySpec
from comet_deployment.registry import ArtifactStore
from comet_deployment.utils import (
    check_chain_id,
    check_plugins,
    deploy_spec_filepath,
    get_network_name,
)


@click.command(cls=ConnectedProviderCommand, name="deploy-satellite")
@network_option(required=True)
@account_option()
@deployment_option
@force_option
@autosign_option
@verify_option
def cli(network, account, deployment, force, autosign, verify):
    """Deploy a Comet instance on the connected network, or resume a partial deployment."""
    check_plugins()
    network_id = get_network_name(networks.provider.chain_id)
    spec = DeploySpec.from_yaml(filepath=deploy_spec_filepath(network_id, deployment))
    check_chain_id(spec.chain_id)

    context = DeploymentManagerContext(
        network=network_id,
        transactor=Transactor(account=account, autosign=autosign),
        store=ArtifactStore(filepath=spec.artifact_filepath),
        assets=AssetRegistry.from_file(),
        chain_id=networks.provider.chain_id,
        config=dict(spec.config),
    )
    deployed = deploy(context, spec, force=force, verify=verify)

    click.secho(f"\n{spec.name} on {network_id}", fg="green")
    for name, address in deployed.addresses().items():
        color = "cyan" if name in deployed.created else "yellow"
        click.secho(f"    {name} {address}", fg=color)


if __name__ == "__main__":
    cli()
