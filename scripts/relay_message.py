#!/usr/bin/python3

import click
from ape.cli import account_option

from comet_deployment.constants import GOVERNANCE_NETWORKS
from comet_deployment.context import DeploymentManagerContext, Transactor
from comet_deployment.options import (
    autosign_option,
    deployment_option,
    payload_option,
    poll_interval_option,
    satellite_option,
    timeout_option,
)
from comet_deployment.params import DeploySpec
from comet_deployment.registry import ArtifactStore
from comet_deployment.relay import GovernanceMessage, relay_message
from comet_deployment.utils import deploy_spec_filepath


@click.command(name="relay-message")
@satellite_option
@deployment_option
@payload_option
@timeout_option
@poll_interval_option
@autosign_option
@account_option()
def cli(satellite, deployment, payload, timeout, poll_interval, autosign, account):
    """Relay governance messages from the primary chain to a satellite deployment."""
    primary_network = GOVERNANCE_NETWORKS[satellite]
    spec = DeploySpec.from_yaml(filepath=deploy_spec_filepath(satellite, deployment))
    store = ArtifactStore(filepath=spec.artifact_filepath)
    transactor = Transactor(account=account, autosign=autosign)

    primary = DeploymentManagerContext.for_network(
        network=primary_network, transactor=transactor, store=store
    )
    satellite_context = DeploymentManagerContext.for_network(
        network=satellite, transactor=transactor, store=store, config=dict(spec.config)
    )

    messages = None
    if payload:
        messages = [
            GovernanceMessage(
                origin=primary_network,
                destination=satellite,
                payload=data,
                nonce=nonce,
            )
            for nonce, data in enumerate(payload)
        ]
    else:
        print("(i) No payload given; waiting for messages already sent over the bridge")

    relay_message(
        primary,
        satellite_context,
        messages=messages,
        timeout=timeout,
        poll_interval=poll_interval,
    )
    click.secho(f"All messages delivered to {satellite}", fg="green")


if __name__ == "__main__":
    cli()
