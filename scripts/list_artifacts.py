#!/usr/bin/python3

from itertools import groupby
from pathlib import Path
from typing import List, Optional, Tuple

import click

from comet_deployment.constants import ARTIFACTS_DIR, CHAIN_IDS
from comet_deployment.registry import Artifact, read_registry


def _get_registry_artifacts(
    registry: Optional[Path] = None, network: Optional[str] = None
) -> List[Tuple[Path, List[Artifact]]]:
    """Parse the given registry, or every registry in the artifacts directory."""
    filepaths = [registry] if registry else sorted(ARTIFACTS_DIR.glob("*.json"))
    registry_artifacts = list()
    for filepath in filepaths:
        artifacts = read_registry(filepath=filepath)
        if network:
            artifacts = [a for a in artifacts if a.network == network]
        registry_artifacts.append((filepath, artifacts))
    return registry_artifacts


def _display_registry_artifacts(registry_artifacts: List[Tuple[Path, List[Artifact]]]) -> None:
    """Display artifacts grouped by network."""
    for filepath, artifacts in registry_artifacts:
        click.secho(f"\n{filepath.name}", fg="green")
        for network, network_artifacts in groupby(artifacts, key=lambda a: a.network):
            click.secho(f"    {network.capitalize()} ({CHAIN_IDS.get(network, '?')})", fg="yellow")
            for index, artifact in enumerate(network_artifacts, start=1):
                label = f"{artifact.name} {artifact.address}"
                if artifact.is_call:
                    label = f"{artifact.name} -> {artifact.address} (tx {artifact.tx_hash})"
                click.secho(f"        {index}. {label}", fg="cyan")


@click.command(name="list-artifacts")
@click.option(
    "--registry",
    "-r",
    help="Filepath to a registry file; defaults to every registry in the artifacts directory",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
)
@click.option(
    "--network",
    "-n",
    help="Only list artifacts of this network",
    type=str,
)
def cli(registry, network):
    """List all deployed artifacts. Optionally filter by network."""
    registry_artifacts = _get_registry_artifacts(registry=registry, network=network)
    _display_registry_artifacts(registry_artifacts)


if __name__ == "__main__":
    cli()
