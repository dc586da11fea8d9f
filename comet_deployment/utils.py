import json
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from ape import networks, project
from ape.api.networks import LOCAL_NETWORK_NAME
from ape.contracts import ContractContainer, ContractInstance

from comet_deployment.constants import (
    ARTIFACTS_DIR,
    CHAIN_IDS,
    DEPLOY_SPEC_FILENAME,
    DEPLOYMENTS_DIR,
)
from comet_deployment.errors import DeploymentConfigError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def _load_config(filepath: Path) -> dict:
    """Loads a YAML or JSON file depending on its suffix."""
    if filepath.suffix == ".json":
        return _load_json(filepath)
    return _load_yaml(filepath)


def deploy_spec_filepath(network: str, deployment: str) -> Path:
    """Returns the path of the deploy spec for a named deployment on a network."""
    p = DEPLOYMENTS_DIR / network / deployment / DEPLOY_SPEC_FILENAME
    if not p.exists():
        raise ValueError(f"No deploy spec found for '{deployment}' on network '{network}'")
    return p


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the artifact file."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        deployment = config.get("deployment") or {}
        filename = f"{deployment.get('network')}-{deployment.get('name')}.json"
    return artifact_dir / filename


def validate_config(config: Dict) -> None:
    """Checks the top level structure of a deploy spec."""
    if not isinstance(config, dict):
        raise DeploymentConfigError("Deploy spec must be a mapping.")

    deployment = config.get("deployment")
    if not deployment:
        raise DeploymentConfigError("deployment is not set in deploy spec.")

    for field in ("name", "network"):
        if not deployment.get(field):
            raise DeploymentConfigError(f"{field} is not set in deploy spec.")

    network = deployment["network"]
    chain_id = deployment.get("chain_id")
    known_chain_id = CHAIN_IDS.get(network)
    if chain_id is not None and known_chain_id is not None and int(chain_id) != known_chain_id:
        raise DeploymentConfigError(
            f"chain_id in deploy spec ({chain_id}) does not match "
            f"the chain_id of {network} ({known_chain_id})."
        )

    contracts = config.get("contracts")
    if not contracts:
        raise DeploymentConfigError("Deploy spec missing 'contracts' field.")


def is_local_network() -> bool:
    return networks.provider.network.name == LOCAL_NETWORK_NAME


def check_chain_id(chain_id: Optional[int]) -> None:
    """Checks that the connected chain matches the chain a deployment targets."""
    if chain_id is None or is_local_network():
        return
    connected_chain_id = networks.provider.network.chain_id
    if int(chain_id) != connected_chain_id:
        raise ValueError(
            f"chain_id in deploy spec ({chain_id}) does not match "
            f"chain_id of current network ({connected_chain_id})."
        )


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar)
    if not api_key:
        raise ValueError(f"{explorer_envvar} is not set.")


def check_infura_plugin() -> None:
    """Checks that the ape-infura plugin is installed."""
    if is_local_network():
        return  # unnecessary for local deployment
    if networks.provider.name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        import ape_infura  # noqa: F401
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        api_key = os.environ.get(envvar)
        if api_key:
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()
    check_infura_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_network_name(chain_id: int) -> str:
    """Returns the network id for a chain id, falling back to the ape network name."""
    for network, known_chain_id in CHAIN_IDS.items():
        if known_chain_id == chain_id:
            return network
    for ecosystem_name, ecosystem in networks.ecosystems.items():
        for network_name, network in ecosystem.networks.items():
            if network.chain_id == chain_id:
                return f"{ecosystem_name} {network_name}"
    raise ValueError(f"Chain ID {chain_id} not found in networks.")
