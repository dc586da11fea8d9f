from typing import Optional


class CometDeploymentError(Exception):
    """Base class for deployment and relay errors."""


class DeploymentConfigError(CometDeploymentError, ValueError):
    """Raised when a deployment spec is malformed or references unknown names."""


class UnknownAsset(CometDeploymentError, KeyError):
    def __init__(self, symbol: str, network: str):
        self.symbol = symbol
        self.network = network
        super().__init__(f"Unknown asset '{symbol}' on network '{network}'")

    def __str__(self) -> str:
        return self.args[0]


class CyclicDependency(DeploymentConfigError):
    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency between artifacts: {' -> '.join(self.cycle)}")


class ArtifactAlreadyExists(CometDeploymentError):
    def __init__(self, network: str, name: str, address: str):
        self.network = network
        self.name = name
        self.address = address
        super().__init__(
            f"Artifact '{name}' already exists on {network} at {address}; "
            f"use force to overwrite it"
        )


class ArtifactNotFound(CometDeploymentError, KeyError):
    def __init__(self, network: str, name: str):
        self.network = network
        self.name = name
        super().__init__(f"No artifact '{name}' on network '{network}'")

    def __str__(self) -> str:
        return self.args[0]


class DeploymentFailed(CometDeploymentError):
    def __init__(self, artifact_name: str, cause: Exception, network: Optional[str] = None):
        self.artifact_name = artifact_name
        self.cause = cause
        self.network = network
        location = f" on {network}" if network else ""
        super().__init__(f"Deployment of '{artifact_name}'{location} failed: {cause}")


class UnsupportedRelayTarget(CometDeploymentError):
    def __init__(self, network: str, primary_network: str):
        self.network = network
        self.primary_network = primary_network
        super().__init__(
            f"No message relay implementation from {network} -> {primary_network}"
        )


class RelayFailed(CometDeploymentError):
    def __init__(self, network: str, outcomes):
        self.network = network
        self.outcomes = list(outcomes)
        reasons = ", ".join(o.reason for o in self.outcomes if o.reason)
        super().__init__(f"Relay to {network} failed: {reasons}")
