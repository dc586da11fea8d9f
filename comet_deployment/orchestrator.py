from collections import OrderedDict
from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional, Union

from ape.contracts.base import ContractInstance
from eth_typing import ChecksumAddress

from comet_deployment.confirm import _confirm_redeploy, _confirm_resolution, _continue
from comet_deployment.context import DeploymentManagerContext
from comet_deployment.errors import DeploymentConfigError, DeploymentFailed
from comet_deployment.params import DeploySpec
from comet_deployment.plan import DeploymentPlan, Step
from comet_deployment.registry import Artifact, artifact_from_call, artifact_from_instance
from comet_deployment.utils import verify_contracts


class Deployed(Mapping):
    """
    The outcome of a deployment on one network: every artifact the spec
    declares plus the pre-existing asset bindings it consumed.

    Artifacts are reachable by key or as attributes (``deployed.comet``).
    Asset symbols also resolve by key (``deployed["USDC"]`` is the bound
    address), but iteration and ``len`` cover the artifacts only.
    """

    def __init__(
        self,
        network: str,
        artifacts: "OrderedDict[str, Artifact]",
        assets: "OrderedDict[str, ChecksumAddress]",
        created: Iterable[str] = (),
        transactions: int = 0,
    ):
        self.network = network
        self.artifacts = artifacts
        self.assets = assets
        self.created = tuple(created)
        self.transactions = transactions

    def __getitem__(self, name: str) -> Union[Artifact, ChecksumAddress]:
        if name in self.artifacts:
            return self.artifacts[name]
        return self.assets[name]

    def __iter__(self):
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)

    def __getattr__(self, name: str) -> Artifact:
        artifacts = self.__dict__.get("artifacts", {})
        if name in artifacts:
            return artifacts[name]
        raise AttributeError(name)

    @property
    def reused(self) -> List[str]:
        return [name for name in self.artifacts if name not in self.created]

    def addresses(self) -> Dict[str, ChecksumAddress]:
        """Logical name (or asset symbol) -> address, for every binding of the deployment."""
        addresses = OrderedDict((symbol, address) for symbol, address in self.assets.items())
        addresses.update((name, artifact.address) for name, artifact in self.artifacts.items())
        return addresses

    def __repr__(self) -> str:
        return f"Deployed(network={self.network!r}, artifacts={list(self.artifacts)})"


class Deployer:
    """
    Materializes a deploy spec on the network of a context.

    Steps run strictly in dependency order. Artifacts already present in the
    store are reused unless named in ``force``; every new artifact is written to
    the store before the next step starts, so a failed run can be resumed.
    """

    def __init__(self, context: DeploymentManagerContext, spec: DeploySpec, verify: bool = False):
        if spec.network != context.network:
            raise DeploymentConfigError(
                f"Deploy spec {spec.name} targets {spec.network}, "
                f"but the context is bound to {context.network}."
            )
        self.context = context
        self.spec = spec
        self.verify = verify
        self.plan = DeploymentPlan.from_spec(spec)

        self._created: List[str] = list()
        self._instances: List[ContractInstance] = list()
        self._transactions = 0

    @property
    def autosign(self) -> bool:
        return self.context.transactor.autosign

    def deploy(self, force: Iterable[str] = ()) -> Deployed:
        force = set(force)
        unknown = force - set(self.spec.contract_names)
        if unknown:
            raise DeploymentConfigError(f"Cannot force unknown contracts: {sorted(unknown)}")

        self._created, self._instances, self._transactions = list(), list(), 0
        assets = self._resolve_assets()
        self._print_deployment_info()

        with self.context.exclusive(), self.context.connect():
            if not self.autosign:
                _continue()
            for step in self.plan:
                if step.is_call:
                    self._execute_call(step)
                else:
                    self._execute_deploy(step, forced=step.name in force)

            if self.verify and self._instances:
                verify_contracts(contracts=self._instances)

        artifacts = OrderedDict(
            (name, self.context.artifacts.require(name)) for name in self.spec.contract_names
        )
        print(
            f"\n(i) Deployment {self.spec.name} on {self.context.network} complete: "
            f"{len(self._created)} created, {len(artifacts) - len(self._created)} reused."
        )
        return Deployed(
            network=self.context.network,
            artifacts=artifacts,
            assets=assets,
            created=self._created,
            transactions=self._transactions,
        )

    def _resolve_assets(self) -> "OrderedDict[str, ChecksumAddress]":
        """Resolves every asset the spec needs before anything is submitted."""
        assets = OrderedDict()
        for symbol in self.spec.assets:
            assets[symbol] = self.context.assets.resolve(self.context.network, symbol)
        return assets

    def _execute_deploy(self, step: Step, forced: bool) -> Artifact:
        existing = self.context.artifacts.get(step.name)
        if existing is not None and not forced:
            print(f"(i) Reusing {step.name} at {existing.address}")
            return existing

        if existing is not None and not self.autosign:
            _confirm_redeploy(step.name, existing.address)

        contract_type = self.spec.contracts[step.name].contract_type
        resolved_params = self.spec.resolve_constructor(step.name, self.context)
        if not self.autosign:
            _confirm_resolution(resolved_params, step.name)

        print(f"\nDeploying {step.name} ({contract_type}) on {self.context.network}...")
        try:
            instance = self.context.transactor.deploy(contract_type, *resolved_params.values())
            artifact = artifact_from_instance(self.context.network, step.name, instance)
        except Exception as e:
            raise DeploymentFailed(artifact_name=step.name, cause=e, network=self.context.network) from e
        self._transactions += 1

        self.context.artifacts.put(artifact, force=existing is not None)
        self._created.append(step.name)
        self._instances.append(instance)
        print(f"(i) {step.name} deployed to {artifact.address}")
        return artifact

    def _execute_call(self, step: Step) -> Optional[Artifact]:
        existing = self.context.artifacts.get(step.name)
        target = self.context.artifacts.require(step.artifact)
        # a record for an earlier instance of the target does not count
        if existing is not None and existing.address == target.address:
            print(f"(i) Skipping {step.name}; already sent in {existing.tx_hash}")
            return existing

        resolved_args = self.spec.resolve_initialize(step.artifact, self.context)
        try:
            contract = self.context.contract(step.artifact)
            receipt = self.context.transactor.transact(
                getattr(contract, step.method), *resolved_args.values()
            )
            artifact = artifact_from_call(self.context.network, step.name, target, receipt)
        except Exception as e:
            raise DeploymentFailed(artifact_name=step.name, cause=e, network=self.context.network) from e
        self._transactions += 1

        return self.context.artifacts.put(artifact, force=existing is not None)

    def _print_deployment_info(self):
        account = self.context.transactor.get_account()
        print(
            f"Account: {account.address if account is not None else None}",
            f"Deployment: {self.spec.name}",
            f"Spec: {self.spec.path}",
            f"Registry: {self.context.store.filepath}",
            f"Verify: {self.verify}",
            f"Network: {self.context.network}",
            f"Chain ID: {self.context.chain_id}",
            f"Plan: {' -> '.join(self.plan.names)}",
            sep="\n",
        )


def deploy(
    context: DeploymentManagerContext,
    spec: DeploySpec,
    force: Iterable[str] = (),
    verify: bool = False,
) -> Deployed:
    """Deploys (or resumes) ``spec`` on the network bound to ``context``."""
    return Deployer(context=context, spec=spec, verify=verify).deploy(force=force)
