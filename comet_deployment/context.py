import threading
import typing
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from ape import Contract, networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractInstance, ContractTransactionHandler
from ethpm_types import MethodABI
from web3.auto import w3

from comet_deployment.assets import AssetRegistry
from comet_deployment.confirm import _continue
from comet_deployment.constants import (
    CHAIN_IDS,
    DEFAULT_REQUIRED_CONFIRMATIONS,
    NETWORK_CHOICES,
)
from comet_deployment.registry import ArtifactStore
from comet_deployment.utils import get_contract_container


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(
        self,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        required_confirmations: int = DEFAULT_REQUIRED_CONFIRMATIONS,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self.required_confirmations = required_confirmations

    @property
    def autosign(self) -> bool:
        return self._autosign

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        result = method(
            *args,
            sender=self._account,
            required_confirmations=self.required_confirmations,
        )
        return result

    def deploy(self, contract_type: str, *args) -> ContractInstance:
        """Submits a creation transaction and waits for its confirmations."""
        container = get_contract_container(contract_type)
        return self._account.deploy(
            container,
            *args,
            publish=False,
            required_confirmations=self.required_confirmations,
        )

    def contract_at(
        self,
        address: str,
        contract_type: Optional[str] = None,
        abi: Optional[List[Dict]] = None,
    ) -> ContractInstance:
        """Returns a handle to an existing contract, by project contract type or raw ABI."""
        if abi is not None:
            return Contract(address, abi=abi)
        return get_contract_container(contract_type).at(address)


class DeploymentManagerContext:
    """
    Everything an operation on a single network needs: its identity, the known
    artifacts and assets, and the account used to transact.

    A context belongs to one run at a time; ``exclusive`` guards against two
    runs driving the same network concurrently.
    """

    _locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
    _locks_guard = threading.Lock()

    def __init__(
        self,
        network: str,
        transactor: Transactor,
        store: ArtifactStore,
        assets: Optional[AssetRegistry] = None,
        network_choice: Optional[str] = None,
        chain_id: Optional[int] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.network = network
        self.transactor = transactor
        self.store = store
        self.artifacts = store.network(network)
        self.assets = assets if assets is not None else AssetRegistry()
        self.network_choice = network_choice
        self.chain_id = chain_id if chain_id is not None else CHAIN_IDS.get(network)
        self.config = dict(config or dict())

    @classmethod
    def for_network(
        cls,
        network: str,
        transactor: Transactor,
        store: ArtifactStore,
        assets: Optional[AssetRegistry] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> "DeploymentManagerContext":
        """A context that switches to the network's configured ape provider when connecting."""
        try:
            network_choice = NETWORK_CHOICES[network]
        except KeyError:
            raise ValueError(f"No ape network choice configured for '{network}'")
        return cls(
            network=network,
            transactor=transactor,
            store=store,
            assets=assets,
            network_choice=network_choice,
            config=config,
        )

    @contextmanager
    def connect(self):
        """Runs the enclosed block against this context's network."""
        if not self.network_choice:
            # use whichever provider is already active
            yield self
            return
        with networks.parse_network_choice(self.network_choice):
            yield self

    @contextmanager
    def exclusive(self):
        with self._locks_guard:
            lock = self._locks[self.network]
        if not lock.acquire(blocking=False):
            raise RuntimeError(f"Another run is already operating on network '{self.network}'")
        try:
            yield self
        finally:
            lock.release()

    def contract(self, name: str) -> ContractInstance:
        """Returns a handle to a known artifact of this network."""
        artifact = self.artifacts.require(name)
        return self.transactor.contract_at(artifact.address, contract_type=artifact.contract_type)

    def __repr__(self) -> str:
        return f"DeploymentManagerContext(network={self.network!r})"
