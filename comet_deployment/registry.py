import json
import threading
from collections import OrderedDict, defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from eth_typing import ABI

from comet_deployment.errors import ArtifactAlreadyExists, ArtifactNotFound
from comet_deployment.utils import _load_json

NetworkId = str
ArtifactName = str

CONTRACT_KIND = "contract"
CALL_KIND = "call"

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class Artifact(NamedTuple):
    """A deployed (or reused) contract, or a recorded one-shot call, on a single network."""

    network: NetworkId
    name: ArtifactName
    address: ChecksumAddress
    contract_type: str
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str
    kind: str = CONTRACT_KIND

    @property
    def is_call(self) -> bool:
        return self.kind == CALL_KIND


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.dict())
    return contract_abi


def _normalize_tx_hash(tx_hash) -> str:
    return "0x" + bytes(HexBytes(tx_hash)).hex()


def artifact_from_instance(
    network: NetworkId, name: ArtifactName, contract_instance: ContractInstance
) -> Artifact:
    """Builds an artifact from a freshly deployed contract instance and its creation receipt."""
    receipt = contract_instance.receipt
    return Artifact(
        network=network,
        name=name,
        address=to_checksum_address(contract_instance.address),
        contract_type=contract_instance.contract_type.name,
        abi=_get_abi(contract_instance),
        tx_hash=_normalize_tx_hash(receipt.txn_hash),
        block_number=int(receipt.block_number),
        deployer=receipt.transaction.sender,
    )


def artifact_from_call(network: NetworkId, name: ArtifactName, target: Artifact, receipt) -> Artifact:
    """Builds the record of a one-shot transaction sent to an existing artifact."""
    return Artifact(
        network=network,
        name=name,
        address=target.address,
        contract_type=target.contract_type,
        abi=list(),
        tx_hash=_normalize_tx_hash(receipt.txn_hash),
        block_number=int(receipt.block_number),
        deployer=receipt.transaction.sender,
        kind=CALL_KIND,
    )


def read_registry(filepath: Path) -> List[Artifact]:
    data = _load_json(filepath)
    artifacts = list()
    for network, entries in data.items():
        for name, record in entries.items():
            artifact = Artifact(
                network=record.get("network", network),
                name=name,
                address=record["address"],
                contract_type=record.get("contract_type", name),
                abi=record.get("abi", list()),
                tx_hash=record["tx_hash"],
                block_number=record["block_number"],
                deployer=record["deployer"],
                kind=record.get("kind", CONTRACT_KIND),
            )
            artifacts.append(artifact)
    return artifacts


def write_registry(artifacts: List[Artifact], filepath: Path, silent: bool = False) -> Path:
    """Writes an artifact registry to a file, replacing its previous contents."""

    # Sort entries to enforce common order so that registries stay diff-able
    artifacts = sorted(artifacts, key=lambda a: (a.network, a.name))

    data = defaultdict(dict)
    for artifact in artifacts:
        artifact_abi = list(artifact.abi)
        artifact_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[artifact.network][artifact.name] = {
            "address": artifact.address,
            "contract_type": artifact.contract_type,
            "abi": artifact_abi,
            "tx_hash": artifact.tx_hash,
            "block_number": int(artifact.block_number),
            "deployer": artifact.deployer,
            "kind": artifact.kind,
            "network": artifact.network,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)
    if not silent:
        action = "Updating" if filepath.exists() else "Creating new"
        print(f"{action} registry at {filepath}.")

    temp_filepath = filepath.with_suffix(".temp.json")
    with open(temp_filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)
    temp_filepath.replace(filepath)

    return filepath


def normalize_registry(filepath: Path):
    """Normalizes a potentially non-standard registry file."""
    try:
        artifacts = read_registry(filepath=filepath)
    except Exception:
        print(f"Error when reading registry at {filepath}.")
        raise

    write_registry(artifacts=artifacts, filepath=filepath, silent=True)
    print(f"Successfully normalized registry at {filepath}.")


class ArtifactStore:
    """
    Durable mapping of (network, logical name) -> Artifact.

    Backed by a JSON registry file when a filepath is given; every successful
    ``put`` is written through before it returns. Without a filepath the store
    only lives in memory.
    """

    def __init__(self, filepath: Optional[Path] = None):
        self.filepath = filepath
        self._lock = threading.Lock()
        self._artifacts: Dict[NetworkId, Dict[ArtifactName, Artifact]] = defaultdict(OrderedDict)
        if filepath is not None and filepath.exists():
            for artifact in read_registry(filepath):
                self._artifacts[artifact.network][artifact.name] = artifact

    def get(self, network: NetworkId, name: ArtifactName) -> Optional[Artifact]:
        with self._lock:
            return self._artifacts.get(network, {}).get(name)

    def require(self, network: NetworkId, name: ArtifactName) -> Artifact:
        artifact = self.get(network, name)
        if artifact is None:
            raise ArtifactNotFound(network=network, name=name)
        return artifact

    def put(
        self, network: NetworkId, name: ArtifactName, artifact: Artifact, force: bool = False
    ) -> Artifact:
        if artifact.network != network or artifact.name != name:
            raise ValueError(
                f"Artifact {artifact.name}@{artifact.network} cannot be stored as {name}@{network}"
            )
        with self._lock:
            existing = self._artifacts.get(network, {}).get(name)
            if existing is not None:
                if not force:
                    raise ArtifactAlreadyExists(
                        network=network, name=name, address=existing.address
                    )
                print(
                    f"(i) Replacing {name} on {network}: {existing.address} -> {artifact.address}"
                )
            self._artifacts[network][name] = artifact
            self._persist()
        return artifact

    def all(self, network: NetworkId) -> Dict[ArtifactName, Artifact]:
        with self._lock:
            return OrderedDict(self._artifacts.get(network, {}))

    def networks(self) -> List[NetworkId]:
        with self._lock:
            return sorted(n for n, entries in self._artifacts.items() if entries)

    def network(self, network: NetworkId) -> "NetworkArtifacts":
        return NetworkArtifacts(store=self, network=network)

    def _persist(self) -> None:
        if self.filepath is None:
            return
        artifacts = [a for entries in self._artifacts.values() for a in entries.values()]
        write_registry(artifacts=artifacts, filepath=self.filepath, silent=True)


class NetworkArtifacts:
    """An ArtifactStore partition bound to a single network."""

    def __init__(self, store: ArtifactStore, network: NetworkId):
        self.store = store
        self.network = network

    def get(self, name: ArtifactName) -> Optional[Artifact]:
        return self.store.get(self.network, name)

    def require(self, name: ArtifactName) -> Artifact:
        return self.store.require(self.network, name)

    def put(self, artifact: Artifact, force: bool = False) -> Artifact:
        return self.store.put(self.network, artifact.name, artifact, force=force)

    def all(self) -> Dict[ArtifactName, Artifact]:
        return self.store.all(self.network)

    def __contains__(self, name: ArtifactName) -> bool:
        return self.get(name) is not None
