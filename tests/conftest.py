import itertools
from types import SimpleNamespace

import pytest
from eth_utils import to_checksum_address

from comet_deployment import context as context_module
from comet_deployment.assets import AssetRegistry
from comet_deployment.context import DeploymentManagerContext, Transactor
from comet_deployment.params import DeploySpec
from comet_deployment.registry import ArtifactStore

DEPLOYER_ADDRESS = to_checksum_address("0x3b42d26e19ff860bc4debb920dd8caa53f93c600")

POLYGON_USDC = to_checksum_address("0x2791bca1f2de4661ed88a30c99a7a9449aa84174")
POLYGON_WMATIC = to_checksum_address("0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270")

ASSETS = {
    "polygon": {
        "USDC": POLYGON_USDC,
        "WETH": to_checksum_address("0x7ceb23fd6bc0add59e62ac25578270cff1b9f619"),
        "WBTC": to_checksum_address("0x1bfd67037b42cf73acf2047067bd4f2c47d9bfd6"),
        "WMATIC": POLYGON_WMATIC,
    },
    "mumbai": {
        "USDC": to_checksum_address("0xe6b8a5cf854791412c1f6efc7caf629f5df1c747"),
        "WMATIC": to_checksum_address("0x9c3c9283d3e44854697cd22d3faa240cfb032889"),
    },
}

GOVERNOR_TIMELOCK = to_checksum_address("0x6d903f6003cca6255d85cca4d3b5e5146dc33925")

# contract type -> method -> [(input name, input type)]
CONTRACT_METHODS = {
    "PolygonBridgeReceiver": {
        "initialize": [("_govTimelock", "address"), ("_localTimelock", "address")],
    },
}


def usdc_config(network="polygon"):
    """Deploy spec for a USDC market, shaped like deployments/<network>/usdc/deploy.yml."""
    return {
        "deployment": {"name": "usdc", "network": network},
        "constants": {
            "FX_CHILD": "0x8397259c983751DAf40400790063935a11afa28a",
            "GOVERNOR_TIMELOCK": GOVERNOR_TIMELOCK,
            "TIMELOCK_DELAY": 172800,
        },
        "assets": ["USDC", "WMATIC"],
        "contracts": [
            {
                "bridgeReceiver": {
                    "contract_type": "PolygonBridgeReceiver",
                    "constructor": {"_fxChild": "$FX_CHILD"},
                    "initialize": {
                        "method": "initialize",
                        "args": {
                            "_govTimelock": "$GOVERNOR_TIMELOCK",
                            "_localTimelock": "$localTimelock",
                        },
                    },
                }
            },
            {
                "localTimelock": {
                    "contract_type": "Timelock",
                    "constructor": {"admin": "$bridgeReceiver", "delay": "$TIMELOCK_DELAY"},
                }
            },
            {
                "comet": {
                    "contract_type": "Comet",
                    "constructor": {
                        "governor": "$localTimelock",
                        "pauseGuardian": "$deployer",
                        "baseToken": "$asset:USDC",
                    },
                }
            },
            {
                "bulker": {
                    "contract_type": "BaseBulker",
                    "constructor": {"admin": "$localTimelock", "weth": "$asset:WMATIC"},
                }
            },
        ],
    }


class FakeABIEntry:
    def __init__(self, **fields):
        self._fields = fields

    def dict(self):
        return dict(self._fields)


class FakeMethod:
    def __init__(self, contract, name, inputs):
        self.contract = contract
        self.name = name
        self.abis = [
            SimpleNamespace(
                name=name,
                inputs=[SimpleNamespace(name=n, type=t) for n, t in inputs],
            )
        ]

    def __call__(self, *args, sender, required_confirmations):
        chain = self.contract.chain
        receipt = chain.receipt(sender.address)
        chain.transactions.append(("call", f"{self.contract.contract_type.name}.{self.name}", args))
        hook = chain.hooks.get((self.contract.address, self.name))
        if hook is not None:
            hook(args, receipt)
        return receipt

    def __str__(self):
        return self.name


class FakeContract:
    def __init__(self, chain, contract_type, address, methods=None, receipt=None):
        self.chain = chain
        self.address = address
        self.receipt = receipt
        self._methods = methods or dict()
        abi = [FakeABIEntry(type="constructor", inputs=[])]
        for method_name, inputs in self._methods.items():
            abi.append(
                FakeABIEntry(
                    type="function",
                    name=method_name,
                    inputs=[{"name": n, "type": t} for n, t in inputs],
                )
            )
        self.contract_type = SimpleNamespace(name=contract_type, abi=abi)

    def __getattr__(self, name):
        methods = self.__dict__.get("_methods", {})
        if name in methods:
            return FakeMethod(self, name, methods[name])
        raise AttributeError(name)


class FakeContainer:
    def __init__(self, chain, name):
        self.chain = chain
        self.name = name

    def at(self, address):
        return self.chain.contract_at(address)


class FakeChain:
    """
    Stand-in for the connected networks: hands out addresses and receipts
    and records every transaction sent through it.
    """

    def __init__(self, methods=None):
        self.methods = dict(CONTRACT_METHODS if methods is None else methods)
        self.contracts = dict()
        self.transactions = list()
        self.hooks = dict()
        self._counter = itertools.count(1)

    def receipt(self, sender):
        n = next(self._counter)
        return SimpleNamespace(
            txn_hash=f"0x{n:064x}",
            block_number=1000 + n,
            transaction=SimpleNamespace(sender=sender),
        )

    def deploy(self, container, args, sender):
        receipt = self.receipt(sender)
        address = to_checksum_address(f"0x{0xC0DE0000 + len(self.contracts):040x}")
        instance = FakeContract(
            chain=self,
            contract_type=container.name,
            address=address,
            methods=self.methods.get(container.name),
            receipt=receipt,
        )
        self.contracts[address] = instance
        self.transactions.append(("deploy", container.name, args))
        return instance

    def add(self, address, contract):
        self.contracts[to_checksum_address(address)] = contract
        return contract

    def container(self, name):
        return FakeContainer(self, name)

    def contract_at(self, address, abi=None):
        return self.contracts[to_checksum_address(address)]

    def deployed(self):
        return [name for kind, name, _ in self.transactions if kind == "deploy"]

    def sent(self):
        return [name for _, name, _ in self.transactions]


class FakeAccount:
    def __init__(self, chain, address=DEPLOYER_ADDRESS):
        self.chain = chain
        self.address = address
        self.autosign = None
        self.fail_on = set()

    def set_autosign(self, enabled):
        self.autosign = enabled

    def deploy(self, container, *args, publish=False, required_confirmations=1):
        if container.name in self.fail_on:
            raise RuntimeError(f"{container.name} creation reverted")
        return self.chain.deploy(container, args, sender=self.address)


@pytest.fixture
def chain(monkeypatch):
    fake = FakeChain()
    monkeypatch.setattr(context_module, "get_contract_container", fake.container)
    monkeypatch.setattr(context_module, "Contract", fake.contract_at)
    return fake


@pytest.fixture
def account(chain):
    return FakeAccount(chain)


@pytest.fixture
def transactor(account):
    return Transactor(account=account, autosign=True)


@pytest.fixture
def asset_registry():
    return AssetRegistry(assets=ASSETS)


@pytest.fixture
def registry_filepath(tmp_path):
    return tmp_path / "artifacts" / "polygon-usdc.json"


@pytest.fixture
def store(registry_filepath):
    return ArtifactStore(filepath=registry_filepath)


@pytest.fixture
def polygon_context(transactor, store, asset_registry):
    return DeploymentManagerContext(
        network="polygon", transactor=transactor, store=store, assets=asset_registry
    )


@pytest.fixture
def usdc_spec():
    return DeploySpec(config=usdc_config())
