import pytest

from comet_deployment.context import DeploymentManagerContext
from comet_deployment.errors import RelayFailed, UnsupportedRelayTarget
from comet_deployment.registry import ArtifactStore
from comet_deployment.relay import (
    BridgeSubmission,
    PendingReceipt,
    RelayDispatcher,
    RelayStrategy,
    dispatcher,
    relay_message,
)
from comet_deployment.relay.polygon import PolygonRelayStrategy


class RecordingStrategy(RelayStrategy):
    NAME = "recording"

    submitted = list()

    def package(self, message):
        return BridgeSubmission(message=message, bridge="bridge", receiver="receiver", data=message.payload)

    def submit(self, submission):
        self.submitted.append(submission)
        return PendingReceipt(
            message=submission.message,
            tx_hash=f"0x{submission.message.nonce:064x}",
            ordering_token=submission.message.nonce,
        )

    def is_delivered(self, receipt):
        return True


@pytest.fixture(autouse=True)
def reset_recordings():
    RecordingStrategy.submitted = list()


@pytest.fixture
def store():
    return ArtifactStore()


@pytest.fixture
def primary(transactor, store):
    return DeploymentManagerContext(network="mainnet", transactor=transactor, store=store)


def satellite_context(network, transactor, store):
    return DeploymentManagerContext(network=network, transactor=transactor, store=store)


def test_default_dispatcher_registrations():
    assert "polygon" in dispatcher.networks
    assert "mumbai" in dispatcher.networks


def test_dispatch_selects_registered_strategy(primary, transactor, store):
    relays = RelayDispatcher()
    relays.register_strategy("testnet", RecordingStrategy)

    satellite = satellite_context("testnet", transactor, store)
    strategy = relays.strategy_for(primary, satellite, timeout=5)
    assert isinstance(strategy, RecordingStrategy)
    assert strategy.timeout == 5

    message = strategy.message(payload=b"\x01", nonce=0)
    receipt = relays.relay(primary, satellite, messages=[message])
    assert receipt.succeeded
    assert receipt.network == "testnet"
    assert receipt.strategy == "recording"
    assert [s.message for s in RecordingStrategy.submitted] == [message]


def test_polygon_networks_use_fx_portal(primary, transactor, store):
    for network in ("polygon", "mumbai"):
        satellite = satellite_context(network, transactor, store)
        assert isinstance(dispatcher.strategy_for(primary, satellite), PolygonRelayStrategy)


def test_unregistered_network(primary, transactor, store):
    relays = RelayDispatcher()
    relays.register_strategy("testnet", RecordingStrategy)
    satellite = satellite_context("arbitrum", transactor, store)

    with pytest.raises(UnsupportedRelayTarget) as error:
        relays.relay(primary, satellite, messages=[])
    assert str(error.value) == "No message relay implementation from arbitrum -> mainnet"
    assert error.value.network == "arbitrum"
    assert error.value.primary_network == "mainnet"
    assert RecordingStrategy.submitted == []


def test_relay_message_unregistered_network(primary, transactor, store, chain):
    satellite = satellite_context("arbitrum", transactor, store)
    with pytest.raises(UnsupportedRelayTarget, match="arbitrum -> mainnet"):
        relay_message(primary, satellite)
    assert chain.transactions == []


def test_registration_decorator():
    relays = RelayDispatcher()

    @relays.register("testnet", "devnet")
    class DecoratedStrategy(RecordingStrategy):
        pass

    assert relays.networks == ["devnet", "testnet"]

    relays.unregister("devnet")
    assert relays.networks == ["testnet"]


def test_conflicting_registration():
    relays = RelayDispatcher()
    relays.register_strategy("testnet", RecordingStrategy)
    # registering the same class again is harmless
    relays.register_strategy("testnet", RecordingStrategy)

    class OtherStrategy(RecordingStrategy):
        pass

    with pytest.raises(ValueError, match="already relays through RecordingStrategy"):
        relays.register_strategy("testnet", OtherStrategy)

    with pytest.raises(TypeError):
        relays.register_strategy("devnet", object)


def test_relay_message_raises_on_failures(primary, transactor, store, monkeypatch):
    class FailingStrategy(RecordingStrategy):
        def submit(self, submission):
            raise ConnectionError("bridge unreachable")

    monkeypatch.setitem(dispatcher._strategies, "testnet", FailingStrategy)
    satellite = satellite_context("testnet", transactor, store)
    strategy = dispatcher.strategy_for(primary, satellite)

    with pytest.raises(RelayFailed) as error:
        relay_message(primary, satellite, messages=[strategy.message(payload=b"", nonce=0)])
    assert error.value.network == "testnet"
    assert error.value.outcomes[0].reason == "ConnectionError: bridge unreachable"


def test_relay_message_succeeds_silently(primary, transactor, store, monkeypatch):
    monkeypatch.setitem(dispatcher._strategies, "testnet", RecordingStrategy)
    satellite = satellite_context("testnet", transactor, store)
    strategy = dispatcher.strategy_for(primary, satellite)

    messages = [strategy.message(payload=b"", nonce=n) for n in (1, 0)]
    assert relay_message(primary, satellite, messages=messages) is None
    assert [s.message.nonce for s in RecordingStrategy.submitted] == [0, 1]
