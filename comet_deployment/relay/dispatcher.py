from typing import Dict, List, Optional, Sequence, Type

from comet_deployment.errors import RelayFailed, UnsupportedRelayTarget
from comet_deployment.relay.base import GovernanceMessage, RelayReceipt, RelayStrategy


class RelayDispatcher:
    """
    Selects the relay strategy registered for a satellite network and runs it.

    The mapping is open: bridge families register the networks they serve and
    the dispatch logic never changes.
    """

    def __init__(self):
        self._strategies: Dict[str, Type[RelayStrategy]] = dict()

    def register(self, *networks: str):
        """Class decorator registering a strategy for one or more satellite networks."""

        def decorator(strategy_class: Type[RelayStrategy]) -> Type[RelayStrategy]:
            for network in networks:
                self.register_strategy(network, strategy_class)
            return strategy_class

        return decorator

    def register_strategy(self, network: str, strategy_class: Type[RelayStrategy]) -> None:
        if not (isinstance(strategy_class, type) and issubclass(strategy_class, RelayStrategy)):
            raise TypeError(f"{strategy_class!r} is not a RelayStrategy")
        registered = self._strategies.get(network)
        if registered is not None and registered is not strategy_class:
            raise ValueError(
                f"{network} already relays through {registered.__name__}; "
                f"unregister it before adding {strategy_class.__name__}"
            )
        self._strategies[network] = strategy_class

    def unregister(self, network: str) -> None:
        self._strategies.pop(network, None)

    @property
    def networks(self) -> List[str]:
        return sorted(self._strategies)

    def strategy_for(self, primary, satellite, **kwargs) -> RelayStrategy:
        try:
            strategy_class = self._strategies[satellite.network]
        except KeyError:
            raise UnsupportedRelayTarget(network=satellite.network, primary_network=primary.network)
        return strategy_class(primary, satellite, **kwargs)

    def relay(
        self,
        primary,
        satellite,
        messages: Optional[Sequence[GovernanceMessage]] = None,
        **kwargs,
    ) -> RelayReceipt:
        strategy = self.strategy_for(primary, satellite, **kwargs)
        print(
            f"(i) Relaying {primary.network} -> {satellite.network} "
            f"through {strategy.name}"
        )
        with satellite.exclusive():
            outcomes = strategy.relay(messages)
        return RelayReceipt(network=satellite.network, strategy=strategy.name, outcomes=outcomes)


dispatcher = RelayDispatcher()

register = dispatcher.register


def relay_message(
    primary,
    satellite,
    messages: Optional[Sequence[GovernanceMessage]] = None,
    **kwargs,
) -> None:
    """
    Relays governance messages from ``primary`` to ``satellite`` with the default
    dispatcher. Raises ``RelayFailed`` if any message failed; retrying is up to the caller.
    """
    receipt = dispatcher.relay(primary, satellite, messages=messages, **kwargs)
    if not receipt.succeeded:
        raise RelayFailed(network=satellite.network, outcomes=receipt.failures)
