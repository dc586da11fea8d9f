from comet_deployment.relay.base import (
    BridgeSubmission,
    DeliveryLedger,
    GovernanceMessage,
    PendingReceipt,
    RelayOutcome,
    RelayReceipt,
    RelayStatus,
    RelayStrategy,
)
from comet_deployment.relay.dispatcher import RelayDispatcher, dispatcher, register, relay_message

# bridge families register themselves on import
from comet_deployment.relay import polygon  # noqa: F401
