"""
Relay of governance messages to Polygon PoS through the FxPortal tunnel.

Messages are sent on the primary chain with ``FxRoot.sendMessageToChild``;
the ``StateSender`` emits a ``StateSynced`` event whose id orders delivery.
Polygon validators replay state syncs on the satellite in id order, and the
``StateReceiver`` system contract exposes the id of the last one processed.
"""
from typing import Dict, List

from ape import chain
from eth_abi import decode
from eth_utils import to_checksum_address

from comet_deployment.constants import (
    BRIDGE_RECEIVER,
    MUMBAI,
    POLYGON,
    POLYGON_FX_PORTAL,
)
from comet_deployment.relay.base import BridgeSubmission, GovernanceMessage, PendingReceipt, RelayStrategy
from comet_deployment.relay.dispatcher import register

FX_ROOT_ABI = [
    {
        "type": "function",
        "name": "sendMessageToChild",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_receiver", "type": "address"},
            {"name": "_data", "type": "bytes"},
        ],
        "outputs": [],
    }
]

STATE_SENDER_ABI = [
    {
        "type": "event",
        "name": "StateSynced",
        "anonymous": False,
        "inputs": [
            {"name": "id", "type": "uint256", "indexed": True},
            {"name": "contractAddress", "type": "address", "indexed": True},
            {"name": "data", "type": "bytes", "indexed": False},
        ],
    }
]

STATE_RECEIVER_ABI = [
    {
        "type": "function",
        "name": "lastStateId",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    }
]

BRIDGE_KEYS = ("fx_root", "state_sender", "fx_child", "state_receiver")

# how far back to look for state syncs when no starting block is configured
DEFAULT_LOOKBACK_BLOCKS = 50_000


@register(POLYGON, MUMBAI)
class PolygonRelayStrategy(RelayStrategy):
    NAME = "polygon-fx-portal"
    ORDERED_DELIVERY = True

    def __init__(self, primary, satellite, **kwargs):
        super().__init__(primary, satellite, **kwargs)
        self.bridge = self._bridge_config()

    def _bridge_config(self) -> Dict:
        bridge = dict(POLYGON_FX_PORTAL.get(self.satellite.network, dict()))
        bridge.update(self.satellite.config.get("bridge") or dict())
        missing = [key for key in BRIDGE_KEYS if not bridge.get(key)]
        if missing:
            raise ValueError(
                f"FxPortal configuration for {self.satellite.network} is missing {missing}"
            )
        for key in BRIDGE_KEYS:
            bridge[key] = to_checksum_address(bridge[key])
        return bridge

    def _bridge_receiver(self) -> str:
        return self.satellite.artifacts.require(BRIDGE_RECEIVER).address

    def _fx_root(self):
        return self.primary.transactor.contract_at(self.bridge["fx_root"], abi=FX_ROOT_ABI)

    def _state_sender(self):
        return self.primary.transactor.contract_at(
            self.bridge["state_sender"], abi=STATE_SENDER_ABI
        )

    def _state_receiver(self):
        return self.satellite.transactor.contract_at(
            self.bridge["state_receiver"], abi=STATE_RECEIVER_ABI
        )

    def _head_block(self) -> int:
        return chain.blocks.head.number

    def _last_state_id(self) -> int:
        with self.satellite.connect():
            return int(self._state_receiver().lastStateId())

    def package(self, message: GovernanceMessage) -> BridgeSubmission:
        return BridgeSubmission(
            message=message,
            bridge=self.bridge["fx_root"],
            receiver=self._bridge_receiver(),
            data=bytes(message.payload),
        )

    def submit(self, submission: BridgeSubmission) -> PendingReceipt:
        with self.primary.connect():
            fx_root = self._fx_root()
            receipt = self.primary.transactor.transact(
                fx_root.sendMessageToChild, submission.receiver, submission.data
            )
            events = self._state_sender().StateSynced.from_receipt(receipt)

        fx_child = self.bridge["fx_child"]
        state_syncs = [e for e in events if to_checksum_address(e["contractAddress"]) == fx_child]
        if not state_syncs:
            raise ValueError(f"No StateSynced event for {fx_child} in {receipt.txn_hash}")

        return PendingReceipt(
            message=submission.message,
            tx_hash=receipt.txn_hash,
            ordering_token=int(state_syncs[0]["id"]),
            block_number=receipt.block_number,
        )

    def is_delivered(self, receipt: PendingReceipt) -> bool:
        return self._last_state_id() >= receipt.ordering_token

    def pending(self) -> List[PendingReceipt]:
        """State syncs towards our bridge receiver that Polygon has not processed yet."""
        receiver = self._bridge_receiver()
        fx_child = self.bridge["fx_child"]
        with self.primary.connect():
            head = self._head_block()
            from_block = self.bridge.get("from_block")
            if from_block is None:
                from_block = max(0, head - DEFAULT_LOOKBACK_BLOCKS)
            logs = list(
                self._state_sender().StateSynced.range(
                    from_block, head + 1, search_topics={"contractAddress": fx_child}
                )
            )

        last_state_id = self._last_state_id()
        receipts = list()
        for log in logs:
            state_id = int(log["id"])
            if state_id <= last_state_id:
                continue
            # FxChild receives abi.encode(rootMessageSender, receiver, data)
            _, log_receiver, data = decode(["address", "address", "bytes"], bytes(log["data"]))
            if to_checksum_address(log_receiver) != receiver:
                continue
            message = self.message(payload=data, nonce=state_id, target=receiver)
            receipts.append(
                PendingReceipt(
                    message=message,
                    tx_hash=log.transaction_hash,
                    ordering_token=state_id,
                    block_number=log.block_number,
                )
            )
        return sorted(receipts, key=lambda r: r.ordering_token)
