import time
from abc import ABC, abstractmethod
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from comet_deployment.constants import (
    DEFAULT_RELAY_POLL_INTERVAL,
    DEFAULT_RELAY_TIMEOUT,
    PREDECESSOR_FAILED_REASON,
    TIMEOUT_REASON,
)


class RelayStatus(Enum):
    PACKAGED = "packaged"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class GovernanceMessage(NamedTuple):
    """An action approved on the primary chain that must take effect on a satellite."""

    origin: str
    destination: str
    payload: bytes
    nonce: int
    target: Optional[str] = None  # satellite contract that executes the payload


class BridgeSubmission(NamedTuple):
    message: GovernanceMessage
    bridge: str  # address of the bridge entrypoint on the origin chain
    receiver: str  # address of the bridge receiver on the destination chain
    data: bytes


class PendingReceipt(NamedTuple):
    message: GovernanceMessage
    tx_hash: str
    ordering_token: int  # bridge specific delivery order (e.g. a state sync id)
    block_number: Optional[int] = None


class RelayOutcome(NamedTuple):
    status: RelayStatus
    message: Optional[GovernanceMessage] = None
    receipt: Optional[PendingReceipt] = None
    reason: Optional[str] = None

    @classmethod
    def confirmed(cls, receipt: PendingReceipt) -> "RelayOutcome":
        return cls(status=RelayStatus.CONFIRMED, message=receipt.message, receipt=receipt)

    @classmethod
    def failed(
        cls,
        reason: str,
        message: Optional[GovernanceMessage] = None,
        receipt: Optional[PendingReceipt] = None,
    ) -> "RelayOutcome":
        if message is None and receipt is not None:
            message = receipt.message
        return cls(status=RelayStatus.FAILED, message=message, receipt=receipt, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.status == RelayStatus.CONFIRMED

    @property
    def timed_out(self) -> bool:
        return self.status == RelayStatus.FAILED and self.reason == TIMEOUT_REASON


class RelayReceipt(NamedTuple):
    """All outcomes of one relay run towards a satellite network."""

    network: str
    strategy: str
    outcomes: List[RelayOutcome]

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def failures(self) -> List[RelayOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]


class DeliveryLedger:
    """
    Tracks submitted and confirmed messages per destination so that a bridge
    with ordered delivery never reports a message before its predecessors.
    """

    def __init__(self):
        self._pending: Dict[str, Dict[int, PendingReceipt]] = defaultdict(dict)
        self._confirmed: Dict[str, set] = defaultdict(set)

    def track(self, receipt: PendingReceipt) -> None:
        message = receipt.message
        if message.nonce not in self._confirmed[message.destination]:
            self._pending[message.destination][message.nonce] = receipt

    def mark_confirmed(self, receipt: PendingReceipt) -> None:
        message = receipt.message
        self._pending[message.destination].pop(message.nonce, None)
        self._confirmed[message.destination].add(message.nonce)

    def predecessors(self, receipt: PendingReceipt) -> List[PendingReceipt]:
        """Unconfirmed receipts for the same destination with a lower nonce, oldest first."""
        message = receipt.message
        pending = self._pending[message.destination]
        return [pending[nonce] for nonce in sorted(pending) if nonce < message.nonce]

    def is_confirmed(self, message: GovernanceMessage) -> bool:
        return message.nonce in self._confirmed[message.destination]


class RelayStrategy(ABC):
    """
    Bridge-family specific relay of governance messages from the primary
    network to one satellite network.

    Each attempt moves through ``PACKAGED -> SUBMITTED -> CONFIRMED``, or ends
    ``FAILED``. Implementations supply packaging, submission and the delivery
    check; waiting for delivery is bounded by ``timeout``.
    """

    NAME: str = ""
    ORDERED_DELIVERY: bool = True

    def __init__(
        self,
        primary,
        satellite,
        timeout: float = DEFAULT_RELAY_TIMEOUT,
        poll_interval: float = DEFAULT_RELAY_POLL_INTERVAL,
        ledger: Optional[DeliveryLedger] = None,
    ):
        self.primary = primary
        self.satellite = satellite
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.ledger = ledger if ledger is not None else DeliveryLedger()

    @property
    def name(self) -> str:
        return self.NAME or type(self).__name__

    @abstractmethod
    def package(self, message: GovernanceMessage) -> BridgeSubmission:
        raise NotImplementedError

    @abstractmethod
    def submit(self, submission: BridgeSubmission) -> PendingReceipt:
        raise NotImplementedError

    @abstractmethod
    def is_delivered(self, receipt: PendingReceipt) -> bool:
        """Whether the bridge's own delivery guarantee is met for a receipt."""
        raise NotImplementedError

    def pending(self) -> List[PendingReceipt]:
        """Receipts of messages already sent over the bridge (e.g. by executed proposals)."""
        return list()

    def message(self, payload: bytes, nonce: int, target: Optional[str] = None) -> GovernanceMessage:
        return GovernanceMessage(
            origin=self.primary.network,
            destination=self.satellite.network,
            payload=payload,
            nonce=nonce,
            target=target,
        )

    def confirm(self, receipt: PendingReceipt, deadline: Optional[float] = None) -> RelayOutcome:
        """
        Waits until the message, and every earlier message it must follow, is
        delivered. ``deadline`` is a ``time.monotonic()`` instant shared by a
        whole relay run; without it the wait is bounded by ``timeout``.
        """
        self.ledger.track(receipt)
        if deadline is None:
            deadline = time.monotonic() + self.timeout
        attempt = 0
        while True:
            attempt += 1
            if self._deliverable(receipt):
                self.ledger.mark_confirmed(receipt)
                print(
                    f"(i) Message {receipt.message.nonce} delivered to "
                    f"{receipt.message.destination} (token {receipt.ordering_token})"
                )
                return RelayOutcome.confirmed(receipt)

            if time.monotonic() >= deadline:
                print(
                    f"(i) Message {receipt.message.nonce} not delivered to "
                    f"{receipt.message.destination} after {self.timeout}s"
                )
                return RelayOutcome.failed(TIMEOUT_REASON, receipt=receipt)

            print(
                f"Waiting for message {receipt.message.nonce} on "
                f"{receipt.message.destination} (attempt {attempt})..."
            )
            time.sleep(self.poll_interval)

    def _deliverable(self, receipt: PendingReceipt) -> bool:
        if self.ORDERED_DELIVERY:
            for predecessor in self.ledger.predecessors(receipt):
                if not self.is_delivered(predecessor):
                    return False
                self.ledger.mark_confirmed(predecessor)
        return self.is_delivered(receipt)

    def relay(self, messages: Optional[Sequence[GovernanceMessage]] = None) -> List[RelayOutcome]:
        """
        Relays ``messages`` through the bridge, or waits for the delivery of
        messages already pending on it when none are given. Messages are
        submitted in nonce order; nothing is retried.

        On a bridge with ordered delivery, a message that cannot be submitted
        stops the run: later messages are reported failed without being sent.
        All waiting shares a single ``timeout``.
        """
        if messages is None:
            receipts = self.pending()
            print(f"(i) {len(receipts)} pending message(s) for {self.satellite.network}")
            for receipt in receipts:
                self.ledger.track(receipt)
        else:
            receipts, outcomes = self._submit_all(messages)

        deadline = time.monotonic() + self.timeout
        confirmed = [self.confirm(receipt, deadline=deadline) for receipt in receipts]
        if messages is None:
            return confirmed
        return sorted(outcomes + confirmed, key=lambda o: o.message.nonce)

    def _submit_all(self, messages: Sequence[GovernanceMessage]):
        receipts, outcomes = list(), list()
        failed_nonce = None
        for message in sorted(messages, key=lambda m: m.nonce):
            if failed_nonce is not None:
                reason = PREDECESSOR_FAILED_REASON.format(nonce=failed_nonce)
                outcomes.append(RelayOutcome.failed(reason, message=message))
                continue

            submission = self.package(message)
            try:
                receipt = self.submit(submission)
            except Exception as e:
                print(f"(i) Message {message.nonce} to {message.destination} not submitted: {e}")
                outcomes.append(RelayOutcome.failed(_describe(e), message=message))
                if self.ORDERED_DELIVERY:
                    failed_nonce = message.nonce
                continue
            self.ledger.track(receipt)
            receipts.append(receipt)
        return receipts, outcomes


def _describe(error: Any) -> str:
    return f"{type(error).__name__}: {error}"
