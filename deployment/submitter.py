import threading
import time
import typing
from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

from eth_typing import ChecksumAddress

from deployment.constants import DEFAULT_POLL_INTERVAL
from deployment.exceptions import ConfirmationTimeoutError
from deployment.networks import GasPolicy


class TransactionRequest(NamedTuple):
    """
    A transaction to be signed and sent. A request without a target is a
    contract creation and `data` is the creation code plus encoded arguments.
    """

    data: bytes
    target: Optional[ChecksumAddress] = None
    gas_policy: GasPolicy = GasPolicy()
    value: int = 0

    @property
    def is_creation(self) -> bool:
        return self.target is None


class TransactionOutcome(NamedTuple):
    tx_hash: str
    confirmed: bool
    block_number: Optional[int] = None
    contract_address: Optional[ChecksumAddress] = None
    revert_reason: Optional[str] = None


class SubmissionReverted(Exception):
    """Raised by `submit` when the node rejects a transaction because its execution reverts."""


class TransactionSubmitter(ABC):
    """
    The only view this package has of a chain. `submit` returns as soon as the
    transaction is accepted; `poll` returns None until the transaction is final.
    A transaction rejected up front because it would revert raises SubmissionReverted.
    """

    @property
    @abstractmethod
    def sender(self) -> ChecksumAddress:
        raise NotImplementedError

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def submit(self, request: TransactionRequest) -> str:
        raise NotImplementedError

    @abstractmethod
    def poll(self, tx_hash: str) -> Optional[TransactionOutcome]:
        raise NotImplementedError

    @abstractmethod
    def get_storage_at(self, address: ChecksumAddress, slot: int) -> bytes:
        raise NotImplementedError


class CancelToken:
    """Lets another thread abort a confirmation wait."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        return self._event.wait(seconds)


def await_confirmation(
    submitter: TransactionSubmitter,
    tx_hash: str,
    timeout: Optional[float] = None,
    cancel: Optional[CancelToken] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    clock: typing.Callable[[], float] = time.monotonic,
) -> TransactionOutcome:
    """
    Blocks until the submitter reports a final outcome for tx_hash.
    A timeout or cancellation only stops the local wait; the transaction may
    still be mined afterwards.
    """
    cancel = cancel or CancelToken()
    deadline = None if timeout is None else clock() + timeout
    while True:
        outcome = submitter.poll(tx_hash)
        if outcome is not None:
            return outcome

        if cancel.cancelled:
            raise ConfirmationTimeoutError(
                f"Wait for {tx_hash} was cancelled; its outcome is unknown", tx_hash=tx_hash
            )
        wait_for = poll_interval
        if deadline is not None:
            remaining = deadline - clock()
            if remaining <= 0:
                raise ConfirmationTimeoutError(
                    f"No confirmation for {tx_hash} after {timeout}s; its outcome is unknown",
                    tx_hash=tx_hash,
                )
            wait_for = min(poll_interval, remaining)
        cancel.wait(wait_for)
