import threading

import pytest

from deployment.exceptions import ConfirmationTimeoutError, DeploymentError
from deployment.submitter import CancelToken, TransactionRequest, await_confirmation

from conftest import FakeSubmitter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TickingCancelToken(CancelToken):
    """Advances a fake clock instead of sleeping."""

    def __init__(self, clock):
        super().__init__()
        self.clock = clock
        self.waits = list()

    def wait(self, seconds):
        self.waits.append(seconds)
        self.clock.now += seconds
        return self.cancelled


def _submit(submitter):
    return submitter.submit(TransactionRequest(data=b"\x60\x00"))


def test_await_confirmation_waits_for_outcome():
    submitter = FakeSubmitter(pending_polls=3)
    tx_hash = _submit(submitter)
    clock = FakeClock()
    cancel = TickingCancelToken(clock)

    outcome = await_confirmation(
        submitter, tx_hash, timeout=60, cancel=cancel, poll_interval=2, clock=clock
    )
    assert outcome.confirmed
    assert outcome.tx_hash == tx_hash
    assert cancel.waits == [2, 2, 2]


def test_await_confirmation_times_out():
    submitter = FakeSubmitter(pending_polls=1000)
    tx_hash = _submit(submitter)
    clock = FakeClock()
    cancel = TickingCancelToken(clock)

    with pytest.raises(ConfirmationTimeoutError) as exc_info:
        await_confirmation(
            submitter, tx_hash, timeout=5, cancel=cancel, poll_interval=2, clock=clock
        )
    assert exc_info.value.tx_hash == tx_hash
    assert "outcome is unknown" in str(exc_info.value)
    # the last wait is cut short by the deadline
    assert cancel.waits == [2, 2, 1]


def test_await_confirmation_cancelled():
    submitter = FakeSubmitter(pending_polls=1000)
    tx_hash = _submit(submitter)
    cancel = CancelToken()
    cancel.cancel()

    with pytest.raises(ConfirmationTimeoutError, match="cancelled"):
        await_confirmation(submitter, tx_hash, cancel=cancel, poll_interval=0.01)


def test_await_confirmation_cancelled_from_another_thread():
    submitter = FakeSubmitter(pending_polls=10**9)
    tx_hash = _submit(submitter)
    cancel = CancelToken()
    timer = threading.Timer(0.05, cancel.cancel)
    timer.start()
    try:
        with pytest.raises(ConfirmationTimeoutError):
            # no timeout; only the token ends the wait
            await_confirmation(submitter, tx_hash, cancel=cancel, poll_interval=0.01)
    finally:
        timer.cancel()
    assert cancel.cancelled


def test_confirmation_timeout_is_a_deployment_error():
    error = ConfirmationTimeoutError("no receipt", tx_hash="0xabc", step="deploy LogicV1")
    assert isinstance(error, DeploymentError)
    assert not isinstance(error, ValueError)
    assert str(error) == "[deploy LogicV1] no receipt"


def test_request_is_creation():
    assert TransactionRequest(data=b"").is_creation
    assert not TransactionRequest(
        data=b"", target="0x0000000000000000000000000000000000000001"
    ).is_creation
