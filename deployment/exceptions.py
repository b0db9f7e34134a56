import typing
from typing import Any, Optional


class DeploymentError(Exception):
    """Base class for everything that can abort a deployment run."""

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        inputs: Optional[typing.Dict[str, Any]] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.step = step
        self.inputs = dict(inputs or {})
        self.tx_hash = tx_hash

    def __str__(self) -> str:
        if self.step is None:
            return self.message
        return f"[{self.step}] {self.message}"


class DeploymentConfigError(DeploymentError, ValueError):
    """Raised for bad configuration; always surfaced before any transaction."""


class UnknownNetworkError(DeploymentConfigError):
    """Raised when a network identifier is not in the supported set."""


class UnresolvedDependencyError(DeploymentConfigError):
    """Raised when a referenced dependency address is empty in the network profile."""


class PlanValidationError(DeploymentConfigError):
    """Raised for forward references, duplicate steps or unknown variables in a plan."""


class ArgumentMismatchError(DeploymentConfigError):
    """Raised when arguments do not match the ABI arity or types."""


class UnsafeOperationError(DeploymentConfigError):
    """Raised when logic bytecode uses an opcode the caller did not explicitly allow."""


class DeploymentFailedError(DeploymentError):
    """
    Raised when a submission or confirmation fails. Never retried automatically.
    `tx_hash` is set when the transaction was accepted before the failure.
    """


class NotAProxyError(DeploymentFailedError):
    """Raised when the target of an upgrade has an empty EIP-1967 admin slot."""


class InitializationFailedError(DeploymentFailedError):
    """Raised when the proxy creation reverted because its initializer reverted."""


class ConfirmationTimeoutError(DeploymentError):
    """
    Raised when waiting for a confirmation was aborted by a timeout or cancellation.
    The transaction may still confirm later; the outcome must be reconciled manually.
    """

    def __init__(self, message: str, tx_hash: str, **kwargs):
        super().__init__(message, tx_hash=tx_hash, **kwargs)
