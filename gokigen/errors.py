"""
Error taxonomy for gokigen.

Everything raised by the core derives from GokigenError. The Notebook
facade converts these into user-facing notices; nothing here is meant to
reach the UI layer as an unhandled fault.
"""


class GokigenError(Exception):
    """Base class for all gokigen errors."""


class EmptyInputError(GokigenError):
    """Input text was empty after trimming; rejected before any consumption."""


class QuotaExceededError(GokigenError):
    """The plan's rewrite allowance is used up for the current period."""


class NetworkBudgetExceededError(GokigenError):
    """The local daily network-call budget is exhausted."""


class RequestInFlightError(GokigenError):
    """Another AI request is already running."""


class RemoteUnavailableError(GokigenError):
    """A remote collaborator (store or text generation) failed."""


class OperationTimeoutError(RemoteUnavailableError):
    """A remote call did not finish before its deadline."""


class StaleResponseError(GokigenError):
    """A response arrived for a request token that is no longer current."""


class DecodeFailureError(GokigenError):
    """Locally persisted data could not be decoded."""
