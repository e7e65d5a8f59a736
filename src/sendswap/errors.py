"""Error taxonomy shared by the quote, monitor and execution layers."""

from typing import Optional


class SendSwapError(Exception):
    """Base class for all service errors."""

    pass


class ValidationError(SendSwapError):
    """Request rejected before any mutation (bad amount, unsupported chain, ...)."""

    pass


class InvalidSwapperError(ValidationError):
    """Caller asked for a swapper that cannot be used for send-swaps."""

    def __init__(self, swapper_name: str, reason: Optional[str] = None):
        self.swapper_name = swapper_name
        message = reason or f"Swapper {swapper_name} is not supported for send-swap operations"
        super().__init__(message)


class UnknownSwapperError(ValidationError):
    """Swapper name is not in the registry (or is excluded)."""

    def __init__(self, swapper_name: str):
        self.swapper_name = swapper_name
        super().__init__(f"Unknown swapper: {swapper_name}")


class QuoteNotFoundError(SendSwapError):
    """No quote exists with the given id."""

    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"Quote not found: {quote_id}")


class ExternalUnavailableError(SendSwapError):
    """Chain RPC or provider API failed or timed out. Always transient."""

    def __init__(self, service: str, detail: str = ""):
        self.service = service
        self.detail = detail
        message = f"{service} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidTransitionError(SendSwapError):
    """Quote state machine violation. The record is left untouched."""

    def __init__(self, quote_id: str, current: str, target: str, reason: Optional[str] = None):
        self.quote_id = quote_id
        self.current = current
        self.target = target
        message = reason or f"Quote {quote_id}: transition {current} -> {target} is not allowed"
        super().__init__(message)


class ConcurrentUpdateError(InvalidTransitionError):
    """Stored row no longer matches the expected version/status."""

    def __init__(self, quote_id: str, current: str, target: str):
        super().__init__(
            quote_id,
            current,
            target,
            reason=(
                f"Quote {quote_id} was modified concurrently "
                f"(expected {current} before moving to {target})"
            ),
        )


class ExecutionError(SendSwapError):
    """A swap strategy cannot complete.

    Only errors flagged ``non_retryable`` may move a quote to FAILED.
    """

    def __init__(self, message: str, non_retryable: bool = False):
        self.non_retryable = non_retryable
        super().__init__(message)
