"""Quote state machine.

    ACTIVE -> DEPOSIT_RECEIVED | EXPIRED
    DEPOSIT_RECEIVED -> EXECUTING
    EXECUTING -> EXECUTING | COMPLETED | FAILED

EXECUTING is re-entrant so DIRECT quotes can be polled repeatedly.
EXPIRED, COMPLETED and FAILED are terminal.
"""

from sendswap.errors import InvalidTransitionError
from sendswap.quotes.models import Quote, QuoteStatus

ALLOWED_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.ACTIVE: frozenset({QuoteStatus.DEPOSIT_RECEIVED, QuoteStatus.EXPIRED}),
    QuoteStatus.DEPOSIT_RECEIVED: frozenset({QuoteStatus.EXECUTING}),
    QuoteStatus.EXECUTING: frozenset(
        {QuoteStatus.EXECUTING, QuoteStatus.COMPLETED, QuoteStatus.FAILED}
    ),
    QuoteStatus.EXPIRED: frozenset(),
    QuoteStatus.COMPLETED: frozenset(),
    QuoteStatus.FAILED: frozenset(),
}


def can_transition(current: QuoteStatus, target: QuoteStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(quote: Quote, target: QuoteStatus) -> None:
    """Raise InvalidTransitionError unless ``quote`` may move to ``target``."""
    if not can_transition(quote.status, target):
        raise InvalidTransitionError(quote.quote_id, quote.status.value, target.value)


def validate_fields(quote: Quote) -> None:
    """Check the status-dependent field rules of a quote about to be stored.

    A recorded execution hash requires EXECUTING or COMPLETED, and a
    recorded deposit hash means the quote has left ACTIVE.
    """
    if quote.execution_tx_hash and quote.status not in (
        QuoteStatus.EXECUTING,
        QuoteStatus.COMPLETED,
    ):
        raise InvalidTransitionError(
            quote.quote_id,
            quote.status.value,
            quote.status.value,
            reason=f"Quote {quote.quote_id}: execution hash not allowed in {quote.status.value}",
        )
    if quote.deposit_tx_hash and quote.status == QuoteStatus.ACTIVE:
        raise InvalidTransitionError(
            quote.quote_id,
            quote.status.value,
            quote.status.value,
            reason=f"Quote {quote.quote_id}: deposit hash recorded on an ACTIVE quote",
        )
