"""
Quote Lifecycle Manager - validates and applies quote status transitions.

    pending      -> accepted | rejected | expired | cancelled
    accepted     -> deposit_paid | paid | cancelled
    deposit_paid -> paid | cancelled

paid, rejected, expired and cancelled are terminal. A transition never mutates
the quote it is given; it returns a new Quote with the status change appended
to its history.
"""

from datetime import datetime, timezone
from typing import Optional, Union

from loguru import logger

from quote_engine.errors import InvalidTransitionError
from quote_engine.models import Quote, QuoteStatus, StatusChange, TransitionContext

TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.ACCEPTED: frozenset({
        QuoteStatus.DEPOSIT_PAID,
        QuoteStatus.PAID,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.DEPOSIT_PAID: frozenset({
        QuoteStatus.PAID,
        QuoteStatus.CANCELLED,
    }),
    QuoteStatus.PAID: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
    QuoteStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Timestamp field stamped when a quote enters each status
_STAMPS = {
    QuoteStatus.ACCEPTED: "accepted_at",
    QuoteStatus.DEPOSIT_PAID: "deposit_paid_at",
    QuoteStatus.PAID: "paid_at",
    QuoteStatus.REJECTED: "rejected_at",
    QuoteStatus.EXPIRED: "expired_at",
    QuoteStatus.CANCELLED: "cancelled_at",
}


def is_terminal(status: Union[QuoteStatus, str]) -> bool:
    return QuoteStatus(status) in TERMINAL_STATUSES


def allowed_transitions(status: Union[QuoteStatus, str]) -> frozenset[QuoteStatus]:
    return TRANSITIONS[QuoteStatus(status)]


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _coerce_context(context: Union[TransitionContext, dict, None]) -> TransitionContext:
    if context is None:
        return TransitionContext()
    if isinstance(context, TransitionContext):
        return context
    return TransitionContext.model_validate(context)


def transition(
    quote: Quote,
    new_status: Union[QuoteStatus, str],
    context: Union[TransitionContext, dict, None] = None,
) -> Quote:
    """
    Move a quote to a new status.

    Args:
        quote: Current quote value (left untouched)
        new_status: Requested status
        context: payment_method (deposit_paid, paid), notes (required for rejected)
            and an optional now for the clock

    Returns:
        A new Quote in the requested status.

    Raises:
        InvalidTransitionError: the move breaks a lifecycle rule
    """
    current = quote.status
    try:
        target = QuoteStatus(new_status)
    except ValueError:
        raise InvalidTransitionError(current.value, str(new_status), "unknown status") from None
    try:
        ctx = _coerce_context(context)
    except ValueError as e:
        raise InvalidTransitionError(current.value, target.value, f"invalid context: {e}") from None
    now = _as_aware(ctx.now or datetime.now(timezone.utc))
    valid_until = _as_aware(quote.valid_until)

    def reject(reason: str):
        logger.warning(f"Quote {quote.id}: {current.value} -> {target.value} refused ({reason})")
        return InvalidTransitionError(current.value, target.value, reason)

    if current in TERMINAL_STATUSES:
        raise reject(f"quote is already {current.value}")
    if target not in TRANSITIONS[current]:
        raise reject("transition not allowed")

    if target == QuoteStatus.EXPIRED and now <= valid_until:
        raise reject(f"quote is valid until {valid_until.isoformat()}")
    if target == QuoteStatus.ACCEPTED and now > valid_until:
        raise reject("validity window has passed; expire the quote instead")
    if target in (QuoteStatus.PAID, QuoteStatus.DEPOSIT_PAID) and ctx.payment_method is None:
        raise reject("a payment method is required")
    if target == QuoteStatus.REJECTED and not (ctx.notes and ctx.notes.strip()):
        raise reject("a rejection reason is required")

    update = {
        "status": target,
        _STAMPS[target]: now,
        "history": (*quote.history, StatusChange(
            from_status=current, to_status=target, at=now, note=ctx.notes,
        )),
    }
    if ctx.payment_method is not None and target in (QuoteStatus.PAID, QuoteStatus.DEPOSIT_PAID):
        update["payment_method"] = ctx.payment_method
    if ctx.notes:
        update["notes"] = ctx.notes.strip()

    updated = quote.model_copy(update=update)
    logger.info(f"Quote {quote.id}: {current.value} -> {target.value}")
    return updated


def expire_if_due(quote: Quote, now: Optional[datetime] = None) -> Quote:
    """Expire a pending quote whose validity window has passed; otherwise return it unchanged."""
    now = _as_aware(now or datetime.now(timezone.utc))
    if quote.status == QuoteStatus.PENDING and now > _as_aware(quote.valid_until):
        return transition(quote, QuoteStatus.EXPIRED, TransitionContext(now=now))
    return quote


def amount_due(quote: Quote) -> float:
    """Outstanding balance: total, less the deposit once it has been paid."""
    if quote.status == QuoteStatus.PAID:
        return 0.0
    if quote.status == QuoteStatus.DEPOSIT_PAID:
        return max(0.0, quote.total_cost - quote.deposit_amount)
    return quote.total_cost
