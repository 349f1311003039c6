"""Prompt state machine — enforces valid listing and sale transitions.

Prompt lifecycle:
    UNLISTED → LISTED → SOLD
    LISTED → LISTED (re-listing is a price update)

State semantics:
- UNLISTED: record created, token minted, not offered.
- LISTED: offered at record.price; buyers may purchase.
- SOLD: terminal — ownership moved to the buyer, never re-offered.

Fail-closed: invalid transitions and failed guards return a Rejection.
There are no implicit transitions.
"""

from __future__ import annotations

from typing import Optional

from prompthash.errors import ErrorKind, Rejection
from prompthash.models.prompt import PromptRecord, PromptState


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: dict[PromptState, set[PromptState]] = {
    PromptState.UNLISTED: {PromptState.LISTED},
    PromptState.LISTED: {PromptState.LISTED, PromptState.SOLD},
    # Terminal state: no outgoing transitions
    PromptState.SOLD: set(),
}


class PromptStateMachine:
    """Validates prompt transitions and the guards on list and buy.

    Pure computation: nothing here mutates a record. The settlement
    engine applies the transition once every guard has passed.
    """

    @staticmethod
    def validate_transition(
        record: PromptRecord,
        target: PromptState,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = record.state
        allowed = PromptStateMachine.valid_transitions(current)

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid prompt transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def check_listing(
        record: Optional[PromptRecord],
        token_id: int,
        seller: str,
    ) -> Optional[Rejection]:
        """Guards for list_for_sale, in reporting order.

        UNLISTED and LISTED both move to LISTED; only the terminal SOLD
        state refuses.
        """
        if record is None:
            return Rejection(ErrorKind.NOT_FOUND, f"Prompt not found: {token_id}")
        if record.owner != seller:
            return Rejection(
                ErrorKind.UNAUTHORIZED,
                f"Only the owner can list prompt {token_id} for sale",
            )
        errors = PromptStateMachine.validate_transition(record, PromptState.LISTED)
        if errors:
            return Rejection(
                ErrorKind.ALREADY_SOLD,
                f"Prompt {token_id} has already been sold: {errors[0]}",
            )
        return None

    @staticmethod
    def check_purchase(
        record: Optional[PromptRecord],
        token_id: int,
        buyer: str,
    ) -> Optional[Rejection]:
        """Guards for buy, in reporting order.

        Only LISTED moves to SOLD. A sold record is never for sale, so a
        second purchase reports NOT_FOR_SALE, same as an unlisted one.
        """
        if record is None:
            return Rejection(ErrorKind.NOT_FOUND, f"Prompt not found: {token_id}")
        errors = PromptStateMachine.validate_transition(record, PromptState.SOLD)
        if errors:
            return Rejection(
                ErrorKind.NOT_FOR_SALE,
                f"Prompt {token_id} is not for sale: {errors[0]}",
            )
        if record.owner == buyer:
            return Rejection(
                ErrorKind.SELF_PURCHASE,
                f"{buyer} cannot buy their own prompt {token_id}",
            )
        return None

    @staticmethod
    def valid_transitions(state: PromptState) -> set[PromptState]:
        """Return the set of valid target states from the given state."""
        return set(_TRANSITIONS.get(state, set()))
