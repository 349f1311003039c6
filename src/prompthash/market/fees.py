"""Fee schedule — computes the protocol fee split for each purchase.

The formula is fully deterministic and integer-only:

    fee = floor(price × fee_bps / 10000)
    seller_amount = price - fee

The seller amount is derived by subtraction rather than as a second
independent fraction, so fee + seller_amount == price exactly and any
rounding remainder stays with the seller.

Fee settings are administrator-controlled. The schedule itself does not
check who is calling; the settlement engine gates every write.
"""

from __future__ import annotations

from typing import Any, Optional

from prompthash.errors import ErrorKind, Rejection
from prompthash.models.settlement import BASIS_POINTS, FeeConfig, FeeSplit


def compute_fee_split(price: int, fee_bps: int) -> FeeSplit:
    """Split a purchase price between fee recipient and seller."""
    if price < 0:
        raise ValueError(f"Price must be non-negative, got {price}")
    if not 0 <= fee_bps <= BASIS_POINTS:
        raise ValueError(f"fee_bps must be in [0, {BASIS_POINTS}], got {fee_bps}")
    fee = price * fee_bps // BASIS_POINTS
    return FeeSplit(
        price=price,
        fee_bps=fee_bps,
        fee=fee,
        seller_amount=price - fee,
    )


def check_fee_bps(value: Any) -> Optional[Rejection]:
    if not isinstance(value, int) or isinstance(value, bool):
        return Rejection(
            ErrorKind.INVALID_ARGUMENT,
            f"Fee percentage must be an integer number of basis points, got {value!r}",
        )
    if not 0 <= value <= BASIS_POINTS:
        return Rejection(
            ErrorKind.INVALID_ARGUMENT,
            f"Fee percentage must be in [0, {BASIS_POINTS}] basis points, got {value}",
        )
    return None


class FeeSchedule:
    """Holds the live fee configuration and computes splits from it.

    Usage:
        schedule = FeeSchedule(FeeConfig(fee_bps=500, fee_recipient="treasury"))
        split = schedule.split(10_000)    # fee=500, seller_amount=9500
    """

    def __init__(self, config: FeeConfig) -> None:
        rejection = check_fee_bps(config.fee_bps)
        if rejection:
            raise ValueError(rejection.message)
        self._config = config

    @property
    def config(self) -> FeeConfig:
        return self._config

    def split(self, price: int) -> FeeSplit:
        return compute_fee_split(price, self._config.fee_bps)

    def set_fee_bps(self, fee_bps: int) -> Optional[Rejection]:
        rejection = check_fee_bps(fee_bps)
        if rejection:
            return rejection
        self._config = FeeConfig(fee_bps=fee_bps, fee_recipient=self._config.fee_recipient)
        return None

    def set_recipient(self, recipient: str) -> Optional[Rejection]:
        if not recipient or not recipient.strip():
            return Rejection(ErrorKind.INVALID_ARGUMENT, "Fee recipient must be non-empty")
        self._config = FeeConfig(fee_bps=self._config.fee_bps, fee_recipient=recipient)
        return None

    def snapshot(self) -> FeeConfig:
        return self._config

    def restore(self, snapshot: FeeConfig) -> None:
        self._config = snapshot
