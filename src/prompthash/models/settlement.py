"""Settlement models — fee configuration, fee split, and sale receipts.

All amounts are integers in the payment ledger's smallest unit. Fees are
expressed in basis points (10000 = 100%).

Invariant enforced by FeeSplit: fee + seller_amount == price.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

BASIS_POINTS = 10_000
DEFAULT_FEE_BPS = 500


@dataclass(frozen=True)
class FeeConfig:
    """Process-wide protocol fee settings. Administrator-controlled."""
    fee_bps: int
    fee_recipient: str

    def to_dict(self) -> dict[str, Any]:
        return {"fee_bps": self.fee_bps, "fee_recipient": self.fee_recipient}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> FeeConfig:
        return FeeConfig(
            fee_bps=int(data.get("fee_bps", DEFAULT_FEE_BPS)),
            fee_recipient=data["fee_recipient"],
        )


@dataclass(frozen=True)
class FeeSplit:
    """How one purchase price divides between seller and fee recipient.

    The fee is a floor fraction of the price and the seller amount is
    derived by subtraction, so rounding dust always accrues to the seller.
    """
    price: int
    fee_bps: int
    fee: int
    seller_amount: int

    def __post_init__(self) -> None:
        if self.fee + self.seller_amount != self.price:
            raise ValueError(
                f"Fee ({self.fee}) + seller amount ({self.seller_amount}) "
                f"does not equal price ({self.price})"
            )


@dataclass(frozen=True)
class SaleReceipt:
    """Published breakdown of a completed purchase."""
    token_id: int
    seller: str
    buyer: str
    fee_recipient: str
    price: int
    fee: int
    seller_amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "seller": self.seller,
            "buyer": self.buyer,
            "fee_recipient": self.fee_recipient,
            "price": self.price,
            "fee": self.fee,
            "seller_amount": self.seller_amount,
        }
