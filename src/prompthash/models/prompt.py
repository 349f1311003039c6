"""Prompt records — the persistent listing and ownership state of one token.

A record is created once per minted token and is never deleted. It is an
immutable value: every change builds a full replacement with
dataclasses.replace() and writes it back through the record store, so a
record can never be observed half-updated.

Lifecycle: UNLISTED → LISTED → SOLD (SOLD is terminal)

The owner field is the marketplace-recorded identity (creator, or buyer of
the last sale). The identity ledger's live holder can drift from it when a
token is transferred peer-to-peer outside the marketplace.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from typing import Any


class PromptState(str, enum.Enum):
    """Derived lifecycle state of a prompt record."""
    UNLISTED = "unlisted"
    LISTED = "listed"
    SOLD = "sold"


@dataclass(frozen=True)
class PromptDraft:
    """Everything needed to store a new record except its token ID."""
    owner: str
    price: int
    title: str = ""
    category: str = ""
    image_url: str = ""
    description: str = ""


@dataclass(frozen=True)
class PromptRecord:
    """Listing and ownership state of one prompt token.

    Invariant: sold implies not for_sale.
    """
    token_id: int
    owner: str
    price: int
    for_sale: bool = False
    sold: bool = False
    title: str = ""
    category: str = ""
    image_url: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if self.token_id < 0:
            raise ValueError(f"token_id must be non-negative, got {self.token_id}")
        if self.price < 0:
            raise ValueError(f"price must be non-negative, got {self.price}")
        if self.sold and self.for_sale:
            raise ValueError(
                f"Record {self.token_id} is sold and cannot be for sale"
            )

    @property
    def state(self) -> PromptState:
        if self.sold:
            return PromptState.SOLD
        if self.for_sale:
            return PromptState.LISTED
        return PromptState.UNLISTED

    @staticmethod
    def from_draft(token_id: int, draft: PromptDraft) -> PromptRecord:
        """Instantiate a fresh UNLISTED record for a newly minted token."""
        return PromptRecord(
            token_id=token_id,
            owner=draft.owner,
            price=draft.price,
            for_sale=False,
            sold=False,
            title=draft.title,
            category=draft.category,
            image_url=draft.image_url,
            description=draft.description,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PromptRecord:
        return PromptRecord(
            token_id=int(data["token_id"]),
            owner=data["owner"],
            price=int(data["price"]),
            for_sale=bool(data.get("for_sale", False)),
            sold=bool(data.get("sold", False)),
            title=data.get("title", ""),
            category=data.get("category", ""),
            image_url=data.get("image_url", ""),
            description=data.get("description", ""),
        )
