from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CheckoutLine:
    cart_item_id: str
    product_id: str
    qty: int
    unit_price: int


@dataclass
class CheckoutDraft:
    lines: list[CheckoutLine] = field(default_factory=list)
    shipping_fee: int = 0

    @property
    def subtotal(self) -> int:
        return sum(line.qty * line.unit_price for line in self.lines)

    @property
    def total(self) -> int:
        return self.subtotal + self.shipping_fee
