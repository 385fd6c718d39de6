# Overview: In-progress sale cart; merges lines by product + variant identity.

"""
Cart Service

WHY: The cart is terminal-local working state. It snapshots name and price
at add time so that a catalog edit in the middle of a sale never changes
what the customer was quoted. Nothing here touches persisted stock.

VARIANT PRICING: unit price = product.price_cents + variant.price_modifier_cents
(additive modifier, never a replacement price).
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterator

from ..validation import ValidationError, require_positive_int


def line_identity(product_id: int, variant_id: int | None = None) -> str:
    """Identity key of a cart line: "12" or "12_3" when a variant is selected."""
    if variant_id is None:
        return str(product_id)
    return f"{product_id}_{variant_id}"


@dataclass
class CartLine:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int = 1
    variant_id: int | None = None
    variant_label: str | None = None

    @property
    def identity(self) -> str:
        return line_identity(self.product_id, self.variant_id)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        data = asdict(self)
        data["identity"] = self.identity
        data["line_total_cents"] = self.line_total_cents
        return data


class Cart:
    """
    Ordered collection of CartLines with unique identity keys.

    Mutations are synchronous and single-actor: one terminal session owns
    one cart.
    """

    def __init__(self, lines: list[CartLine] | None = None):
        self._lines: list[CartLine] = []
        for line in lines or []:
            self._append(line)

    def _append(self, line: CartLine) -> None:
        if self._find(line.identity) is not None:
            raise ValidationError(
                "Duplicate cart line",
                details={"identity": line.identity},
            )
        require_positive_int(line.quantity, "quantity")
        self._lines.append(line)

    def _find(self, identity: str) -> int | None:
        for index, line in enumerate(self._lines):
            if line.identity == identity:
                return index
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, product, variant=None) -> CartLine:
        """
        Add one unit of product (optionally a specific variant).

        An existing line with the same identity gets quantity + 1; otherwise a
        new line with quantity 1 is appended.
        """
        if variant is not None and variant.product_id != product.id:
            raise ValidationError(
                "Variant does not belong to product",
                details={"product_id": product.id, "variant_id": variant.id},
            )

        variant_id = variant.id if variant is not None else None
        index = self._find(line_identity(product.id, variant_id))
        if index is not None:
            self._lines[index].quantity += 1
            return self._lines[index]

        unit_price = product.price_cents
        name = product.name
        variant_label = None
        if variant is not None:
            unit_price += variant.price_modifier_cents or 0
            variant_label = variant.label
            name = f"{product.name} ({variant_label})"

        line = CartLine(
            product_id=product.id,
            name=name,
            unit_price_cents=unit_price,
            quantity=1,
            variant_id=variant_id,
            variant_label=variant_label,
        )
        self._lines.append(line)
        return line

    def update_quantity(self, identity: str, quantity: int) -> None:
        """Set exact quantity; quantity <= 0 is the same as remove()."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be an integer", details={"identity": identity})
        if quantity <= 0:
            self.remove(identity)
            return
        index = self._find(identity)
        if index is not None:
            self._lines[index].quantity = quantity

    def remove(self, identity: str) -> None:
        self._lines = [line for line in self._lines if line.identity != identity]

    def clear(self) -> None:
        self._lines = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    def get(self, identity: str) -> CartLine | None:
        index = self._find(identity)
        return self._lines[index] if index is not None else None

    def total(self) -> int:
        """Sum of unit price x quantity, in cents, using add-time prices."""
        return sum(line.line_total_cents for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(tuple(self._lines))

    # ------------------------------------------------------------------
    # Serialization (cart carried across an HTTP request)
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines],
            "total_cents": self.total(),
            "item_count": self.item_count,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Cart":
        if data is None:
            return cls()
        if not isinstance(data, dict) or not isinstance(data.get("lines", []), list):
            raise ValidationError("cart must be an object with a 'lines' list")

        lines = []
        for raw in data.get("lines", []):
            if not isinstance(raw, dict):
                raise ValidationError("cart line must be an object")
            try:
                product_id = raw["product_id"]
                name = raw["name"]
                unit_price_cents = raw["unit_price_cents"]
            except KeyError as exc:
                raise ValidationError(f"cart line missing field: {exc.args[0]}")
            for field, value in (("product_id", product_id), ("unit_price_cents", unit_price_cents)):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValidationError(f"{field} must be an integer")
            if unit_price_cents < 0:
                raise ValidationError("unit_price_cents must be >= 0")
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("name cannot be blank")
            lines.append(
                CartLine(
                    product_id=product_id,
                    name=name.strip(),
                    unit_price_cents=unit_price_cents,
                    quantity=raw.get("quantity", 1),
                    variant_id=raw.get("variant_id"),
                    variant_label=raw.get("variant_label"),
                )
            )
        return cls(lines)
