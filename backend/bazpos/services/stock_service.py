# Overview: Service-layer operations for per-variant stock; the only writer of product quantities.

# backend/bazpos/services/stock_service.py

from __future__ import annotations

import copy
from dataclasses import dataclass

from ..validation import (
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
    coerce_int,
    require_text,
)
from . import ledger_store
from .ledger_store import PRODUCTS
"""
Stock Ledger Invariants (authoritative)

Product shape:
- product["colors"][color]["sizes"][size]["quantity"] is the on-hand quantity
  of one variant. A missing color/size reads as 0.

Business invariants:
- A variant quantity is never negative. An adjustment that would make it
  negative raises InsufficientStockError and writes nothing.
- Every adjustment re-reads the product inside the caller's transaction;
  callers never pass in a cached product.
- One adjustment touches exactly one variant quantity.

Atomicity:
- adjust_variant_quantity() does not commit. It must run inside
  ledger_store.transaction() together with the rest of the business
  operation so the whole operation commits or rolls back as one.
"""


@dataclass(frozen=True)
class VariantAdjustment:
    """Typed update descriptor for one variant quantity change."""
    product_id: str
    color: str
    size: str
    delta: int

    @classmethod
    def build(cls, product_id, color, size, delta) -> "VariantAdjustment":
        return cls(
            product_id=require_text(product_id, "productId"),
            color=require_text(color, "color"),
            size=require_text(size, "size"),
            delta=coerce_int(delta, "delta"),
        )

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.product_id, self.color, self.size)


def get_variant_quantity(product: dict, color: str, size: str) -> int:
    colors = product.get("colors") or {}
    sizes = (colors.get(color) or {}).get("sizes") or {}
    variant = sizes.get(size) or {}
    return int(variant.get("quantity") or 0)


def validate_product_quantities(product: dict) -> None:
    """
    Reject a product body whose stored variant quantities are not
    non-negative integers. A variant without a quantity reads as 0 and passes.
    """
    colors = product.get("colors")
    if colors is None:
        return
    if not isinstance(colors, dict):
        raise ValidationError("colors must be an object of color -> {sizes}")

    for color, color_entry in colors.items():
        if color_entry is None:
            continue
        if not isinstance(color_entry, dict):
            raise ValidationError(f"colors[{color}] must be an object with sizes")
        sizes = color_entry.get("sizes") or {}
        if not isinstance(sizes, dict):
            raise ValidationError(f"colors[{color}].sizes must be an object")
        for size, variant in sizes.items():
            if not isinstance(variant, dict):
                raise ValidationError(f"colors[{color}].sizes[{size}] must be an object")
            if "quantity" not in variant:
                continue
            quantity = variant["quantity"]
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                raise ValidationError(f"colors[{color}].sizes[{size}].quantity must be an integer")
            if quantity < 0:
                raise ValidationError(f"colors[{color}].sizes[{size}].quantity cannot be negative")


def _with_variant_quantity(product: dict, color: str, size: str, quantity: int) -> dict:
    colors = product.setdefault("colors", {})
    color_entry = colors.setdefault(color, {})
    sizes = color_entry.setdefault("sizes", {})
    variant = sizes.setdefault(size, {})
    variant["quantity"] = quantity
    return product


def adjust_variant_quantity(adjustment: VariantAdjustment) -> int:
    """
    Apply one variant delta inside the current transaction.

    Returns the new quantity.

    Raises:
        ProductNotFoundError: product document is absent
        InsufficientStockError: current + delta would be negative
    """
    row = ledger_store.get_row(PRODUCTS, adjustment.product_id, lock=True)
    if row is None:
        raise ProductNotFoundError(f"Product with ID {adjustment.product_id} not found.")

    product = copy.deepcopy(row.data or {})
    current = get_variant_quantity(product, adjustment.color, adjustment.size)
    new_quantity = current + adjustment.delta
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Cannot remove {-adjustment.delta} of {adjustment.color}/{adjustment.size}. "
            f"Only {current} in stock.",
            available=current,
            requested=-adjustment.delta,
        )

    ledger_store.write_row(row, _with_variant_quantity(product, adjustment.color, adjustment.size, new_quantity))
    return new_quantity


def apply_adjustments(adjustments: list[VariantAdjustment]) -> dict[tuple[str, str, str], int]:
    """
    Apply a batch of adjustments as one atomic operation.

    Either every adjustment is written or none is. Returns the final quantity
    per (product_id, color, size).
    """
    if not adjustments:
        raise ValidationError("At least one adjustment is required")

    def _op():
        results: dict[tuple[str, str, str], int] = {}
        for adjustment in adjustments:
            results[adjustment.key] = adjust_variant_quantity(adjustment)
        return results

    return ledger_store.transaction(_op)


def get_product_stock(product_id: str) -> dict:
    """Flattened variant quantities for one product."""
    product = ledger_store.get_document(PRODUCTS, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product with ID {product_id} not found.")

    variants = []
    for color, color_entry in sorted((product.get("colors") or {}).items()):
        for size in sorted(((color_entry or {}).get("sizes") or {}).keys()):
            variants.append({
                "color": color,
                "size": size,
                "quantity": get_variant_quantity(product, color, size),
            })

    return {
        "productId": product["id"],
        "name": product.get("name"),
        "variants": variants,
        "totalQuantity": sum(v["quantity"] for v in variants),
    }
