"""
Line-item totals calculator.

Pure functions shared by every document type. Amounts are Decimal and
each stored component is rounded half-up to cents, so that:

    subtotal == sum(item.total)
    total    == subtotal - discount_amount + tax_amount

hold exactly and recomputing an unchanged document never drifts.

Items are persisted as JSON, so computed items carry their decimal
fields as strings.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from bizdocs.exceptions import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")

DISCOUNT_TYPES = ("percentage", "fixed")


def to_money(value: Any) -> Decimal:
    """Round a numeric value to currency precision."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value: Any, field_name: str, errors: list, required: bool = False) -> Optional[Decimal]:
    if value is None or value == "":
        if required:
            errors.append({"field": field_name, "message": "is required", "type": "missing"})
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append({"field": field_name, "message": "must be a number", "type": "decimal_parsing"})
        return None
    if not result.is_finite():
        errors.append({"field": field_name, "message": "must be a finite number", "type": "decimal_parsing"})
        return None
    return result


def _get(item: Any, key: str, default=None):
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


@dataclass(frozen=True)
class DocumentTotals:
    """Result of a totals computation."""

    items: list = field(default_factory=list)
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    total_cost: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None


def compute_item(item: Any, index: int, errors: list, name_field: str = "name", with_cost: bool = False) -> Optional[dict]:
    """Validate one line item and derive its total (and profit for sales).

    Returns None when the item is invalid; problems are appended to errors.
    """
    prefix = f"items.{index}"
    start = len(errors)

    name = _get(item, name_field)
    if not name or not str(name).strip():
        errors.append({"field": f"{prefix}.{name_field}", "message": "is required", "type": "missing"})

    quantity = _as_decimal(_get(item, "quantity"), f"{prefix}.quantity", errors, required=True)
    if quantity is not None and quantity <= ZERO:
        errors.append({"field": f"{prefix}.quantity", "message": "must be greater than 0", "type": "greater_than"})

    unit_price = _as_decimal(_get(item, "unit_price"), f"{prefix}.unit_price", errors, required=True)
    if unit_price is not None and unit_price < ZERO:
        errors.append({"field": f"{prefix}.unit_price", "message": "cannot be negative", "type": "greater_than_equal"})

    cost_price = None
    if with_cost:
        cost_price = _as_decimal(_get(item, "cost_price"), f"{prefix}.cost_price", errors)
        if cost_price is not None and cost_price < ZERO:
            errors.append({"field": f"{prefix}.cost_price", "message": "cannot be negative", "type": "greater_than_equal"})

    if len(errors) > start:
        return None

    line_total = to_money(quantity * unit_price)
    computed = {
        name_field: str(name).strip(),
        "description": _get(item, "description"),
        "quantity": str(quantity),
        "unit_price": str(unit_price),
        "total": str(line_total),
    }
    if with_cost:
        for key in ("product_id", "product_sku"):
            computed[key] = _get(item, key)
        computed["cost_price"] = str(cost_price) if cost_price is not None else None
        if cost_price is not None:
            computed["profit"] = str(to_money((unit_price - cost_price) * quantity))
        else:
            computed["profit"] = None
    return computed


def compute_totals(
    items: Optional[Iterable[Any]],
    tax_rate: Any = 0,
    discount: Any = None,
    discount_type: str = "fixed",
    with_cost: bool = False,
    name_field: str = "name",
) -> DocumentTotals:
    """Compute item totals, subtotal, discount, tax and grand total.

    Raises ValidationError with field-level errors when any input is
    malformed. An empty item list is valid and yields zeros.
    """
    errors: list = []

    rate = _as_decimal(tax_rate, "tax_rate", errors)
    if rate is None:
        rate = ZERO
    elif rate < ZERO or rate > HUNDRED:
        errors.append({"field": "tax_rate", "message": "must be between 0 and 100", "type": "range"})

    disc = _as_decimal(discount, "discount", errors)
    if disc is None:
        disc = ZERO
    elif disc < ZERO:
        errors.append({"field": "discount", "message": "cannot be negative", "type": "greater_than_equal"})
    if discount_type not in DISCOUNT_TYPES:
        errors.append({"field": "discount_type", "message": "must be 'percentage' or 'fixed'", "type": "enum"})
    elif discount_type == "percentage" and disc > HUNDRED:
        errors.append({"field": "discount", "message": "percentage cannot exceed 100", "type": "range"})

    computed_items = []
    for index, item in enumerate(items or []):
        computed = compute_item(item, index, errors, name_field=name_field, with_cost=with_cost)
        if computed is not None:
            computed_items.append(computed)

    if errors:
        raise ValidationError("Invalid document totals input", errors=errors)

    subtotal = sum((Decimal(i["total"]) for i in computed_items), ZERO)

    if disc > ZERO and discount_type == "percentage":
        discount_amount = to_money(subtotal * disc / HUNDRED)
    else:
        discount_amount = to_money(disc)
    if discount_amount > subtotal:
        raise ValidationError(
            "Discount exceeds subtotal",
            errors=[{"field": "discount", "message": "cannot exceed the subtotal", "type": "range"}],
        )

    tax_amount = to_money((subtotal - discount_amount) * rate / HUNDRED)
    total = subtotal - discount_amount + tax_amount

    total_cost = None
    total_profit = None
    if with_cost:
        # Items without a cost price count as zero cost
        total_cost = to_money(sum(
            (Decimal(i["cost_price"]) * Decimal(i["quantity"]) for i in computed_items if i["cost_price"] is not None),
            ZERO,
        ))
        total_profit = total - total_cost

    return DocumentTotals(
        items=computed_items,
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
        total_cost=total_cost,
        total_profit=total_profit,
    )
