# Overview: Pure pricing math: ingredient + labor cost, margin-based selling price, realized margin.

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Mapping

from ..validation import MAX_AMOUNT
"""
Pricing Invariants (authoritative)

- Margin  = (selling_price - cost) / selling_price * 100   (share of the price that is profit)
- Markup  = (selling_price - cost) / cost * 100            (share of the cost added on top)
  The two are different formulas and are never used interchangeably.
- Margin strategy: selling_price = total_cost / (1 - margin/100). Target
  margins are capped at 99; a target >= 100 has no finite answer and falls
  back to total_cost * 2.
- Markup strategy: selling_price = total_cost * (1 + markup/100).

Nothing in this module raises or touches the database. Negative, missing,
non-numeric or out-of-range (> MAX_AMOUNT) inputs contribute 0, so a form
that is mid-edit produces a sane preview instead of NaN or a negative price.
compute_product is the single entry point used by both the live preview and
product persistence.
"""

ZERO = Decimal(0)
HUNDRED = Decimal(100)
MAX_MARGIN = Decimal(99)
MINUTES_PER_HOUR = Decimal(60)
CENT = Decimal("0.01")

STRATEGY_MARGIN = "margin"
STRATEGY_MARKUP = "markup"
PRICING_STRATEGIES = (STRATEGY_MARGIN, STRATEGY_MARKUP)

# Headroom for rounding sums of many capped lines to cents
MONEY_PRECISION = 60


def to_amount(value: Any) -> Decimal:
    """Lenient Decimal coercion: anything invalid, non-finite, negative or above MAX_AMOUNT becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not dec.is_finite() or dec < 0 or dec > MAX_AMOUNT:
        return ZERO
    return dec


@dataclass(frozen=True)
class IngredientLine:
    name: str
    unit_cost: Decimal
    quantity: Decimal
    unit: str = "unit"

    @property
    def is_valid(self) -> bool:
        return self.unit_cost > 0 and self.quantity > 0

    @property
    def line_cost(self) -> Decimal:
        return self.unit_cost * self.quantity if self.is_valid else ZERO

    @classmethod
    def from_value(cls, value: "IngredientLine | Mapping[str, Any]") -> "IngredientLine":
        """Build from a mapping; `cost` is accepted as an alias of `unit_cost`."""
        if isinstance(value, IngredientLine):
            return value
        raw_cost = value.get("unit_cost", value.get("cost"))
        return cls(
            name=str(value.get("name") or "").strip(),
            unit_cost=to_amount(raw_cost),
            quantity=to_amount(value.get("quantity")),
            unit=str(value.get("unit") or "unit"),
        )


@dataclass(frozen=True)
class ProductPricing:
    ingredient_cost: Decimal
    labor_cost: Decimal
    total_cost: Decimal
    selling_price: Decimal
    profit_margin: Decimal
    profit_amount: Decimal
    # Fixed costs plus overhead, already included in total_cost
    additional_cost: Decimal = ZERO
    markup_percent: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "ingredient_cost": str(self.ingredient_cost),
            "labor_cost": str(self.labor_cost),
            "additional_cost": str(self.additional_cost),
            "total_cost": str(self.total_cost),
            "selling_price": str(self.selling_price),
            "profit_margin": str(self.profit_margin),
            "profit_amount": str(self.profit_amount),
            "markup_percent": str(self.markup_percent),
        }


def _lines(lines: Iterable[Any] | None) -> list[IngredientLine]:
    result = []
    for line in lines or ():
        if isinstance(line, (IngredientLine, Mapping)):
            result.append(IngredientLine.from_value(line))
    return result


def partition_ingredient_lines(
    lines: Iterable[Any] | None,
) -> tuple[list[IngredientLine], list[IngredientLine]]:
    """Split lines into (valid, invalid) so a form can flag the invalid ones."""
    valid, invalid = [], []
    for line in _lines(lines):
        (valid if line.is_valid else invalid).append(line)
    return valid, invalid


def compute_ingredient_cost(lines: Iterable[Any] | None) -> Decimal:
    return sum((line.line_cost for line in _lines(lines)), ZERO)


def compute_labor_cost(labor_minutes: Any, hourly_rate: Any) -> Decimal:
    return (to_amount(labor_minutes) / MINUTES_PER_HOUR) * to_amount(hourly_rate)


def compute_total_cost(lines: Iterable[Any] | None, labor_minutes: Any, hourly_rate: Any) -> Decimal:
    return compute_ingredient_cost(lines) + compute_labor_cost(labor_minutes, hourly_rate)


def compute_selling_price(total_cost: Any, target_margin_percent: Any) -> Decimal:
    return _price_for_margin(to_amount(total_cost), target_margin_percent)


def compute_realized_margin(selling_price: Any, total_cost: Any) -> Decimal:
    """
    Margin actually achieved by a price. Selling below cost yields a negative
    margin; a zero, negative or non-numeric price or cost yields 0.
    """
    if _is_negative(selling_price) or _is_negative(total_cost):
        return ZERO
    price = to_amount(selling_price)
    if price == 0:
        return ZERO
    return (price - to_amount(total_cost)) / price * HUNDRED


# Name used by the dashboard and reports
compute_profit_margin = compute_realized_margin


def compute_markup(selling_price: Any, total_cost: Any) -> Decimal:
    cost = to_amount(total_cost)
    if cost == 0:
        return ZERO
    return (to_amount(selling_price) - cost) / cost * HUNDRED


def _is_negative(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return False
    return dec.is_finite() and dec < 0


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_product(
    lines: Iterable[Any] | None,
    labor_minutes: Any,
    hourly_rate: Any,
    target_margin_percent: Any,
    *,
    fixed_costs: Any = None,
    overhead: Any = None,
    strategy: str = STRATEGY_MARGIN,
) -> ProductPricing:
    """
    Full pricing snapshot for a product.

    fixed_costs and overhead are added to total_cost. With strategy="markup"
    target_margin_percent is read as a markup on cost instead of a margin on
    price; an unknown strategy falls back to "margin".

    Money is rounded half-up to cents; the margin is then recomputed from the
    rounded price and cost so the stored triple is self-consistent.
    """
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION

        ingredient_cost = compute_ingredient_cost(lines)
        labor_cost = compute_labor_cost(labor_minutes, hourly_rate)
        additional_cost = to_amount(fixed_costs) + to_amount(overhead)
        total_cost = _money(ingredient_cost + labor_cost + additional_cost)

        if strategy == STRATEGY_MARKUP:
            raw_price = total_cost * (1 + to_amount(target_margin_percent) / HUNDRED)
        else:
            raw_price = _price_for_margin(total_cost, target_margin_percent)
        selling_price = _money(raw_price)

        realized = ZERO if selling_price == 0 else (selling_price - total_cost) / selling_price * HUNDRED
        profit_margin = realized.quantize(CENT, rounding=ROUND_HALF_UP)
        markup = ZERO if total_cost == 0 else (selling_price - total_cost) / total_cost * HUNDRED

        return ProductPricing(
            ingredient_cost=_money(ingredient_cost),
            labor_cost=_money(labor_cost),
            total_cost=total_cost,
            selling_price=selling_price,
            profit_margin=profit_margin,
            profit_amount=selling_price - total_cost,
            additional_cost=_money(additional_cost),
            markup_percent=markup.quantize(CENT, rounding=ROUND_HALF_UP),
        )


def _price_for_margin(cost: Decimal, target_margin_percent: Any) -> Decimal:
    # cost is already coerced; a rounded total may exceed MAX_AMOUNT
    margin = to_amount(target_margin_percent)
    if margin >= HUNDRED:
        return cost * 2
    margin = min(margin, MAX_MARGIN)
    return cost / (1 - margin / HUNDRED)
