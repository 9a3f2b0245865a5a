# Overview: Live pricing preview route; pure calculation, nothing is stored.

from flask import Blueprint, request, g

from ..services.pricing import (
    PRICING_STRATEGIES,
    STRATEGY_MARGIN,
    compute_product,
    partition_ingredient_lines,
)
from ..currency import format_currency, format_percentage
from ..decorators import require_business

pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/businesses/<int:business_id>/pricing")


@pricing_bp.post("/preview")
@require_business
def pricing_preview_route(business_id: int):
    """
    Compute cost, price and margin for an in-progress product form.

    Body: {ingredients: [...], labor_minutes, target_margin?, hourly_rate?,
    fixed_costs?, overhead?, pricing_strategy?}
    target_margin and hourly_rate default to the business settings.
    pricing_strategy is "margin" (default) or "markup". Invalid numbers count
    as 0 instead of failing, so this never returns 400 for half-typed values.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    business = g.business

    raw_lines = payload.get("ingredients") or []
    if not isinstance(raw_lines, list):
        raw_lines = []
    target_margin = payload.get("target_margin")
    if target_margin is None:
        target_margin = business.default_margin
    hourly_rate = payload.get("hourly_rate")
    if hourly_rate is None:
        hourly_rate = business.hourly_rate
    strategy = payload.get("pricing_strategy")
    if strategy not in PRICING_STRATEGIES:
        strategy = STRATEGY_MARGIN

    pricing = compute_product(
        raw_lines,
        payload.get("labor_minutes"),
        hourly_rate,
        target_margin,
        fixed_costs=payload.get("fixed_costs"),
        overhead=payload.get("overhead"),
        strategy=strategy,
    )
    _, invalid = partition_ingredient_lines(raw_lines)
    currency = business.currency_code

    result = pricing.to_dict()
    result["pricing_strategy"] = strategy
    result["invalid_ingredients"] = [line.name for line in invalid]
    result["display"] = {
        "ingredient_cost": format_currency(pricing.ingredient_cost, currency),
        "labor_cost": format_currency(pricing.labor_cost, currency),
        "additional_cost": format_currency(pricing.additional_cost, currency),
        "total_cost": format_currency(pricing.total_cost, currency),
        "selling_price": format_currency(pricing.selling_price, currency),
        "profit_amount": format_currency(pricing.profit_amount, currency),
        "profit_margin": format_percentage(pricing.profit_margin),
        "markup": format_percentage(pricing.markup_percent),
    }
    return result
