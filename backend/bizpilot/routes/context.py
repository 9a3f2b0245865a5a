# Overview: Dashboard snapshot route.

from flask import Blueprint

from ..services.context_service import get_snapshot
from ..decorators import require_business

context_bp = Blueprint("context", __name__, url_prefix="/api/businesses/<int:business_id>")


@context_bp.get("/context")
@require_business
def context_route(business_id: int):
    # Never fails on a partial read; "degraded" lists the dimensions that fell back to defaults
    return get_snapshot(business_id).to_dict()
