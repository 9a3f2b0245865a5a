# Overview: Request decorators for API routes.

from functools import wraps
from flask import jsonify, g

from .extensions import db
from .models import Business


def require_business(f):
    """
    Resolve the <business_id> URL segment into g.business.

    Every business-scoped route passes business_id explicitly to the service
    layer; g.business is only a request-local convenience for settings such
    as hourly_rate and currency_code.

    Returns 404 when the business does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        business_id = kwargs.get("business_id")
        business = db.session.get(Business, business_id) if business_id is not None else None
        if business is None:
            return jsonify({"error": "Business not found"}), 404

        g.business = business
        return f(*args, **kwargs)

    return decorated_function
