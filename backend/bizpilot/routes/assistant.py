# backend/bizpilot/routes/assistant.py
"""
AI assistant route.

The reply comes from the configured text-completion backend; the business
snapshot sent along with the question is echoed back as "context".
"""
from flask import Blueprint, request, current_app

from ..services.assistant_service import AssistantUnavailableError, ask_assistant
from ..validation import ValidationError
from ..decorators import require_business

assistant_bp = Blueprint("assistant", __name__, url_prefix="/api/businesses/<int:business_id>")


@assistant_bp.post("/assistant")
@require_business
def assistant_route(business_id: int):
    payload = request.get_json(silent=True) or {}
    message = payload.get("message") if isinstance(payload, dict) else None
    if message is not None and not isinstance(message, str):
        return {"error": "message must be a string"}, 400

    try:
        reply, snapshot = ask_assistant(business_id=business_id, message=message or "")
    except ValidationError as e:
        return {"error": str(e)}, 400
    except AssistantUnavailableError as e:
        current_app.logger.warning("Assistant unavailable for business %s: %s", business_id, e)
        return {"error": str(e)}, 502

    return {"reply": reply, "context": snapshot.to_dict()}
