# Overview: Flask API route receiving signed identity-provider webhook events.

from flask import Blueprint, request, jsonify, current_app

from ..responses import error_response, internal_error
from ..services import webhook_service
from ..services.identity import ProviderError
from ..services.webhook_service import WebhookVerificationError


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/identity")
def identity_webhook_route():
    """
    Sync the users table from identity-provider events.

    Public but signature-verified; 503 when no signing secret is configured.
    """
    secret = current_app.config.get("IDENTITY_WEBHOOK_SECRET")
    if not secret:
        return error_response("Webhook secret not configured", 503)

    try:
        event = webhook_service.verify_signature(
            secret=secret,
            headers=request.headers,
            body=request.get_data(),
        )
    except WebhookVerificationError as e:
        current_app.logger.warning("Rejected identity webhook: %s", e)
        return error_response(str(e), 400)

    try:
        result = webhook_service.handle_event(event)
    except (WebhookVerificationError, ProviderError) as e:
        return error_response(str(e), 400)
    except Exception:
        return internal_error("Failed to process identity webhook")

    current_app.logger.info("Identity webhook %s: %s", event.get("type"), result)
    return jsonify({"received": True, "result": result})
