"""Webhook intake router for trigger subscriptions."""

import json
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from flowhub.core.db.deps import get_db
from flowhub.core.errors import (
    SubscriptionNotFoundException,
    WebhookVerificationException,
)
from flowhub.core.exceptions import (
    raise_bad_request,
    raise_internal_server_error,
    raise_not_found,
    raise_unauthorized,
)
from flowhub.core.triggers.engine import TriggerEngine
from flowhub.schemas.common import ErrorResponse, StandardResponse
from flowhub.schemas.webhook import WebhookAcceptedResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_trigger_engine(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> TriggerEngine:
    """Dependency to get TriggerEngine wired with the app's collaborators."""
    state = request.app.state
    return TriggerEngine(db, state.registry, state.vault, state.queue, state.hooks)


@router.post(
    "/webhook/{subscription_id}",
    response_model=StandardResponse[WebhookAcceptedResponse],
    status_code=status.HTTP_200_OK,
    summary="Receive webhook",
    description="Receive a provider delivery for a trigger subscription.",
    responses={
        200: {"description": "Delivery accepted (including ignored and duplicate deliveries)"},
        400: {"model": ErrorResponse, "description": "Malformed JSON body"},
        401: {
            "model": ErrorResponse,
            "description": "Signature verification failed",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "WEBHOOK_VERIFICATION_FAILED",
                            "message": "Webhook signature verification failed",
                            "details": None,
                        }
                    }
                }
            },
        },
        404: {"model": ErrorResponse, "description": "Unknown subscription"},
        500: {"model": ErrorResponse, "description": "Internal error; the provider may retry"},
    },
)
async def receive_webhook(
    request: Request,
    engine: Annotated[TriggerEngine, Depends(get_trigger_engine)],
    subscription_id: Annotated[str, Path(description="Trigger subscription ID")],
) -> StandardResponse[WebhookAcceptedResponse]:
    """
    Receive a webhook delivery.

    Args:
        request: Incoming request (raw body is needed for signature checks).
        engine: TriggerEngine instance.
        subscription_id: Trigger subscription ID.

    Returns:
        StandardResponse with the created event id, or status 'ignored'.
    """
    try:
        subscription_uuid = UUID(subscription_id)
    except ValueError:
        raise_not_found("Subscription", subscription_id)

    raw_body = await request.body()
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError:
        raise_bad_request("INVALID_JSON", "Request body is not valid JSON")
    if not isinstance(payload, dict):
        raise_bad_request("INVALID_JSON", "Webhook payload must be a JSON object")

    try:
        event = await engine.handle_webhook(
            subscription_uuid, payload, dict(request.headers), raw_body
        )
    except SubscriptionNotFoundException:
        raise_not_found("Subscription", subscription_id)
    except WebhookVerificationException as e:
        raise_unauthorized("WEBHOOK_VERIFICATION_FAILED", e.message)
    except Exception as e:
        logger.error(f"Failed to process webhook for subscription {subscription_id}: {e}", exc_info=True)
        raise_internal_server_error("WEBHOOK_PROCESSING_FAILED", "Failed to process webhook")

    return StandardResponse(
        data=WebhookAcceptedResponse(
            accepted=True,
            event_id=event.id if event else None,
            status="created" if event else "ignored",
        )
    )
