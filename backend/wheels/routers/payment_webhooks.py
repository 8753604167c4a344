from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from wheels.dependencies import get_payment_service
from wheels.schemas_payments import WebhookAck
from wheels.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments/webhooks", tags=["payment_webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    """Stripe event endpoint; authenticated by the signature header only."""

    payload = await request.body()
    await service.handle_webhook(request.headers, payload)
    return WebhookAck(received=True)
