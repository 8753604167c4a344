from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from wheels.auth import require_roles
from wheels.dependencies import get_payment_service
from wheels.errors import ForbiddenOwnerError, NotFoundError
from wheels.schemas_payments import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    TransactionListResponse,
    TransactionOut,
    TransactionStatusParam,
)
from wheels.services.payment_service import PaymentService

router = APIRouter(prefix="/passengers/payments", tags=["passenger_payments"])

PassengerDep = Depends(require_roles(["passenger"]))


@router.post("/intents", response_model=PaymentIntentResponse, status_code=201)
async def create_payment_intent(
    body: CreatePaymentIntentRequest,
    user: dict[str, Any] = PassengerDep,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResponse:
    tx = await service.create_payment_intent(body.booking_id, user["id"])
    return PaymentIntentResponse.from_transaction(tx)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50, alias="pageSize"),
    status: Optional[TransactionStatusParam] = Query(None),
    user: dict[str, Any] = PassengerDep,
    service: PaymentService = Depends(get_payment_service),
) -> TransactionListResponse:
    result = await service.get_transactions_by_passenger_id(user["id"], page=page, page_size=page_size, status=status)
    return TransactionListResponse.from_page(result)


@router.get("/transactions/{transaction_id}", response_model=TransactionOut)
async def get_my_transaction(
    transaction_id: str,
    user: dict[str, Any] = PassengerDep,
    service: PaymentService = Depends(get_payment_service),
) -> TransactionOut:
    tx = await service.get_transaction_by_id(transaction_id)
    if tx is None:
        raise NotFoundError("transaction_not_found", "Transaction not found", {"transaction_id": transaction_id})
    if tx.passenger_id != user["id"]:
        raise ForbiddenOwnerError("You cannot view a transaction that is not yours", {"transaction_id": transaction_id})
    return TransactionOut.from_transaction(tx)


@router.post("/transactions/{transaction_id}/cancel", response_model=TransactionOut)
async def cancel_my_transaction(
    transaction_id: str,
    user: dict[str, Any] = PassengerDep,
    service: PaymentService = Depends(get_payment_service),
) -> TransactionOut:
    tx = await service.cancel_transaction(transaction_id, user["id"])
    return TransactionOut.from_transaction(tx)
