from __future__ import annotations

from datetime import date as date_type
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from wheels.auth import require_roles
from wheels.dependencies import get_admin_actions_service, get_audit_service
from wheels.schemas_admin import AdminReasonBody, AuditLogListResponse, AuditLogOut, AuditVerifyResponse, RefundBody
from wheels.schemas_bookings import BookingRequestOut
from wheels.schemas_payments import TransactionOut
from wheels.services.admin_actions import AdminActionsService
from wheels.services.audit_service import AuditContext, AuditService

router = APIRouter(prefix="/admin", tags=["admin"])

AdminDep = Depends(require_roles(["admin"]))


@router.post("/booking-requests/{booking_id}/expire", response_model=BookingRequestOut)
async def expire_booking_request(
    booking_id: str,
    request: Request,
    body: Optional[AdminReasonBody] = Body(None),
    user: dict[str, Any] = AdminDep,
    service: AdminActionsService = Depends(get_admin_actions_service),
) -> BookingRequestOut:
    booking = await service.expire_booking_request(
        booking_id,
        user["id"],
        why=body.why if body else None,
        context=AuditContext.from_request(request),
    )
    return BookingRequestOut.from_booking(booking)


@router.post("/transactions/{transaction_id}/refund", response_model=TransactionOut)
async def refund_transaction(
    transaction_id: str,
    request: Request,
    body: Optional[RefundBody] = Body(None),
    user: dict[str, Any] = AdminDep,
    service: AdminActionsService = Depends(get_admin_actions_service),
) -> TransactionOut:
    tx = await service.refund_transaction(
        transaction_id,
        user["id"],
        amount=body.amount if body else None,
        why=body.why if body else None,
        context=AuditContext.from_request(request),
    )
    return TransactionOut.from_transaction(tx)


@router.get("/audit/logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    limit: int = Query(50, ge=1, le=200),
    entity: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    user: dict[str, Any] = AdminDep,
    service: AuditService = Depends(get_audit_service),
) -> AuditLogListResponse:
    docs = await service.list_entries(limit=limit, entity=entity, action=action)
    return AuditLogListResponse(items=[AuditLogOut.from_doc(d) for d in docs])


@router.get("/audit/verify", response_model=AuditVerifyResponse)
async def verify_audit_chain(
    date: Optional[date_type] = Query(None),
    user: dict[str, Any] = AdminDep,
    service: AuditService = Depends(get_audit_service),
) -> AuditVerifyResponse:
    result = await service.verify(date.isoformat() if date else None)
    return AuditVerifyResponse(**result)
