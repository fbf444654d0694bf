from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from storefront.api.deps import get_notifier, get_proof_storage, require_user_id
from storefront.api.errors import http_error
from storefront.config import settings
from storefront.db import get_db
from storefront.errors import AlreadyProcessedError, StorefrontError
from storefront.schemas.order_schema import OrderOut
from storefront.schemas.payment_schema import AttemptIn, AttemptOut, PaymentPageOut
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _service(db: Session, storage, notifier) -> PaymentService:
    return PaymentService(db, storage=storage, notifier=notifier)


@router.get("/{order_id}", summary="Bank transfer details for a payable order")
def payment_page(
    order_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = _service(db, storage, notifier)
    try:
        page = svc.get_payable_order(user_id, order_id)
    except AlreadyProcessedError:
        # payment already under way; show the order instead
        return RedirectResponse(url=f"/api/orders/{order_id}", status_code=303)
    except StorefrontError as e:
        raise http_error(e)
    return PaymentPageOut(
        order_id=page.order.id,
        order_number=page.order.order_number,
        status=page.order.status,
        amount_kobo=page.amount_kobo,
        bank_name=page.bank_name,
        account_number=page.account_number,
        account_name=page.account_name,
        reference=page.reference,
        proof_of_payment_url=page.order.proof_of_payment_url,
    ).model_dump()


@router.post("/{order_id}/proof", summary="Upload proof of payment")
async def submit_proof(
    order_id: int,
    file: UploadFile = File(...),
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    # one byte over the ceiling is enough to reject
    data = await file.read(settings.PROOF_MAX_BYTES + 1)
    svc = _service(db, storage, notifier)
    try:
        order = svc.submit_proof(
            user_id,
            order_id,
            data,
            file.filename or "proof",
            file.content_type or "application/octet-stream",
        )
    except StorefrontError as e:
        raise http_error(e)
    return OrderOut.model_validate(order).model_dump()


@router.post("/{order_id}/mark-paid", summary="Mark as paid without uploading proof")
def mark_paid(
    order_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = _service(db, storage, notifier)
    try:
        order = svc.mark_paid_without_proof(user_id, order_id)
    except StorefrontError as e:
        raise http_error(e)
    return OrderOut.model_validate(order).model_dump()


@router.post("/{order_id}/attempt", summary="Record that a bank transfer was started")
def record_attempt(
    order_id: int,
    payload: Optional[AttemptIn] = None,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = _service(db, storage, notifier)
    try:
        attempt = svc.record_payment_attempt(
            user_id, order_id, payload.session_id if payload else None
        )
    except StorefrontError as e:
        raise http_error(e)
    return AttemptOut.model_validate(attempt).model_dump()


@router.get("/{order_id}/attempt", summary="Resume a started bank transfer")
def get_attempt(
    order_id: int,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = _service(db, storage, notifier)
    try:
        attempt = svc.get_payment_attempt(user_id, order_id)
    except StorefrontError as e:
        raise http_error(e)
    if attempt is None:
        raise HTTPException(status_code=404, detail="No payment attempt recorded")
    return AttemptOut.model_validate(attempt).model_dump()
