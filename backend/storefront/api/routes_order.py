from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import require_user_id
from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.order_schema import CheckoutIn, CheckoutOut, OrderOut, OrderSummaryOut
from storefront.services.checkout_service import CheckoutService

router = APIRouter(tags=["orders"])


@router.post("", summary="Create order (checkout)", status_code=201)
def create_order(
    payload: CheckoutIn,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    svc = CheckoutService(db)
    try:
        order = svc.create_order(
            user_id,
            payload.shipping_address,
            payload.billing_address,
            notes=payload.notes,
        )
    except StorefrontError as e:
        raise http_error(e)
    return CheckoutOut(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_kobo=order.total_kobo,
        payment_url=f"/api/payments/{order.id}",
    ).model_dump()


@router.get("", summary="List my orders")
def list_orders(user_id: int = Depends(require_user_id), db: Session = Depends(get_db)):
    svc = CheckoutService(db)
    return [OrderSummaryOut.model_validate(o).model_dump() for o in svc.list_orders(user_id)]


@router.get("/{order_id}", summary="Order detail")
def get_order(order_id: int, user_id: int = Depends(require_user_id), db: Session = Depends(get_db)):
    svc = CheckoutService(db)
    try:
        order = svc.get_order(user_id, order_id)
    except StorefrontError as e:
        raise http_error(e)
    return OrderOut.model_validate(order).model_dump()
