from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_notifier, get_proof_storage, require_operator
from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.order_schema import OrderOut
from storefront.schemas.payment_schema import BulkStatusIn, StatusUpdateIn
from storefront.services.payment_service import PaymentService
from storefront.utils.logging import get_logger

log = get_logger("storefront.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.patch("/orders/{order_id}/status", summary="Move an order to a new status")
def update_order_status(
    order_id: int,
    payload: StatusUpdateIn,
    operator: str = Depends(require_operator),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = PaymentService(db, storage=storage, notifier=notifier)
    try:
        order = svc.transition(order_id, payload.status, notes=payload.notes)
    except StorefrontError as e:
        raise http_error(e)
    log.info(f"operator={operator} set order_id={order_id} status={order.status}")
    return OrderOut.model_validate(order).model_dump()


@router.post("/orders/bulk", summary="Move several orders to one status")
def bulk_update_order_status(
    payload: BulkStatusIn,
    operator: str = Depends(require_operator),
    db: Session = Depends(get_db),
    storage=Depends(get_proof_storage),
    notifier=Depends(get_notifier),
):
    svc = PaymentService(db, storage=storage, notifier=notifier)
    try:
        result = svc.transition_many(payload.order_ids, payload.status, notes=payload.notes)
    except StorefrontError as e:
        raise http_error(e)
    log.info(
        f"operator={operator} bulk status={payload.status} "
        f"updated={[o.id for o in result.updated]} failed={sorted(result.failed)}"
    )
    return {
        "updated": [OrderOut.model_validate(o).model_dump() for o in result.updated],
        "failed": [
            {"order_id": order_id, "error": e.to_dict()} for order_id, e in result.failed.items()
        ],
    }
