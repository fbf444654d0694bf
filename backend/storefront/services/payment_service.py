import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.adapters.notifications import LogNotificationDispatcher
from storefront.adapters.proof_storage import LocalProofStorage
from storefront.config import settings
from storefront.errors import (
    AlreadyProcessedError,
    InvalidTransitionError,
    OrderNotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.models.order import PAYABLE_STATUSES, PROOF_PENDING_REVIEW, Order, OrderStatus
from storefront.models.payment_attempt import PaymentAttempt
from storefront.models.product import Product, ProductVariant
from storefront.models.uploaded_file import UploadedFile
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.payment_attempt_repo import PaymentAttemptRepository
from storefront.utils.locks import product_locks
from storefront.utils.logging import get_logger

log = get_logger("storefront.payments")

S = OrderStatus

# operator-driven moves; pending -> payment_pending belongs to the customer paths
OPERATOR_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.CANCELLED}),
    S.PAYMENT_PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

_PAYABLE_VALUES = [s.value for s in PAYABLE_STATUSES]


@dataclass(frozen=True)
class PaymentPage:
    order: Order
    bank_name: str
    account_number: str
    account_name: str
    amount_kobo: int
    reference: str


@dataclass
class BulkTransitionResult:
    updated: List[Order] = field(default_factory=list)
    failed: Dict[int, StorefrontError] = field(default_factory=dict)


class PaymentService:
    def __init__(self, db: Session, storage=None, notifier=None):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.attempt_repo = PaymentAttemptRepository(db)
        self.storage = storage or LocalProofStorage.from_settings()
        self.notifier = notifier or LogNotificationDispatcher()

    # customer paths

    def _payable(self, user_id: int, order_id: int) -> Order:
        order = self.order_repo.get_owned(user_id, order_id)
        if order.status not in _PAYABLE_VALUES:
            raise AlreadyProcessedError(order.order_number, order.status, identifier=order_id)
        return order

    def get_payable_order(self, user_id: int, order_id: int) -> PaymentPage:
        order = self._payable(user_id, order_id)
        return PaymentPage(
            order=order,
            bank_name=settings.BANK_NAME,
            account_number=settings.BANK_ACCOUNT_NUMBER,
            account_name=settings.BANK_ACCOUNT_NAME,
            amount_kobo=order.total_kobo,
            reference=order.order_number,
        )

    def submit_proof(
        self,
        user_id: int,
        order_id: int,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> Order:
        """
        Store a proof file and move the order to payment_pending.

        The file is stored before the order is touched: a storage failure
        leaves the order exactly as it was. A later submission overwrites
        the recorded URL.
        """
        order = self._payable(user_id, order_id)
        old_status = order.status
        self.db.commit()

        url = self.storage.store(data, filename, content_type, folder=str(order_id))

        try:
            self._claim_payment(user_id, order_id, url)
            self.db.add(
                UploadedFile(
                    order_id=order_id,
                    file_name=filename or "proof",
                    content_type=content_type,
                    size_bytes=len(data),
                    file_url=url,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        log.info(f"submit_proof(): order_id={order_id} url={url}")
        return self._after_payment(order_id, old_status)

    def mark_paid_without_proof(self, user_id: int, order_id: int) -> Order:
        order = self._payable(user_id, order_id)
        old_status = order.status
        self.db.commit()
        try:
            self._claim_payment(user_id, order_id, PROOF_PENDING_REVIEW)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        log.info(f"mark_paid_without_proof(): order_id={order_id} flagged for review")
        return self._after_payment(order_id, old_status)

    def _claim_payment(self, user_id: int, order_id: int, proof_url: str) -> None:
        # guard and write in one statement; a concurrent operator move makes it match nothing
        res = self.db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.user_id == user_id,
                Order.status.in_(_PAYABLE_VALUES),
            )
            .values(
                proof_of_payment_url=proof_url,
                status=S.PAYMENT_PENDING.value,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            # re-run the guard to report why
            order = self._payable(user_id, order_id)
            raise AlreadyProcessedError(order.order_number, order.status, identifier=order_id)

    def _after_payment(self, order_id: int, old_status: str) -> Order:
        try:
            self.attempt_repo.delete_for_order(order_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.warning(f"could not drop payment attempt for order_id={order_id}: {e}")

        order = self.order_repo.get(order_id, for_update=False)
        self.db.refresh(order)
        if old_status != order.status:
            self._notify(order, old_status, order.status)
        return order

    def record_payment_attempt(
        self, user_id: int, order_id: int, session_id: Optional[str] = None
    ) -> PaymentAttempt:
        self._payable(user_id, order_id)
        if not session_id:
            session_id = f"pay_{order_id}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        self.db.commit()
        attempt = self.attempt_repo.upsert(order_id, user_id, session_id)
        log.debug(f"record_payment_attempt(): order_id={order_id} session={session_id}")
        return attempt

    def get_payment_attempt(self, user_id: int, order_id: int) -> Optional[PaymentAttempt]:
        self.order_repo.get_owned(user_id, order_id)
        return self.attempt_repo.get(order_id)

    # operator path

    def transition(self, order_id: int, new_status: str, notes: Optional[str] = None) -> Order:
        """
        Move an order along the fulfilment path or cancel it.

        Moving to the current status is a no-op. Cancelling puts the ordered
        quantities back on the shelf.
        """
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status {new_status!r}", identifier=order_id)

        order = self.order_repo.get(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        old_status = order.status
        if old_status == target.value:
            return order
        if target not in OPERATOR_TRANSITIONS.get(OrderStatus(old_status), frozenset()):
            raise InvalidTransitionError(order_id, old_status, target.value)

        restock = [
            (line.product_id, line.variant_id, line.quantity) for line in order.lines
        ] if target is S.CANCELLED else []
        self.db.commit()

        with product_locks([pid for pid, _, _ in restock]):
            try:
                res = self.db.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.status == old_status)
                    .values(status=target.value, updated_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount == 0:
                    self.db.rollback()
                    current = self.order_repo.get(order_id, for_update=True)
                    if current is not None and current.status == target.value:
                        return current
                    raise InvalidTransitionError(
                        order_id, current.status if current else old_status, target.value
                    )

                for product_id, variant_id, qty in restock:
                    self._restock(product_id, variant_id, qty)

                order = self.order_repo.get(order_id, for_update=True)
                if notes:
                    order.notes = f"{order.notes}\n{notes}" if order.notes else notes
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(order)
        log.info(f"transition(): order={order.order_number} {old_status} -> {order.status}")
        self._notify(order, old_status, order.status)
        return order

    def transition_many(
        self, order_ids: Iterable[int], new_status: str, notes: Optional[str] = None
    ) -> BulkTransitionResult:
        """
        Apply one operator status change to several orders.

        Each order moves (and is notified) on its own; one refusal does not
        stop the rest and is reported against its order id.
        """
        try:
            OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status {new_status!r}")

        result = BulkTransitionResult()
        for order_id in dict.fromkeys(order_ids):
            try:
                result.updated.append(self.transition(order_id, new_status, notes=notes))
            except StorefrontError as e:
                result.failed[order_id] = e
        log.info(
            f"transition_many(): status={new_status} updated={len(result.updated)} "
            f"failed={len(result.failed)}"
        )
        return result

    def _restock(self, product_id: int, variant_id: Optional[int], qty: int) -> None:
        if variant_id is not None:
            res = self.db.execute(
                update(ProductVariant)
                .where(ProductVariant.id == variant_id)
                .values(stock=ProductVariant.stock + qty)
                .execution_options(synchronize_session=False)
            )
        else:
            res = self.db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock=Product.stock + qty)
                .execution_options(synchronize_session=False)
            )
        if res.rowcount == 0:
            log.warning(
                f"_restock(): nothing to restock for product={product_id} variant={variant_id}"
            )

    def _notify(self, order: Order, old_status: str, new_status: str) -> None:
        try:
            self.notifier.notify_status_change(order, old_status, new_status)
        except Exception as e:
            log.warning(f"notify_status_change failed for order={order.order_number}: {e}")


def purge_stale_attempts(db: Session, ttl_seconds: Optional[int] = None) -> int:
    ttl = settings.PAYMENT_ATTEMPT_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl)
    try:
        removed = PaymentAttemptRepository(db).purge_older_than(cutoff)
        db.commit()
    except Exception:
        db.rollback()
        raise
    if removed:
        log.info(f"purge_stale_attempts(): removed {removed} markers older than {cutoff.isoformat()}")
    return removed
