from datetime import datetime
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models.payment_attempt import PaymentAttempt
from storefront.utils.logging import get_logger

log = get_logger("storefront.payment_attempts")


class PaymentAttemptRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Optional[PaymentAttempt]:
        return (
            self.db.query(PaymentAttempt)
            .filter(PaymentAttempt.order_id == order_id)
            .populate_existing()
            .first()
        )

    def upsert(self, order_id: int, user_id: int, session_id: str) -> PaymentAttempt:
        """
        Create or refresh the attempt marker for an order and commit.

        One marker per order: an insert that loses a race against another
        request hits the unique index and is turned into an update.
        """
        for attempt in range(2):
            try:
                res = self.db.execute(
                    update(PaymentAttempt)
                    .where(PaymentAttempt.order_id == order_id)
                    .values(session_id=session_id, user_id=user_id, started=True)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount == 0:
                    self.db.add(
                        PaymentAttempt(
                            order_id=order_id, user_id=user_id, session_id=session_id, started=True
                        )
                    )
                    self.db.flush()
                self.db.commit()
                break
            except IntegrityError:
                self.db.rollback()
                log.debug(f"upsert(): insert collision for order_id={order_id!r}")
                if attempt:
                    raise
            except Exception:
                self.db.rollback()
                raise
        return self.get(order_id)

    def delete_for_order(self, order_id: int) -> int:
        res = self.db.execute(
            delete(PaymentAttempt)
            .where(PaymentAttempt.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def purge_older_than(self, cutoff: datetime) -> int:
        res = self.db.execute(
            delete(PaymentAttempt)
            .where(PaymentAttempt.updated_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
