from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from storefront.errors import OrderNotFoundError, OrderNotOwnedError
from storefront.models.order import Order


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        qry = self.db.query(Order).filter(Order.id == order_id)
        if for_update:
            qry = qry.with_for_update().populate_existing()
        return qry.first()

    def get_owned(self, user_id: int, order_id: int, for_update: bool = False) -> Order:
        """
        Load an order for its owner, telling "doesn't exist" apart from
        "belongs to someone else" so the caller can say which.
        """
        order = self.get(order_id, for_update=for_update)
        if not order:
            raise OrderNotFoundError(order_id)
        if order.user_id != user_id:
            raise OrderNotOwnedError(order_id)
        return order

    def list_for_user(self, user_id: int) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.lines))
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def number_exists(self, order_number: str) -> bool:
        return (
            self.db.query(Order.id).filter(Order.order_number == order_number).first()
            is not None
        )
