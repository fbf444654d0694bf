from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload

from storefront.models.cart_line import CartLine, Owner, SessionOwner, UserOwner


class CartRepository:
    """
    Statement-level access to cart_lines.

    Writes are single UPDATE/DELETE statements keyed on (owner_key, config_key)
    or (owner_key, id), so callers never read-then-write a quantity.
    Transactions are the caller's business.
    """

    def __init__(self, db: Session):
        self.db = db

    def increment(self, owner_key: str, cfg: str, qty: int, price_snapshot: Optional[int] = None) -> int:
        values = {"quantity": CartLine.quantity + qty}
        if price_snapshot is not None:
            values["price_snapshot_kobo"] = price_snapshot
        res = self.db.execute(
            update(CartLine)
            .where(CartLine.owner_key == owner_key, CartLine.config_key == cfg)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def insert_line(
        self,
        owner: Owner,
        cfg: str,
        product_id: int,
        variant_id: Optional[int],
        qty: int,
        selected_length: Optional[str],
        selected_color: Optional[str],
        price_snapshot: int,
    ) -> CartLine:
        line = CartLine(
            user_id=owner.user_id if isinstance(owner, UserOwner) else None,
            session_id=owner.session_id if isinstance(owner, SessionOwner) else None,
            owner_key=owner.key,
            config_key=cfg,
            product_id=product_id,
            variant_id=variant_id,
            quantity=qty,
            selected_length=selected_length,
            selected_color=selected_color,
            price_snapshot_kobo=price_snapshot,
        )
        self.db.add(line)
        self.db.flush()
        return line

    def find_line(self, owner_key: str, cfg: str) -> Optional[CartLine]:
        return (
            self.db.query(CartLine)
            .filter(CartLine.owner_key == owner_key, CartLine.config_key == cfg)
            .populate_existing()
            .first()
        )

    def delete_line(self, owner_key: str, line_id: int, quantity: Optional[int] = None) -> int:
        """Delete one line; with `quantity`, only while it still holds exactly that many."""
        stmt = delete(CartLine).where(CartLine.id == line_id, CartLine.owner_key == owner_key)
        if quantity is not None:
            stmt = stmt.where(CartLine.quantity == quantity)
        res = self.db.execute(stmt.execution_options(synchronize_session=False))
        return res.rowcount

    def delete_converted(self, owner_key: str, refs: Iterable[Tuple[int, int]]) -> int:
        """
        Delete (line_id, quantity) pairs as read at checkout. A line whose
        quantity moved since is left alone and not counted.
        """
        removed = 0
        for line_id, qty in refs:
            removed += self.delete_line(owner_key, line_id, quantity=qty)
        return removed

    def line_quantity(self, owner_key: str, line_id: int) -> Optional[int]:
        row = (
            self.db.query(CartLine.quantity)
            .filter(CartLine.id == line_id, CartLine.owner_key == owner_key)
            .first()
        )
        return row.quantity if row else None

    def set_quantity(self, owner_key: str, line_id: int, qty: int) -> int:
        res = self.db.execute(
            update(CartLine)
            .where(CartLine.id == line_id, CartLine.owner_key == owner_key)
            .values(quantity=qty)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def clear(self, owner_key: str) -> int:
        res = self.db.execute(
            delete(CartLine)
            .where(CartLine.owner_key == owner_key)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def reassign(self, line_id: int, from_key: str, to: UserOwner) -> int:
        """Move a line to a user, only if it is still owned by `from_key`."""
        res = self.db.execute(
            update(CartLine)
            .where(CartLine.id == line_id, CartLine.owner_key == from_key)
            .values(user_id=to.user_id, session_id=None, owner_key=to.key)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def list_for_owner(self, owner_key: str) -> List[CartLine]:
        """Lines with product/variant loaded for display, newest first."""
        return (
            self.db.query(CartLine)
            .options(joinedload(CartLine.product), joinedload(CartLine.variant))
            .filter(CartLine.owner_key == owner_key)
            .order_by(CartLine.created_at.desc(), CartLine.id.desc())
            .populate_existing()
            .all()
        )

    def lines_for_checkout(self, owner_key: str) -> List[CartLine]:
        # no joins here: FOR UPDATE can't lock the nullable side of an outer join
        return (
            self.db.query(CartLine)
            .filter(CartLine.owner_key == owner_key)
            .order_by(CartLine.id)
            .with_for_update()
            .populate_existing()
            .all()
        )

    def line_refs(self, owner_key: str) -> List[Tuple[int, str, int]]:
        """(id, config_key, quantity) for every line of an owner."""
        rows = (
            self.db.query(CartLine.id, CartLine.config_key, CartLine.quantity)
            .filter(CartLine.owner_key == owner_key)
            .order_by(CartLine.id)
            .all()
        )
        return [(r.id, r.config_key, r.quantity) for r in rows]

    def product_ids(self, owner_key: str) -> List[int]:
        rows = (
            self.db.query(CartLine.product_id)
            .filter(CartLine.owner_key == owner_key)
            .distinct()
            .all()
        )
        return [r.product_id for r in rows]
