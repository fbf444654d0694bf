from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import NotFoundError, StorageError, ValidationError
from storefront.models.cart_line import CartLine, Owner, SessionOwner, UserOwner, config_key
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart_schema import CartLineView, CartView
from storefront.services.pricing import resolve_price, shipping_fee_for
from storefront.utils.logging import get_logger
from storefront.utils.transactions import atomic

log = get_logger("storefront.cart")


@dataclass
class MergeResult:
    moved: int = 0
    merged: int = 0

    @property
    def total(self) -> int:
        return self.moved + self.merged


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)

    def add_line(
        self,
        owner: Owner,
        product_id: int,
        variant_id: Optional[int] = None,
        quantity: int = 1,
        selected_length: Optional[str] = None,
        selected_color: Optional[str] = None,
    ) -> CartLine:
        """
        Add `quantity` of a configuration to the owner's cart.

        An identical configuration already in the cart is incremented in
        place; stock is not checked here (checkout re-validates it).
        """
        if quantity is None or int(quantity) <= 0:
            raise ValidationError("Quantity must be positive", identifier=product_id)
        quantity = int(quantity)
        selected_length = selected_length or None
        selected_color = selected_color or None

        product = self.product_repo.get_product(product_id)
        variants = self.product_repo.get_variants(product_id)

        if variant_id is not None:
            variant = next((v for v in variants if v.id == variant_id), None)
            if not variant:
                raise NotFoundError(
                    f"Variant {variant_id} not found for product {product_id}",
                    identifier=variant_id,
                )
            if selected_length is None and selected_color is None:
                selected_length, selected_color = variant.length, variant.color
            elif (selected_length, selected_color) != (variant.length, variant.color):
                raise ValidationError(
                    "Selected length/color do not match the chosen variant",
                    identifier=variant_id,
                )

        resolution = resolve_price(product, variants, selected_length, selected_color)
        if variant_id is None:
            variant_id = resolution.matched_variant_id

        cfg = config_key(product_id, variant_id, selected_length, selected_color)

        # end the read so the upsert below opens its transaction with a write
        self.db.commit()

        for attempt in range(2):
            try:
                with atomic(self.db):
                    bumped = self.cart_repo.increment(
                        owner.key, cfg, quantity, price_snapshot=resolution.unit_price_kobo
                    )
                    if not bumped:
                        self.cart_repo.insert_line(
                            owner,
                            cfg,
                            product_id,
                            variant_id,
                            quantity,
                            selected_length,
                            selected_color,
                            resolution.unit_price_kobo,
                        )
                break
            except IntegrityError:
                # a concurrent add inserted the same configuration first
                if attempt:
                    raise
                log.info(f"add_line(): insert collision owner={owner.key} cfg={cfg}; retrying")

        line = self.cart_repo.find_line(owner.key, cfg)
        log.info(f"add_line(): owner={owner.key} line={line.id} qty={line.quantity}")
        return line

    def remove_line(self, owner: Owner, line_id: int) -> None:
        with atomic(self.db):
            self.cart_repo.delete_line(owner.key, line_id)

    def update_quantity(self, owner: Owner, line_id: int, quantity: int) -> None:
        if quantity is None or int(quantity) <= 0:
            self.remove_line(owner, line_id)
            return
        with atomic(self.db):
            if not self.cart_repo.set_quantity(owner.key, line_id, int(quantity)):
                raise NotFoundError(
                    "Cart item not found or does not belong to you", identifier=line_id
                )

    def clear(self, owner: Owner) -> int:
        with atomic(self.db):
            return self.cart_repo.clear(owner.key)

    def list_lines(self, owner: Owner) -> List[CartLineView]:
        views = []
        for line in self.cart_repo.list_for_owner(owner.key):
            product = line.product
            final_price = line.variant.price_kobo if line.variant is not None else product.price_kobo
            views.append(
                CartLineView(
                    id=line.id,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    selected_length=line.selected_length,
                    selected_color=line.selected_color,
                    name=product.name,
                    image=product.image,
                    product_slug=product.slug,
                    base_price_kobo=product.price_kobo,
                    final_price_kobo=final_price,
                    line_total_kobo=final_price * line.quantity,
                    created_at=line.created_at,
                )
            )
        return views

    def summary(self, owner: Optional[Owner]) -> CartView:
        """Cart lines plus display totals. Checkout recomputes these from the catalogue."""
        lines = self.list_lines(owner) if owner is not None else []
        subtotal = sum(l.line_total_kobo for l in lines)
        fee = (
            shipping_fee_for(
                subtotal, settings.FREE_SHIPPING_THRESHOLD_KOBO, settings.SHIPPING_FEE_KOBO
            )
            if lines
            else 0
        )
        return CartView(
            items=lines,
            item_count=sum(l.quantity for l in lines),
            subtotal_kobo=subtotal,
            shipping_fee_kobo=fee,
            total_kobo=subtotal + fee,
            free_shipping_threshold_kobo=settings.FREE_SHIPPING_THRESHOLD_KOBO,
        )

    def merge_session_into_user(self, session_id: str, user_id: int) -> MergeResult:
        """
        Fold an anonymous cart into the user's cart after login.

        Each session line is handled in its own transaction, so a crash
        part-way leaves a cart that a re-run finishes; running twice (or
        concurrently) never duplicates quantities.
        """
        session = SessionOwner(session_id)
        user = UserOwner(user_id)
        result = MergeResult()

        refs = self.cart_repo.line_refs(session.key)
        self.db.commit()

        for line_id, cfg, qty in refs:
            outcome = self._merge_line(line_id, cfg, qty, session, user)
            if outcome == "merged":
                result.merged += 1
            elif outcome == "moved":
                result.moved += 1

        log.info(
            f"merge_session_into_user(): session={session_id} user={user_id} "
            f"moved={result.moved} merged={result.merged}"
        )
        return result

    def _merge_line(
        self, line_id: int, cfg: str, qty: int, session: SessionOwner, user: UserOwner
    ) -> Optional[str]:
        for attempt in range(3):
            try:
                if self.cart_repo.increment(user.key, cfg, qty):
                    # claim the session line only if it still holds what we just added
                    if self.cart_repo.delete_line(session.key, line_id, quantity=qty):
                        self.db.commit()
                        return "merged"
                    self.db.rollback()
                    qty = self.cart_repo.line_quantity(session.key, line_id)
                    if qty is None:
                        # claimed by a concurrent merge
                        return None
                    log.info(f"_merge_line(): session line {line_id} changed to qty={qty}; retrying")
                    continue
                moved = self.cart_repo.reassign(line_id, session.key, user)
                self.db.commit()
                return "moved" if moved else None
            except IntegrityError:
                # the user gained this configuration between our two statements
                self.db.rollback()
                if attempt == 2:
                    raise
            except Exception:
                self.db.rollback()
                raise
        raise StorageError("Cart changed during merge; try again", identifier=line_id)
