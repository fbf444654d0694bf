import random
import time
from typing import Callable, Dict, List, Optional, Tuple, Union

import pydantic
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import EmptyCartError, InsufficientStockError, StorageError, ValidationError
from storefront.models.cart_line import UserOwner
from storefront.models.order import Order, OrderLine, OrderStatus
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.order_schema import BillingAddress, ShippingAddress
from storefront.services.pricing import resolve_price, shipping_fee_for
from storefront.utils.locks import product_locks
from storefront.utils.logging import get_logger

log = get_logger("storefront.checkout")

AddressIn = Union[dict, ShippingAddress, BillingAddress, None]


def generate_order_number() -> str:
    """Customer-facing reference, e.g. HS48213377042: prefix, ms clock tail, 3 random digits."""
    stamp = str(int(time.time() * 1000))[-8:]
    return f"{settings.ORDER_NUMBER_PREFIX}{stamp}{random.randint(0, 999):03d}"


class CheckoutService:
    def __init__(self, db: Session, order_number_factory: Optional[Callable[[], str]] = None):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.order_repo = OrderRepository(db)
        self.product_repo = ProductRepository(db)
        self._new_order_number = order_number_factory or generate_order_number

    def create_order(
        self,
        user_id: Optional[int],
        shipping_address: AddressIn,
        billing_address: AddressIn = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Turn the user's cart into a pending Order.

        Prices and stock are re-resolved from the catalogue; the cart's cached
        prices are ignored. Order + lines insert, stock decrement and cart
        clear commit together or not at all.
        """
        if user_id is None:
            raise ValidationError("You must be logged in to place an order")
        owner = UserOwner(user_id)
        shipping, billing = self._snapshot_addresses(shipping_address, billing_address)

        product_ids = self.cart_repo.product_ids(owner.key)
        if not product_ids:
            raise EmptyCartError(identifier=user_id)
        self.db.commit()

        with product_locks(product_ids):
            for _ in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
                try:
                    order = self._create_locked(owner, set(product_ids), shipping, billing, notes)
                    self.db.commit()
                    break
                except IntegrityError as e:
                    # another checkout took the same order number after our existence check
                    self.db.rollback()
                    log.warning(f"create_order(): insert conflict for user={user_id}, regenerating: {e.orig}")
                except Exception:
                    self.db.rollback()
                    raise
            else:
                raise StorageError("Order could not be saved; try again", identifier=user_id)

        self.db.refresh(order)
        log.info(
            f"create_order(): user={user_id} order={order.order_number} "
            f"lines={len(order.lines)} total_kobo={order.total_kobo}"
        )
        return order

    def _create_locked(
        self, owner: UserOwner, locked_ids: set, shipping: dict, billing: dict, notes
    ) -> Order:
        lines = self.cart_repo.lines_for_checkout(owner.key)
        if not lines:
            raise EmptyCartError(identifier=owner.user_id)
        if not {line.product_id for line in lines} <= locked_ids:
            raise StorageError("Cart changed during checkout; try again", identifier=owner.user_id)

        demand: Dict[Tuple[str, int], int] = {}
        resolved = []
        for line in lines:
            product = self.product_repo.get_product(line.product_id, for_update=True)
            variants = self.product_repo.get_variants(line.product_id, for_update=True)
            res = resolve_price(product, variants, line.selected_length, line.selected_color)

            # lines drawing on the same stock row are checked against it together
            if res.matched_variant_id is not None:
                bucket = ("variant", res.matched_variant_id)
            else:
                bucket = ("product", product.id)
            demand[bucket] = demand.get(bucket, 0) + line.quantity
            if demand[bucket] > res.available_stock:
                raise InsufficientStockError(line.id, demand[bucket], res.available_stock)

            resolved.append((line, product, variants, res))

        subtotal = sum(res.unit_price_kobo * line.quantity for line, _, _, res in resolved)
        shipping_fee = shipping_fee_for(
            subtotal, settings.FREE_SHIPPING_THRESHOLD_KOBO, settings.SHIPPING_FEE_KOBO
        )

        order = Order(
            order_number=self._unique_order_number(),
            user_id=owner.user_id,
            status=OrderStatus.PENDING.value,
            subtotal_kobo=subtotal,
            shipping_fee_kobo=shipping_fee,
            total_kobo=subtotal + shipping_fee,
            shipping_address=shipping,
            billing_address=billing,
            payment_method="bank_transfer",
            notes=notes or None,
        )
        self.db.add(order)
        self.db.flush()

        for line, product, variants, res in resolved:
            self.db.add(
                OrderLine(
                    order_id=order.id,
                    product_id=product.id,
                    variant_id=res.matched_variant_id,
                    product_name=product.name,
                    quantity=line.quantity,
                    unit_price_kobo=res.unit_price_kobo,
                    selected_length=line.selected_length,
                    selected_color=line.selected_color,
                )
            )
            if res.matched_variant_id is not None:
                variant = next(v for v in variants if v.id == res.matched_variant_id)
                variant.stock = variant.stock - line.quantity
            else:
                product.stock = product.stock - line.quantity

        # only clear what was ordered; a line that grew meanwhile aborts the whole order
        converted = [(line.id, line.quantity) for line in lines]
        if self.cart_repo.delete_converted(owner.key, converted) < len(converted):
            raise StorageError("Cart changed during checkout; try again", identifier=owner.user_id)
        self.db.flush()
        return order

    def _unique_order_number(self) -> str:
        for _ in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
            candidate = self._new_order_number()
            if not self.order_repo.number_exists(candidate):
                return candidate
            log.warning(f"order number collision on {candidate}; regenerating")
        raise StorageError("Could not allocate a unique order number; try again")

    def _snapshot_addresses(self, shipping_address: AddressIn, billing_address: AddressIn):
        try:
            shipping = ShippingAddress.model_validate(
                shipping_address.model_dump()
                if isinstance(shipping_address, pydantic.BaseModel)
                else (shipping_address or {})
            )
            billing = BillingAddress.model_validate(
                billing_address.model_dump()
                if isinstance(billing_address, pydantic.BaseModel)
                else (billing_address or {})
            )
        except pydantic.ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) or "address" for err in e.errors()})
            raise ValidationError(f"Invalid address: {', '.join(fields)}")

        shipping_snapshot = shipping.model_dump()
        if billing.same_as_shipping:
            billing_snapshot = dict(shipping_snapshot, same_as_shipping=True)
        else:
            billing_snapshot = billing.model_dump()
        return shipping_snapshot, billing_snapshot

    # read views

    def list_orders(self, user_id: int) -> List[Order]:
        return self.order_repo.list_for_user(user_id)

    def get_order(self, user_id: int, order_id: int) -> Order:
        return self.order_repo.get_owned(user_id, order_id)
