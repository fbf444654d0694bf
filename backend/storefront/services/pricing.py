from dataclasses import dataclass
from typing import Iterable, Optional

from storefront.models.product import Product, ProductVariant


@dataclass(frozen=True)
class PriceResolution:
    unit_price_kobo: int
    available_stock: int
    matched_variant_id: Optional[int] = None


def resolve_price(
    product: Product,
    variants: Iterable[ProductVariant],
    selected_length: Optional[str] = None,
    selected_color: Optional[str] = None,
) -> PriceResolution:
    """
    Authoritative unit price and stock for a product configuration.

    A variant wins only on an exact (length, color) match with both selected.
    Anything else (no variants, partial selection, no matching variant) falls
    back to the product's own price and stock, so a product with partial
    variant coverage stays purchasable.

    Pure: the cart and checkout both call this so they can never disagree.
    """
    if selected_length and selected_color:
        for v in variants:
            if v.length == selected_length and v.color == selected_color:
                return PriceResolution(
                    unit_price_kobo=v.price_kobo,
                    available_stock=v.stock,
                    matched_variant_id=v.id,
                )
    return PriceResolution(
        unit_price_kobo=product.price_kobo,
        available_stock=product.stock,
        matched_variant_id=None,
    )


def shipping_fee_for(subtotal_kobo: int, threshold_kobo: int, fee_kobo: int) -> int:
    """Flat fee below the threshold, free strictly above it."""
    return 0 if subtotal_kobo > threshold_kobo else fee_kobo
