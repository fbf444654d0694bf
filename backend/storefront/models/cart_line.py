from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.errors import ValidationError


@dataclass(frozen=True)
class UserOwner:
    user_id: int

    def __post_init__(self):
        if self.user_id is None:
            raise ValidationError("user_id is required")

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class SessionOwner:
    session_id: str

    def __post_init__(self):
        if not self.session_id:
            raise ValidationError("session_id is required")

    @property
    def key(self) -> str:
        return f"session:{self.session_id}"


# a cart belongs to exactly one of these; "both" or "neither" can't be built
Owner = Union[UserOwner, SessionOwner]


def owner_for(user_id: Optional[int] = None, session_id: Optional[str] = None) -> Owner:
    if user_id is not None and session_id:
        raise ValidationError("Pass either user_id or session_id, not both")
    if user_id is not None:
        return UserOwner(user_id)
    if session_id:
        return SessionOwner(session_id)
    raise ValidationError("Either user_id or session_id is required")


def config_key(
    product_id: int,
    variant_id: Optional[int],
    selected_length: Optional[str],
    selected_color: Optional[str],
) -> str:
    """
    Canonical string for a purchasable configuration.

    NULL parts are written as "~" so two lines differing only in a missing
    option still collide on the unique index (SQL treats NULLs as distinct).
    """

    def part(v):
        return "~" if v is None else str(v).replace("|", "\\|")

    return "|".join(
        [part(product_id), part(variant_id), part(selected_length), part(selected_color)]
    )


class CartLine(Base):
    __tablename__ = "cart_lines"
    __table_args__ = (
        UniqueConstraint("owner_key", "config_key", name="uq_cart_line_owner_config"),
        CheckConstraint(
            "(user_id IS NULL) != (session_id IS NULL)", name="ck_cart_line_one_owner"
        ),
        CheckConstraint("quantity > 0", name="ck_cart_line_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    session_id = Column(String(128), nullable=True, index=True)
    owner_key = Column(String(160), nullable=False, index=True)
    config_key = Column(String(400), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    selected_length = Column(String(32), nullable=True)
    selected_color = Column(String(64), nullable=True)
    price_snapshot_kobo = Column(Integer, nullable=False, default=0)  # display only
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    product = relationship("Product")
    variant = relationship("ProductVariant")

    @property
    def owner(self) -> Owner:
        if self.user_id is not None:
            return UserOwner(self.user_id)
        return SessionOwner(self.session_id)
