from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from storefront.api.deps import (
    forget_session,
    get_session_id,
    get_user_id,
    require_user_id,
    resolve_owner,
    resolve_owner_for_write,
)
from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import NotFoundError, StorefrontError
from storefront.schemas.cart_schema import AddLineIn, MergeOut, UpdateQuantityIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", summary="Get cart")
def get_cart(
    request: Request,
    response: Response,
    user_id: Optional[int] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    session_id = get_session_id(request)
    try:
        # a logged-in user still carrying an anonymous cart sees it folded in
        if user_id is not None and session_id:
            svc.merge_session_into_user(session_id, user_id)
            forget_session(response)
        return svc.summary(resolve_owner(request, user_id)).model_dump()
    except StorefrontError as e:
        raise http_error(e)


@router.post("/items", summary="Add item to cart", status_code=201)
def add_item(
    payload: AddLineIn,
    request: Request,
    response: Response,
    user_id: Optional[int] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        owner = resolve_owner_for_write(request, response, user_id)
        line = svc.add_line(
            owner,
            payload.product_id,
            variant_id=payload.variant_id,
            quantity=payload.quantity,
            selected_length=payload.selected_length,
            selected_color=payload.selected_color,
        )
    except StorefrontError as e:
        raise http_error(e)
    return {"item_id": line.id, "quantity": line.quantity, "variant_id": line.variant_id}


@router.patch("/items/{item_id}", summary="Change line quantity")
def update_item(
    item_id: int,
    payload: UpdateQuantityIn,
    request: Request,
    user_id: Optional[int] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    owner = resolve_owner(request, user_id)
    try:
        if owner is None:
            raise NotFoundError(f"Cart line {item_id} not found", identifier=item_id)
        svc.update_quantity(owner, item_id, payload.quantity)
        return svc.summary(owner).model_dump()
    except StorefrontError as e:
        raise http_error(e)


@router.delete("/items/{item_id}", summary="Remove item")
def remove_item(
    item_id: int,
    request: Request,
    user_id: Optional[int] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    owner = resolve_owner(request, user_id)
    try:
        if owner is not None:
            svc.remove_line(owner, item_id)
    except StorefrontError as e:
        raise http_error(e)
    return {"ok": True}


@router.delete("", summary="Clear cart")
def clear_cart(
    request: Request,
    user_id: Optional[int] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    owner = resolve_owner(request, user_id)
    removed = svc.clear(owner) if owner is not None else 0
    return {"ok": True, "removed": removed}


@router.post("/merge", summary="Merge the anonymous cart into the logged-in user's cart")
def merge_cart(
    request: Request,
    response: Response,
    user_id: int = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    session_id = get_session_id(request)
    if not session_id:
        return MergeOut(moved=0, merged=0).model_dump()
    svc = CartService(db)
    try:
        result = svc.merge_session_into_user(session_id, user_id)
    except StorefrontError as e:
        raise http_error(e)
    forget_session(response)
    return MergeOut(moved=result.moved, merged=result.merged).model_dump()
