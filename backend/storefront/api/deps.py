from typing import Optional
from uuid import uuid4

from fastapi import Header, HTTPException, Request, Response

from storefront.adapters.notifications import LogNotificationDispatcher
from storefront.adapters.proof_storage import LocalProofStorage
from storefront.config import settings
from storefront.models.cart_line import Owner, SessionOwner, UserOwner


def get_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> Optional[int]:
    """Authenticated user id, set by the auth layer in front of this service."""
    return x_user_id


def require_user_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Login required")
    return x_user_id


def require_operator(x_operator_id: Optional[str] = Header(None, alias="X-Operator-Id")) -> str:
    if not x_operator_id:
        raise HTTPException(status_code=401, detail="Operator credentials required")
    return x_operator_id


def get_session_id(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def resolve_owner(request: Request, user_id: Optional[int]) -> Optional[Owner]:
    """Owner for read paths: the user if logged in, else the cookie session, else nobody."""
    if user_id is not None:
        return UserOwner(user_id)
    session_id = get_session_id(request)
    if session_id:
        return SessionOwner(session_id)
    return None


def resolve_owner_for_write(request: Request, response: Response, user_id: Optional[int]) -> Owner:
    owner = resolve_owner(request, user_id)
    if owner is not None:
        return owner
    session_id = uuid4().hex
    response.set_cookie(
        settings.SESSION_COOKIE_NAME, session_id, httponly=True, samesite="Lax"
    )
    return SessionOwner(session_id)


def forget_session(response: Response) -> None:
    """Drop the anonymous cart cookie once its lines belong to a user."""
    response.delete_cookie(settings.SESSION_COOKIE_NAME, httponly=True, samesite="Lax")


def get_proof_storage() -> LocalProofStorage:
    return LocalProofStorage.from_settings()


def get_notifier() -> LogNotificationDispatcher:
    return LogNotificationDispatcher()
