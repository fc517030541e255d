from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.models.user import User
from storefront.services.notifications import NotificationQueue
from storefront.services.payment import PaymentGateway


password_context = CryptContext(
    schemes=["pbkdf2_sha256", "bcrypt"],
    default="pbkdf2_sha256",
    deprecated="auto",
)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return password_context.verify(plain, hashed)
    except ValueError:
        return False


def hash_password(password: str) -> str:
    return password_context.hash(password)


def get_session_user(request: Request) -> dict | None:
    return request.session.get("user")


def login_session(request: Request, user: User) -> None:
    request.session["user"] = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_admin": bool(user.is_admin),
    }


def is_admin(request: Request) -> bool:
    user = get_session_user(request)
    return bool(user and user.get("is_admin"))


def require_admin(request: Request, db: Session = Depends(get_db)) -> dict:
    """Dependency for admin routes: 403 unless the session user is an admin."""
    user = get_session_user(request)
    if not user:
        raise HTTPException(status_code=403)
    row = db.get(User, user["id"])
    if not row or not row.is_admin:
        raise HTTPException(status_code=403)
    return user


def get_notifications(request: Request) -> NotificationQueue:
    return request.app.state.notifications


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway
