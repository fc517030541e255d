import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps import get_session_user, hash_password, login_session, verify_password
from storefront.exceptions import ValidationError
from storefront.models.user import User
from storefront.schemas import RegisterInput, parse_input
from storefront.ui import flash_errors, redirect, render_page

router = APIRouter(tags=["auth"])

logger = logging.getLogger(__name__)


@router.get("/login")
async def login_form(request: Request):
    if get_session_user(request):
        return redirect("/dashboard")
    return render_page(request, "Auth/Login")


@router.post("/login")
async def login_user(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    email = str(form.get("email", "")).strip().lower()
    password = str(form.get("password", ""))

    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        flash_errors(request, {"email": "These credentials do not match our records."})
        return redirect("/login")

    login_session(request, user)
    logger.info("User %s logged in", user.id)
    return redirect("/dashboard")


@router.get("/register")
async def register_form(request: Request):
    if get_session_user(request):
        return redirect("/dashboard")
    return render_page(request, "Auth/Register")


@router.post("/register")
async def register_user(request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    try:
        data = parse_input(RegisterInput, dict(form))
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return redirect("/register")

    email = data.email.lower()
    if db.execute(select(User.id).where(User.email == email)).scalar_one_or_none():
        flash_errors(request, {"email": "The email has already been taken."})
        return redirect("/register")

    user = User(name=data.name, email=email, password_hash=hash_password(data.password))
    db.add(user)
    db.commit()

    login_session(request, user)
    return redirect("/dashboard")


@router.post("/logout")
async def logout_user(request: Request):
    request.session.pop("user", None)
    return redirect("/")
