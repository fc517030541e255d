import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.deps import get_gateway, get_notifications, get_session_user
from storefront.exceptions import (
    CheckoutFailed,
    EmptyCart,
    Forbidden,
    InsufficientStock,
    NotFound,
    PaymentNotCompleted,
    StockError,
    ValidationError,
)
from storefront.schemas import CartAddInput, CartUpdateInput, CheckoutCompleteInput, parse_input
from storefront.services import cart as cart_service
from storefront.services import checkout as checkout_service
from storefront.services.notifications import NotificationQueue
from storefront.services.payment import PaymentGateway
from storefront.ui import back, flash, flash_errors, redirect, render_page

router = APIRouter(tags=["cart"])

logger = logging.getLogger(__name__)


def _login_redirect():
    return redirect("/login")


def _cart_props(view: cart_service.CartView) -> dict:
    return {
        "cartItems": [
            {
                "id": line.id,
                "product_id": line.product_id,
                "quantity": line.quantity,
                "product": line.product,
                "line_total": line.line_total,
            }
            for line in view.items
        ],
        "total": view.subtotal,
        "cart_count": view.count,
    }


@router.get("/cart")
async def cart_view(request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    view = cart_service.list_items(db, user["id"])
    return render_page(request, "Cart/Index", _cart_props(view))


@router.post("/cart")
async def cart_add(request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    form = await request.form()
    try:
        data = parse_input(CartAddInput, dict(form))
        cart_service.add_item(db, user["id"], data.product_id, data.quantity)
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, "/products")
    except NotFound:
        flash_errors(request, {"product_id": "The selected product id is invalid."})
        return back(request, "/products")
    except StockError as exc:
        flash_errors(request, {exc.field: exc.message})
        return back(request, "/products")

    flash(request, "success", "Product added to cart!")
    return back(request, "/products")


@router.patch("/cart/{cart_item_id}")
async def cart_update(cart_item_id: int, request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    form = await request.form()
    try:
        data = parse_input(CartUpdateInput, dict(form))
        cart_service.update_item(db, user["id"], cart_item_id, data.quantity)
    except Forbidden:
        raise HTTPException(status_code=403)
    except NotFound:
        raise HTTPException(status_code=404)
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, "/cart")
    except InsufficientStock as exc:
        flash_errors(request, {exc.field: exc.message})
        return back(request, "/cart")

    flash(request, "success", "Cart updated!")
    return back(request, "/cart")


@router.delete("/cart/{cart_item_id}")
async def cart_remove(cart_item_id: int, request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    try:
        cart_service.remove_item(db, user["id"], cart_item_id)
    except Forbidden:
        raise HTTPException(status_code=403)
    except NotFound:
        raise HTTPException(status_code=404)

    flash(request, "success", "Item removed from cart!")
    return back(request, "/cart")


@router.post("/cart/checkout")
async def cart_checkout(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    base_url = settings.BASE_URL.rstrip("/")
    try:
        checkout = await checkout_service.begin_checkout(
            db,
            user["id"],
            gateway,
            success_url=f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/checkout/cancel",
        )
    except EmptyCart as exc:
        flash(request, "error", exc.message)
        return back(request, "/cart")
    except InsufficientStock as exc:
        flash(request, "error", exc.checkout_message)
        return back(request, "/cart")
    except CheckoutFailed as exc:
        flash(request, "error", exc.message)
        return back(request, "/cart")

    return redirect(checkout.url)


@router.get("/checkout/success")
async def checkout_success(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    notifications: NotificationQueue = Depends(get_notifications),
):
    user = get_session_user(request)
    if not user:
        return _login_redirect()

    try:
        data = parse_input(
            CheckoutCompleteInput, {"session_id": request.query_params.get("session_id", "")}
        )
    except ValidationError:
        flash(request, "error", "Invalid session.")
        return redirect("/cart")

    try:
        await checkout_service.complete_checkout(
            db, user["id"], data.session_id, gateway, notifications=notifications
        )
    except PaymentNotCompleted as exc:
        flash(request, "error", exc.message)
        return redirect("/cart")
    except EmptyCart:
        flash(request, "info", "Your cart is already empty.")
        return redirect("/products")
    except InsufficientStock as exc:
        flash(request, "error", exc.checkout_message)
        return redirect("/cart")
    except CheckoutFailed as exc:
        flash(request, "error", exc.message)
        return redirect("/cart")

    flash(request, "success", "Order placed successfully! Payment confirmed.")
    return redirect("/products")


@router.get("/checkout/cancel")
async def checkout_cancel(request: Request):
    flash(request, "info", "Checkout cancelled. Your items are still in your cart.")
    return redirect("/cart")
