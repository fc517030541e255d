from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.deps import get_notifications, get_session_user
from storefront.exceptions import CheckoutFailed, EmptyCart, InsufficientStock, ValidationError
from storefront.schemas import OrderStoreInput, parse_input
from storefront.services import checkout as checkout_service
from storefront.services import orders as order_service
from storefront.services.notifications import NotificationQueue
from storefront.ui import back, flash, flash_errors, redirect, render_page

router = APIRouter(tags=["orders"])


@router.get("/orders")
async def order_history(request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return redirect("/login")

    if user.get("is_admin"):
        raise HTTPException(
            status_code=403,
            detail="Admins should access orders through the admin panel.",
        )

    try:
        page = max(1, int(request.query_params.get("page", 1)))
    except ValueError:
        page = 1

    orders = order_service.list_user_orders(
        db, user["id"], page=page, per_page=settings.ORDERS_PER_PAGE
    )
    return render_page(
        request,
        "Orders/Index",
        {"orders": orders.map(lambda order: order.to_resource()).to_props()},
    )


@router.post("/orders")
async def order_store(
    request: Request,
    db: Session = Depends(get_db),
    notifications: NotificationQueue = Depends(get_notifications),
):
    user = get_session_user(request)
    if not user:
        return redirect("/login")

    form = await request.form()
    try:
        data = parse_input(OrderStoreInput, dict(form))
        checkout_service.store_order(
            db, user["id"], data.payment_reference, notifications=notifications
        )
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, "/cart")
    except EmptyCart as exc:
        flash(request, "error", exc.message)
        return back(request, "/cart")
    except InsufficientStock as exc:
        flash(request, "error", exc.checkout_message)
        return back(request, "/cart")
    except CheckoutFailed as exc:
        flash(request, "error", exc.message)
        return back(request, "/cart")

    flash(request, "success", "Order placed successfully!")
    return redirect("/orders")
