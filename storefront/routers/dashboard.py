from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps import get_session_user
from storefront.services import orders as order_service
from storefront.ui import redirect, render_page

router = APIRouter(tags=["dashboard"])


@router.get("/")
async def home():
    return redirect("/products")


@router.get("/dashboard")
async def dashboard(request: Request, db: Session = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return redirect("/login")

    if user.get("is_admin"):
        return redirect("/admin/dashboard")

    recent = order_service.recent_orders(db, user["id"], limit=5)
    return render_page(
        request,
        "Dashboard",
        {
            "isAdmin": False,
            "recentOrders": [order.to_resource() for order in recent],
        },
    )
