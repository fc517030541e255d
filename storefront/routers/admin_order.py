import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.db import get_db
from storefront.deps import require_admin
from storefront.exceptions import NotFound, ValidationError
from storefront.models.order import OrderStatus
from storefront.schemas import OrderStatusInput, parse_input
from storefront.services import orders as order_service
from storefront.ui import back, flash, flash_errors, listing_query, redirect, render_page

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)

STATUS_LABELS = {status.value: status.label for status in OrderStatus}


@router.get("/admin/orders")
async def admin_orders_list(request: Request, db: Session = Depends(get_db)):
    query = listing_query(
        request, sort="created_at", direction="desc", perPage=settings.ADMIN_PER_PAGE
    )

    orders = order_service.admin_list_orders(
        db,
        search=query.search,
        status=query.status,
        sort=query.sort,
        direction=query.direction,
        page=query.page,
        per_page=query.per_page,
    )

    return render_page(
        request,
        "Admin/Orders/Index",
        {
            "orders": orders.to_props(),
            "filters": {
                "search": query.search,
                "sort": query.sort,
                "direction": query.direction,
                "perPage": query.per_page,
                "status": query.status,
                "page": query.page,
            },
            "statuses": STATUS_LABELS,
            "can": {"create": False, "edit": True, "delete": True},
        },
    )


@router.get("/admin/orders/{order_id}")
async def admin_order_show(order_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        order = order_service.find_order_with_items(db, order_id)
    except NotFound:
        raise HTTPException(status_code=404)

    return render_page(request, "Admin/Orders/Show", {"order": order.to_resource()})


@router.api_route("/admin/orders/{order_id}", methods=["PUT", "PATCH"])
async def admin_order_update_status(order_id: int, request: Request, db: Session = Depends(get_db)):
    form = await request.form()
    try:
        data = parse_input(OrderStatusInput, dict(form))
        order_service.update_status(db, order_id, data.status)
    except ValidationError as exc:
        flash_errors(request, exc.errors)
        return back(request, f"/admin/orders/{order_id}")
    except NotFound:
        raise HTTPException(status_code=404)
    except Exception:
        logger.exception("Order update failed for order %s", order_id)
        flash(request, "error", "Failed to update order. Please try again.")
        return back(request, f"/admin/orders/{order_id}")

    flash(request, "success", "Order updated successfully")
    return back(request, f"/admin/orders/{order_id}")


@router.delete("/admin/orders/{order_id}")
async def admin_order_delete(order_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        order_service.delete_order(db, order_id)
    except NotFound:
        raise HTTPException(status_code=404)
    except Exception:
        logger.exception("Order deletion failed for order %s", order_id)
        flash(request, "error", "Failed to delete order. Please try again.")
        return back(request, "/admin/orders")

    flash(request, "success", "Order deleted successfully")
    return redirect("/admin/orders")
