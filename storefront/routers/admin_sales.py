from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps import require_admin
from storefront.services import catalog as catalog_service
from storefront.services.sales import SalesPeriod, SalesReport, sales_report
from storefront.ui import render_page

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])


def report_props(report: SalesReport) -> dict:
    return {
        "orders": [order.to_resource() for order in report.orders],
        "totalSales": report.total_sales,
        "totalOrders": report.total_orders,
        "productSales": report.product_sales,
    }


@router.get("/admin/dashboard")
async def admin_dashboard(request: Request, db: Session = Depends(get_db)):
    report = sales_report(db, SalesPeriod.TODAY)
    props = report_props(report)

    return render_page(
        request,
        "Dashboard",
        {
            "isAdmin": True,
            "todayOrders": props["orders"],
            "totalSalesToday": props["totalSales"],
            "totalOrdersToday": props["totalOrders"],
            "productSales": props["productSales"],
            "lowStockProducts": catalog_service.low_stock_products(db),
            "totalProducts": catalog_service.count_products(db),
        },
    )


@router.get("/admin/sales")
async def admin_sales(request: Request, db: Session = Depends(get_db)):
    try:
        period = SalesPeriod(request.query_params.get("period", SalesPeriod.TODAY.value))
    except ValueError:
        period = SalesPeriod.TODAY

    report = sales_report(db, period)
    return render_page(
        request,
        "Sales/Index",
        {**report_props(report), "period": period.value},
    )
