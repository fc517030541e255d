import enum
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.services.orders import OrderView


class SalesPeriod(str, enum.Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


@dataclass
class ProductSales:
    product_id: int | None
    product_name: str
    quantity: int = 0
    revenue: Decimal = Decimal("0.00")


@dataclass
class SalesReport:
    period: SalesPeriod
    orders: list[OrderView] = field(default_factory=list)
    total_sales: Decimal = Decimal("0.00")
    total_orders: int = 0
    product_sales: list[ProductSales] = field(default_factory=list)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def period_bounds(period: SalesPeriod, now: datetime) -> tuple[datetime, datetime] | None:
    """Half-open [start, end) window for a period, or None for all time."""
    today = datetime.combine(now.date(), time.min)
    if period is SalesPeriod.TODAY:
        return today, today + timedelta(days=1)
    if period is SalesPeriod.WEEK:
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=7)
    if period is SalesPeriod.MONTH:
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end
    return None


def aggregate_product_sales(orders: list[OrderView]) -> list[ProductSales]:
    """
    Group every order line by product, summing quantity and revenue.

    The result is ordered by quantity, highest first; products with equal
    quantities keep the order in which they were first seen.
    """
    grouped: dict[int | None, ProductSales] = {}
    for order in orders:
        for line in order.items:
            row = grouped.get(line.product_id)
            if row is None:
                row = grouped[line.product_id] = ProductSales(line.product_id, line.product_name)
            row.quantity += line.quantity
            row.revenue += line.price * line.quantity
    return sorted(grouped.values(), key=lambda row: row.quantity, reverse=True)


def sales_report(
    db: Session,
    period: SalesPeriod = SalesPeriod.TODAY,
    now: datetime | None = None,
) -> SalesReport:
    stmt = (
        select(Order)
        .where(Order.status == OrderStatus.COMPLETED)
        .options(
            selectinload(Order.user),
            selectinload(Order.items).selectinload(OrderItem.product),
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    bounds = period_bounds(period, now or utcnow())
    if bounds:
        start, end = bounds
        stmt = stmt.where(Order.created_at >= start, Order.created_at < end)

    orders = [OrderView.of(order) for order in db.execute(stmt).scalars().all()]
    return SalesReport(
        period=period,
        orders=orders,
        total_sales=sum((order.total_amount for order in orders), Decimal("0.00")),
        total_orders=len(orders),
        product_sales=aggregate_product_sales(orders),
    )
