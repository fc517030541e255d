import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, cast, or_, select
from sqlalchemy.orm import Session, selectinload

from storefront.exceptions import NotFound
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.user import User
from storefront.services.catalog import ProductSnapshot
from storefront.services.pagination import Page, paginate
from storefront.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

ADMIN_SORTABLE = {
    "id": Order.id,
    "total_amount": Order.total_amount,
    "status": Order.status,
    "created_at": Order.created_at,
}


def order_number(order_id: int) -> str:
    return "#" + str(order_id).zfill(6)


@dataclass(frozen=True)
class OrderLine:
    id: int
    product_id: int | None
    quantity: int
    price: Decimal
    product: ProductSnapshot | None = None

    @property
    def total_price(self) -> Decimal:
        return self.price * self.quantity

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else "Product not found"


@dataclass(frozen=True)
class OrderView:
    id: int
    user_id: int
    total_amount: Decimal
    status: OrderStatus
    payment_reference: str | None
    created_at: datetime | None
    updated_at: datetime | None
    customer_name: str = "Guest"
    customer_email: str = "N/A"
    items: list[OrderLine] = field(default_factory=list)

    @property
    def order_number(self) -> str:
        return order_number(self.id)

    @classmethod
    def of(cls, order: Order) -> "OrderView":
        user = order.user
        return cls(
            id=order.id,
            user_id=order.user_id,
            total_amount=Decimal(order.total_amount),
            status=OrderStatus(order.status),
            payment_reference=order.payment_reference,
            created_at=order.created_at,
            updated_at=order.updated_at,
            customer_name=user.name if user else "Guest",
            customer_email=user.email if user else "N/A",
            items=[
                OrderLine(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price=Decimal(item.price),
                    product=ProductSnapshot.of(item.product) if item.product else None,
                )
                for item in order.items
            ],
        )

    def to_resource(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "status": self.status.value,
            "total_amount": self.total_amount,
            "payment_reference": self.payment_reference,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "user": {
                "id": self.user_id,
                "name": self.customer_name,
                "email": self.customer_email,
            },
            "order_items": [
                {
                    "id": line.id,
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "product_image": line.product.image_url if line.product else None,
                    "quantity": line.quantity,
                    "price": line.price,
                    "total_price": line.total_price,
                    "product": line.product.to_dict() if line.product else None,
                }
                for line in self.items
            ],
        }

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "total_amount": self.total_amount,
            "status": self.status.value,
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M:%S") if self.created_at else None,
            "items_count": len(self.items),
        }


def _with_items(stmt):
    return stmt.options(
        selectinload(Order.user),
        selectinload(Order.items).selectinload(OrderItem.product),
    )


def find_order_with_items(db: Session, order_id: int) -> OrderView:
    order = db.execute(_with_items(select(Order).where(Order.id == order_id))).scalar_one_or_none()
    if not order:
        raise NotFound("Order", order_id)
    return OrderView.of(order)


def list_user_orders(db: Session, user_id: int, page: int = 1, per_page: int = 10) -> Page:
    stmt = _with_items(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return paginate(db, stmt, page, per_page).map(OrderView.of)


def recent_orders(db: Session, user_id: int, limit: int = 5) -> list[OrderView]:
    rows = (
        db.execute(
            _with_items(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .limit(limit)
            )
        )
        .scalars()
        .all()
    )
    return [OrderView.of(order) for order in rows]


def admin_list_orders(
    db: Session,
    search: str = "",
    status: str = "",
    sort: str = "created_at",
    direction: str = "desc",
    page: int = 1,
    per_page: int = 10,
) -> Page:
    stmt = select(Order).outerjoin(User, User.id == Order.user_id)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                cast(Order.id, String).like(pattern),
                User.name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    if status in OrderStatus._value2member_map_:
        stmt = stmt.where(Order.status == OrderStatus(status))

    column = ADMIN_SORTABLE.get(sort, Order.created_at)
    stmt = stmt.order_by(column.asc() if direction == "asc" else column.desc(), Order.id.desc())

    result = paginate(
        db,
        _with_items(stmt),
        page,
        per_page,
        {
            "search": search,
            "sort": sort,
            "direction": direction,
            "perPage": per_page,
            "status": status,
            "page": page,
        },
    )
    return result.map(lambda order: OrderView.of(order).to_row())


def update_status(db: Session, order_id: int, status: OrderStatus) -> OrderView:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order", order_id)

    previous = order.status
    with unit_of_work(db):
        order.status = status
    logger.info("Order %s status %s -> %s", order_id, getattr(previous, "value", previous), status.value)
    return find_order_with_items(db, order_id)


def delete_order(db: Session, order_id: int) -> None:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order", order_id)

    with unit_of_work(db) as uow:
        uow.session.delete(order)
    logger.info("Order %s deleted", order_id)
