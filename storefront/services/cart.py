import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.exceptions import Forbidden, InsufficientStock, NotFound, OutOfStock
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.services.catalog import ProductSnapshot
from storefront.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CartLine:
    id: int
    product_id: int
    quantity: int
    product: ProductSnapshot

    @property
    def line_total(self) -> Decimal:
        return (self.product.price * self.quantity).quantize(CENTS)


@dataclass
class CartView:
    items: list[CartLine] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0.00"))

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self.items)


def load_cart(db: Session, user_id: int) -> list[CartItem]:
    """The user's cart rows with their products, oldest first."""
    return list(
        db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .options(selectinload(CartItem.product))
            .order_by(CartItem.id.asc())
        )
        .scalars()
        .all()
    )


def _owned_item(db: Session, user_id: int, cart_item_id: int) -> CartItem:
    item = db.get(CartItem, cart_item_id)
    if not item:
        raise NotFound("CartItem", cart_item_id)
    if item.user_id != user_id:
        raise Forbidden(user_id, f"cart_item:{cart_item_id}")
    return item


def add_item(db: Session, user_id: int, product_id: int, quantity: int) -> CartLine:
    """
    Add `quantity` of a product to the user's cart.

    Repeated adds of the same product accumulate on the existing row, and the
    accumulated quantity is checked against live stock.
    """
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product", product_id)

    if product.stock_quantity == 0:
        raise OutOfStock(product.id, product.name)

    if product.stock_quantity < quantity:
        raise InsufficientStock(product.id, product.name, quantity, product.stock_quantity)

    existing = db.execute(
        select(CartItem).where(
            CartItem.user_id == user_id, CartItem.product_id == product_id
        )
    ).scalars().first()

    if existing and product.stock_quantity < existing.quantity + quantity:
        raise InsufficientStock(
            product.id, product.name, existing.quantity + quantity, product.stock_quantity
        )

    with unit_of_work(db) as uow:
        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(user_id=user_id, product_id=product.id, quantity=quantity)
            uow.session.add(item)
        uow.session.flush()

    logger.info(
        "User %s added %s x product %s to cart (line qty %s)",
        user_id,
        quantity,
        product.id,
        item.quantity,
    )
    return CartLine(item.id, product.id, item.quantity, ProductSnapshot.of(product))


def update_item(db: Session, user_id: int, cart_item_id: int, quantity: int) -> CartLine:
    item = _owned_item(db, user_id, cart_item_id)
    product = item.product

    if product.stock_quantity < quantity:
        raise InsufficientStock(product.id, product.name, quantity, product.stock_quantity)

    with unit_of_work(db):
        item.quantity = quantity

    return CartLine(item.id, product.id, item.quantity, ProductSnapshot.of(product))


def remove_item(db: Session, user_id: int, cart_item_id: int) -> None:
    item = _owned_item(db, user_id, cart_item_id)
    with unit_of_work(db) as uow:
        uow.session.delete(item)
    logger.info("User %s removed cart item %s", user_id, cart_item_id)


def list_items(db: Session, user_id: int) -> CartView:
    return CartView(
        [
            CartLine(item.id, item.product_id, item.quantity, ProductSnapshot.of(item.product))
            for item in load_cart(db, user_id)
        ]
    )
