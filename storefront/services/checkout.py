"""
Cart to order conversion.

`place_order` is the single unit of atomicity in the storefront: it writes
the order and its lines, decrements stock and clears the cart inside one
transaction. Low stock notifications are handed to the queue only after
that transaction commits.

Both entry points end up in `place_order`:

* the hosted flow (`begin_checkout` then `complete_checkout`) creates a
  payment session first and converts the cart once the provider reports the
  session as paid;
* the pre-confirmed flow (`store_order`) receives an opaque payment
  reference and converts the cart immediately.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.exceptions import (
    CheckoutFailed,
    EmptyCart,
    InsufficientStock,
    PaymentNotCompleted,
    StorefrontError,
)
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.product import Product
from storefront.services.cart import load_cart
from storefront.services.catalog import ProductSnapshot
from storefront.services.notifications import LowStockNotification, NotificationQueue
from storefront.services.orders import OrderView, find_order_with_items
from storefront.services.payment import (
    LineItem,
    PaymentGateway,
    PaymentSession,
    to_minor_units,
)
from storefront.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

# stock levels in (0, LOW_STOCK_THRESHOLD] after a purchase trigger a restock mail
LOW_STOCK_THRESHOLD = 10

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CheckoutRedirect:
    session_id: str
    url: str


def is_low_stock(stock_quantity: int) -> bool:
    return 0 < stock_quantity <= LOW_STOCK_THRESHOLD


def validate_cart(db: Session, user_id: int) -> list[CartItem]:
    """
    Load the cart and check it can be converted, before anything is written.

    Raises:
        EmptyCart: the user has nothing in the cart
        InsufficientStock: a line asks for more than the product has left
    """
    cart_items = load_cart(db, user_id)
    if not cart_items:
        raise EmptyCart(user_id)

    for cart_item in cart_items:
        product = cart_item.product
        if product.stock_quantity < cart_item.quantity:
            raise InsufficientStock(
                product.id, product.name, cart_item.quantity, product.stock_quantity
            )
    return cart_items


def cart_total(cart_items: list[CartItem]) -> Decimal:
    total = sum(
        (Decimal(item.product.price) * item.quantity for item in cart_items),
        Decimal("0.00"),
    )
    return total.quantize(CENTS)


def _decrement_stock(db: Session, product: Product, quantity: int) -> int:
    # guarded decrement; a concurrent checkout that already took the stock
    # makes this match zero rows instead of driving stock negative
    result = db.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    db.refresh(product, attribute_names=["stock_quantity"])
    if result.rowcount != 1:
        raise InsufficientStock(product.id, product.name, quantity, product.stock_quantity)
    return product.stock_quantity


def place_order(
    db: Session,
    user_id: int,
    notifications: NotificationQueue | None = None,
    payment_reference: str | None = None,
) -> OrderView:
    """
    Convert the user's cart into a completed order.

    All writes happen in one transaction. Business rule violations are raised
    as-is; any other failure is rolled back and reported as CheckoutFailed.
    """
    cart_items = validate_cart(db, user_id)
    total = cart_total(cart_items)

    try:
        with unit_of_work(db) as uow:
            order = Order(
                user_id=user_id,
                total_amount=total,
                status=OrderStatus.COMPLETED,
                payment_reference=payment_reference,
            )
            uow.session.add(order)
            uow.session.flush()

            low_stock: list[ProductSnapshot] = []
            for cart_item in cart_items:
                product = cart_item.product
                uow.session.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=product.id,
                        quantity=cart_item.quantity,
                        price=product.price,
                    )
                )

                new_stock = _decrement_stock(uow.session, product, cart_item.quantity)
                if is_low_stock(new_stock):
                    low_stock.append(ProductSnapshot.of(product))

                uow.session.delete(cart_item)
            uow.session.flush()

            if notifications is not None:
                for snapshot in low_stock:
                    uow.on_commit(
                        lambda snapshot=snapshot: notifications.enqueue(
                            LowStockNotification(snapshot)
                        )
                    )
    except StorefrontError:
        raise
    except Exception as exc:
        logger.exception("Checkout failed for user %s", user_id)
        raise CheckoutFailed(f"Failed to process order: {exc}", cause=exc) from exc

    logger.info(
        "Order %s placed by user %s: %s line(s), total %s, %s low stock alert(s)",
        order.id,
        user_id,
        len(cart_items),
        total,
        len(low_stock),
    )
    return find_order_with_items(db, order.id)


def store_order(
    db: Session,
    user_id: int,
    payment_reference: str,
    notifications: NotificationQueue | None = None,
) -> OrderView:
    """Place an order for a payment that was already confirmed elsewhere."""
    return place_order(
        db, user_id, notifications=notifications, payment_reference=payment_reference
    )


def _payment_used(db: Session, payment_reference: str) -> bool:
    return (
        db.execute(select(Order.id).where(Order.payment_reference == payment_reference)).first()
        is not None
    )


async def begin_checkout(
    db: Session,
    user_id: int,
    gateway: PaymentGateway,
    success_url: str,
    cancel_url: str,
) -> CheckoutRedirect:
    cart_items = validate_cart(db, user_id)

    line_items = [
        LineItem(
            name=item.product.name,
            description=item.product.description,
            unit_amount=to_minor_units(item.product.price),
            quantity=item.quantity,
        )
        for item in cart_items
    ]

    try:
        session = await gateway.create_session(
            line_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"user_id": user_id},
        )
    except Exception as exc:
        logger.exception("Payment session creation failed for user %s", user_id)
        raise CheckoutFailed(
            f"Failed to create checkout session: {exc}", cause=exc
        ) from exc

    if not session.url:
        raise CheckoutFailed("Failed to create checkout session: no redirect url")
    return CheckoutRedirect(session.id, session.url)


async def complete_checkout(
    db: Session,
    user_id: int,
    session_id: str,
    gateway: PaymentGateway,
    notifications: NotificationQueue | None = None,
) -> OrderView:
    """
    Finish a hosted checkout once the customer returns from the provider.

    Raises:
        PaymentNotCompleted: the provider does not report the session as paid
        CheckoutFailed: the session was opened for another user, or its
            payment already paid for an order
        EmptyCart: the cart is empty
    """
    try:
        session: PaymentSession = await gateway.retrieve_session(session_id)
    except Exception as exc:
        logger.exception("Payment session %s lookup failed", session_id)
        raise CheckoutFailed(f"Failed to process order: {exc}", cause=exc) from exc

    if not session.is_paid:
        raise PaymentNotCompleted(session_id, session.payment_status)

    if session.metadata.get("user_id") != str(user_id):
        logger.warning(
            "Payment session %s belongs to user %s, not user %s",
            session_id,
            session.metadata.get("user_id"),
            user_id,
        )
        raise CheckoutFailed("This payment session does not belong to your account.")

    reference = session.payment_intent or session.id
    if _payment_used(db, reference):
        logger.warning("Payment %s from session %s was already used", reference, session_id)
        raise CheckoutFailed("This payment has already been used.")

    order = place_order(db, user_id, notifications=notifications, payment_reference=reference)

    if session.amount_total is not None and session.amount_total != to_minor_units(order.total_amount):
        logger.warning(
            "Order %s total %s differs from paid amount %s (minor units) on session %s",
            order.id,
            order.total_amount,
            session.amount_total,
            session_id,
        )
    return order
