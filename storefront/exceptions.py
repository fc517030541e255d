"""
Business errors raised by the storefront services.

Routers translate these into flash messages, field errors or HTTP status
codes; services never return partial state alongside them.
"""


class StorefrontError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, etc.)
        field: Form field the error belongs to, or None for banner errors
    """

    field: str | None = None

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class NotFound(StorefrontError):
    """Raised when a referenced row does not exist."""

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class Forbidden(StorefrontError):
    """Raised when a user touches a resource they do not own."""

    def __init__(self, user_id: int, resource: str):
        super().__init__(
            "This action is unauthorized.",
            details={"user_id": user_id, "resource": resource},
        )
        self.user_id = user_id
        self.resource = resource


class StockError(StorefrontError):
    """Base exception for stock related failures."""

    field = "quantity"


class OutOfStock(StockError):
    def __init__(self, product_id: int, product_name: str):
        super().__init__(
            "Product is out of stock.",
            details={"product_id": product_id, "product_name": product_name},
        )
        self.product_id = product_id
        self.product_name = product_name


class InsufficientStock(StockError):
    """
    Raised when the requested quantity exceeds the live stock.

    Cart operations show the short field message; checkout names the product.
    """

    def __init__(
        self,
        product_id: int,
        product_name: str,
        requested: int,
        available: int,
    ):
        super().__init__(
            "Insufficient stock available.",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available

    @property
    def checkout_message(self) -> str:
        return f"Insufficient stock for {self.product_name}."


class EmptyCart(StorefrontError):
    def __init__(self, user_id: int):
        super().__init__("Your cart is empty.", details={"user_id": user_id})
        self.user_id = user_id


class PaymentNotCompleted(StorefrontError):
    def __init__(self, session_id: str, payment_status: str | None):
        super().__init__(
            "Payment was not completed.",
            details={"session_id": session_id, "payment_status": payment_status},
        )
        self.session_id = session_id
        self.payment_status = payment_status


class PaymentGatewayError(StorefrontError):
    """Raised when the payment provider cannot be reached or rejects a call."""


class CheckoutFailed(StorefrontError):
    """Wraps any infrastructure failure raised while placing an order."""

    def __init__(self, reason: str, cause: Exception | None = None):
        super().__init__(reason, details={"cause": repr(cause)} if cause else None)
        self.cause = cause


class ValidationError(StorefrontError):
    """
    Malformed input for a create/update operation.

    `errors` maps each offending field to its first message.
    """

    def __init__(self, errors: dict[str, str]):
        super().__init__("The given data was invalid.", details={"errors": errors})
        self.errors = errors
