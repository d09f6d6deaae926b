"""Domain exceptions raised by the catalog, cart, order and checkout layers."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ProductNotFoundError(StorefrontError):
    """Raised when a product id doesn't exist in the catalog."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with id {product_id} not found")


class InsufficientStockError(StorefrontError):
    """Raised when a requested quantity doesn't fit the remaining stock.

    ``removed`` is set when the cart line was dropped because the product
    is out of stock entirely.
    """

    def __init__(self, product_name: str, available: int = 0, requested: int = 0, removed: bool = False):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        self.removed = removed
        super().__init__(f"Don't have sufficient stock for {product_name}.")


class EmptyCartError(StorefrontError):
    """Raised when checking out a cart with no lines."""

    def __init__(self):
        super().__init__("Your cart is empty.")


class OrderValidationError(StorefrontError):
    """Raised when an admin order edit fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))
