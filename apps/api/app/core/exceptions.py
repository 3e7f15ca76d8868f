"""Domain errors raised by services and rendered by the API layer."""

from fastapi import status


class DomainError(Exception):
    """Base class for business-rule violations surfaced to API callers."""

    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """A store-scoped resource does not exist (or belongs to another store)."""

    status_code = status.HTTP_404_NOT_FOUND


class EmptyCartError(DomainError):
    def __init__(self, message: str = "Your cart is empty") -> None:
        super().__init__(message)


class InsufficientStockError(DomainError):
    """Requested quantity exceeds the stock available for a line."""

    def __init__(self, product_name: str, available: int, variation_name: str | None = None) -> None:
        label = f"{product_name} ({variation_name})" if variation_name else product_name
        super().__init__(f"Insufficient stock for {label}. Available: {available}")
        self.product_name = product_name
        self.variation_name = variation_name
        self.available = available


class InvalidShippingSelectionError(DomainError):
    pass


class ProductUnavailableError(DomainError):
    pass


class CrossStoreReferenceError(DomainError):
    def __init__(self, message: str = "Product does not belong to this store") -> None:
        super().__init__(message)


class InvalidQuantityError(DomainError):
    def __init__(self, message: str = "Quantity must be at least 1") -> None:
        super().__init__(message)


class InvalidStatusTransitionError(DomainError):
    def __init__(self, kind: str, current: str, requested: str) -> None:
        super().__init__(f"Cannot change {kind} status from '{current}' to '{requested}'")
        self.kind = kind
        self.current = current
        self.requested = requested


class PaymentMethodUnavailableError(DomainError):
    def __init__(self, method: str) -> None:
        super().__init__(f"Payment method '{method}' is not available for this store")
        self.method = method


class WebhookVerificationError(DomainError):
    """Webhook payload failed signature or shape validation."""

    status_code = status.HTTP_400_BAD_REQUEST
