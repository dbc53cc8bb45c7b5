# cartengine/domain/errors.py


class CartEngineError(Exception):
    """Bazowy blad domeny koszyka/zamowien. Komunikat jest bezpieczny dla klienta."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CartEngineError, ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NotFoundError(CartEngineError, LookupError):
    pass


class InapplicableDiscountError(CartEngineError):
    pass


class InsufficientStockError(CartEngineError):
    def __init__(self, product_name: str):
        super().__init__(f"Insufficient stock for {product_name}")
        self.product_name = product_name


class EmptyCartError(CartEngineError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class ConcurrencyConflictError(CartEngineError):
    pass


class AccessDeniedError(CartEngineError, PermissionError):
    pass
