# reagent_inventory/errors.py


class InventoryError(Exception):
    """Base class for errors shown to the user.

    Attributes:
        message: Human readable description, safe to display
        status_code: HTTP status used by the JSON API
    """
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """Bad quantity, unknown transaction type or missing fields."""
    status_code = 400


class AuthError(InventoryError):
    """No signed-in user, deactivated account or wrong role."""
    status_code = 401


class NotFoundError(InventoryError):
    """Entity missing or soft-deleted."""
    status_code = 404


class InsufficientStockError(InventoryError):
    """Withdrawal exceeds the available stock."""
    status_code = 409

    def __init__(self, reagent, requested):
        super().__init__(
            f"Only {reagent.current_stock} {reagent.unit} of "
            f"{reagent.name} available"
        )
        self.available = reagent.current_stock
        self.requested = requested


class ConcurrencyError(InventoryError):
    """Stock kept changing underneath us and retries ran out."""
    status_code = 409


class NotificationDeliveryError(InventoryError):
    """Email or live alert could not be delivered. Logged, never shown."""
    status_code = 502
