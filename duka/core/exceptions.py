# =========================================================
# DOMAIN ERRORS
#
# Raised by services, rendered by the handler in duka.main.
# Every error carries an HTTP status, a stable code and any
# context the caller needs to correct the request.
# =========================================================

from fastapi import status


class DukaError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code, **self.context}


class ValidationError(DukaError):
    code = "validation_error"


class InvalidSaleStatus(ValidationError):
    code = "invalid_sale_status"


class Unauthorized(DukaError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class Forbidden(DukaError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(DukaError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InsufficientStock(DukaError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, location: str, available: int, requested: int):
        super().__init__(
            f"Cannot reduce stock below zero: {available} available at {location}, "
            f"{requested} requested",
            product_id=product_id,
            location=location,
            available=available,
            requested=requested,
        )


class InsufficientInventory(DukaError):
    code = "insufficient_inventory"

    def __init__(self, location: str, shortages: list[dict]):
        names = ", ".join(s["product_name"] for s in shortages)
        super().__init__(
            f"Insufficient inventory at {location} for: {names}",
            location=location,
            shortages=shortages,
            check_inventory=True,
        )


class OverReturn(DukaError):
    code = "over_return"

    def __init__(self, sale_item_id: int, product_id: int, requested: int, max_returnable: int):
        super().__init__(
            f"Cannot return {requested} of sale item {sale_item_id}; "
            f"at most {max_returnable} can be returned",
            sale_item_id=sale_item_id,
            product_id=product_id,
            requested=requested,
            max_returnable=max_returnable,
        )


class TransactionFailure(DukaError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "transaction_failure"


class ConcurrentUpdate(DukaError):
    """Another transaction won a race on the same row; safe to retry."""

    status_code = status.HTTP_409_CONFLICT
    code = "concurrent_update"


class Conflict(DukaError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
