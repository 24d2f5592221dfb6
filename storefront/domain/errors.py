# storefront/domain/errors.py
from typing import Any, List


class AppError(Exception):
    """
    Bazowy blad domenowy, router zamienia go na HTTPException
    z odpowiednim status_code
    """

    status_code = 500

    def __init__(self, message: str, details: List[Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_detail(self) -> dict:
        detail = {"message": self.message}
        if self.details:
            detail["errors"] = self.details
        return detail


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str = "Resource", resource_id: Any = None):
        message = (
            f"{resource} with ID {resource_id} not found"
            if resource_id is not None
            else f"{resource} not found"
        )
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class BusinessError(AppError):
    status_code = 400


class InsufficientStockError(BusinessError):
    def __init__(self, title: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {title}. Available: {available}, requested: {requested}"
        )
        self.available = available
        self.requested = requested


class OrderError(AppError):
    status_code = 409


class OrderNumberConflictError(AppError):
    """Numer zamowienia zajety przez rownolegla transakcje."""
