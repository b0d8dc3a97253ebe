# storefront_hub/errors.py
"""
Error taxonomy shared by services and routers.

Services raise these; main.py renders them as JSON with the class status.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class StoreError(Exception):
    """Base exception for Storefront Hub errors."""

    status_code = 500
    default_message = "An error occurred in the storefront"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to a dictionary."""
        error_dict: Dict[str, Any] = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ValidationError(StoreError):
    """Client input is malformed or violates a hard policy."""
    status_code = 400
    default_message = "Validation error"


class NotFoundError(StoreError):
    """Referenced product / grade / order / job does not exist."""
    status_code = 404
    default_message = "Resource not found"


class InsufficientStockError(StoreError):
    """Stock re-check at commit time failed."""
    status_code = 400
    default_message = "Insufficient stock"

    def __init__(self, product_id: int, product_name: Optional[str], size_id: int,
                 size: Optional[str], required: int, available: int):
        self.product_id = product_id
        self.size_id = size_id
        self.required = required
        self.available = available
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label} size {size or size_id}: "
            f"required {required}, available {available}",
            code="insufficient_stock",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "size_id": size_id,
                "size": size,
                "required": required,
                "available": available,
            },
        )


class ConflictError(StoreError):
    """Unique business key already taken."""
    status_code = 409
    default_message = "Conflict"


class InternalError(StoreError):
    """Unexpected database / transport failure."""
    status_code = 500
    default_message = "Internal server error"
