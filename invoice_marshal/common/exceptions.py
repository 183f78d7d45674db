"""
Errores de dominio.

Todos heredan de HTTPException para que los services puedan lanzarlos
directamente y los routers los propaguen sin traducción.
"""
from typing import Any, Optional
from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Error de dominio"

    def __init__(self, detail: Any = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
            headers=headers
        )


class ValidationError(DomainError):
    """Campo faltante o mal formado; detail lleva el campo afectado."""
    status_code = 422
    default_detail = "Invalid data"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(detail=[{"loc": [field], "msg": message, "type": "value_error"}])


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class InvoiceNotFound(NotFound):
    default_detail = "Invoice not found"


class ProductNotFound(NotFound):
    default_detail = "Product not found"


class VariationNotFound(NotFound):
    default_detail = "Variation not found"


class InsufficientStock(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(detail={
            "message": f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            "product": product_name,
            "available": available,
            "requested": requested
        })


class MalformedPayload(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Malformed payload"
