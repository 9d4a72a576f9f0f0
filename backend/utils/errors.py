"""
Error taxonomy for the marketplace API.

Every domain failure is raised as a MarketplaceError subclass and rendered by
the handler registered in main.py as ``{"error": message, **extra}``.
"""
from fastapi import status
from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Error interno."

    def __init__(self, message: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.extra = extra or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class Unauthorized(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ValidationError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Cuerpo invalido."


class InvalidStep(ValidationError):
    default_message = "Paso de onboarding invalido."


class ConflictError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "El recurso ya existe."


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No encontrado."


class InvalidTransition(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Transicion invalida: {current} -> {requested}.")


class ProvisioningError(MarketplaceError):
    default_message = "No se pudo crear la tienda."


class ExternalServiceError(MarketplaceError):
    default_message = "Error del proveedor de pagos."
