"""
Excepciones de dominio para la capa de servicios.

main.py las traduce a respuestas JSON (400, 404) según el tipo.
No dependen de FastAPI.
"""

from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base para errores de negocio."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """
    Entrada inválida: identificador mal formado, campos de jerarquía incorrectos,
    precio no positivo o rango de fechas invertido.

    issues: lista de {"campo": ..., "mensaje": ...} legible por máquina.
    """

    def __init__(self, message: str, issues: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.issues: List[Dict[str, Any]] = list(issues or [])


class NotFoundError(DomainError):
    """Recurso no encontrado."""


class ConflictError(DomainError):
    """Ya existe un precio vigente para el mismo ámbito, o el registro cambió en concurrencia."""
