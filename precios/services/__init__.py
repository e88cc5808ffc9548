"""
Capa de servicios: lógica de negocio aislada de HTTP.

Los servicios reciben repositorios por inyección y lanzan excepciones
de dominio (precios.services.exceptions), no HTTPException.
"""

from precios.services.conflict_detector import ConflictDetector, ScopeLocks
from precios.services.hierarchy_validator import HierarchyValidator
from precios.services.precios_service import PrecioService
from precios.services.price_resolver import PriceResolver
from precios.services.stats_service import StatsAggregator

__all__ = [
    "ConflictDetector",
    "HierarchyValidator",
    "PrecioService",
    "PriceResolver",
    "ScopeLocks",
    "StatsAggregator",
]
