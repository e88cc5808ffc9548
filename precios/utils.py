"""
Utilidades compartidas: conversión de fechas e identificadores llegados
como str (PostgREST, query params) o ya tipados (modelos Pydantic).
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import BaseModel


def as_dict(record: Any) -> Dict[str, Any]:
    """Modelo Pydantic o mapping → dict plano."""
    if isinstance(record, BaseModel):
        return record.model_dump()
    return dict(record)


def a_fecha(valor: Union[str, date, datetime, None]) -> Optional[date]:
    """Convierte date/datetime/str ISO (con o sin hora) a date. Lanza ValueError si no es una fecha."""
    if valor is None:
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    return date.fromisoformat(str(valor).split("T")[0])


def es_uuid_valido(valor: Any) -> bool:
    if isinstance(valor, UUID):
        return True
    try:
        UUID(str(valor))
    except (ValueError, TypeError, AttributeError):
        return False
    return True
