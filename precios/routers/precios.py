"""
Precios jerárquicos (tabla precios).

GET /precios admite ?action= para las consultas especiales:
vigentes, aplicable (resolución por jerarquía), stats e historial.
Los errores de dominio los traduce precios.main a {error, details}.
"""

import math
from datetime import date
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from precios import config
from precios.deps import PrecioServiceDep
from precios.models import EntidadTipo, NivelPrecio, PrecioCreate, PrecioFiltros, PrecioUpdate
from precios.services.exceptions import ValidationError


router = APIRouter(prefix="/precios", tags=["precios"])


def _requerir_entidad(entidad_tipo: Optional[EntidadTipo], entidad_id: Optional[UUID]) -> None:
    issues = []
    if entidad_tipo is None:
        issues.append({"campo": "entidad_tipo", "mensaje": "entidad_tipo es obligatorio"})
    if entidad_id is None:
        issues.append({"campo": "entidad_id", "mensaje": "entidad_id es obligatorio"})
    if issues:
        raise ValidationError("Parámetros de consulta inválidos.", issues)


def _listado(items: List[Any], filtros: PrecioFiltros, total: int) -> Dict[str, Any]:
    return {
        "data": [p.model_dump(mode="json") for p in items],
        "pagination": {
            "page": filtros.page,
            "limit": filtros.limit,
            "total": total,
            "totalPages": math.ceil(total / filtros.limit) if total else 0,
        },
    }


@router.get("")
def get_precios(
    service: PrecioServiceDep,
    action: Optional[Literal["vigentes", "aplicable", "stats", "historial"]] = Query(
        None, description="Consulta especial: vigentes, aplicable, stats o historial."
    ),
    nivel: Optional[NivelPrecio] = Query(None),
    entidad_tipo: Optional[EntidadTipo] = Query(None),
    entidad_id: Optional[UUID] = Query(None),
    ubicacion_id: Optional[UUID] = Query(None),
    service_point_id: Optional[UUID] = Query(None),
    fecha: Optional[date] = Query(None, description="Fecha de consulta (YYYY-MM-DD). Por defecto hoy."),
    page: int = Query(1, ge=1),
    limit: int = Query(config.PAGINACION_LIMITE_DEFECTO, ge=1, le=config.PAGINACION_LIMITE_MAXIMO),
    order_by: Literal["precio", "fecha_inicio", "created_at"] = Query("created_at"),
    order_direction: Literal["asc", "desc"] = Query("desc"),
):
    """
    Lista precios con filtros y paginación.

    GET /precios
    GET /precios?action=vigentes
    GET /precios?action=aplicable&entidad_tipo=&entidad_id=&ubicacion_id=&service_point_id=&fecha=
    GET /precios?action=stats
    GET /precios?action=historial&entidad_tipo=&entidad_id=&nivel=
    """
    if action == "aplicable":
        _requerir_entidad(entidad_tipo, entidad_id)
        resuelto = service.resolver_precio(
            entidad_tipo, entidad_id, ubicacion_id, service_point_id, fecha=fecha
        )
        if resuelto is None:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": "No se encontró un precio aplicable para esta entidad"},
            )
        return {"data": resuelto.model_dump(mode="json")}

    if action == "stats":
        return {"data": service.get_stats().model_dump(mode="json")}

    if action == "historial":
        _requerir_entidad(entidad_tipo, entidad_id)
        historial = service.historial(entidad_tipo, entidad_id, nivel)
        return {"data": [p.model_dump(mode="json") for p in historial]}

    filtros = PrecioFiltros(
        nivel=nivel,
        entidad_tipo=entidad_tipo,
        entidad_id=entidad_id,
        ubicacion_id=ubicacion_id,
        service_point_id=service_point_id,
        page=page,
        limit=limit,
        order_by=order_by,
        order_direction=order_direction,
    )
    if action == "vigentes":
        items, total = service.list_vigentes(filtros, fecha=fecha)
    else:
        items, total = service.list_precios(filtros)
    return _listado(items, filtros, total)


@router.get("/{precio_id}")
def get_precio(precio_id: UUID, service: PrecioServiceDep) -> dict:
    """GET /precios/{id}"""
    return {"data": service.get(precio_id).model_dump(mode="json")}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_precio(payload: PrecioCreate, service: PrecioServiceDep) -> dict:
    """
    Crea un precio en el nivel indicado.
    400 si la jerarquía no es válida o ya hay un precio vigente para el mismo ámbito.

    POST /precios
    """
    precio = service.create(payload.model_dump(exclude_unset=True))
    return {"data": [precio.model_dump(mode="json")]}


@router.put("/{precio_id}")
def update_precio(precio_id: UUID, payload: PrecioUpdate, service: PrecioServiceDep) -> dict:
    """
    Actualiza precio, moneda, fechas, notas o is_active.
    Los campos de jerarquía no se pueden cambiar.

    PUT /precios/{id}
    """
    precio = service.update(precio_id, payload)
    return {"data": [precio.model_dump(mode="json")]}


@router.delete("/{precio_id}")
def delete_precio(
    precio_id: UUID,
    service: PrecioServiceDep,
    soft: bool = Query(True, description="true: cierra la vigencia (fecha_fin = hoy). false: borrado físico."),
) -> dict:
    """DELETE /precios/{id}?soft=true|false"""
    if soft:
        service.soft_delete(precio_id)
        return {"message": "Precio desactivado correctamente"}
    service.hard_delete(precio_id)
    return {"message": "Precio eliminado correctamente"}
