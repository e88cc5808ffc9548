"""Fixtures comunes: repositorio en memoria con la misma interfaz que PreciosRepository."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import pytest

from precios.models import EntidadTipo, NivelPrecio, Precio, PrecioFiltros, ScopeKey
from precios.services import PrecioService, ScopeLocks
from precios.services.vigencia import es_vigente

HOY = date(2025, 6, 15)

PRODUCTO_ID = "11111111-1111-4111-8111-111111111111"
MADRID_ID = "22222222-2222-4222-8222-222222222222"
BARCELONA_ID = "33333333-3333-4333-8333-333333333333"
SP1_ID = "44444444-4444-4444-8444-444444444444"


class InMemoryPreciosRepository:
    """Filas como dicts con fechas ISO, igual que las devuelve PostgREST."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def _vigente(self, row: Dict[str, Any], fecha: date) -> bool:
        return es_vigente(Precio.model_validate(row), fecha)

    # ----- BaseRepository -----

    def get_all(self, **_kwargs: Any) -> List[Dict[str, Any]]:
        return [dict(r) for r in self.rows.values()]

    def get_by_id(self, pk_value: Any) -> Optional[Dict[str, Any]]:
        row = self.rows.get(str(pk_value))
        return dict(row) if row else None

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        row["id"] = str(row.get("id") or uuid4())
        row["created_at"] = row["updated_at"] = self._now()
        self.rows[row["id"]] = row
        return dict(row)

    def update(self, pk_value: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self.rows.get(str(pk_value))
        if row is None:
            return None
        row.update(data)
        row["updated_at"] = self._now()
        return dict(row)

    def delete(self, pk_value: Any) -> bool:
        return self.rows.pop(str(pk_value), None) is not None

    # ----- PreciosRepository -----

    def update_with_version_check(
        self,
        pk_value: Any,
        data: Dict[str, Any],
        expected_updated_at: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        row = self.rows.get(str(pk_value))
        if row is None or row.get("updated_at") != expected_updated_at:
            return None
        return self.update(pk_value, data)

    def find_by_scope(
        self,
        key: ScopeKey,
        solo_activos: bool = False,
        exclude_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        result = []
        for row in self.rows.values():
            if ScopeKey.from_record(row) != key:
                continue
            if solo_activos and not row.get("is_active", True):
                continue
            if exclude_id and row["id"] == str(exclude_id):
                continue
            result.append(dict(row))
        return sorted(result, key=lambda r: r["fecha_inicio"], reverse=True)

    def find_vigentes_by_scope(self, key: ScopeKey, fecha: date) -> List[Dict[str, Any]]:
        return [r for r in self.find_by_scope(key) if self._vigente(r, fecha)]

    def list_with_filters(
        self,
        filtros: PrecioFiltros,
        vigentes_a: Optional[date] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        rows = list(self.rows.values())
        for campo in ("nivel", "entidad_tipo", "entidad_id", "ubicacion_id", "service_point_id"):
            value = getattr(filtros, campo)
            if value is not None:
                esperado = getattr(value, "value", str(value))
                rows = [r for r in rows if r.get(campo) == esperado]
        if vigentes_a is not None:
            rows = [r for r in rows if self._vigente(r, vigentes_a)]

        def orden(r: Dict[str, Any]) -> Any:
            return Decimal(str(r["precio"])) if filtros.order_by == "precio" else r[filtros.order_by]

        rows.sort(key=orden, reverse=filtros.order_direction == "desc")
        offset = (filtros.page - 1) * filtros.limit
        return [dict(r) for r in rows[offset:offset + filtros.limit]], len(rows)

    def get_historial(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: str,
        nivel: Optional[NivelPrecio] = None,
    ) -> List[Dict[str, Any]]:
        rows = [r for r in self.get_by_entidad(entidad_tipo, entidad_id)
                if nivel is None or r["nivel"] == nivel.value]
        return sorted(rows, key=lambda r: r["fecha_inicio"], reverse=True)

    def get_by_nivel(self, nivel: NivelPrecio, vigentes_a: Optional[date] = None) -> List[Dict[str, Any]]:
        return [
            dict(r) for r in self.rows.values()
            if r["nivel"] == nivel.value and (vigentes_a is None or self._vigente(r, vigentes_a))
        ]

    def get_by_entidad(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: str,
        vigentes_a: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        return [
            dict(r) for r in self.rows.values()
            if r["entidad_tipo"] == entidad_tipo.value
            and r["entidad_id"] == str(entidad_id)
            and (vigentes_a is None or self._vigente(r, vigentes_a))
        ]


@pytest.fixture
def hoy() -> date:
    return HOY


@pytest.fixture
def repo() -> InMemoryPreciosRepository:
    return InMemoryPreciosRepository()


@pytest.fixture
def service(repo: InMemoryPreciosRepository) -> PrecioService:
    return PrecioService(repo, locks=ScopeLocks(), hoy=lambda: HOY)


@pytest.fixture
def insertar(repo: InMemoryPreciosRepository):
    """Inserta una fila directamente en el repositorio, sin validación ni detección de conflictos."""

    def _insertar(**overrides: Any) -> Dict[str, Any]:
        row = {
            "nivel": "base",
            "entidad_tipo": "producto",
            "entidad_id": PRODUCTO_ID,
            "ubicacion_id": None,
            "service_point_id": None,
            "precio": "2.50",
            "moneda": "EUR",
            "fecha_inicio": "2025-01-01",
            "fecha_fin": None,
            "notas": None,
            "is_active": True,
        }
        row.update(overrides)
        return repo.create(row)

    return _insertar
