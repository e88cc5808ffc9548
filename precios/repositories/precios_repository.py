"""
Repositorio de precios jerárquicos (tabla precios).

Operaciones genéricas vía BaseRepository. Métodos de dominio:
consulta por clave de ámbito, vigentes a una fecha, listados filtrados
y paginados, historial y actualización con control optimista.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client

from precios import config
from precios.models import EntidadTipo, NivelPrecio, PrecioFiltros, ScopeKey
from precios.repositories.base_repository import BaseRepository


class PreciosRepository(BaseRepository):
    """Repositorio de la tabla de precios con PK id (UUID generado por la base de datos)."""

    PK = "id"

    def __init__(self, client: Client, table_name: Optional[str] = None) -> None:
        super().__init__(
            client=client,
            table_name=table_name or config.PRECIOS_TABLE,
            pk_column=self.PK,
            updated_at_column="updated_at",
        )

    # ----- filtros reutilizables -----

    @staticmethod
    def _filtrar_scope(query, key: ScopeKey):
        """Coincidencia exacta de la clave de ámbito (los nulos se comparan con IS NULL)."""
        query = (
            query.eq("nivel", key.nivel.value)
            .eq("entidad_tipo", key.entidad_tipo.value)
            .eq("entidad_id", key.entidad_id)
        )
        for campo in ("ubicacion_id", "service_point_id"):
            value = getattr(key, campo)
            query = query.is_(campo, "null") if value is None else query.eq(campo, value)
        return query

    @staticmethod
    def _filtrar_vigentes(query, fecha: date):
        """is_active AND fecha_inicio <= fecha AND (fecha_fin IS NULL OR fecha_fin >= fecha)."""
        iso = fecha.isoformat()
        return (
            query.eq("is_active", True)
            .lte("fecha_inicio", iso)
            .or_(f"fecha_fin.is.null,fecha_fin.gte.{iso}")
        )

    # ----- clave de ámbito -----

    def find_by_scope(
        self,
        key: ScopeKey,
        solo_activos: bool = False,
        exclude_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Precios con exactamente esta clave de ámbito. exclude_id omite un registro (updates)."""
        query = self._filtrar_scope(self._table().select("*"), key)
        if solo_activos:
            query = query.eq("is_active", True)
        if exclude_id:
            query = query.neq(self.PK, str(exclude_id))
        response = query.order("fecha_inicio", desc=True).execute()
        return list(response.data or [])

    def find_vigentes_by_scope(self, key: ScopeKey, fecha: date) -> List[Dict[str, Any]]:
        """Precios vigentes a la fecha para la clave de ámbito."""
        query = self._filtrar_vigentes(self._filtrar_scope(self._table().select("*"), key), fecha)
        response = query.order("fecha_inicio", desc=True).execute()
        return list(response.data or [])

    # ----- escritura con control optimista -----

    def update_with_version_check(
        self,
        pk_value: Any,
        data: Dict[str, Any],
        expected_updated_at: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        """Actualiza el precio solo si updated_at no cambió desde la lectura (optimistic lock)."""
        query = self._table().update(self._sellar(data)).eq(self.PK, str(pk_value))
        if expected_updated_at is None:
            query = query.is_("updated_at", "null")
        else:
            query = query.eq("updated_at", expected_updated_at)
        response = query.execute()
        if not response.data:
            return None
        return response.data[0]

    # ----- listados -----

    def list_with_filters(
        self,
        filtros: PrecioFiltros,
        vigentes_a: Optional[date] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Lista precios con filtros, orden y paginación. Devuelve (filas, total sin paginar).
        vigentes_a: si se indica, solo precios vigentes a esa fecha.
        """
        query = self._table().select("*", count="exact")
        for campo in ("nivel", "entidad_tipo", "entidad_id", "ubicacion_id", "service_point_id"):
            value = getattr(filtros, campo)
            if value is not None:
                query = query.eq(campo, getattr(value, "value", str(value)))
        if vigentes_a is not None:
            query = self._filtrar_vigentes(query, vigentes_a)

        query = query.order(filtros.order_by, desc=filtros.order_direction == "desc")
        offset = (filtros.page - 1) * filtros.limit
        query = query.range(offset, offset + filtros.limit - 1)

        response = query.execute()
        rows = list(response.data or [])
        total = response.count if response.count is not None else len(rows)
        return rows, total

    def get_historial(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: str,
        nivel: Optional[NivelPrecio] = None,
    ) -> List[Dict[str, Any]]:
        """Historial de precios de una entidad, del más reciente al más antiguo."""
        query = (
            self._table()
            .select("*")
            .eq("entidad_tipo", entidad_tipo.value)
            .eq("entidad_id", str(entidad_id))
        )
        if nivel is not None:
            query = query.eq("nivel", nivel.value)
        response = query.order("fecha_inicio", desc=True).execute()
        return list(response.data or [])

    def get_by_nivel(self, nivel: NivelPrecio, vigentes_a: Optional[date] = None) -> List[Dict[str, Any]]:
        query = self._table().select("*").eq("nivel", nivel.value)
        if vigentes_a is not None:
            query = self._filtrar_vigentes(query, vigentes_a)
        response = query.order("created_at", desc=True).execute()
        return list(response.data or [])

    def get_by_entidad(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: str,
        vigentes_a: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            self._table()
            .select("*")
            .eq("entidad_tipo", entidad_tipo.value)
            .eq("entidad_id", str(entidad_id))
        )
        if vigentes_a is not None:
            query = self._filtrar_vigentes(query, vigentes_a)
        response = query.order("created_at", desc=True).execute()
        return list(response.data or [])
