"""
Repositorio base para tablas Supabase (PostgREST).

Encapsula el acceso a una tabla con clave primaria configurable.
No expone el client a las capas superiores: los servicios trabajan con dicts.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client


class BaseRepository:
    """
    Operaciones CRUD genéricas sobre una tabla.

    Los métodos get_all, get_by_id, create, update y delete devuelven filas
    como dicts tal y como las entrega PostgREST (fechas en ISO 8601).
    """

    def __init__(
        self,
        client: Client,
        table_name: str,
        pk_column: str = "id",
        updated_at_column: Optional[str] = None,
    ) -> None:
        self._client = client
        self._table_name = table_name
        self._pk_column = pk_column
        self._updated_at_column = updated_at_column

    @property
    def table_name(self) -> str:
        return self._table_name

    def _table(self):
        return self._client.table(self._table_name)

    def _sellar(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Añade updated_at = ahora (UTC) si la tabla lo gestiona. Cada escritura cambia la versión."""
        if self._updated_at_column is None:
            return payload
        return {**payload, self._updated_at_column: datetime.now(timezone.utc).isoformat()}

    def get_all(
        self,
        select: str = "*",
        order_by: Optional[str] = None,
        order_desc: bool = False,
        **extra_eq: Any,
    ) -> List[Dict[str, Any]]:
        """
        Lista todos los registros de la tabla.

        extra_eq: filtros adicionales .eq(key, value).
        """
        query = self._table().select(select)
        for key, value in extra_eq.items():
            query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=order_desc)
        response = query.execute()
        return list(response.data or [])

    def get_by_id(
        self,
        pk_value: Any,
        select: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Obtiene un registro por su clave primaria o None."""
        response = (
            self._table()
            .select(select)
            .eq(self._pk_column, str(pk_value))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Inserta un registro y devuelve la fila creada (con id y timestamps del servidor)."""
        response = self._table().insert(data).execute()
        if not response.data:
            raise RuntimeError("Insert no devolvió datos.")
        return response.data[0] if isinstance(response.data, list) else response.data

    def update(self, pk_value: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualiza un registro por PK. Devuelve la fila actualizada o None si no existe."""
        payload = {k: v for k, v in data.items() if k != self._pk_column}
        if not payload:
            return self.get_by_id(pk_value)
        response = (
            self._table()
            .update(self._sellar(payload))
            .eq(self._pk_column, str(pk_value))
            .execute()
        )
        if not response.data:
            return None
        return response.data[0] if isinstance(response.data, list) else response.data

    def delete(self, pk_value: Any) -> bool:
        """Elimina un registro por PK. True si se borró alguna fila."""
        response = (
            self._table()
            .delete()
            .eq(self._pk_column, str(pk_value))
            .execute()
        )
        return bool(response.data)
