"""Tests de PreciosRepository contra un cliente Supabase simulado (MagicMock)."""

from __future__ import annotations

from datetime import date, datetime
from unittest.mock import MagicMock, call

import pytest

from conftest import MADRID_ID, PRODUCTO_ID
from precios.models import EntidadTipo, NivelPrecio, PrecioFiltros, ScopeKey
from precios.repositories import PreciosRepository

_METODOS_QUERY = ("select", "insert", "update", "delete", "eq", "neq", "is_", "lte", "or_", "order", "range", "limit")


@pytest.fixture
def query():
    """Query builder encadenable: cada método devuelve el mismo mock."""
    q = MagicMock()
    for nombre in _METODOS_QUERY:
        getattr(q, nombre).return_value = q
    q.execute.return_value = MagicMock(data=[], count=0)
    return q


@pytest.fixture
def client(query):
    c = MagicMock()
    c.table.return_value = query
    return c


@pytest.fixture
def repository(client) -> PreciosRepository:
    return PreciosRepository(client)


def _base_key() -> ScopeKey:
    return ScopeKey(NivelPrecio.BASE, EntidadTipo.PRODUCTO, PRODUCTO_ID)


class TestScopeQueries:
    def test_default_table(self, repository, client):
        repository.find_by_scope(_base_key())
        client.table.assert_called_with("precios")
        assert repository.table_name == "precios"

    def test_null_scope_fields_use_is_null(self, repository, query):
        repository.find_by_scope(_base_key())
        query.eq.assert_has_calls([
            call("nivel", "base"),
            call("entidad_tipo", "producto"),
            call("entidad_id", PRODUCTO_ID),
        ])
        query.is_.assert_has_calls([call("ubicacion_id", "null"), call("service_point_id", "null")])

    def test_ubicacion_key_and_exclusion(self, repository, query):
        key = ScopeKey(NivelPrecio.UBICACION, EntidadTipo.PRODUCTO, PRODUCTO_ID, MADRID_ID)
        repository.find_by_scope(key, solo_activos=True, exclude_id="abc")
        query.eq.assert_any_call("ubicacion_id", MADRID_ID)
        query.eq.assert_any_call("is_active", True)
        query.is_.assert_called_once_with("service_point_id", "null")
        query.neq.assert_called_once_with("id", "abc")

    def test_vigentes_filter(self, repository, query):
        query.execute.return_value = MagicMock(data=[{"id": "x"}])
        rows = repository.find_vigentes_by_scope(_base_key(), date(2025, 6, 15))
        assert rows == [{"id": "x"}]
        query.lte.assert_called_once_with("fecha_inicio", "2025-06-15")
        query.or_.assert_called_once_with("fecha_fin.is.null,fecha_fin.gte.2025-06-15")


class TestVersionCheck:
    def test_stale_version_returns_none(self, repository, query):
        assert repository.update_with_version_check("abc", {"precio": "2.60"}, "2025-01-01T00:00:01+00:00") is None
        query.eq.assert_any_call("updated_at", "2025-01-01T00:00:01+00:00")

    def test_write_advances_updated_at(self, repository, query):
        repository.update_with_version_check("abc", {"precio": "2.60"}, "2025-01-01T00:00:01+00:00")
        (payload,), _ = query.update.call_args
        assert payload["precio"] == "2.60"
        sellado = datetime.fromisoformat(payload["updated_at"])
        assert sellado.tzinfo is not None
        assert sellado > datetime.fromisoformat("2025-01-01T00:00:01+00:00")

    def test_returns_updated_row(self, repository, query):
        query.execute.return_value = MagicMock(data=[{"id": "abc", "precio": "2.60"}])
        assert repository.update_with_version_check("abc", {"precio": "2.60"}, None) == {"id": "abc", "precio": "2.60"}
        query.is_.assert_called_once_with("updated_at", "null")


class TestListados:
    def test_pagination_and_count(self, repository, query):
        query.execute.return_value = MagicMock(data=[{"id": "a"}], count=41)
        rows, total = repository.list_with_filters(
            PrecioFiltros(nivel=NivelPrecio.UBICACION, page=3, limit=20, order_by="precio", order_direction="asc")
        )
        assert rows == [{"id": "a"}]
        assert total == 41
        query.select.assert_called_once_with("*", count="exact")
        query.eq.assert_called_once_with("nivel", "ubicacion")
        query.order.assert_called_once_with("precio", desc=False)
        query.range.assert_called_once_with(40, 59)

    def test_historial_by_nivel(self, repository, query):
        repository.get_historial(EntidadTipo.SERVICIO, PRODUCTO_ID, NivelPrecio.BASE)
        query.eq.assert_has_calls([
            call("entidad_tipo", "servicio"),
            call("entidad_id", PRODUCTO_ID),
            call("nivel", "base"),
        ])
        query.order.assert_called_once_with("fecha_inicio", desc=True)


class TestBaseOperations:
    def test_create_without_data_raises(self, repository):
        with pytest.raises(RuntimeError):
            repository.create({"precio": "1.00"})

    def test_get_by_id_missing(self, repository):
        assert repository.get_by_id("abc") is None

    def test_delete_reports_rows(self, repository, query):
        query.execute.return_value = MagicMock(data=[{"id": "abc"}])
        assert repository.delete("abc") is True

    def test_plain_update_advances_updated_at(self, repository, query):
        query.execute.return_value = MagicMock(data=[{"id": "abc"}])
        repository.update("abc", {"fecha_fin": "2025-06-15"})
        (payload,), _ = query.update.call_args
        assert payload["fecha_fin"] == "2025-06-15"
        assert "updated_at" in payload
