"""
Servicio de precios: ciclo de vida y consultas, aislado de HTTP.

Recibe PreciosRepository por inyección. Lanza excepciones de dominio
(ValidationError, NotFoundError, ConflictError), no HTTPException.
Toda escritura pasa por HierarchyValidator y ConflictDetector antes de persistir.
"""

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

import pydantic
import structlog

from precios.config import MONEDA_POR_DEFECTO
from precios.models import (
    CAMPOS_ACTUALIZABLES,
    CAMPOS_INMUTABLES,
    EntidadTipo,
    NivelPrecio,
    Precio,
    PrecioCreate,
    PrecioFiltros,
    PrecioResuelto,
    PrecioStats,
    PrecioVigente,
)
from precios.services.conflict_detector import ConflictDetector, ScopeLocks
from precios.services.exceptions import ConflictError, NotFoundError, ValidationError
from precios.services.hierarchy_validator import HierarchyValidator
from precios.services.price_resolver import PriceResolver
from precios.services.stats_service import StatsAggregator
from precios.services.vigencia import dias_restantes, es_vigente, estado_vigencia
from precios.utils import as_dict, es_uuid_valido

logger = structlog.get_logger(__name__)

# Compartido por todas las instancias del servicio del proceso (se crea una por request).
SCOPE_LOCKS = ScopeLocks()

# De más específico a más general, para listar los precios de una entidad.
_ORDEN_NIVEL = {NivelPrecio.SERVICE_POINT: 0, NivelPrecio.UBICACION: 1, NivelPrecio.BASE: 2}


def _validar_id(valor: Any, campo: str = "id") -> str:
    if not es_uuid_valido(valor):
        raise ValidationError(
            "Parámetros inválidos.",
            [{"campo": campo, "mensaje": f"{campo} debe ser un UUID válido"}],
        )
    return str(valor).lower()


def _issues_pydantic(exc: pydantic.ValidationError) -> List[Dict[str, Any]]:
    return [
        {"campo": ".".join(str(p) for p in err.get("loc", ())), "mensaje": err.get("msg", "")}
        for err in exc.errors()
    ]


class PrecioService:
    """Lógica de negocio del catálogo de precios jerárquico."""

    def __init__(
        self,
        repository,
        locks: Optional[ScopeLocks] = None,
        hoy: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repository
        self._hoy = hoy
        self._locks = locks or SCOPE_LOCKS
        self._validator = HierarchyValidator()
        self._detector = ConflictDetector(repository, hoy=hoy)
        self.resolver = PriceResolver(repository, hoy=hoy)
        self.stats = StatsAggregator(repository, hoy=hoy)

    # ----- lectura -----

    def _get_row(self, precio_id: Any) -> Dict[str, Any]:
        row = self._repo.get_by_id(_validar_id(precio_id))
        if not row:
            raise NotFoundError("Precio no encontrado.")
        return row

    def get(self, precio_id: Any) -> Precio:
        """Precio por id. Lanza NotFoundError si no existe."""
        return Precio.model_validate(self._get_row(precio_id))

    def list_precios(self, filtros: PrecioFiltros) -> Tuple[List[Precio], int]:
        """Listado filtrado y paginado. Devuelve (precios, total)."""
        rows, total = self._repo.list_with_filters(filtros)
        return [Precio.model_validate(r) for r in rows], total

    def list_vigentes(
        self,
        filtros: PrecioFiltros,
        fecha: Optional[date] = None,
    ) -> Tuple[List[PrecioVigente], int]:
        """Solo precios vigentes a la fecha (por defecto hoy), con su estado calculado."""
        fecha = fecha or self._hoy()
        rows, total = self._repo.list_with_filters(filtros, vigentes_a=fecha)
        return [self._con_vigencia(Precio.model_validate(r), fecha) for r in rows], total

    def historial(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: Any,
        nivel: Optional[NivelPrecio] = None,
    ) -> List[Precio]:
        """Historial de precios de una entidad, de fecha_inicio más reciente a más antigua."""
        rows = self._repo.get_historial(
            EntidadTipo(entidad_tipo),
            _validar_id(entidad_id, "entidad_id"),
            NivelPrecio(nivel) if nivel is not None else None,
        )
        return [Precio.model_validate(r) for r in rows]

    def precios_por_nivel(self, nivel: NivelPrecio, solo_vigentes: bool = False) -> List[Precio]:
        rows = self._repo.get_by_nivel(NivelPrecio(nivel), vigentes_a=self._hoy() if solo_vigentes else None)
        return [Precio.model_validate(r) for r in rows]

    def precios_por_entidad(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: Any,
        solo_vigentes: bool = False,
    ) -> List[Precio]:
        """Precios de una entidad, del nivel más específico al más general."""
        rows = self._repo.get_by_entidad(
            EntidadTipo(entidad_tipo),
            _validar_id(entidad_id, "entidad_id"),
            vigentes_a=self._hoy() if solo_vigentes else None,
        )
        precios = [Precio.model_validate(r) for r in rows]
        return sorted(precios, key=lambda p: _ORDEN_NIVEL[p.nivel])

    def resolver_precio(
        self,
        entidad_tipo: Any,
        entidad_id: Any,
        ubicacion_id: Any = None,
        service_point_id: Any = None,
        fecha: Optional[date] = None,
    ) -> Optional[PrecioResuelto]:
        """Precio aplicable según la jerarquía, o None si no hay ninguno."""
        return self.resolver.resolve_detalle(
            entidad_tipo, entidad_id, ubicacion_id, service_point_id, as_of=fecha
        )

    def get_stats(self) -> PrecioStats:
        return self.stats.compute_stats()

    def _con_vigencia(self, precio: Precio, fecha: date) -> PrecioVigente:
        return PrecioVigente(
            **precio.model_dump(),
            estado_vigencia=estado_vigencia(precio, fecha),
            dias_restantes=dias_restantes(precio, fecha),
            activo_hoy=es_vigente(precio, self._hoy()),
        )

    # ----- escritura -----

    def create(self, payload: Any) -> Precio:
        """
        Crea un precio: valida jerarquía, comprueba conflictos y persiste.
        fecha_inicio por defecto es hoy. Lanza ValidationError o ConflictError.
        """
        data = as_dict(payload)
        if data.get("fecha_inicio") is None:
            data["fecha_inicio"] = self._hoy()
        if data.get("moneda") is None:
            data["moneda"] = MONEDA_POR_DEFECTO
        elif isinstance(data["moneda"], str):
            data["moneda"] = data["moneda"].strip().upper()
        if data.get("is_active") is None:
            data["is_active"] = True

        self._validator.validate(data)
        try:
            candidato = PrecioCreate.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError("Datos de precio inválidos.", _issues_pydantic(e)) from e

        with self._locks.hold(candidato.scope_key):
            self._detector.check_no_conflict(candidato)
            row = self._repo.create(candidato.model_dump(mode="json"))

        precio = Precio.model_validate(row)
        logger.info(
            "precio_creado",
            precio_id=str(precio.id),
            nivel=precio.nivel.value,
            entidad_id=str(precio.entidad_id),
        )
        return precio

    def update(self, precio_id: Any, patch: Any) -> Precio:
        """
        Actualiza campos mutables (precio, moneda, fechas, notas, is_active).
        Los campos estructurales no se pueden cambiar: hay que crear un precio nuevo.
        Lanza NotFoundError, ValidationError o ConflictError.
        """
        if isinstance(patch, pydantic.BaseModel):
            datos = patch.model_dump(exclude_unset=True)
            datos.update(patch.model_extra or {})
        else:
            datos = dict(patch)

        inmutables = sorted(set(datos) & CAMPOS_INMUTABLES)
        if inmutables:
            raise ValidationError(
                "No se pueden modificar campos estructurales de un precio existente; crea un precio nuevo.",
                [{"campo": c, "mensaje": f"No se puede cambiar {c} de un precio existente"} for c in inmutables],
            )
        desconocidos = sorted(set(datos) - CAMPOS_ACTUALIZABLES)
        if desconocidos:
            raise ValidationError(
                "Campos no actualizables.",
                [{"campo": c, "mensaje": f"El campo {c} no se puede actualizar"} for c in desconocidos],
            )
        if not datos:
            raise ValidationError(
                "Debe proporcionar al menos un campo para actualizar.",
                [{"campo": "id", "mensaje": "Debe proporcionar al menos un campo para actualizar"}],
            )

        if isinstance(datos.get("moneda"), str):
            datos["moneda"] = datos["moneda"].strip().upper()

        row = self._get_row(precio_id)
        actual = Precio.model_validate(row)
        merged = {**actual.model_dump(), **datos}
        self._validator.validate_update(merged)
        try:
            resultante = Precio.model_validate(merged)
        except pydantic.ValidationError as e:
            raise ValidationError("Datos de precio inválidos.", _issues_pydantic(e)) from e

        with self._locks.hold(actual.scope_key):
            self._detector.check_no_conflict(resultante, exclude_id=actual.id)
            cambios = {k: v for k, v in resultante.model_dump(mode="json").items() if k in datos}
            updated = self._escribir_con_version(actual, cambios, row.get("updated_at"))

        precio = Precio.model_validate(updated)
        logger.info("precio_actualizado", precio_id=str(precio.id), campos=sorted(datos))
        return precio

    def _escribir_con_version(
        self,
        actual: Precio,
        cambios: Dict[str, Any],
        expected_updated_at: Optional[str],
    ) -> Dict[str, Any]:
        """Escritura condicionada a updated_at. Lanza NotFoundError o ConflictError si no se aplica."""
        updated = self._repo.update_with_version_check(actual.id, cambios, expected_updated_at)
        if updated is None:
            if self._repo.get_by_id(str(actual.id)) is None:
                raise NotFoundError("Precio no encontrado.")
            raise ConflictError(
                "Conflicto de concurrencia: el precio cambió mientras se actualizaba. Recarga y vuelve a intentar."
            )
        return updated

    def soft_delete(self, precio_id: Any) -> Precio:
        """
        Cierra la vigencia del precio (fecha_fin = hoy) sin borrarlo.
        Idempotente: si ya estaba cerrado en o antes de hoy, no cambia nada.
        Un precio futuro se colapsa a [hoy, hoy] y se desactiva para no llegar a aplicar.
        """
        key = self.get(precio_id).scope_key
        hoy = self._hoy()

        # Relectura bajo el lock antes de decidir qué fechas cerrar.
        with self._locks.hold(key):
            row = self._get_row(precio_id)
            actual = Precio.model_validate(row)
            if actual.fecha_fin is not None and actual.fecha_fin <= hoy:
                return actual

            cambios: Dict[str, Any] = {"fecha_fin": hoy.isoformat()}
            if actual.fecha_inicio > hoy:
                cambios["fecha_inicio"] = hoy.isoformat()
                cambios["is_active"] = False
            updated = self._escribir_con_version(actual, cambios, row.get("updated_at"))

        logger.info("precio_cerrado", precio_id=str(actual.id), fecha_fin=hoy.isoformat())
        return Precio.model_validate(updated)

    def hard_delete(self, precio_id: Any) -> None:
        """Elimina físicamente el precio. Solo para casos excepcionales (errores de carga, pruebas)."""
        key = self.get(precio_id).scope_key
        with self._locks.hold(key):
            actual = self.get(precio_id)
            if not self._repo.delete(str(actual.id)):
                raise NotFoundError("Precio no encontrado.")
        logger.info("precio_eliminado", precio_id=str(actual.id))

    # ----- atajos de alta -----

    def crear_precio_base(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: Any,
        precio: Any,
        notas: Optional[str] = None,
    ) -> Precio:
        return self.create({
            "nivel": NivelPrecio.BASE,
            "entidad_tipo": entidad_tipo,
            "entidad_id": entidad_id,
            "precio": precio,
            "notas": notas,
        })

    def crear_precio_ubicacion(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: Any,
        ubicacion_id: Any,
        precio: Any,
        notas: Optional[str] = None,
    ) -> Precio:
        return self.create({
            "nivel": NivelPrecio.UBICACION,
            "entidad_tipo": entidad_tipo,
            "entidad_id": entidad_id,
            "ubicacion_id": ubicacion_id,
            "precio": precio,
            "notas": notas,
        })

    def crear_precio_service_point(
        self,
        entidad_tipo: EntidadTipo,
        entidad_id: Any,
        ubicacion_id: Any,
        service_point_id: Any,
        precio: Any,
        notas: Optional[str] = None,
    ) -> Precio:
        return self.create({
            "nivel": NivelPrecio.SERVICE_POINT,
            "entidad_tipo": entidad_tipo,
            "entidad_id": entidad_id,
            "ubicacion_id": ubicacion_id,
            "service_point_id": service_point_id,
            "precio": precio,
            "notas": notas,
        })
