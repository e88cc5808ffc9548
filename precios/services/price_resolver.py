"""
Resolución del precio aplicable según la jerarquía SERVICE_POINT > UBICACION > BASE.

La jerarquía es una cadena de sustitución estricta, evaluada de lo más
específico a lo más general: gana el primer nivel con un precio vigente y
nunca se mezclan registros de niveles distintos.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

import structlog

from precios.models import EntidadTipo, NivelPrecio, Precio, PrecioResuelto, ScopeKey
from precios.services.exceptions import ValidationError
from precios.services.vigencia import dias_restantes, es_vigente
from precios.utils import es_uuid_valido

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ContextoResolucion:
    entidad_tipo: EntidadTipo
    entidad_id: str
    ubicacion_id: Optional[str]
    service_point_id: Optional[str]
    fecha: date


class PasoResolucion(NamedTuple):
    """Un eslabón de la cadena: nivel a consultar y cuándo aplica según el contexto."""

    nivel: NivelPrecio
    aplica: Callable[[ContextoResolucion], bool]

    def scope_key(self, ctx: ContextoResolucion) -> ScopeKey:
        return ScopeKey(
            nivel=self.nivel,
            entidad_tipo=ctx.entidad_tipo,
            entidad_id=ctx.entidad_id,
            ubicacion_id=ctx.ubicacion_id if self.nivel != NivelPrecio.BASE else None,
            service_point_id=ctx.service_point_id if self.nivel == NivelPrecio.SERVICE_POINT else None,
        )


# Orden de evaluación: de lo más específico a lo más general.
# Un precio SERVICE_POINT siempre cuelga de una ubicación, así que exige ambos ids.
CADENA_RESOLUCION: Tuple[PasoResolucion, ...] = (
    PasoResolucion(
        NivelPrecio.SERVICE_POINT,
        lambda ctx: ctx.service_point_id is not None and ctx.ubicacion_id is not None,
    ),
    PasoResolucion(NivelPrecio.UBICACION, lambda ctx: ctx.ubicacion_id is not None),
    PasoResolucion(NivelPrecio.BASE, lambda ctx: True),
)


def _normalizar_id(campo: str, valor: Any, obligatorio: bool, issues: List[dict]) -> Optional[str]:
    if valor is None or valor == "":
        if obligatorio:
            issues.append({"campo": campo, "mensaje": f"{campo} es obligatorio"})
        return None
    if not es_uuid_valido(valor):
        issues.append({"campo": campo, "mensaje": f"{campo} debe ser un UUID válido"})
        return None
    return str(valor).lower()


class PriceResolver:
    """Recorre CADENA_RESOLUCION y devuelve el primer precio vigente encontrado."""

    def __init__(
        self,
        repository,
        cadena: Tuple[PasoResolucion, ...] = CADENA_RESOLUCION,
        hoy: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repository
        self._cadena = cadena
        self._hoy = hoy

    def _contexto(
        self,
        entidad_tipo: Any,
        entidad_id: Any,
        ubicacion_id: Any,
        service_point_id: Any,
        as_of: Optional[date],
    ) -> ContextoResolucion:
        issues: List[dict] = []
        try:
            tipo = EntidadTipo(entidad_tipo)
        except ValueError:
            tipo = None
            issues.append({"campo": "entidad_tipo", "mensaje": "El tipo de entidad debe ser: producto o servicio"})
        eid = _normalizar_id("entidad_id", entidad_id, True, issues)
        uid = _normalizar_id("ubicacion_id", ubicacion_id, False, issues)
        spid = _normalizar_id("service_point_id", service_point_id, False, issues)
        if issues:
            raise ValidationError("Parámetros de consulta inválidos.", issues)
        return ContextoResolucion(
            entidad_tipo=tipo,
            entidad_id=eid,
            ubicacion_id=uid,
            service_point_id=spid,
            fecha=as_of or self._hoy(),
        )

    def resolve(
        self,
        entidad_tipo: Any,
        entidad_id: Any,
        ubicacion_id: Any = None,
        service_point_id: Any = None,
        as_of: Optional[date] = None,
    ) -> Optional[Precio]:
        """
        Devuelve el precio aplicable o None si no hay ninguno (resultado normal, no error).
        Lanza ValidationError si algún identificador está mal formado.
        """
        ctx = self._contexto(entidad_tipo, entidad_id, ubicacion_id, service_point_id, as_of)

        for paso in self._cadena:
            if not paso.aplica(ctx):
                continue
            key = paso.scope_key(ctx)
            candidatos = [
                p for p in (Precio.model_validate(r) for r in self._repo.find_vigentes_by_scope(key, ctx.fecha))
                if es_vigente(p, ctx.fecha)
            ]
            if candidatos:
                elegido = self._elegir(key, candidatos, ctx.fecha)
                logger.debug("precio_resuelto", nivel=paso.nivel.value, precio_id=str(elegido.id))
                return elegido

        logger.debug(
            "precio_no_encontrado",
            entidad_tipo=ctx.entidad_tipo.value,
            entidad_id=ctx.entidad_id,
            fecha=ctx.fecha.isoformat(),
        )
        return None

    def resolve_detalle(
        self,
        entidad_tipo: Any,
        entidad_id: Any,
        ubicacion_id: Any = None,
        service_point_id: Any = None,
        as_of: Optional[date] = None,
    ) -> Optional[PrecioResuelto]:
        """Como resolve, pero devuelve el detalle de la resolución (nivel ganador, días restantes)."""
        fecha = as_of or self._hoy()
        precio = self.resolve(entidad_tipo, entidad_id, ubicacion_id, service_point_id, as_of=fecha)
        if precio is None:
            return None
        return PrecioResuelto(
            precio_id=precio.id,
            precio=precio.precio,
            moneda=precio.moneda,
            nivel=precio.nivel,
            entidad_tipo=precio.entidad_tipo,
            entidad_id=precio.entidad_id,
            ubicacion_id=precio.ubicacion_id,
            service_point_id=precio.service_point_id,
            fecha_inicio=precio.fecha_inicio,
            fecha_fin=precio.fecha_fin,
            fecha_consulta=fecha,
            dias_restantes=dias_restantes(precio, fecha),
            activo_hoy=es_vigente(precio, self._hoy()),
        )

    @staticmethod
    def _elegir(key: ScopeKey, candidatos: List[Precio], fecha: date) -> Precio:
        """
        Con el invariante de unicidad solo hay un candidato. Si se ha roto,
        gana el de fecha_inicio más reciente y, a igualdad, el id menor; y se avisa.
        """
        if len(candidatos) == 1:
            return candidatos[0]
        ordenados = sorted(candidatos, key=lambda p: (-p.fecha_inicio.toordinal(), str(p.id)))
        logger.warning(
            "precio_ambiguo",
            scope=key._asdict(),
            fecha=fecha.isoformat(),
            candidatos=[str(p.id) for p in ordenados],
            elegido=str(ordenados[0].id),
        )
        return ordenados[0]
