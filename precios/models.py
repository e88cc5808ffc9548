from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Mapping, NamedTuple, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from precios.config import MONEDA_POR_DEFECTO


# ----- Jerarquía de precios -----
# Base (global) → Ubicación → Service Point. El más específico tiene precedencia.
class NivelPrecio(str, Enum):
    """Nivel de la jerarquía al que pertenece un precio, de general a específico."""

    BASE = "base"
    UBICACION = "ubicacion"
    SERVICE_POINT = "service_point"


class EntidadTipo(str, Enum):
    """Tipo de entidad que puede tener precio."""

    PRODUCTO = "producto"
    SERVICIO = "servicio"


# Campos estructurales: se fijan al crear y nunca cambian (crear un precio nuevo en su lugar)
CAMPOS_INMUTABLES = frozenset(
    {"nivel", "entidad_tipo", "entidad_id", "ubicacion_id", "service_point_id"}
)
CAMPOS_ACTUALIZABLES = frozenset(
    {"precio", "moneda", "fecha_inicio", "fecha_fin", "notas", "is_active"}
)

NOTAS_MAX_LEN = 1000


def _id_o_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value).lower()


class ScopeKey(NamedTuple):
    """
    Clave de ámbito (nivel, entidad_tipo, entidad_id, ubicacion_id, service_point_id).
    Como mucho un precio vigente por clave en cada instante.
    Los identificadores se guardan como str en minúsculas para que la clave sea comparable.
    """

    nivel: NivelPrecio
    entidad_tipo: EntidadTipo
    entidad_id: str
    ubicacion_id: Optional[str] = None
    service_point_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "ScopeKey":
        """Construye la clave desde un modelo Pydantic o un dict con los campos estructurales."""
        data: Mapping[str, Any] = record.model_dump() if isinstance(record, BaseModel) else record
        return cls(
            nivel=NivelPrecio(data["nivel"]),
            entidad_tipo=EntidadTipo(data["entidad_tipo"]),
            entidad_id=str(data["entidad_id"]).lower(),
            ubicacion_id=_id_o_none(data.get("ubicacion_id")),
            service_point_id=_id_o_none(data.get("service_point_id")),
        )

    def describe(self) -> str:
        """Contexto legible del nivel, usado en mensajes de conflicto."""
        if self.nivel == NivelPrecio.UBICACION:
            return f"ubicación {self.ubicacion_id}"
        if self.nivel == NivelPrecio.SERVICE_POINT:
            return f"service point {self.service_point_id}"
        return "global (BASE)"


# ----- Precios (tabla precios) -----


class PrecioCreate(BaseModel):
    """
    Payload para crear un precio.

    Reglas de jerarquía (las aplica HierarchyValidator):
    - nivel=base: ubicacion_id y service_point_id deben ser nulos.
    - nivel=ubicacion: ubicacion_id requerido, service_point_id nulo.
    - nivel=service_point: ubicacion_id y service_point_id requeridos.
    """

    nivel: NivelPrecio = Field(..., description="Nivel de jerarquía: base, ubicacion o service_point.")
    entidad_tipo: EntidadTipo = Field(..., description="Tipo de entidad: producto o servicio.")
    entidad_id: UUID = Field(..., description="UUID del producto o servicio.")
    precio: Decimal = Field(..., description="Importe del precio (> 0).")
    moneda: str = Field(MONEDA_POR_DEFECTO, description="Código de moneda ISO 4217 (3 letras).")
    ubicacion_id: Optional[UUID] = Field(None, description="UUID de la ubicación (niveles ubicacion y service_point).")
    service_point_id: Optional[UUID] = Field(None, description="UUID del service point (solo nivel service_point).")
    fecha_inicio: Optional[date] = Field(None, description="Inicio de vigencia (YYYY-MM-DD). Por defecto hoy.")
    fecha_fin: Optional[date] = Field(None, description="Fin de vigencia (YYYY-MM-DD). Nulo = indefinido.")
    notas: Optional[str] = Field(None, description="Notas libres.")
    is_active: bool = Field(True, description="Interruptor administrativo, independiente de las fechas.")

    @property
    def scope_key(self) -> ScopeKey:
        return ScopeKey.from_record(self)


class PrecioUpdate(BaseModel):
    """
    Payload parcial para actualizar un precio. Solo campos mutables.

    Se aceptan campos extra para poder rechazar explícitamente los estructurales
    (nivel, entidad_*, ubicacion_id, service_point_id) con un mensaje claro.
    """

    model_config = ConfigDict(extra="allow")

    precio: Optional[Decimal] = None
    moneda: Optional[str] = None
    fecha_inicio: Optional[date] = None
    fecha_fin: Optional[date] = None
    notas: Optional[str] = None
    is_active: Optional[bool] = None


class Precio(BaseModel):
    """Precio almacenado en el catálogo jerárquico."""

    id: UUID
    nivel: NivelPrecio
    entidad_tipo: EntidadTipo
    entidad_id: UUID
    ubicacion_id: Optional[UUID] = None
    service_point_id: Optional[UUID] = None
    precio: Decimal
    moneda: str = MONEDA_POR_DEFECTO
    fecha_inicio: date
    fecha_fin: Optional[date] = None
    notas: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def scope_key(self) -> ScopeKey:
        return ScopeKey.from_record(self)


class PrecioVigente(Precio):
    """Precio con su estado de vigencia calculado en lectura (nunca se persiste)."""

    estado_vigencia: Literal["futuro", "vigente", "vencido", "inactivo"]
    dias_restantes: Optional[int] = None
    activo_hoy: bool


class PrecioResuelto(BaseModel):
    """Resultado de resolver el precio aplicable según la jerarquía."""

    precio_id: UUID
    precio: Decimal
    moneda: str
    nivel: NivelPrecio
    entidad_tipo: EntidadTipo
    entidad_id: UUID
    ubicacion_id: Optional[UUID] = None
    service_point_id: Optional[UUID] = None
    fecha_inicio: date
    fecha_fin: Optional[date] = None
    fecha_consulta: date
    dias_restantes: Optional[int] = Field(None, description="Días hasta que expire (nulo si indefinido).")
    activo_hoy: bool


class PrecioFiltros(BaseModel):
    """Filtros de listado. Todos opcionales."""

    nivel: Optional[NivelPrecio] = None
    entidad_tipo: Optional[EntidadTipo] = None
    entidad_id: Optional[UUID] = None
    ubicacion_id: Optional[UUID] = None
    service_point_id: Optional[UUID] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)
    order_by: Literal["precio", "fecha_inicio", "created_at"] = "created_at"
    order_direction: Literal["asc", "desc"] = "desc"


class Paginacion(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class PrecioStats(BaseModel):
    """
    Estadísticas del catálogo.
    precio_promedio/min/max se calculan sobre todos los precios, no solo los vigentes.
    """

    total: int = 0
    vigentes: int = 0
    vencidos: int = 0
    precio_promedio: Decimal = Decimal("0")
    precio_min: Decimal = Decimal("0")
    precio_max: Decimal = Decimal("0")
    por_nivel: Dict[str, int] = Field(default_factory=dict)
    por_entidad_tipo: Dict[str, int] = Field(default_factory=dict)
