"""
Estadísticas del catálogo de precios, calculadas en un único recorrido de la tabla.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from precios.models import EntidadTipo, NivelPrecio, Precio, PrecioStats
from precios.services.vigencia import es_vencido, es_vigente


class StatsAggregator:
    """Conteos y medias globales sobre todos los precios almacenados."""

    def __init__(self, repository, hoy: Callable[[], date] = date.today) -> None:
        self._repo = repository
        self._hoy = hoy

    def compute_stats(self, as_of: Optional[date] = None) -> PrecioStats:
        """
        - vigentes: activos y dentro de su ventana a la fecha.
        - vencidos: fecha_fin en el pasado, independientemente de is_active.
        - precio_promedio/min/max: sobre todos los precios (incluidos vencidos).
        """
        fecha = as_of or self._hoy()
        precios = [Precio.model_validate(r) for r in self._repo.get_all()]

        por_nivel = {n.value: 0 for n in NivelPrecio}
        por_entidad_tipo = {t.value: 0 for t in EntidadTipo}
        vigentes = vencidos = 0
        suma = Decimal("0")

        for p in precios:
            por_nivel[p.nivel.value] += 1
            por_entidad_tipo[p.entidad_tipo.value] += 1
            if es_vigente(p, fecha):
                vigentes += 1
            if es_vencido(p, fecha):
                vencidos += 1
            suma += p.precio

        if not precios:
            return PrecioStats(por_nivel=por_nivel, por_entidad_tipo=por_entidad_tipo)

        importes = [p.precio for p in precios]
        return PrecioStats(
            total=len(precios),
            vigentes=vigentes,
            vencidos=vencidos,
            precio_promedio=(suma / len(precios)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            precio_min=min(importes),
            precio_max=max(importes),
            por_nivel=por_nivel,
            por_entidad_tipo=por_entidad_tipo,
        )
