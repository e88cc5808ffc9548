"""
Validación de la jerarquía de precios.

Comprueba qué campos de ámbito son obligatorios o prohibidos en cada nivel,
que los identificadores sean UUID bien formados, que el precio sea positivo
y que el rango de fechas no esté invertido. Acumula todas las incidencias
antes de fallar para que el cliente pueda corregirlas de una vez.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from precios.models import NOTAS_MAX_LEN, EntidadTipo, NivelPrecio
from precios.services.exceptions import ValidationError
from precios.utils import a_fecha, as_dict, es_uuid_valido

_MONEDA_RE = re.compile(r"^[A-Z]{3}$")

Issues = List[Dict[str, Any]]


def _presente(value: Any) -> bool:
    return value is not None and value != ""


class HierarchyValidator:
    """Aplica las reglas de jerarquía y de campos mutables a un precio candidato."""

    def validate(self, candidate: Any) -> None:
        """
        Valida un precio completo (alta). Lanza ValidationError con la lista de incidencias.

        candidate: PrecioCreate, Precio o dict con los mismos campos.
        """
        data = as_dict(candidate)
        issues: Issues = []

        nivel = self._check_enum(data, "nivel", NivelPrecio, issues,
                                 "El nivel debe ser: base, ubicacion o service_point")
        self._check_enum(data, "entidad_tipo", EntidadTipo, issues,
                         "El tipo de entidad debe ser: producto o servicio")
        self._check_identificadores(data, issues)
        if nivel is not None:
            self._check_jerarquia(nivel, data, issues)
        issues.extend(self._check_mutables(data))

        if issues:
            raise ValidationError("Datos de precio inválidos.", issues)

    def validate_update(self, merged: Any) -> None:
        """
        Valida solo el subconjunto mutable del precio resultante de aplicar un patch.
        Los campos de ámbito no pueden cambiar, así que no se revalidan.
        """
        issues = self._check_mutables(as_dict(merged))
        if issues:
            raise ValidationError("Datos de precio inválidos.", issues)

    # ----- reglas -----

    @staticmethod
    def _check_enum(data: Mapping[str, Any], campo: str, enum_cls, issues: Issues, mensaje: str):
        value = data.get(campo)
        try:
            return enum_cls(value)
        except ValueError:
            issues.append({"campo": campo, "mensaje": mensaje})
            return None

    @staticmethod
    def _check_identificadores(data: Mapping[str, Any], issues: Issues) -> None:
        if not _presente(data.get("entidad_id")):
            issues.append({"campo": "entidad_id", "mensaje": "entidad_id es obligatorio"})
        for campo in ("entidad_id", "ubicacion_id", "service_point_id"):
            value = data.get(campo)
            if _presente(value) and not es_uuid_valido(value):
                issues.append({"campo": campo, "mensaje": f"{campo} debe ser un UUID válido"})

    @staticmethod
    def _check_jerarquia(nivel: NivelPrecio, data: Mapping[str, Any], issues: Issues) -> None:
        tiene_ubicacion = _presente(data.get("ubicacion_id"))
        tiene_sp = _presente(data.get("service_point_id"))

        if nivel == NivelPrecio.BASE:
            if tiene_ubicacion or tiene_sp:
                issues.append({
                    "campo": "nivel",
                    "mensaje": "El nivel BASE no puede tener ubicacion_id ni service_point_id",
                })
        elif nivel == NivelPrecio.UBICACION:
            if not tiene_ubicacion:
                issues.append({"campo": "ubicacion_id", "mensaje": "El nivel UBICACION requiere ubicacion_id"})
            if tiene_sp:
                issues.append({
                    "campo": "service_point_id",
                    "mensaje": "El nivel UBICACION no puede tener service_point_id",
                })
        elif nivel == NivelPrecio.SERVICE_POINT:
            if not (tiene_ubicacion and tiene_sp):
                issues.append({
                    "campo": "service_point_id",
                    "mensaje": "El nivel SERVICE_POINT requiere tanto ubicacion_id como service_point_id",
                })

    @staticmethod
    def _check_mutables(data: Mapping[str, Any]) -> Issues:
        issues: Issues = []

        raw_precio = data.get("precio")
        if raw_precio is None:
            issues.append({"campo": "precio", "mensaje": "El precio es obligatorio"})
        else:
            try:
                precio = Decimal(str(raw_precio))
            except InvalidOperation:
                issues.append({"campo": "precio", "mensaje": "El precio debe ser numérico"})
            else:
                if not precio.is_finite() or precio <= 0:
                    issues.append({"campo": "precio", "mensaje": "El precio debe ser mayor que 0"})

        moneda = data.get("moneda")
        if moneda is not None and not _MONEDA_RE.match(str(moneda)):
            issues.append({"campo": "moneda", "mensaje": "La moneda debe ser un código de 3 letras (ej. EUR)"})

        fechas: Dict[str, Optional[date]] = {}
        for campo in ("fecha_inicio", "fecha_fin"):
            try:
                fechas[campo] = a_fecha(data.get(campo))
            except (ValueError, TypeError):
                fechas[campo] = None
                issues.append({"campo": campo, "mensaje": "La fecha debe tener formato YYYY-MM-DD"})
        inicio, fin = fechas["fecha_inicio"], fechas["fecha_fin"]
        if inicio is not None and fin is not None and fin < inicio:
            issues.append({
                "campo": "fecha_fin",
                "mensaje": "La fecha_fin no puede ser anterior a fecha_inicio",
            })

        notas = data.get("notas")
        if notas is not None and len(str(notas)) > NOTAS_MAX_LEN:
            issues.append({
                "campo": "notas",
                "mensaje": f"Las notas no pueden exceder {NOTAS_MAX_LEN} caracteres",
            })
        return issues
