"""
Vigencia de precios como estado derivado.

Se calcula siempre en lectura a partir de is_active, fecha_inicio y fecha_fin
contra una fecha de consulta; nunca se persiste.
"""

from datetime import date
from typing import Optional

from precios.models import Precio


def es_vigente(precio: Precio, fecha: date) -> bool:
    """True si el precio está activo y fecha cae en [fecha_inicio, fecha_fin] (fin abierto si es nulo)."""
    if not precio.is_active:
        return False
    if precio.fecha_inicio > fecha:
        return False
    return precio.fecha_fin is None or precio.fecha_fin >= fecha


def es_vencido(precio: Precio, fecha: date) -> bool:
    """fecha_fin en el pasado, independientemente de is_active."""
    return precio.fecha_fin is not None and precio.fecha_fin < fecha


def estado_vigencia(precio: Precio, fecha: date) -> str:
    if not precio.is_active:
        return "inactivo"
    if es_vencido(precio, fecha):
        return "vencido"
    if precio.fecha_inicio > fecha:
        return "futuro"
    return "vigente"


def dias_restantes(precio: Precio, fecha: date) -> Optional[int]:
    """Días hasta fecha_fin (0 el último día). None si la vigencia es indefinida."""
    if precio.fecha_fin is None:
        return None
    return max((precio.fecha_fin - fecha).days, 0)


def ventanas_solapan(
    inicio_a: date,
    fin_a: Optional[date],
    inicio_b: date,
    fin_b: Optional[date],
) -> bool:
    """Intervalos cerrados [inicio, fin]; fin nulo equivale a +infinito."""
    if fin_a is not None and fin_a < inicio_b:
        return False
    if fin_b is not None and fin_b < inicio_a:
        return False
    return True
