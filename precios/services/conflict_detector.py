"""
Detección de conflictos: dos precios no pueden aplicar a la vez al mismo ámbito.

La comprobación (consultar y después insertar) es un check-then-act; PrecioService
la ejecuta dentro del lock de la clave de ámbito (ScopeLocks) para serializar
las escrituras concurrentes sobre la misma clave.
"""

import threading
import weakref
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterator, List, Optional

import structlog

from precios.models import Precio, ScopeKey
from precios.services.exceptions import ConflictError
from precios.services.vigencia import es_vencido, ventanas_solapan
from precios.utils import a_fecha, as_dict

logger = structlog.get_logger(__name__)


class ScopeLocks:
    """
    Registro de locks por clave de ámbito (uno por ScopeKey, creado bajo demanda).
    Las entradas se liberan solas cuando nadie retiene ya el lock.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[ScopeKey, threading.Lock]" = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def lock_for(self, key: ScopeKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: ScopeKey) -> Iterator[None]:
        """Mantiene el lock de la clave durante validate → check → write."""
        with self.lock_for(key):
            yield


class ConflictDetector:
    """Impide que coexistan precios activos con ventanas solapadas para la misma clave de ámbito."""

    def __init__(self, repository, hoy: Callable[[], date] = date.today) -> None:
        self._repo = repository
        self._hoy = hoy

    def find_conflicts(self, candidate: Any, exclude_id: Optional[Any] = None) -> List[Precio]:
        """
        Precios almacenados que chocarían con el candidato: misma clave de ámbito,
        activos, no vencidos (vigentes o que llegarán a serlo) y con ventana solapada.
        Un candidato inactivo nunca entra en conflicto.
        """
        data = as_dict(candidate)
        if not data.get("is_active", True):
            return []

        hoy = self._hoy()
        key = ScopeKey.from_record(data)
        inicio = a_fecha(data.get("fecha_inicio")) or hoy
        fin = a_fecha(data.get("fecha_fin"))

        rows = self._repo.find_by_scope(
            key,
            solo_activos=True,
            exclude_id=str(exclude_id) if exclude_id is not None else None,
        )
        conflictos: List[Precio] = []
        for row in rows:
            existente = Precio.model_validate(row)
            if not existente.is_active or es_vencido(existente, hoy):
                continue
            if ventanas_solapan(inicio, fin, existente.fecha_inicio, existente.fecha_fin):
                conflictos.append(existente)
        return conflictos

    def check_no_conflict(self, candidate: Any, exclude_id: Optional[Any] = None) -> None:
        """Lanza ConflictError si el candidato solaparía con un precio vigente del mismo ámbito."""
        conflictos = self.find_conflicts(candidate, exclude_id=exclude_id)
        if not conflictos:
            return
        key = ScopeKey.from_record(as_dict(candidate))
        logger.info(
            "conflicto_precio",
            scope=key._asdict(),
            existentes=[str(p.id) for p in conflictos],
        )
        raise ConflictError(
            f"Ya existe un precio vigente para esta entidad en el nivel {key.describe()}. "
            "Desactiva el precio anterior antes de crear uno nuevo."
        )
