"""
Dependencias FastAPI.

Construye PrecioService sobre el cliente Supabase del proceso. Los tests
sustituyen get_precio_service con app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends

from precios.database import get_supabase_client
from precios.repositories import PreciosRepository
from precios.services import PrecioService


def get_precios_repository() -> PreciosRepository:
    return PreciosRepository(get_supabase_client())


def get_precio_service(
    repository: Annotated[PreciosRepository, Depends(get_precios_repository)],
) -> PrecioService:
    """Una instancia por request; los locks de ámbito se comparten a nivel de proceso."""
    return PrecioService(repository)


# Alias para inyección en routers
PrecioServiceDep = Annotated[PrecioService, Depends(get_precio_service)]
