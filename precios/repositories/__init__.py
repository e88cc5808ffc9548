"""
Repositorios sobre Supabase (PostgREST).

Los servicios trabajan con dicts; solo los repositorios conocen el client.
"""

from precios.repositories.base_repository import BaseRepository
from precios.repositories.precios_repository import PreciosRepository

__all__ = ["BaseRepository", "PreciosRepository"]
