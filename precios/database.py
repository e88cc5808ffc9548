from functools import lru_cache

from supabase import Client, create_client

from precios import config


def _create_supabase_client() -> Client:
  """
  Crea una instancia de cliente Supabase utilizando variables de entorno.

  Espera encontrar en `.env`:
    - SUPABASE_URL  (URL completa del proyecto, https://...)
    - SUPABASE_KEY  (usa la clave secreta o service role, NO la public key)
  """
  url = (config.SUPABASE_URL or "").strip()
  key = config.SUPABASE_KEY

  if not url or not key:
    raise RuntimeError(
      "Faltan las variables de entorno SUPABASE_URL / SUPABASE_KEY "
      "para conectar con Supabase. Obtén ambos en: Supabase → tu proyecto → Settings → API."
    )
  if not url.startswith("http://") and not url.startswith("https://"):
    raise RuntimeError(
      "SUPABASE_URL debe ser la URL completa del proyecto, por ejemplo:\n"
      "  https://abcdefgh.supabase.co"
    )

  return create_client(url, key)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
  """
  Devuelve un cliente Supabase singleton para todo el proceso FastAPI.
  """
  return _create_supabase_client()


__all__ = ["get_supabase_client"]
