import os
from pathlib import Path

from dotenv import load_dotenv

# Cargar .env desde la raíz del proyecto (donde se ejecuta uvicorn)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)
# Por si se ejecuta desde otra ruta, intentar también el cwd
load_dotenv()


def _env_bool(name: str, default: str = "") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


SUPABASE_URL: str | None = os.environ.get("SUPABASE_URL")
SUPABASE_KEY: str | None = os.environ.get("SUPABASE_KEY")

# Desarrollo: si es "true", los 500 devuelven el detalle de la excepción.
DEBUG: bool = _env_bool("DEBUG")

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
JSON_LOGS: bool = _env_bool("JSON_LOGS", "false")
# Nombre con el que se etiquetan los logs de este servicio.
SERVICIO_NOMBRE: str = os.environ.get("SERVICIO_NOMBRE", "precios-api")

PRECIOS_TABLE: str = os.environ.get("PRECIOS_TABLE", "precios")
MONEDA_POR_DEFECTO: str = os.environ.get("MONEDA_POR_DEFECTO", "EUR").upper()

PAGINACION_LIMITE_DEFECTO: int = _env_int("PAGINACION_LIMITE_DEFECTO", 20)
PAGINACION_LIMITE_MAXIMO: int = _env_int("PAGINACION_LIMITE_MAXIMO", 100)
