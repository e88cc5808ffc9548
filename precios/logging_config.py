import logging
import sys
from typing import Any

import structlog

from precios import __version__, config

# Clientes HTTP que usa supabase; a INFO registran cada petición a PostgREST.
_LOGGERS_RUIDOSOS = ("httpx", "httpcore", "hpack")


def agregar_servicio(_logger: Any, _method_name: str, event_dict: dict) -> dict:
    """Etiqueta cada evento con el servicio y su versión, sin pisar valores ya enlazados."""
    event_dict.setdefault("servicio", config.SERVICIO_NOMBRE)
    event_dict.setdefault("version", __version__)
    return event_dict


def configure_logging() -> None:
    """Configura logging estructurado (structlog sobre logging estándar)."""

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        agregar_servicio,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.JSON_LOGS:
        processors = shared_processors + [structlog.processors.JSONRenderer(ensure_ascii=False)]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        level=config.LOG_LEVEL,
    )
    if config.LOG_LEVEL != "DEBUG":
        for nombre in _LOGGERS_RUIDOSOS:
            logging.getLogger(nombre).setLevel(logging.WARNING)
