import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from precios import __version__
from precios.config import DEBUG
from precios.logging_config import configure_logging
from precios.routers import precios
from precios.services.exceptions import DomainError, NotFoundError, ValidationError


logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Precios API",
    version=__version__,
    description="API REST del motor de precios jerárquicos (base, ubicación y service point).",
)


# CORS: permitir frontend en localhost
origins = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
]


@app.exception_handler(DomainError)
async def domain_exception_handler(_request: Request, exc: DomainError) -> JSONResponse:
    """Errores de negocio: 404 si no existe el recurso; 400 para validación y conflictos."""
    status_code = 404 if isinstance(exc, NotFoundError) else 400
    content = {"error": exc.message}
    if isinstance(exc, ValidationError) and exc.issues:
        content["details"] = exc.issues
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Datos de entrada inválidos", "details": jsonable_encoder(exc.errors())},
    )


# Manejador global: en producción no exponer detail del 500; solo si DEBUG=true
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("error_no_controlado", path=request.url.path, method=request.method)
    detail = str(exc) if DEBUG else "Internal Server Error"
    return JSONResponse(status_code=500, content={"error": detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Registro de routers bajo /api para que el frontend llame a /api/precios, etc.
app.include_router(precios.router, prefix="/api")


@app.get("/")
def root() -> dict:
    """Health check sencillo para verificar que el backend está levantado."""
    return {"status": "ok"}


@app.on_event("startup")
def startup():
    configure_logging()
    logger.info("api_iniciada", debug=DEBUG)


__all__ = ["app"]
