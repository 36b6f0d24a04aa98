import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from caltrack.core.errors import TrackingError
from caltrack.core.logging import configure_logging
from caltrack.db.base import Base
from caltrack.db.session import engine
import caltrack.models  # noqa: F401  registra todos los modelos en Base.metadata

from caltrack.api import (
    auth,
    user,
    catalog,
    equipment,
    tracking,
    employee,
    reports,
    metrics,
    imports,
)

configure_logging()
logger = logging.getLogger(__name__)

# Crear tablas al inicio (sin migraciones)
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Calibration Tracking API")


@app.exception_handler(TrackingError)
def tracking_error_handler(request: Request, exc: TrackingError):
    """
    Convierte los errores de dominio en respuestas JSON con su código HTTP.
    """
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth.router)
app.include_router(user.router)
app.include_router(catalog.router)
app.include_router(equipment.router)
app.include_router(tracking.router)
app.include_router(employee.router)
app.include_router(reports.router)
app.include_router(metrics.router)
app.include_router(imports.router)


@app.get("/")
def root():
    return {"message": "Calibration Tracking API funcionando"}
