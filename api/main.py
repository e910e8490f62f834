"""
Affilia back-office API - main entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lib.db import db
from lib.logging import logger
from lib.settings import settings
from api.middleware.logging import RequestLoggingMiddleware
from api.routes.admin import router as admin_router
from api.routes.admin_catalog import router as admin_catalog_router
from api.routes.admin_metrics import router as admin_metrics_router
from api.routes.auth import router as auth_router
from api.routes.campaigns import router as campaigns_router
from api.routes.health import router as health_router
from api.routes.links import router as links_router
from api.routes.metrics import router as metrics_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage app lifecycle - connect/disconnect resources"""
    logger.info(f"Starting {settings.app_name}...")

    await db.connect()
    logger.info("Connected to PostgreSQL database")

    app.state.settings = settings
    logger.info(f"Ready at http://{settings.api_host}:{settings.api_port} (environment: {settings.environment})")
    yield

    await db.disconnect()
    logger.info("Disconnected from database")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan
)

# Cookie sessions need explicit origins, "*" is not allowed with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid data", "errors": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    logger.exception(f"Unhandled error request_id={request_id} path={request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health_router)
app.include_router(auth_router)
app.include_router(metrics_router)
app.include_router(campaigns_router)
app.include_router(links_router)
app.include_router(admin_router)
app.include_router(admin_metrics_router)
app.include_router(admin_catalog_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
