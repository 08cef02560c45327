"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from webp_batch import __version__
from webp_batch.api.routes import router
from webp_batch.config import CORS_ORIGINS, logger
from webp_batch.db import init_db
from webp_batch.errors import ConverterError


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("WebP converter API started")
    yield
    logger.info("WebP converter API shutting down")


app = FastAPI(
    title="WebP Batch Converter API",
    description="Convert uploaded images to WebP, one file per request.",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(ConverterError)
async def converter_error_handler(request: Request, exc: ConverterError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(router)
