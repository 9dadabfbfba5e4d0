from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api import api_router
from core.config import cors_origin_options, get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.exceptions import RelayError
from core.middleware import CorrelationIdMiddleware


setup_logging()
settings = get_settings()

app = FastAPI(
    title="IconStream API",
    description="Streaming relay for skeuomorphic icon generation",
    version="0.1.0",
    docs_url=None,  # We'll mount docs under /api/docs
    redoc_url=None,
)

# Middleware added last runs first: CORS wraps everything so even error
# responses carry CORS headers.
app.add_middleware(ExceptionNormalizationMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    **cors_origin_options(settings),
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=["POST", "GET", "OPTIONS", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Length"],
    max_age=600,
)

app.add_exception_handler(RelayError, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(HTTPException, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/api/docs", include_in_schema=False)
def custom_swagger_ui_html():
    return get_swagger_ui_html(openapi_url="/openapi.json", title="IconStream API Docs")


@app.get("/api/redoc", include_in_schema=False)
def redoc_html():
    return get_redoc_html(openapi_url="/openapi.json", title="IconStream API Redoc")


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    return "Hello from the IconStream relay for upstream image generation!"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8787, reload=True)
