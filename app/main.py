import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import checkout, purchases, funnel_sessions, funnels, admin
from app.core.config import settings
from app.core.exceptions import AppError

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Funnel API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render domain errors with their own status code"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Ensure CORS headers are included even on unhandled exceptions"""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    response = JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": "internal_error"}
    )

    # Add CORS headers manually
    origin = request.headers.get("origin")
    if origin and origin in settings.get_allowed_origins():
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "*"

    return response


app.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
app.include_router(purchases.router, prefix="/purchases", tags=["purchases"])
app.include_router(funnel_sessions.router, prefix="/funnel", tags=["funnel"])
app.include_router(funnels.router, prefix="/funnels", tags=["funnels"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.get("/")
async def root():
    return {"message": "Storefront Funnel API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
