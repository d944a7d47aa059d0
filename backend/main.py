from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import uvicorn

# ------------------------------------------------------------
# 1. CONFIG & LOGGING
# ------------------------------------------------------------
from pusarapay.core.config import settings
from pusarapay.core.dependencies import get_mirror_dispatcher
from pusarapay.core.errors import (
    PaymentError,
    ProviderError,
    ReservationNotFound,
    ReservationServiceError,
    StorageError,
    ValidationError,
)
from pusarapay.core.logging_config import configure_logging

logger = configure_logging()

# ------------------------------------------------------------
# 2. FASTAPI APP
# ------------------------------------------------------------
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="ToyyibPay bill creation and payment reconciliation for OnlinePusara reservations.",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# ------------------------------------------------------------
# 3. CORS
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------------------------------------
# 4. ROUTERS (API ROUTES)
# ------------------------------------------------------------
from pusarapay.routers import payment_router

app.include_router(payment_router.router, prefix="/api", tags=["Payment"])

# ------------------------------------------------------------
# 5. SPECIFIC ROUTES
# ------------------------------------------------------------
@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root():
    return "OnlinePusara ToyyibPay Backend is running successfully"


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}

# ------------------------------------------------------------
# 6. EXCEPTION HANDLERS
# ------------------------------------------------------------
PAYMENT_ERROR_STATUS = {
    ValidationError: 400,
    ReservationNotFound: 404,
    ProviderError: 502,
    ReservationServiceError: 503,
    StorageError: 503,
}


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    status_code = next(
        (code for cls, code in PAYMENT_ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    log = logger.warning if status_code < 500 else logger.error
    log(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Something went wrong. We're on it.",
            "request_id": request.headers.get("X-Request-ID"),
        },
    )

# ------------------------------------------------------------
# 7. STARTUP / SHUTDOWN EVENTS
# ------------------------------------------------------------
@app.on_event("startup")
async def startup_event():
    logger.info(f"{settings.PROJECT_NAME} API started | Env: {settings.ENVIRONMENT} | Debug: {settings.DEBUG}")
    logger.info(f"ToyyibPay: {settings.TOYYIBPAY_BASE_URL} | configured={settings.toyyibpay_configured}")
    logger.info(f"Callback URL base: {settings.BACKEND_URL}/api/payment/callback")
    logger.info(f"Mirror backend: {settings.MIRROR_BACKEND} | legacy={'on' if settings.LEGACY_UPDATE_URL else 'off'}")


@app.on_event("shutdown")
async def shutdown_event():
    # let detached mirror tasks finish before the loop goes away
    await get_mirror_dispatcher().drain()

# ------------------------------------------------------------
# 8. REQUEST LOGGING MIDDLEWARE
# ------------------------------------------------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    client = request.client.host if request.client else "-"
    logger.info(f"{client} {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
    return response


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=5000)
