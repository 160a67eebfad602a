from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from contextlib import asynccontextmanager
import logging

from app.api import health, offers
from app.db.database import init_db
from app.kafka.producer import event_producer
from app.services.errors import ErrorKind, OfferError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.PAYOUT_NOT_READY: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Offer Service...")
    await init_db()
    logger.info("Offer Service started successfully")
    yield
    # Shutdown
    logger.info("Shutting down Offer Service...")
    event_producer.flush()


app = FastAPI(
    title="Offer Service",
    description="""
    Supplier offers and derived product availability for the marketplace.

    **Features:**
    - Base offers (whole product) and variant offers (one variant) per supplier
    - Conversion between offer kinds and safe deletion
    - Product stock and automatic price recomputed from live offers
    - Payout readiness gate on purchasable offers
    - Kafka event publishing
    - Auth0 JWT authentication

    **Authentication:**
    All offer endpoints require JWT authentication via Auth0. Include the token in the Authorization header:
    ```
    Authorization: Bearer <your-jwt-token>
    ```

    **Account Types:**
    - **SUPPLIER**: Manages their own offers
    - **ADMIN**: Acts for any supplier through the `X-Supplier-Id` header; runs product-wide maintenance
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Allowed origins for CORS
ALLOWED_ORIGINS = [
    "https://supplier.local",
    "https://admin.local",
    "http://supplier.local",
    "http://admin.local",
]

# CORS must be the first middleware added so it runs before the others
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With", "X-Supplier-Id"],
    expose_headers=["*"],
    max_age=3600,
)


def custom_openapi():
    """Custom OpenAPI schema with JWT Bearer authentication"""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT token from Auth0. Format: Bearer <token>"
        }
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.exception_handler(OfferError)
async def offer_error_handler(request: Request, exc: OfferError):
    """Map offer error kinds to HTTP status codes"""
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(
            f"Offer operation failed: {exc.message}",
            extra={"path": request.url.path, "method": request.method},
        )
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.kind.value}): {exc.message}")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_dict()))


# Global exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them properly"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "code": ErrorKind.INTERNAL.value,
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    logger.warning(
        f"Validation error: {exc.errors()}",
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({
            "detail": "Invalid request data",
            "code": ErrorKind.VALIDATION.value,
            "errors": exc.errors(),
        })
    )


# Include routers
app.include_router(health.router)
app.include_router(offers.router, prefix="/api")


@app.get("/")
async def root():
    return {"service": "offer-service", "version": "1.0.0"}
