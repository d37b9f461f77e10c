# Main application file



import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import duka.models  # noqa: F401  registers every table on Base.metadata
from duka.core.config import settings
from duka.core.exceptions import DukaError
from duka.core.rate_limiter import limiter
from duka.routers import (
    auth,
    products,
    inventory,
    inventory_requests,
    sales,
    returns,
    reports,
)


# LOGGING CONFIGURATION

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
)

logger = logging.getLogger("duka")


# APP INIT

app = FastAPI(
    title="Duka Inventory & Sales API",
    description="Stock, sales approval and returns for the Utawala and Kamulu shops",
    version="1.0.0",
)



# CORS (Token-based auth)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Authorization", "Content-Type"],
)


# RATE LIMITING

app.state.limiter = limiter
app.add_exception_handler(
    RateLimitExceeded,
    _rate_limit_exceeded_handler
)


# DOMAIN ERRORS

@app.exception_handler(DukaError)
async def duka_error_handler(request: Request, exc: DukaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(
            f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}"
        )

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# REQUEST LOGGING MIDDLEWARE

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)

    logger.info(
        f"{request.method} {request.url.path} "
        f"Status: {response.status_code} "
        f"Time: {duration}ms"
    )

    return response


# ROUTERS

app.include_router(auth.router)
app.include_router(products.router)
app.include_router(products.category_router)
app.include_router(inventory.router)
app.include_router(inventory_requests.router)
app.include_router(sales.router)
app.include_router(returns.router)
app.include_router(reports.router)



# ROOT

@app.get("/")
def root():
    logger.info("Health check endpoint called")
    return {"message": "Duka Inventory & Sales API is running"}
