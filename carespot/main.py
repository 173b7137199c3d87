from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carespot.core.config import settings
from carespot.core.exceptions import CarespotError, FieldLocked, Unauthenticated
from carespot.core.logger import logger
from carespot.core.redis import redis_client
from carespot.db.session import init_db
from carespot.middleware.log_middleware import LogMiddleware

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.PROJECT_NAME} started")
    yield
    await redis_client.close()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)

@app.exception_handler(CarespotError)
async def carespot_error_handler(request: Request, exc: CarespotError):
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body = {"error": exc.error_code, "message": exc.message, "details": exc.details}
    if isinstance(exc, FieldLocked) and exc.resource is not None:
        body["resource"] = exc.resource
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(body), headers=headers)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({
            "error": "VALIDATION_FAILED",
            "message": "Request validation failed",
            "details": {"errors": errors},
        }),
    )

@app.get("/")
async def root():
    return {"message": "Welcome to Carespot API"}

from carespot.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
