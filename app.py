import os
import time
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from services.errors import NotFoundError, PermissionDeniedError, ValidationError
from utils.logger_factory import new_logger

SESSION_SECRET_KEY = os.environ.get("SESSION_SECRET_KEY")
if not SESSION_SECRET_KEY:
    raise RuntimeError("SESSION_SECRET_KEY environment variable must be set for visitor sessions.")

SESSION_MAX_AGE_SECONDS = int(os.environ.get("SESSION_MAX_AGE_SECONDS", str(14 * 24 * 3600)))
CORS_ALLOW_ORIGINS = [o.strip() for o in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]


app = FastAPI()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Bodies are not logged: verify requests carry page passwords
    log = new_logger("log_requests")
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    log.info(f"{request.method} {request.url.path} {response.status_code} in {elapsed_ms:.0f}ms")
    return response


app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET_KEY,
    session_cookie="sharepage_session",
    max_age=SESSION_MAX_AGE_SECONDS,
    same_site="lax",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    new_logger("request_validation_handler").warning(f"Malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": str(exc)})


@app.get("/")
def root():
    return {"message": "Share page API deployed.  Note: the DB connection has not been verified yet."}

from api.share_pages import router as share_pages_router
from api.annotations import router as annotations_router
from api.analytics import router as analytics_router
from api.healthcheck import router as health_router

app.include_router(share_pages_router, prefix="/api")
app.include_router(annotations_router, prefix="/api")
app.include_router(analytics_router, prefix="/api")
app.include_router(health_router, prefix="/api")
