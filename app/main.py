from fastapi import FastAPI
from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.posts import router as posts_router
from .routers.likes import router as likes_router
from .routers.comments import router as comments_router
from .routers.notifications import router as notifications_router
from .database import create_tables
from .exceptions import FeedError
from .schemas import ErrorResponse
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
import random
import time
import uuid
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Configure logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield


app = FastAPI(
    title="Mini Social Feed API",
    description="""
# Mini Social Feed API

Post short updates, like and comment on posts, and get push notifications
when someone interacts with your posts.

## 🔐 Authentication

All endpoints except signup, login, the password reset flow and health require
a Bearer token obtained from `POST /api/auth/signup` or `POST /api/auth/login`:
`Authorization: Bearer <your_token>`

## Responses

Every endpoint answers with an envelope:
- success: `{"success": true, "message": "...", "data": ...}`
- list endpoints add `"pagination": {"page", "limit", "total", "totalPages"}`
- failure: `{"success": false, "message": "..."}`

## Likes

`POST /api/posts/{id}/like` toggles: the first call likes the post, the next
one removes the like. The response always holds the current `likeCount`.

## Push notifications

Register the device FCM token with `POST /api/notifications/register-token`.
Post authors are notified when another user likes or comments on their posts.
""",
    version="1.0.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
    lifespan=lifespan
)

# Include routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(posts_router)
app.include_router(likes_router)
app.include_router(comments_router)
app.include_router(notifications_router)

# CORS for the mobile client
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", [
                        "method", "route", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5)
)


def _error_response(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
        headers=headers,
    )


@app.exception_handler(FeedError)
async def feed_error_handler(request: Request, exc: FeedError):
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(422, "Validation error", errors=jsonable_encoder(exc.errors()))


@app.middleware("http")
async def add_request_id_and_errors(request: Request, call_next):
    request_id = str(uuid.uuid4())
    # Lightweight JSON log (sample all in debug, sample the rest in prod)
    if settings.debug or random.random() < settings.log_sample_rate:
        logging.info({
            "event": "request",
            "method": request.method,
            "path": request.url.path,
            "rid": request_id,
        })
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logging.exception(f"Unhandled error rid={request_id}")
        route = getattr(request.scope.get("route"), "path", request.url.path)
        REQUEST_COUNT.labels(method=request.method,
                             route=route, status=500).inc()
        return _error_response(500, "Internal Server Error", headers={"X-Request-ID": request_id})

    REQUEST_LATENCY.observe(time.perf_counter() - start)
    route = getattr(request.scope.get("route"), "path", request.url.path)
    REQUEST_COUNT.labels(method=request.method,
                         route=route, status=response.status_code).inc()
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/metrics")
async def metrics(request: Request):
    # In dev/debug mode, expose metrics without auth
    if not settings.debug:
        token = request.headers.get("X-Metrics-Token")
        if not settings.metrics_token or token != settings.metrics_token:
            return _error_response(403, "Forbidden")
    data = generate_latest()
    return PlainTextResponse(content=data, media_type=CONTENT_TYPE_LATEST)

