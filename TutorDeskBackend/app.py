import time
import uuid
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from TutorDeskBackend.metrics import observe_request
from TutorDeskBackend.routes.health_routes import router as health_router
from TutorDeskBackend.routes.notifications_routes import router as notifications_router
from TutorDeskBackend.routes.reports_routes import router as reports_router
from TutorDeskBackend.routes.requests_routes import router as requests_router
from TutorDeskBackend.routes.students_routes import router as students_router
from TutorDeskBackend.routes.support_routes import router as support_router
from TutorDeskBackend.routes.tutors_routes import router as tutors_router
from TutorDeskBackend.services.auth_service import AuthService
from TutorDeskBackend.utils.request_utils import get_client_ip, get_request_id
from shared.config import load_backend_config, validate_environment_integrity
from shared.exceptions import TutorDeskError
from shared.logging_setup import setup_logging


setup_logging()
logger = logging.getLogger("tutordesk_backend")

cfg = load_backend_config()
app = FastAPI(title="TutorDesk Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

for _router in (
    health_router,
    requests_router,
    students_router,
    tutors_router,
    support_router,
    notifications_router,
    reports_router,
):
    app.include_router(_router)


@app.on_event("startup")
def _startup() -> None:
    validate_environment_integrity(cfg)
    AuthService().validate_production_config()
    logger.info(
        "startup",
        extra={
            "app_env": cfg.app_env,
            "auth_required": cfg.auth_required,
            "algolia_enabled": cfg.algolia_enabled,
            "redis_prefix": cfg.redis_prefix,
        },
    )


@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        status_code = getattr(response, "status_code", 200) or 200
        return response
    except Exception:
        logger.exception(
            "http_exception",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
            },
        )
        raise
    finally:
        latency_ms = (time.perf_counter() - start) * 1000.0
        # Route templates keep the metric label cardinality bounded.
        route = request.scope.get("route")
        endpoint = request.scope.get("endpoint")
        path_label = getattr(route, "path", None) or getattr(endpoint, "__name__", None) or "unmatched"
        observe_request(method=request.method, path=path_label, status_code=status_code, latency_ms=latency_ms)
        client_ip = get_client_ip(request)
        uid = getattr(getattr(request, "state", None), "uid", None)
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round(latency_ms, 2),
                "client_ip": client_ip,
                "uid": uid,
            },
        )


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


@app.exception_handler(TutorDeskError)
async def tutordesk_error_handler(request: Request, exc: TutorDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed error=%s",
            exc.message,
            extra={"request_id": get_request_id(request), "exception_type": type(exc).__name__},
        )
    return _error(exc.status_code, exc.message, **exc.extra)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        loc = ".".join(str(p) for p in errors[0].get("loc", ())[1:]) or "body"
        message = f"{loc}: {errors[0].get('msg', 'invalid value')}"
    return _error(400, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        extra={"request_id": get_request_id(request), "exception_type": type(exc).__name__},
    )
    return _error(500, "Internal server error")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("TutorDeskBackend.app:app", host=cfg.app_host, port=cfg.app_port)
