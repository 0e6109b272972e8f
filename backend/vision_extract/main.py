import logging
import time
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vision_extract.api.v1.analyze import router as analyze_router
from vision_extract.api.v1.models import router as models_router
from vision_extract.api.v1.schema import router as schema_router
from vision_extract.core.config import get_settings
from vision_extract.core.dependencies import get_gateway
from vision_extract.schemas.analysis import HealthResponse
from vision_extract.services.ai.common.errors import ClassifiedError, ErrorKind
from vision_extract.services.ai.common.gateway import ExternalModelGateway
from vision_extract.services.extraction.errors import SchemaStructureError, SchemaSyntaxError
from vision_extract.utils.rate_limit import get_client_ip, get_user_agent, rate_limiter

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()
_INTERNAL_ERROR_MESSAGE = "Internal server error"

_KIND_STATUS = {
    ErrorKind.AUTH: 401,
    ErrorKind.PERMISSION: 403,
    ErrorKind.QUOTA: 429,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNKNOWN: 502,
}

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.include_router(analyze_router, prefix="/api/v1", tags=["analysis"])
app.include_router(models_router, prefix="/api/v1", tags=["models"])
app.include_router(schema_router, prefix="/api/v1", tags=["schema"])


def _error_body(kind: str, message: str, *, retryable: bool = False, details=None) -> dict:
    body = {"success": False, "kind": kind, "message": message, "retryable": retryable}
    if details is not None:
        body["details"] = details
    return body


@app.exception_handler(ClassifiedError)
async def _classified_error_handler(request: Request, exc: ClassifiedError):
    status_code = _KIND_STATUS.get(exc.kind, 502)
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.kind.value, exc.message, retryable=exc.retryable),
    )


@app.exception_handler(SchemaSyntaxError)
async def _schema_syntax_handler(request: Request, exc: SchemaSyntaxError):
    return JSONResponse(status_code=400, content=_error_body(exc.kind, exc.message))


@app.exception_handler(SchemaStructureError)
async def _schema_structure_handler(request: Request, exc: SchemaStructureError):
    return JSONResponse(
        status_code=400,
        content=_error_body(exc.kind, exc.message, details=[issue.to_dict() for issue in exc.issues]),
    )


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content=_error_body("request_validation_error", "Invalid request", details=details),
    )


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for 5xx in production unless explicitly enabled.
    if exc.status_code >= 500 and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", _INTERNAL_ERROR_MESSAGE))
    if isinstance(exc.detail, list):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", "; ".join(str(d) for d in exc.detail), details=exc.detail),
        )
    return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", str(exc.detail)))


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content=_error_body("internal_error", str(exc)))
    return JSONResponse(status_code=500, content=_error_body("internal_error", _INTERNAL_ERROR_MESSAGE))


@app.middleware("http")
async def api_rate_limit_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return await call_next(request)

    settings = get_settings()
    if not settings.rate_limit_enabled:
        return await call_next(request)

    # Every route, /health included, counts against the general bucket.
    path = request.url.path
    ip = get_client_ip(request) or "unknown"
    checks = []
    if request.method == "POST" and path == "/api/v1/analyze":
        checks.append(
            (
                f"analyze:ip:{ip}",
                settings.rate_limit_analyze_per_window,
                settings.rate_limit_analyze_window_seconds,
                "Too many analysis requests, try again later",
            )
        )
    checks.append(
        (
            f"api:ip:{ip}",
            settings.rate_limit_api_per_window,
            settings.rate_limit_window_seconds,
            "Too many requests, try again later",
        )
    )

    for key, limit, window_seconds, message in checks:
        decision = rate_limiter.allow(key, limit, window_seconds)
        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded key=%s limit=%s window_seconds=%s user_agent=%s",
                key,
                limit,
                window_seconds,
                get_user_agent(request),
            )
            body = _error_body(ErrorKind.RATE_LIMIT.value, message, retryable=True)
            body["retry_after"] = decision.retry_after_seconds
            return JSONResponse(
                status_code=429,
                content=body,
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.security_headers_enabled:
        return response

    headers = response.headers
    if "X-Content-Type-Options" not in headers:
        headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in headers:
        headers["X-Frame-Options"] = "DENY"
    if "Referrer-Policy" not in headers:
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if "Permissions-Policy" not in headers:
        headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
    return response


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    t0 = time.monotonic()
    response = await call_next(request)
    logger.info(
        "%s %s status=%s duration_ms=%.1f ip=%s",
        request.method,
        request.url.path,
        response.status_code,
        (time.monotonic() - t0) * 1000,
        get_client_ip(request),
    )
    return response


@app.get("/health", response_model=HealthResponse)
async def health_check(gateway: ExternalModelGateway = Depends(get_gateway)):
    connected = await gateway.test_connection()
    return HealthResponse(
        status="healthy" if connected else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        services={gateway.provider.name: "connected" if connected else "disconnected"},
        version=settings.app_version,
        uptime_seconds=round(time.monotonic() - _STARTED_AT, 1),
    )


@app.get("/")
async def api_info():
    current = get_settings()
    return {
        "name": current.app_name,
        "version": current.app_version,
        "endpoints": {
            "analyze": "POST /api/v1/analyze",
            "models": "GET /api/v1/models",
            "model_info": "GET /api/v1/models/{model_name}",
            "schema_validate": "POST /api/v1/schema/validate",
            "schema_sample": "POST /api/v1/schema/sample",
            "health": "GET /health",
        },
        "limits": {
            "max_file_size": current.max_file_size,
            "allowed_file_types": current.allowed_file_types,
            "analyze_requests_per_window": current.rate_limit_analyze_per_window,
            "analyze_window_seconds": current.rate_limit_analyze_window_seconds,
            "api_requests_per_window": current.rate_limit_api_per_window,
            "api_window_seconds": current.rate_limit_window_seconds,
        },
    }
