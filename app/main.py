import time
from datetime import datetime, timezone
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database import Database
from app.exceptions import TodoAPIError
from app.logger import logger
from app.routers import todos

settings = get_settings()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def available_endpoints(prefix: str) -> list[str]:
    return [
        "GET /",
        "GET /health",
        "GET /health/ready",
        "GET /docs",
        f"GET {prefix}/todos",
        f"GET {prefix}/todos/filter/:status",
        f"GET {prefix}/todos/:id",
        f"POST {prefix}/todos",
        f"PUT {prefix}/todos/:id",
        f"DELETE {prefix}/todos/:id",
    ]


def internal_error_response(exc: Exception) -> JSONResponse:
    """500 envelope for exceptions no other handler claimed"""
    logger.exception(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "error": str(exc) if settings.debug else "Something went wrong",
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the connection pool on startup, close it on shutdown"""
    database: Database = app.state.database
    logger.info(f"Starting {settings.app_name}")
    try:
        database.connect()
        database.init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    yield

    logger.info(f"Shutting down {settings.app_name}")
    database.dispose()


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the application around a database handle"""
    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        description="A simple Todo List API backed by a relational database",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.database = database or Database(
        settings.get_database_url(),
        echo=settings.debug  # Log SQL queries in debug mode
    )

    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            # Answer here so the 500 still gets the headers below
            response = internal_error_response(exc)
        process_time = time.time() - start_time

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(TodoAPIError)
    async def todo_api_exception_handler(request: Request, exc: TodoAPIError):
        if exc.status_code >= 500:
            logger.error(f"{exc.message}: {exc.error}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Invalid request body for {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid request body",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={
                    "success": False,
                    "message": "Route not found",
                    "availableEndpoints": available_endpoints(settings.api_prefix),
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        return internal_error_response(exc)

    # Health check endpoints
    @app.get("/health", tags=["Health"])
    def health_check(request: Request):
        """Basic health check"""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": time.monotonic() - request.app.state.started_at,
        }

    @app.get("/health/ready", tags=["Health"])
    def readiness_check(request: Request):
        """Check if service is ready (including database)"""
        try:
            request.app.state.database.ping()
        except Exception as e:
            logger.error(f"Readiness check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"success": False, "message": "Service not ready", "error": str(e)},
            )
        return {
            "status": "ready",
            "service": settings.app_name,
            "database": "connected"
        }

    @app.get("/", tags=["Root"])
    def read_root():
        """Root endpoint"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.version,
            "endpoints": available_endpoints(settings.api_prefix),
            "docs": "/docs"
        }

    app.include_router(todos.router, prefix=settings.api_prefix)

    return app


app = create_app()
