"""Main FastAPI application driving simulated messaging instances."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import VERSION, Config, configure_logging
from core.exceptions import InstanceNotFoundError, InvalidRequestError, MessageNotFoundError
from core.messaging import MessagingClientFactory
from core.registry import InstanceRegistry
from routes import conversations, instances

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def error_response(code: int, message: str, stack: Optional[str] = None) -> JSONResponse:
    body = {"code": code, "error": message}
    if stack is not None:
        body["stack"] = stack
    return JSONResponse(status_code=code, content=body)


def create_app(config: Optional[Config] = None,
               client_factory: Optional[MessagingClientFactory] = None) -> FastAPI:
    """
    Build the application around a single instance registry.

    Args:
        config: Settings, read from the environment when omitted
        client_factory: Messaging client factory, overriding ``config.MESSAGING_CLIENT``
    """
    config = config or Config()
    configure_logging(config)

    registry = InstanceRegistry(
        client_factory or config.client_factory(),
        max_instances=config.MAX_INSTANCES,
        message_cache_size=config.MESSAGE_CACHE_SIZE,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Instance harness v{VERSION} ready, up to {config.MAX_INSTANCES} instances")
        yield
        await registry.shutdown()

    app = FastAPI(title="Instance Harness API", version=VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InstanceNotFoundError)
    async def instance_not_found(request: Request, exc: InstanceNotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(MessageNotFoundError)
    async def message_not_found(request: Request, exc: MessageNotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError):
        return error_response(422, f"Validation error: {exc}")

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return error_response(422, f"Validation error: {details}")

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.error(f"Request {request.method} {request.url.path} failed: {exc}")
        return error_response(500, str(exc), "".join(traceback.format_exception(exc)))

    @app.get("/")
    async def root():
        """Root endpoint returning API information."""
        return {
            "message": "Instance Harness API",
            "version": VERSION,
            "endpoints": {
                "instances": f"{API_PREFIX}/instances",
                "instance": f"{API_PREFIX}/instance/{{instanceId}}",
            },
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "instances": len(registry.get_instances()),
            "maxInstances": config.MAX_INSTANCES,
        }

    app.include_router(instances.router, prefix=API_PREFIX)
    app.include_router(conversations.router, prefix=API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.config
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT_HTTP,
        log_level=settings.LOG_LEVEL.lower(),
    )
