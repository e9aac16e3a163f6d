from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.router import api_router
from api.dependencies.errors import setup_error_handlers
from api.dependencies.rate_limits import setup_rate_limiter
from infrastructure.services import get_settings
from server.lifespan import lifespan
from server.middleware import RequestContextMiddleware

DEV_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]


def create_app() -> FastAPI:
    """Build the FastAPI application.

    The notification service itself is constructed in ``lifespan`` so that
    importing this module never starts worker threads.
    """
    settings = get_settings()
    app = FastAPI(title="Notification Service", lifespan=lifespan)
    setup_rate_limiter(app)
    setup_error_handlers(app)

    if settings.server.allowed_origins:
        allow_origins = settings.server.allowed_origins
    elif settings.is_production:
        allow_origins = ["*"]
    else:
        allow_origins = DEV_ORIGINS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(api_router)
    return app


handler = create_app()
