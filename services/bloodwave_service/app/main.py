from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from shared.errors import http_exception_handler, unhandled_exception_handler
from shared.request_context import RequestIDMiddleware

from .core.security import AccessTokenIssuer, PasswordHasher
from .routes import register_routes
from .settings import bloodwave_settings
from .startup import init_service_startup, setup_instrumentation, setup_logging, shutdown_instrumentation


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Database readiness and migrations before the app starts serving requests
    await init_service_startup(app)
    yield
    await shutdown_instrumentation(app)


def create_app() -> FastAPI:
    setup_logging()
    settings = bloodwave_settings()
    app = FastAPI(title="Bloodwave Service", version="0.1.0", lifespan=lifespan)

    # Built once per process; every request shares the same signing key read-only.
    app.state.token_issuer = AccessTokenIssuer.from_settings(settings)
    app.state.password_hasher = PasswordHasher()

    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    setup_instrumentation(app)
    register_routes(app)
    return app
