"""
Artwork Guide API - FastAPI Application Entry Point.

Backend of the museum guide app: artwork analysis and chat with per-user
rate limiting.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from artwork_guide.api import dependencies
from artwork_guide.api.middleware.auth import AuthMiddleware
from artwork_guide.api.middleware.rate_limit_gate import (
    RateLimitGateMiddleware,
    rate_limited_response,
)
from artwork_guide.api.routers.analysis import router as analysis_router
from artwork_guide.api.routers.chat import router as chat_router
from artwork_guide.api.routers.conversations import router as conversations_router
from artwork_guide.api.routers.rate_limits import router as rate_limits_router
from artwork_guide.domain.exceptions import (
    AuthenticationError,
    ConversationNotFoundError,
    DownstreamServiceError,
    RateLimitExceededError,
)
from artwork_guide.domain.policies import RateLimitPolicyRegistry
from artwork_guide.domain.rate_limit_headers import RATE_LIMIT_HEADERS
from artwork_guide.interfaces.completion import CompletionServicePort
from artwork_guide.interfaces.conversations import ConversationRepositoryPort
from artwork_guide.interfaces.identity import IdentityResolverPort
from artwork_guide.interfaces.rate_limiter import RateLimiterPort
from artwork_guide.services.request_gate import RequestGate


# ===========================================
# LOGGING CONFIGURATION
# ===========================================
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup - create database tables
    repository = app.state.conversation_repository
    if hasattr(repository, "create_tables"):
        await repository.create_tables()

    yield

    # Shutdown - cleanup connections of the collaborators this app was built with
    for resource in (app.state.rate_limiter, app.state.conversation_repository):
        if hasattr(resource, "close"):
            await resource.close()


def _register_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to the {"error": ...} envelope."""

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content={"error": exc.message})

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_error_handler(request: Request, exc: RateLimitExceededError):
        return rate_limited_response(exc)

    @app.exception_handler(ConversationNotFoundError)
    async def not_found_handler(request: Request, exc: ConversationNotFoundError):
        return JSONResponse(status_code=404, content={"error": exc.message})

    @app.exception_handler(DownstreamServiceError)
    async def downstream_error_handler(request: Request, exc: DownstreamServiceError):
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.message, exc.details)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            field = ".".join(str(part) for part in errors[0]["loc"] if part != "body")
            message = f"Invalid {field}: {errors[0]['msg']}" if field else errors[0]["msg"]
        return JSONResponse(status_code=400, content={"error": message})


def create_app(
    rate_limiter: Optional[RateLimiterPort] = None,
    identity_resolver: Optional[IdentityResolverPort] = None,
    policy_registry: Optional[RateLimitPolicyRegistry] = None,
    completion_service: Optional[CompletionServicePort] = None,
    conversation_repository: Optional[ConversationRepositoryPort] = None,
) -> FastAPI:
    """
    Application factory for creating the FastAPI app.

    Collaborators default to the environment-configured singletons in
    artwork_guide.api.dependencies.
    """
    app = FastAPI(
        title="Artwork Guide API",
        description=(
            "Museum guide backend: AI analysis of artwork photos and chat about them.\n\n"
            "## Authentication\n"
            "Send `Authorization: Bearer <access token>` on every request.\n\n"
            "## Rate Limiting\n"
            "`POST /chat` and `POST /analyze-artwork` are limited per user with a "
            "sliding window (10 requests per 5 minutes by default). Responses carry "
            "`X-RateLimit-Remaining`, `X-RateLimit-Reset` and `Retry-After`; a denied "
            "request gets HTTP 429 with `{\"error\", \"retryAfter\"}`."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=dependencies.DEBUG,
    )

    app.state.rate_limiter = rate_limiter or dependencies.get_rate_limiter()
    app.state.policy_registry = policy_registry or dependencies.get_policy_registry()
    app.state.completion_service = completion_service or dependencies.get_completion_service()
    app.state.conversation_repository = (
        conversation_repository or dependencies.get_conversation_repository()
    )

    gate = RequestGate(
        identity_resolver=identity_resolver or dependencies.get_identity_resolver(),
        rate_limiter=app.state.rate_limiter,
        policy_registry=app.state.policy_registry,
    )

    # Middleware order: LAST added runs FIRST
    # We need: Request → CORS → Auth → RateLimitGate → endpoint
    # So we add: RateLimitGate first, then Auth, then CORS last
    # CORS wraps the 401 and 429 short-circuits so browsers can read their headers

    # Rate limit gate (added first → runs last, after auth)
    app.add_middleware(RateLimitGateMiddleware, gate=gate)

    # Auth middleware (added second → runs before the rate limit gate)
    app.add_middleware(AuthMiddleware, gate=gate)

    # CORS middleware (added LAST → runs FIRST, answers preflight requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=list(RATE_LIMIT_HEADERS),
    )

    _register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy"}

    # Include routers
    app.include_router(analysis_router)
    app.include_router(chat_router)
    app.include_router(conversations_router)
    app.include_router(rate_limits_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "artwork_guide.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
